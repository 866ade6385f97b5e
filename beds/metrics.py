"""Prometheus counters for the bed registry, scraped through ``/metrics``."""
from prometheus_client import Counter

REGISTRATIONS = Counter(
    'ward_bed_registrations_total',
    'Beds appended to the registry.',
)
OCCUPANCY_FLIPS = Counter(
    'ward_bed_occupancy_flips_total',
    'Occupancy flag writes that changed the stored value.',
    ['occupied'],
)
LOCK_TIMEOUTS = Counter(
    'ward_bed_lock_timeouts_total',
    'Lock waits that exceeded BED_LOCK_TIMEOUT_MS.',
    ['scope'],
)

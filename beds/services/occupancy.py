"""
Occupancy synchronizer.

Recomputes a bed's ``occupied`` flag from the patient records whenever an
assignment touching that bed changes. The flag is a cached view: there is
no transition table, only "recompute from the assignments" under the bed
row lock, so racing transitions on one bed serialize and each commit
leaves the flag matching the assignments it can see.
"""
from __future__ import annotations

import logging
from typing import Iterable, Optional

from django.db import transaction

from beds.events import AssignmentChange
from beds.models import Bed, Patient
from beds.services import registry
from beds.services.locking import lock_beds

logger = logging.getLogger(__name__)


def bed_is_referenced(bed_number: int) -> bool:
    """Does any live patient record currently reference ``bed_number``?"""
    return Patient.objects.filter(bed_id=bed_number).exists()


def sync_beds(numbers: Iterable[Optional[int]]) -> list[int]:
    """Recompute the flag of every given bed; return the numbers that flipped.

    Joins the caller's transaction, so a failure here aborts the
    assignment change that triggered it.
    """
    flipped = []
    with transaction.atomic():
        # Ascending lock order; each recompute happens under its bed's lock
        for number in lock_beds(numbers):
            if registry.set_occupancy(number, bed_is_referenced(number)):
                flipped.append(number)
    return flipped


def on_assignment_changed(old_bed: Optional[int], new_bed: Optional[int]) -> list[int]:
    """Restore the derived occupancy for the beds a transition touched."""
    change = AssignmentChange(old_bed, new_bed)
    if change.is_noop:
        logger.debug('bed reference unchanged (%s); rechecking only', old_bed)
    else:
        logger.debug('assignment change %s -> %s', old_bed, new_bed)
    return sync_beds(change.affected_beds)


def occupancy_drift() -> list[int]:
    """Beds whose stored flag disagrees with the assignment data."""
    referenced = set(
        Patient.objects.filter(bed__isnull=False).values_list('bed_id', flat=True)
    )
    return [
        number
        for number, occupied in Bed.objects.order_by('number').values_list('number', 'occupied')
        if occupied != (number in referenced)
    ]


def resync_all() -> list[int]:
    """Recompute every bed; return the numbers that had drifted."""
    numbers = list(Bed.objects.order_by('number').values_list('number', flat=True))
    flipped = sync_beds(numbers)
    if flipped:
        logger.warning('repaired occupancy drift on beds %s', flipped)
    return flipped

"""
Bed registry: sequential provisioning and the stored occupancy flags.

Registration and deletion take the registry-wide lock so ``current_max``
cannot move underneath them; occupancy writes only lock their own bed
row. Every write is committed before the call returns (or joins the
caller's transaction when one is open).
"""
from __future__ import annotations

import logging
from typing import Optional

from django.db import transaction
from django.db.models import Max

from beds.events import occupancy_changed
from beds.exceptions import BedOccupied, SequenceViolation, UnknownBed
from beds.metrics import OCCUPANCY_FLIPS, REGISTRATIONS
from beds.models import Bed, Patient
from beds.services.locking import lock_beds, lock_registry

logger = logging.getLogger(__name__)


def current_max() -> int:
    return Bed.objects.aggregate(m=Max('number'))['m'] or 0


def check_next_number(number: int, *, highest: Optional[int] = None) -> None:
    """Raise ``SequenceViolation`` unless ``number`` is exactly ``max + 1``."""
    highest = current_max() if highest is None else highest
    if number != highest + 1:
        raise SequenceViolation(
            f'new bed number {number} must be exactly one greater than the current maximum {highest}',
            bed_number=number,
        )


@transaction.atomic
def register_bed(number: Optional[int] = None) -> int:
    """Append the next bed to the registry and return its number.

    ``number`` is for bulk-load callers that carry explicit numbers; it
    must equal the number the registry would have chosen.
    """
    lock_registry()
    highest = current_max()
    if number is not None:
        check_next_number(number, highest=highest)
    bed = Bed.objects.create(number=highest + 1, occupied=False)
    REGISTRATIONS.inc()
    logger.info('registered bed %s', bed.number)
    return bed.number


@transaction.atomic
def set_occupancy(bed_number: int, value: bool) -> bool:
    """Store the occupancy flag for one bed. Synchronizer use only.

    Returns whether the stored value changed.
    """
    bed = lock_beds([bed_number])[bed_number]
    value = bool(value)
    if bed.occupied == value:
        logger.debug('bed %s already %s', bed_number, 'occupied' if value else 'free')
        return False
    Bed.objects.filter(number=bed_number).update(occupied=value)
    OCCUPANCY_FLIPS.labels(occupied=str(value).lower()).inc()
    logger.info('bed %s is now %s', bed_number, 'occupied' if value else 'free')
    occupancy_changed.send(sender=Bed, bed_number=bed_number, occupied=value)
    return True


@transaction.atomic
def delete_bed(bed_number: int) -> None:
    """Remove the highest-numbered bed, provided nobody is assigned to it."""
    lock_registry()
    bed = lock_beds([bed_number])[bed_number]
    if bed.occupied or Patient.objects.filter(bed_id=bed_number).exists():
        raise BedOccupied(bed_number)
    highest = current_max()
    if bed_number != highest:
        raise SequenceViolation(
            f'only the last bed ({highest}) can be removed; removing {bed_number} would leave a gap',
            bed_number=bed_number,
        )
    Bed.objects.filter(number=bed_number)._delete_rows()
    logger.info('deleted bed %s', bed_number)


def get_occupancy(bed_number: int) -> bool:
    occupied = Bed.objects.filter(number=bed_number).values_list('occupied', flat=True).first()
    if occupied is None:
        raise UnknownBed(bed_number)
    return occupied


def list_beds() -> list[Bed]:
    return list(Bed.objects.order_by('number'))

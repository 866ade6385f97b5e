"""
Assignment-change events.

A patient's bed reference moving from ``old_bed`` to ``new_bed`` is the
only thing that can make an occupancy flag stale. ``AssignmentChange``
describes that transition; ``occupancy_changed`` is sent whenever the
registry actually flips a flag, inside the same transaction.
"""
from __future__ import annotations

from typing import NamedTuple, Optional

from django.dispatch import Signal

# Sent with ``bed_number`` and ``occupied`` keyword arguments.
occupancy_changed = Signal()


class AssignmentChange(NamedTuple):
    old_bed: Optional[int]
    new_bed: Optional[int]

    @property
    def affected_beds(self) -> tuple[int, ...]:
        """Distinct non-null beds of the transition, ascending (also the lock order)."""
        return tuple(sorted({b for b in (self.old_bed, self.new_bed) if b is not None}))

    @property
    def is_noop(self) -> bool:
        return self.old_bed == self.new_bed

    @classmethod
    def cleared(cls, old_bed: Optional[int]) -> 'AssignmentChange':
        return cls(old_bed, None)

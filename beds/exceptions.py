"""Errors raised by the bed registry and the occupancy synchronizer."""
from typing import Optional


class BedRegistryError(Exception):
    """Base class for every registry/synchronizer failure.

    ``retryable`` tells callers whether repeating the same call later can
    succeed; only lock contention qualifies.
    """
    retryable = False

    def __init__(self, message: str, *, bed_number: Optional[int] = None):
        super().__init__(message)
        self.bed_number = bed_number


class SequenceViolation(BedRegistryError):
    """A bed number would break the contiguous ``1..max`` sequence."""


class UnknownBed(BedRegistryError):
    """The bed number is not registered."""

    def __init__(self, bed_number: int):
        super().__init__(f'bed {bed_number} is not registered', bed_number=bed_number)


class BedOccupied(BedRegistryError):
    """The bed is referenced by a live patient assignment."""

    def __init__(self, bed_number: int):
        super().__init__(f'bed {bed_number} is occupied', bed_number=bed_number)


class LockTimeout(BedRegistryError):
    """A lock wait exceeded ``BED_LOCK_TIMEOUT_MS``. Safe to retry with backoff."""
    retryable = True


__all__ = [
    'BedRegistryError',
    'SequenceViolation',
    'UnknownBed',
    'BedOccupied',
    'LockTimeout',
]

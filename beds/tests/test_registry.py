"""
Tests for the bed registry: sequential provisioning, occupancy reads and
guarded deletion.

To run the tests:

```
pytest -q beds/tests
```
"""

from django.db import transaction
from django.test import TestCase

from ..exceptions import BedOccupied, BedRegistryError, SequenceViolation, UnknownBed
from ..models import Bed, Patient
from ..services.registry import (
    current_max,
    delete_bed,
    get_occupancy,
    list_beds,
    register_bed,
    set_occupancy,
)


class RegistrationTests(TestCase):
    def test_first_registration_starts_at_one(self):
        self.assertEqual(current_max(), 0)
        self.assertEqual(register_bed(), 1)
        self.assertFalse(get_occupancy(1))

    def test_repeated_registration_yields_contiguous_numbers(self):
        numbers = [register_bed() for _ in range(5)]
        self.assertEqual(numbers, [1, 2, 3, 4, 5])
        self.assertEqual([b.number for b in list_beds()], [1, 2, 3, 4, 5])

    def test_explicit_number_must_extend_sequence(self):
        register_bed()
        self.assertEqual(register_bed(number=2), 2)
        with self.assertRaises(SequenceViolation) as ctx:
            register_bed(number=5)
        self.assertEqual(ctx.exception.bed_number, 5)
        self.assertFalse(ctx.exception.retryable)
        # Nothing was inserted
        self.assertEqual(current_max(), 2)

    def test_explicit_number_cannot_reuse_existing(self):
        register_bed()
        register_bed()
        with self.assertRaises(SequenceViolation):
            register_bed(number=2)

    def test_direct_insert_is_checked(self):
        register_bed()
        with self.assertRaises(SequenceViolation):
            Bed.objects.create(number=3)
        Bed.objects.create(number=2)
        self.assertEqual(current_max(), 2)

    def test_bulk_load_must_be_contiguous(self):
        register_bed()
        Bed.objects.bulk_create([Bed(number=3), Bed(number=2)])
        self.assertEqual(current_max(), 3)
        with self.assertRaises(SequenceViolation):
            Bed.objects.bulk_create([Bed(number=4), Bed(number=6)])
        self.assertEqual(current_max(), 3)

    def test_bulk_load_never_imports_occupied_flags(self):
        Bed.objects.bulk_create([Bed(number=1, occupied=True)])
        self.assertFalse(get_occupancy(1))

    def test_saved_beds_cannot_carry_their_own_flag(self):
        bed = Bed.objects.create(number=1, occupied=True)
        self.assertFalse(get_occupancy(1))

        bed.occupied = True
        with self.assertRaises(BedRegistryError):
            bed.save()
        self.assertFalse(get_occupancy(1))

        Patient.objects.create(uhid='UH-1', name='P1', bed_id=1)
        bed.refresh_from_db()
        bed.save()
        self.assertTrue(get_occupancy(1))


class OccupancyStoreTests(TestCase):
    def setUp(self) -> None:
        for _ in range(3):
            register_bed()

    def test_unknown_bed_reads_fail(self):
        with self.assertRaises(UnknownBed) as ctx:
            get_occupancy(9)
        self.assertEqual(ctx.exception.bed_number, 9)

    def test_unknown_bed_writes_fail(self):
        with self.assertRaises(UnknownBed):
            set_occupancy(9, True)

    def test_set_occupancy_reports_change(self):
        self.assertTrue(set_occupancy(2, True))
        self.assertFalse(set_occupancy(2, True))
        self.assertTrue(get_occupancy(2))
        self.assertFalse(get_occupancy(1))

    def test_list_beds_is_ascending(self):
        beds = list_beds()
        self.assertEqual([b.number for b in beds], [1, 2, 3])
        self.assertTrue(all(not b.occupied for b in beds))


class DeletionTests(TestCase):
    def setUp(self) -> None:
        for _ in range(3):
            register_bed()

    def test_delete_blocked_while_assigned(self):
        patient = Patient.objects.create(uhid='UH-1', name='P1', bed_id=3)
        with self.assertRaises(BedOccupied) as ctx:
            delete_bed(3)
        self.assertEqual(ctx.exception.bed_number, 3)
        self.assertTrue(Bed.objects.filter(number=3).exists())

        patient.bed = None
        patient.save()
        delete_bed(3)
        self.assertEqual(current_max(), 2)

    def test_delete_must_not_open_a_gap(self):
        with self.assertRaises(SequenceViolation):
            delete_bed(2)
        self.assertEqual([b.number for b in list_beds()], [1, 2, 3])

    def test_delete_unknown_bed(self):
        with self.assertRaises(UnknownBed):
            delete_bed(7)

    def test_number_is_reused_only_through_registry(self):
        delete_bed(3)
        self.assertEqual(register_bed(), 3)

    def test_orm_deletes_go_through_registry(self):
        Patient.objects.create(uhid='UH-1', name='P1', bed_id=3)
        with self.assertRaises(BedOccupied):
            with transaction.atomic():
                Bed.objects.get(number=3).delete()
        Patient.objects.filter(uhid='UH-1').update(bed=None)
        Bed.objects.filter(number__gte=2).delete()
        self.assertEqual([b.number for b in list_beds()], [1])

"""
Database models for the ward bed registry.

``Bed`` is the registry table: a sequential number and a derived
``occupied`` flag. ``Patient`` is the slice of the patient-management
record this app depends on, essentially its bed reference. Every ORM
path that can change that reference (instance save/delete, queryset
update, bulk create/update) funnels into the occupancy synchronizer
inside the same transaction.
"""
from __future__ import annotations

import uuid

from django.db import models, transaction


class BedQuerySet(models.QuerySet):
    def delete(self):
        """Delete beds through the registry, highest number first."""
        from .services.registry import delete_bed

        numbers = sorted(self.values_list('number', flat=True), reverse=True)
        with transaction.atomic(using=self.db):
            for number in numbers:
                delete_bed(number)
        return len(numbers), {self.model._meta.label: len(numbers)}

    delete.alters_data = True
    delete.queryset_only = True

    def _delete_rows(self):
        # Plain row delete, used by the registry once its checks have passed
        return super().delete()

    def bulk_create(self, objs, *args, **kwargs):
        """Insert beds only if they extend the sequence contiguously."""
        from .exceptions import SequenceViolation
        from .services.locking import lock_registry
        from .services.registry import current_max

        objs = list(objs)
        with transaction.atomic(using=self.db):
            lock_registry()
            start = current_max() + 1
            numbers = sorted(o.number for o in objs)
            if numbers != list(range(start, start + len(numbers))):
                raise SequenceViolation(
                    f'bulk insert {numbers} must continue the sequence at {start}',
                    bed_number=numbers[0] if numbers else None,
                )
            for obj in objs:
                obj.occupied = False
            return super().bulk_create(objs, *args, **kwargs)


class Bed(models.Model):
    """A physical bed, identified by its position in the ward sequence.

    ``occupied`` is never written by clients: the synchronizer derives it
    from the patients whose ``bed`` points here.
    """
    number = models.PositiveIntegerField(primary_key=True)
    occupied = models.BooleanField(default=False, db_index=True)

    objects = BedQuerySet.as_manager()

    class Meta:
        ordering = ['number']

    def __str__(self) -> str:
        return f"Bed {self.number} ({'occupied' if self.occupied else 'free'})"

    def delete(self, using=None, keep_parents=False):
        from .services.registry import delete_bed

        delete_bed(self.number)
        return 1, {self._meta.label: 1}


class RegistryLock(models.Model):
    """Sentinel rows whose row lock serializes registry-wide steps.

    The initial migration creates the ``beds`` row; locking it guards the
    read-max/insert pair without touching the bed rows themselves.
    """
    name = models.CharField(max_length=32, primary_key=True)

    def __str__(self) -> str:
        return self.name


class PatientQuerySet(models.QuerySet):
    @staticmethod
    def _bed_value(value):
        if isinstance(value, Bed):
            return value.pk
        if hasattr(value, 'resolve_expression'):
            # The target bed must be known up front to lock it
            raise ValueError('bed must be updated with a bed number or None, not an expression')
        return None if value is None else int(value)

    def _conflicting_beds(self, objs, unique_fields):
        opts = self.model._meta
        fields = [opts.pk if name == 'pk' else opts.get_field(name) for name in unique_fields]
        match = models.Q()
        for obj in objs:
            match |= models.Q(**{f.attname: getattr(obj, f.attname) for f in fields})
        return set(self.filter(match).select_for_update().values_list('bed_id', flat=True))

    def update(self, **kwargs):
        if 'bed' not in kwargs and 'bed_id' not in kwargs:
            return super().update(**kwargs)
        from .services.locking import lock_beds
        from .services.occupancy import sync_beds

        new_bed = self._bed_value(kwargs['bed'] if 'bed' in kwargs else kwargs['bed_id'])
        with transaction.atomic(using=self.db):
            touched = set(self.select_for_update().values_list('bed_id', flat=True))
            touched.add(new_bed)
            touched.discard(None)
            lock_beds(touched)
            rows = super().update(**kwargs)
            sync_beds(touched)
        return rows

    update.alters_data = True

    def bulk_create(self, objs, batch_size=None, ignore_conflicts=False,
                    update_conflicts=False, update_fields=None, unique_fields=None):
        from .services.locking import lock_beds
        from .services.occupancy import sync_beds

        objs = list(objs)
        touched = {o.bed_id for o in objs}
        with transaction.atomic(using=self.db):
            if objs and update_conflicts and {'bed', 'bed_id'} & set(update_fields or ()):
                # Upserted rows give up the bed they held before
                touched |= self._conflicting_beds(objs, unique_fields or ['pk'])
            touched.discard(None)
            lock_beds(touched)
            created = super().bulk_create(
                objs, batch_size=batch_size, ignore_conflicts=ignore_conflicts,
                update_conflicts=update_conflicts, update_fields=update_fields,
                unique_fields=unique_fields,
            )
            sync_beds(touched)
        return created

    def bulk_update(self, objs, fields, *args, **kwargs):
        if 'bed' not in fields and 'bed_id' not in fields:
            return super().bulk_update(objs, fields, *args, **kwargs)
        from .services.locking import lock_beds
        from .services.occupancy import sync_beds

        objs = list(objs)
        with transaction.atomic(using=self.db):
            previous = self.filter(pk__in=[o.pk for o in objs]).select_for_update()
            touched = set(previous.values_list('bed_id', flat=True))
            touched.update(o.bed_id for o in objs)
            touched.discard(None)
            lock_beds(touched)
            rows = super().bulk_update(objs, fields, *args, **kwargs)
            sync_beds(touched)
        return rows


class Patient(models.Model):
    """The patient record as far as bed occupancy is concerned.

    Demographic and clinical details live with the patient-management
    side; only the identifiers and the bed reference are modelled here.
    At most one patient may hold a given bed.
    """
    uuid = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    uhid = models.CharField(max_length=255, unique=True)
    name = models.CharField(max_length=255)
    bed = models.ForeignKey(
        Bed, null=True, blank=True, on_delete=models.PROTECT, related_name='patients', db_index=True
    )
    last_updated = models.DateTimeField(auto_now=True)

    objects = PatientQuerySet.as_manager()

    class Meta:
        # Related-manager writes (bed.patients.add/set) use the base manager
        base_manager_name = 'objects'
        constraints = [
            models.UniqueConstraint(fields=['bed'], name='unique_patient_bed'),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.uhid})"

    def save(self, *args, **kwargs):
        # Bed locks, the row write and the occupancy recompute commit together
        with transaction.atomic():
            super().save(*args, **kwargs)

"""
Signal receivers that turn patient bed changes into occupancy syncs.

``pre_save``/``pre_delete`` read the stored bed reference under the
patient row lock and lock the affected bed rows before the patient row is
written; ``post_save``/``post_delete`` run the synchronizer. Both halves
execute inside the transaction opened by ``Patient.save`` or by Django's
deletion collector, so the assignment and the flag commit or roll back
together. Queryset paths that skip signals are handled by
``PatientQuerySet``.
"""
from django.db.models.signals import post_delete, post_save, pre_delete, pre_save
from django.dispatch import receiver

from beds.events import AssignmentChange
from beds.exceptions import BedRegistryError
from beds.models import Bed, Patient
from beds.services import occupancy
from beds.services.locking import lock_beds
from beds.services.registry import check_next_number

CHANGE_ATTR = '_bed_change'


def _stored_bed(patient):
    return (
        Patient.objects.select_for_update()
        .filter(pk=patient.pk)
        .values_list('bed_id', flat=True)
        .first()
    )


@receiver(pre_save, sender=Bed)
def guard_bed_write(sender, instance, **kwargs):
    stored = Bed.objects.filter(number=instance.number).values_list('occupied', flat=True).first()
    if stored is None:
        check_next_number(instance.number)
        # New beds start free; only the synchronizer sets the flag
        instance.occupied = False
    elif bool(instance.occupied) != stored:
        raise BedRegistryError(
            f'occupied is derived from patient assignments and cannot be saved on bed {instance.number}',
            bed_number=instance.number,
        )


@receiver(pre_save, sender=Patient)
def lock_assignment(sender, instance, **kwargs):
    previous = None if instance._state.adding else _stored_bed(instance)
    change = AssignmentChange(previous, instance.bed_id)
    lock_beds(change.affected_beds)
    setattr(instance, CHANGE_ATTR, change)


@receiver(post_save, sender=Patient)
def sync_assignment(sender, instance, **kwargs):
    change = instance.__dict__.pop(CHANGE_ATTR, None) or AssignmentChange(None, instance.bed_id)
    occupancy.on_assignment_changed(change.old_bed, change.new_bed)


@receiver(pre_delete, sender=Patient)
def lock_release(sender, instance, **kwargs):
    change = AssignmentChange.cleared(_stored_bed(instance))
    lock_beds(change.affected_beds)
    setattr(instance, CHANGE_ATTR, change)


@receiver(post_delete, sender=Patient)
def sync_release(sender, instance, **kwargs):
    change = instance.__dict__.pop(CHANGE_ATTR, None) or AssignmentChange.cleared(instance.bed_id)
    occupancy.on_assignment_changed(change.old_bed, change.new_bed)

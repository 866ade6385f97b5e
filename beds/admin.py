"""
Django admin registrations for the bed registry.

Beds are read-only here: numbers come from the registry and the
occupied flag is derived, so adding happens through the "register next
bed" action and deletion is routed through the registry checks. Patient
edits go through ``Patient.save`` and therefore keep occupancy in sync.
"""

from django.contrib import admin, messages

from .exceptions import BedRegistryError
from .models import Bed, Patient
from .services.registry import register_bed


@admin.register(Bed)
class BedAdmin(admin.ModelAdmin):
    list_display = ('number', 'occupied')
    list_filter = ('occupied',)
    readonly_fields = ('number', 'occupied')
    actions = ['register_next_bed']

    def has_add_permission(self, request) -> bool:
        return False

    def has_change_permission(self, request, obj=None) -> bool:
        return False

    @admin.action(description='Register the next bed in sequence')
    def register_next_bed(self, request, queryset):
        try:
            number = register_bed()
        except BedRegistryError as exc:
            self.message_user(request, str(exc), level=messages.ERROR)
            return
        self.message_user(request, f'Registered bed {number}', level=messages.SUCCESS)

    def delete_model(self, request, obj):
        try:
            obj.delete()
        except BedRegistryError as exc:
            self.message_user(request, str(exc), level=messages.ERROR)

    def delete_queryset(self, request, queryset):
        try:
            queryset.delete()
        except BedRegistryError as exc:
            self.message_user(request, str(exc), level=messages.ERROR)


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ('uhid', 'name', 'bed', 'last_updated')
    list_filter = ('bed__occupied',)
    search_fields = ('uhid', 'name')
    raw_id_fields = ('bed',)

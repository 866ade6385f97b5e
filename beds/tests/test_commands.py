from io import StringIO

import pytest
from django.contrib.admin.sites import AdminSite
from django.core.management import CommandError, call_command
from django.test import Client, override_settings

from beds.admin import BedAdmin
from beds.models import Bed, Patient
from beds.services.registry import current_max, get_occupancy, register_bed

pytestmark = pytest.mark.django_db


def test_seed_beds_registers_up_to_count():
    out = StringIO()
    call_command('seed_beds', '--count', '4', stdout=out)
    assert list(Bed.objects.values_list('number', flat=True)) == [1, 2, 3, 4]
    assert 'Registered beds 1..4' in out.getvalue()


def test_seed_beds_rerun_only_fills_the_rest():
    register_bed()
    register_bed()
    call_command('seed_beds', '--count', '3', stdout=StringIO())
    assert current_max() == 3

    out = StringIO()
    call_command('seed_beds', '--count', '2', stdout=out)
    assert current_max() == 3
    assert 'already holds 3 beds' in out.getvalue()


@override_settings(WARD_SEED_BEDS=16)
def test_seed_beds_default_count():
    call_command('seed_beds', stdout=StringIO())
    assert current_max() == 16


def test_seed_beds_rejects_negative_count():
    with pytest.raises(CommandError):
        call_command('seed_beds', '--count', '-1', stdout=StringIO())


def test_sync_occupancy_check_reports_drift():
    call_command('seed_beds', '--count', '2', stdout=StringIO())
    Patient.objects.create(uhid='UH-1', name='P1', bed_id=2)
    call_command('sync_occupancy', '--check', stdout=StringIO())

    Bed.objects.filter(number=2).update(occupied=False)
    with pytest.raises(CommandError, match=r'\[2\]'):
        call_command('sync_occupancy', '--check', stdout=StringIO())


def test_sync_occupancy_repairs_drift():
    call_command('seed_beds', '--count', '2', stdout=StringIO())
    Patient.objects.create(uhid='UH-1', name='P1', bed_id=2)
    Bed.objects.filter(number=2).update(occupied=False)
    out = StringIO()
    call_command('sync_occupancy', stdout=out)
    assert 'Repaired beds [2]' in out.getvalue()
    assert get_occupancy(2) is True


def test_healthz_reports_bed_count():
    register_bed()
    resp = Client().get('/healthz')
    assert resp.status_code == 200
    assert resp.json() == {'ok': True, 'db': True, 'beds': 1}


class _MessageSink:
    def __init__(self):
        self.messages = []

    def __call__(self, request, message, level=None, **kwargs):
        self.messages.append((message, level))


def _bed_admin(monkeypatch):
    model_admin = BedAdmin(Bed, AdminSite())
    sink = _MessageSink()
    monkeypatch.setattr(model_admin, 'message_user', sink)
    return model_admin, sink


def test_admin_action_registers_next_bed(monkeypatch):
    model_admin, sink = _bed_admin(monkeypatch)
    register_bed()
    model_admin.register_next_bed(None, Bed.objects.all())
    assert current_max() == 2
    assert sink.messages[0][0] == 'Registered bed 2'


def test_admin_delete_reports_occupied_bed(monkeypatch):
    model_admin, sink = _bed_admin(monkeypatch)
    register_bed()
    Patient.objects.create(uhid='UH-1', name='P1', bed_id=1)
    model_admin.delete_model(None, Bed.objects.get(number=1))
    assert Bed.objects.filter(number=1).exists()
    assert sink.messages[0][0] == 'bed 1 is occupied'

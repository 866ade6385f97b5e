"""
Management command to provision the ward's initial beds.

Beds are added with sequential ``register_bed`` calls until the registry
holds at least ``--count`` beds, so reruns are harmless and the sequence
invariant is never bypassed.
"""
from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from beds.exceptions import BedRegistryError
from beds.services.registry import current_max, register_bed


class Command(BaseCommand):
    help = 'Register beds until the ward holds at least --count beds'

    def add_arguments(self, parser):
        parser.add_argument('--count', type=int, default=settings.WARD_SEED_BEDS)

    def handle(self, *args, **options):
        count = options['count']
        if count < 0:
            raise CommandError('--count must not be negative')

        added = []
        try:
            while current_max() < count:
                added.append(register_bed())
        except BedRegistryError as exc:
            raise CommandError(f'seeding stopped after {len(added)} beds: {exc}') from exc

        if added:
            self.stdout.write(self.style.SUCCESS(f'Registered beds {added[0]}..{added[-1]}'))
        else:
            self.stdout.write(f'Registry already holds {current_max()} beds')

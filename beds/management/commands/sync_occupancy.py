from django.core.management.base import BaseCommand, CommandError

from beds.services.occupancy import occupancy_drift, resync_all


class Command(BaseCommand):
    help = "Recompute every bed's occupied flag from the patient assignments."

    def add_arguments(self, parser):
        parser.add_argument(
            '--check', action='store_true',
            help='Only report beds whose flag disagrees with the assignments; exit 1 if any.',
        )

    def handle(self, *args, **options):
        if options['check']:
            drift = occupancy_drift()
            if drift:
                raise CommandError(f'occupancy drift on beds {drift}')
            self.stdout.write(self.style.SUCCESS('Occupancy is consistent'))
            return

        repaired = resync_all()
        if repaired:
            self.stdout.write(self.style.WARNING(f'Repaired beds {repaired}'))
        else:
            self.stdout.write(self.style.SUCCESS('Occupancy is consistent'))

"""
Management command to compare the database aggregates of the dashboard
statistics with the same statistics recomputed from records.
"""
from django.core.management.base import BaseCommand, CommandError

from backend.reports.stats import STAT_DEFINITIONS, fetch_records


class Command(BaseCommand):
    help = "Computes every dashboard statistic both ways and reports any drift"

    def add_arguments(self, parser):
        parser.add_argument(
            '--fail-on-drift',
            action='store_true',
            help='Exit with an error when any statistic differs',
        )

    def handle(self, *args, **options):
        drift = []
        for definition in STAT_DEFINITIONS:
            server = definition.server_value()
            computed = definition.record_value(fetch_records(definition))
            if server == computed:
                self.stdout.write(f"  {definition.name}: {server}")
            else:
                drift.append(definition.name)
                self.stdout.write(self.style.WARNING(
                    f"  {definition.name}: server={server} computed={computed}"
                ))

        if not drift:
            self.stdout.write(self.style.SUCCESS("All dashboard statistics agree"))
            return
        message = f"{len(drift)} statistic(s) differ: {', '.join(drift)}"
        if options['fail_on_drift']:
            raise CommandError(message)
        self.stdout.write(self.style.ERROR(message))

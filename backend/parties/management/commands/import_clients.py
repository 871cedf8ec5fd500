"""
Management command to import clients from a CSV file
"""
import csv
import os

from django.core.management.base import BaseCommand, CommandError
from django.conf import settings

from backend.parties.models import Client


class Command(BaseCommand):
    help = "Imports clients from a CSV file with a header row (name, phone, email, address, client_type, ...)"

    COLUMNS = ['name', 'phone', 'email', 'address', 'client_type', 'trade_discount_level',
               'company_name', 'abn', 'notes']

    def add_arguments(self, parser):
        parser.add_argument('csv_file', type=str, help='Path to the CSV file')
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Report what would be imported without writing anything',
        )

    def normalize_row(self, row):
        data = {column: (row.get(column) or '').strip() for column in self.COLUMNS}
        data['name'] = ' '.join(data['name'].split())
        client_type = data['client_type'].lower()
        data['client_type'] = client_type if client_type in dict(Client.CLIENT_TYPE_CHOICES) else 'public'
        level = data['trade_discount_level'].lower()
        if data['client_type'] == 'trade' and level in dict(Client.TRADE_DISCOUNT_LEVEL_CHOICES):
            data['trade_discount_level'] = level
        else:
            data['trade_discount_level'] = None
        return data

    def handle(self, *args, **options):
        csv_file = options['csv_file']
        dry_run = options['dry_run']

        if not os.path.isabs(csv_file):
            csv_file = os.path.normpath(os.path.join(settings.BASE_DIR, '..', csv_file))

        self.stdout.write(self.style.SUCCESS(f"Importing clients from {csv_file}"))
        if not os.path.exists(csv_file):
            raise CommandError(f"CSV file not found at {csv_file}")

        created_count = 0
        skipped_count = 0
        empty_count = 0
        seen = set()

        with open(csv_file, 'r', encoding='utf-8-sig', newline='') as f:
            reader = csv.DictReader(f)
            if not reader.fieldnames or 'name' not in reader.fieldnames:
                raise CommandError("CSV file must have a 'name' column")

            for row in reader:
                data = self.normalize_row(row)
                if not data['name']:
                    empty_count += 1
                    continue

                identity = (data['name'].lower(), data['phone'])
                if identity in seen:
                    skipped_count += 1
                    self.stdout.write(self.style.WARNING(f"  Skipped (duplicate in CSV): {data['name']}"))
                    continue
                seen.add(identity)

                if Client.objects.filter(name__iexact=data['name'], phone=data['phone']).exists():
                    skipped_count += 1
                    self.stdout.write(self.style.WARNING(f"  Skipped (already exists): {data['name']}"))
                    continue

                if not dry_run:
                    Client.objects.create(**data)
                created_count += 1
                self.stdout.write(f"  Created: {data['name']}")

        prefix = "Would create" if dry_run else "Created"
        self.stdout.write(self.style.SUCCESS(
            f"{prefix} {created_count} clients; skipped {skipped_count} duplicates and {empty_count} empty rows"
        ))

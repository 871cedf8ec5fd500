from django.core.management.base import BaseCommand
from django.contrib.auth.models import Group, Permission


class Command(BaseCommand):
    help = 'Create Django user groups for RBAC: Admin, Sales, Scheduler, ProductionManager, Warehouse, Installer'

    # (group name, description, app labels whose model permissions the group receives)
    GROUPS_CONFIG = [
        ('Admin', 'Owners and developers - full system access including backend', None),
        ('Sales', 'Sales staff - clients, leads and quotes', ['parties', 'leads', 'jobs']),
        ('Scheduler', 'Schedules installs - jobs and clients', ['jobs', 'parties']),
        ('ProductionManager', 'Runs the workshop - workflow configuration, jobs and stock', ['workflow', 'jobs', 'inventory']),
        ('Warehouse', 'Warehouse staff - products and stock levels', ['inventory']),
        ('Installer', 'Install crews - read-only access to jobs', []),
    ]

    def handle(self, *args, **options):
        created_count = 0
        existing_count = 0

        for name, description, app_labels in self.GROUPS_CONFIG:
            group, created = Group.objects.get_or_create(name=name)

            if created:
                self.stdout.write(self.style.SUCCESS(f'Created group: {name} ({description})'))
                created_count += 1
            else:
                self.stdout.write(f'  Group already exists: {name}')
                existing_count += 1

            if app_labels is None:
                group.permissions.set(Permission.objects.all())
                self.stdout.write(f'  Added all permissions to {name} group')
            elif app_labels:
                permissions = Permission.objects.filter(content_type__app_label__in=app_labels)
                group.permissions.set(permissions)
                self.stdout.write(f'  Added {", ".join(app_labels)} permissions to {name} group')
            else:
                view_permissions = Permission.objects.filter(
                    content_type__app_label='jobs', codename__startswith='view_'
                )
                group.permissions.set(view_permissions)
                self.stdout.write(f'  Added view permissions to {name} group')

        self.stdout.write(self.style.SUCCESS(
            f'\nCompleted: {created_count} groups created, {existing_count} groups already existed'
        ))

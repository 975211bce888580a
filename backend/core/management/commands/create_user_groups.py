from django.core.management.base import BaseCommand
from django.contrib.auth.models import Group, Permission


class Command(BaseCommand):
    help = 'Create Django user groups for RBAC: Stores, Production, Sales, Admin'

    def handle(self, *args, **options):
        groups_config = [
            {
                'name': 'Stores',
                'description': 'Stores staff - purchase bills, roll intake and stock adjustments',
                'apps': ['masters', 'parties', 'purchasing', 'inventory'],
            },
            {
                'name': 'Production',
                'description': 'Floor supervisors - batches, completion and baling',
                'apps': ['production', 'bales', 'inventory'],
            },
            {
                'name': 'Sales',
                'description': 'Sales desk - invoices, receipts and customers',
                'apps': ['sales', 'parties', 'bales'],
            },
            {
                'name': 'Admin',
                'description': 'Owners and developers - full system access including backend',
                'apps': ['*'],
            },
        ]

        created_count = 0
        updated_count = 0

        for group_config in groups_config:
            group, created = Group.objects.get_or_create(name=group_config['name'])

            if created:
                self.stdout.write(self.style.SUCCESS(f'Created group: {group_config["name"]}'))
                created_count += 1
            else:
                self.stdout.write(f'  Group already exists: {group_config["name"]}')
                updated_count += 1

            if group_config['apps'] == ['*']:
                group.permissions.set(Permission.objects.all())
                self.stdout.write('  Added all permissions to Admin group')
            else:
                permissions = Permission.objects.filter(content_type__app_label__in=group_config['apps'])
                group.permissions.set(permissions)
                self.stdout.write(
                    f'  Added {permissions.count()} permissions ({", ".join(group_config["apps"])}) '
                    f'to {group_config["name"]} group'
                )

        self.stdout.write(self.style.SUCCESS(
            f'\nCompleted: {created_count} groups created, {updated_count} groups already existed'
        ))

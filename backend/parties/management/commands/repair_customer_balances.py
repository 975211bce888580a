from django.core.management.base import BaseCommand
from django.db import transaction
from django.db.models import Sum
from decimal import Decimal
from backend.parties.models import Customer
from backend.sales.models import SalesInvoice, Receipt


class Command(BaseCommand):
    help = 'Recomputes customer outstanding balances from confirmed invoices and completed receipts'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Perform a dry run without saving changes',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        if dry_run:
            self.stdout.write(self.style.WARNING("DRY RUN MODE: No changes will be saved."))

        customers = Customer.objects.all()
        self.stdout.write(f"Starting balance repair for {customers.count()} customers...")

        repaired = 0
        with transaction.atomic():
            for c in customers.select_for_update():
                invoiced = SalesInvoice.objects.filter(customer=c, status='confirmed').aggregate(
                    s=Sum('grand_total'))['s'] or Decimal('0.00')
                received = Receipt.objects.filter(customer=c, status='completed').aggregate(
                    s=Sum('amount'))['s'] or Decimal('0.00')

                new_balance = invoiced - received
                if c.outstanding_balance != new_balance:
                    self.stdout.write(self.style.SUCCESS(
                        f"  - {c.name} (ID: {c.id}): {c.outstanding_balance} -> {new_balance}"
                    ))
                    repaired += 1
                    if not dry_run:
                        c.outstanding_balance = new_balance
                        c.save(update_fields=['outstanding_balance', 'updated_at'])

            if dry_run:
                self.stdout.write(self.style.WARNING(f"\nDry run complete: {repaired} balance(s) would change."))
                transaction.set_rollback(True)
            else:
                self.stdout.write(self.style.SUCCESS(f"\nBalance repair complete: {repaired} balance(s) updated."))

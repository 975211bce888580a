"""
Management command to clear all transactional data (rolls, batches, bales,
invoices, receipts, samples, supplier payments, stock ledger and audit logs)
while keeping master data
Usage: python manage.py clear_data
"""
from django.core.management.base import BaseCommand
from django.db import transaction
from backend.bales.models import BaleBatch, BaleItem
from backend.core.models import AuditLog
from backend.inventory.models import RawMaterialRoll, FinishedProductStock, StockMovement
from backend.parties.models import Customer, Supplier
from backend.production.models import ProductionBatch, ProductionBatchInput, ProductionBatchOutput
from backend.purchasing.models import PurchaseBill, PurchaseBillItem, SupplierPayment, BillPaymentAllocation
from backend.sales.models import SalesInvoice, InvoiceItem, Receipt, ReceiptAllocation, ProductSample


class Command(BaseCommand):
    help = 'Clear rolls, production, bales, sales, the stock ledger and audit logs; keep masters and parties'

    def add_arguments(self, parser):
        parser.add_argument(
            '--confirm',
            action='store_true',
            help='Skip confirmation prompt',
        )
        parser.add_argument(
            '--keep-audit-logs',
            action='store_true',
            help='Leave the audit history in place',
        )

    def handle(self, *args, **options):
        if not options['confirm']:
            self.stdout.write(self.style.WARNING('WARNING: This will delete ALL:'))
            self.stdout.write('  - Sales invoices and receipts (with items and allocations)')
            self.stdout.write('  - Product samples')
            self.stdout.write('  - Bale batches and bales')
            self.stdout.write('  - Production batches (with inputs and outputs)')
            self.stdout.write('  - Raw material rolls, purchase bills and supplier payments')
            self.stdout.write('  - Stock movements and finished-goods stock totals')
            if not options['keep_audit_logs']:
                self.stdout.write('  - Audit Logs (history)')
            self.stdout.write('Customer and supplier outstanding balances are reset to 0.')
            self.stdout.write('')

            confirm = input('Type "YES" to confirm: ')
            if confirm != 'YES':
                self.stdout.write(self.style.ERROR('Operation cancelled.'))
                return

        self.stdout.write('Starting data cleanup...')

        # Children before parents; most of these foreign keys are PROTECT
        steps = [
            ('Receipt Allocations', ReceiptAllocation),
            ('Receipts', Receipt),
            ('Invoice Items', InvoiceItem),
            ('Sales Invoices', SalesInvoice),
            ('Product Samples', ProductSample),
            ('Bales', BaleItem),
            ('Bale Batches', BaleBatch),
            ('Stock Movements', StockMovement),
            ('Production Inputs', ProductionBatchInput),
            ('Production Outputs', ProductionBatchOutput),
            ('Production Batches', ProductionBatch),
            ('Raw Material Rolls', RawMaterialRoll),
            ('Bill Payment Allocations', BillPaymentAllocation),
            ('Supplier Payments', SupplierPayment),
            ('Purchase Bill Items', PurchaseBillItem),
            ('Purchase Bills', PurchaseBill),
            ('Finished Stock Totals', FinishedProductStock),
        ]
        if not options['keep_audit_logs']:
            steps.append(('Audit Logs', AuditLog))

        deleted = []
        with transaction.atomic():
            for label, model in steps:
                self.stdout.write(f'Deleting {label}...')
                count, _ = model.objects.all().delete()
                deleted.append((label, count))
                self.stdout.write(self.style.SUCCESS(f'  {label} deleted'))

            reset = Customer.objects.exclude(outstanding_balance=0).update(outstanding_balance=0)
            reset += Supplier.objects.exclude(outstanding_balance=0).update(outstanding_balance=0)

        self.stdout.write('')
        self.stdout.write(self.style.SUCCESS('Data cleanup completed successfully!'))
        self.stdout.write('Deleted:')
        for label, count in deleted:
            self.stdout.write(f'  - {count} rows ({label})')
        self.stdout.write(f'  - {reset} party balance(s) reset')

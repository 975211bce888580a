"""
Django management command to check FinishedProductStock against the
stock movement ledger, and optionally repair drift
"""
from django.core.management.base import BaseCommand
from django.db import transaction
from backend.inventory.models import FinishedProductStock
from backend.inventory.services import recompute_finished_balance
from backend.masters.models import FinishedProduct


class Command(BaseCommand):
    help = 'Check finished-goods stock totals against the stock movement ledger'

    def add_arguments(self, parser):
        parser.add_argument(
            '--product-id',
            type=int,
            help='Check specific product ID only',
        )
        parser.add_argument(
            '--show-all',
            action='store_true',
            help='Show all products, not just discrepancies',
        )
        parser.add_argument(
            '--fix',
            action='store_true',
            help='Rewrite drifted stock totals from the ledger',
        )

    def handle(self, *args, **options):
        product_id = options.get('product_id')
        show_all = options.get('show_all', False)
        fix = options.get('fix', False)

        self.stdout.write("=" * 80)
        self.stdout.write(self.style.SUCCESS("FINISHED STOCK vs MOVEMENT LEDGER"))
        self.stdout.write("=" * 80)

        products = FinishedProduct.objects.all().order_by('id')
        if product_id:
            products = products.filter(id=product_id)

        self.stdout.write(f"Total Products: {products.count()}")
        self.stdout.write("")

        discrepancies = []
        for product in products:
            stock = FinishedProductStock.objects.filter(product=product).first()
            cached = stock.stock_quantity if stock else None
            ledger = recompute_finished_balance(product.id)
            in_sync = cached == ledger or (cached is None and ledger == 0)

            if not in_sync:
                discrepancies.append((product, cached, ledger))
            if show_all or not in_sync:
                self.stdout.write(f"Product: {product.code} - {product.name} (ID: {product.id})")
                self.stdout.write(f"  Stock total: {cached if cached is not None else 'missing'}")
                self.stdout.write(f"  Ledger balance: {ledger}")
                if in_sync:
                    self.stdout.write(self.style.SUCCESS("  In sync"))
                else:
                    self.stdout.write(self.style.WARNING(f"  Drift: {(cached or 0) - ledger:+}"))
                self.stdout.write("")

        self.stdout.write("=" * 80)
        self.stdout.write(f"Total Products with Discrepancies: {len(discrepancies)}")

        if not discrepancies:
            self.stdout.write(self.style.SUCCESS("No discrepancies found"))
            return

        if not fix:
            self.stdout.write(self.style.WARNING("Run with --fix to rewrite the stock totals from the ledger"))
            return

        with transaction.atomic():
            for product, cached, ledger in discrepancies:
                if ledger < 0:
                    self.stdout.write(self.style.ERROR(f"  Skipped {product.code}: ledger balance {ledger} is negative"))
                    continue
                stock, _ = FinishedProductStock.objects.select_for_update().get_or_create(product=product)
                stock.stock_quantity = ledger
                stock.save(update_fields=['stock_quantity', 'updated_at'])
                self.stdout.write(self.style.SUCCESS(f"  Fixed {product.code}: {cached} -> {ledger}"))

        self.stdout.write(self.style.SUCCESS(f"Repaired {len(discrepancies)} product(s)"))

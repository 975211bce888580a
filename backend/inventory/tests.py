"""
Test suite for the inventory module
Tests: roll ledger, FIFO allocation, finished-goods ledger, adjustments and stock APIs
"""
from datetime import timedelta
from decimal import Decimal
from io import StringIO

from django.core.cache import cache
from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from backend.core.exceptions import (
    ValidationError, NotFound, InsufficientStock, InsufficientRollQuantity, InsufficientMaterialStock,
)
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.inventory import services
from backend.inventory.models import RawMaterialRoll, FinishedProductStock, StockMovement


class FifoAllocationTests(TestCase):
    """Oldest-roll-first consumption"""

    def setUp(self):
        self.material = TestDataFactory.create_raw_material(code='HDPE')
        now = timezone.now()
        # Newer roll is inserted first so ordering must come from created_at, not id
        self.r2 = TestDataFactory.create_roll(self.material, 30, roll_code='R2', created_at=now - timedelta(days=1))
        self.r1 = TestDataFactory.create_roll(self.material, 50, roll_code='R1', created_at=now - timedelta(days=2))

    def test_consumes_oldest_roll_first(self):
        allocations = services.allocate_material(self.material, Decimal('60'), reference_code='PB-001')

        self.assertEqual([(a['roll'].roll_code, a['quantity_taken']) for a in allocations],
                         [('R1', Decimal('50.00')), ('R2', Decimal('10.00'))])
        self.r1.refresh_from_db()
        self.r2.refresh_from_db()
        self.assertEqual(self.r1.status, 'consumed')
        self.assertEqual(self.r1.remaining_quantity, Decimal('0.00'))
        self.assertEqual(self.r2.remaining_quantity, Decimal('20.00'))
        self.assertEqual(self.r2.status, 'in_stock')

    def test_ties_broken_by_id(self):
        material = TestDataFactory.create_raw_material()
        same_time = timezone.now() - timedelta(hours=1)
        first = TestDataFactory.create_roll(material, 10, created_at=same_time)
        TestDataFactory.create_roll(material, 10, created_at=same_time)

        allocations = services.allocate_material(material, Decimal('5'))
        self.assertEqual(allocations[0]['roll'].id, first.id)

    def test_insufficient_material_changes_nothing(self):
        with self.assertRaises(InsufficientMaterialStock) as ctx:
            services.allocate_material(self.material, Decimal('81'))

        self.assertEqual(ctx.exception.details['available'], Decimal('80.00'))
        self.r1.refresh_from_db()
        self.r2.refresh_from_db()
        self.assertEqual(self.r1.consumed_quantity, Decimal('0.00'))
        self.assertEqual(self.r2.consumed_quantity, Decimal('0.00'))
        self.assertFalse(StockMovement.objects.filter(movement_type='raw_out').exists())

    def test_reserved_rolls_are_skipped(self):
        RawMaterialRoll.objects.filter(pk=self.r1.pk).update(status='reserved')

        allocations = services.allocate_material(self.material, Decimal('20'))
        self.assertEqual(allocations[0]['roll'].roll_code, 'R2')
        with self.assertRaises(InsufficientMaterialStock):
            services.allocate_material(self.material, Decimal('20'))

    def test_pinned_roll_is_used_even_when_reserved(self):
        RawMaterialRoll.objects.filter(pk=self.r2.pk).update(status='reserved')

        allocations = services.allocate_material(self.material, Decimal('25'), roll_id=self.r2.id)
        self.assertEqual(len(allocations), 1)
        self.assertEqual(allocations[0]['roll'].roll_code, 'R2')
        self.r1.refresh_from_db()
        self.assertEqual(self.r1.consumed_quantity, Decimal('0.00'))

    def test_pinned_roll_short(self):
        with self.assertRaises(InsufficientRollQuantity):
            services.allocate_material(self.material, Decimal('31'), roll_id=self.r2.id)
        self.r2.refresh_from_db()
        self.assertEqual(self.r2.consumed_quantity, Decimal('0.00'))

    def test_pinned_roll_of_other_material(self):
        other = TestDataFactory.create_raw_material()
        with self.assertRaises(ValidationError):
            services.allocate_material(other, Decimal('5'), roll_id=self.r1.id)

    def test_pinned_roll_missing(self):
        with self.assertRaises(NotFound):
            services.allocate_material(self.material, Decimal('5'), roll_id=999999)

    def test_non_positive_quantity_rejected(self):
        with self.assertRaises(ValidationError):
            services.allocate_material(self.material, Decimal('0'))

    def test_restore_roll_reopens_consumed_roll(self):
        services.allocate_material(self.material, Decimal('50'), roll_id=self.r1.id)
        services.restore_roll(self.r1.id, Decimal('20'), 'production_batch', 'PB-001')

        self.r1.refresh_from_db()
        self.assertEqual(self.r1.status, 'in_stock')
        self.assertEqual(self.r1.consumed_quantity, Decimal('30.00'))

    def test_restored_reserved_roll_stays_reserved(self):
        services.reserve_roll(self.r2.id, True)
        services.allocate_material(self.material, Decimal('30'), roll_id=self.r2.id)
        self.r2.refresh_from_db()
        self.assertEqual(self.r2.status, 'consumed')

        services.restore_roll(self.r2.id, Decimal('30'), 'production_batch', 'PB-001')

        self.r2.refresh_from_db()
        self.assertEqual(self.r2.status, 'reserved')
        allocations = services.allocate_material(self.material, Decimal('10'))
        self.assertEqual(allocations[0]['roll'].roll_code, 'R1')

    def test_restore_more_than_consumed_rejected(self):
        with self.assertRaises(ValidationError):
            services.restore_roll(self.r1.id, Decimal('1'), 'production_batch')

    def test_movements_record_running_balance(self):
        services.allocate_material(self.material, Decimal('60'))
        outs = StockMovement.objects.filter(movement_type='raw_out').order_by('id')
        self.assertEqual([m.balance_after for m in outs], [Decimal('30.00'), Decimal('20.00')])
        self.assertEqual(services.raw_material_balance(self.material.id), Decimal('20.00'))


class FinishedLedgerTests(TestCase):
    """Finished-goods credit/debit"""

    def setUp(self):
        self.product = TestDataFactory.create_finished_product()
        TestDataFactory.stock_finished_product(self.product, 100)

    def test_debit_reduces_balance_and_logs_movement(self):
        balance = services.debit_finished(self.product.id, Decimal('40'), 'sales_invoice', 'INV-0001')
        self.assertEqual(balance, Decimal('60.00'))
        movement = StockMovement.objects.filter(movement_type='fg_out').get()
        self.assertEqual(movement.quantity_out, Decimal('40.00'))
        self.assertEqual(movement.balance_after, Decimal('60.00'))

    def test_debit_never_goes_negative(self):
        with self.assertRaises(InsufficientStock) as ctx:
            services.debit_finished(self.product.id, Decimal('100.01'), 'sales_invoice')

        self.assertEqual(ctx.exception.details['available'], Decimal('100.00'))
        self.assertEqual(services.finished_balance(self.product.id), Decimal('100.00'))
        self.assertFalse(StockMovement.objects.filter(movement_type='fg_out').exists())

    def test_ledger_matches_cached_total(self):
        services.debit_finished(self.product.id, Decimal('12.34'), 'adjustment')
        services.credit_finished(self.product.id, Decimal('2.34'), 'adjustment')
        self.assertEqual(services.recompute_finished_balance(self.product.id), Decimal('90.00'))
        self.assertEqual(services.finished_balance(self.product.id), Decimal('90.00'))

    def test_credit_creates_missing_stock_row(self):
        product = TestDataFactory.create_finished_product()
        self.assertFalse(FinishedProductStock.objects.filter(product=product).exists())
        services.credit_finished(product.id, Decimal('5'), 'adjustment')
        self.assertEqual(product.stock.stock_quantity, Decimal('5.00'))


class StockAdjustmentTests(TestCase):

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.material = TestDataFactory.create_raw_material(code='PP')
        self.product = TestDataFactory.create_finished_product()

    def test_raw_increase_creates_adjustment_roll(self):
        balance = services.adjust_stock('raw', self.material.id, Decimal('25'), 'Found in godown')
        self.assertEqual(balance, Decimal('25.00'))
        roll = RawMaterialRoll.objects.get(raw_material=self.material)
        self.assertEqual(roll.roll_code, 'ADJ-PP-001')

    def test_raw_decrease_consumes_fifo(self):
        TestDataFactory.create_roll(self.material, 10)
        balance = services.adjust_stock('raw', self.material.id, Decimal('-4'), 'Damaged')
        self.assertEqual(balance, Decimal('6.00'))

    def test_finished_decrease_beyond_stock(self):
        with self.assertRaises(InsufficientStock):
            services.adjust_stock('finished', self.product.id, Decimal('-1'), 'Count correction')

    def test_reason_required(self):
        with self.assertRaises(ValidationError):
            services.adjust_stock('finished', self.product.id, Decimal('5'), '  ')

    def test_unknown_item(self):
        with self.assertRaises(NotFound):
            services.adjust_stock('finished', 999999, Decimal('5'), 'Count correction')


class InventoryAPITests(TestCase):
    """Test inventory API endpoints"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.material = TestDataFactory.create_raw_material()
        self.roll = TestDataFactory.create_roll(self.material, 50)
        self.product = TestDataFactory.create_finished_product(reorder_level=Decimal('20'))

    def test_requires_authentication(self):
        self.client.logout()
        response = self.client.get('/api/v1/inventory/rolls/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_roll_list_filters_by_material(self):
        other = TestDataFactory.create_raw_material()
        TestDataFactory.create_roll(other, 10)
        response = self.client.get(f'/api/v1/inventory/rolls/?raw_material={self.material.id}')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['remaining_quantity'], '50.00')

    def test_roll_detail_includes_movements(self):
        response = self.client.get(f'/api/v1/inventory/rolls/{self.roll.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['movements']), 1)
        self.assertEqual(response.data['movements'][0]['movement_type'], 'raw_in')

    def test_reserve_and_release_roll(self):
        response = self.client.post(f'/api/v1/inventory/rolls/{self.roll.id}/reserve/', {'reserved': True}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'reserved')

        response = self.client.post(f'/api/v1/inventory/rolls/{self.roll.id}/reserve/', {'reserved': True}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'ValidationError')

        response = self.client.post(f'/api/v1/inventory/rolls/{self.roll.id}/reserve/', {'reserved': False}, format='json')
        self.assertEqual(response.data['status'], 'in_stock')

    def test_raw_stock_summary(self):
        response = self.client.get('/api/v1/inventory/raw-stock/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        row = next(r for r in response.data if r['raw_material_id'] == self.material.id)
        self.assertEqual(row['available_quantity'], Decimal('50.00'))
        self.assertEqual(row['open_rolls'], 1)

    def test_finished_stock_low_stock_filter(self):
        stocked = TestDataFactory.create_finished_product(reorder_level=Decimal('5'))
        TestDataFactory.stock_finished_product(stocked, 50)
        response = self.client.get('/api/v1/inventory/finished-stock/?low_stock=true')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        product_ids = [row['product'] for row in response.data]
        self.assertIn(self.product.id, product_ids)
        self.assertNotIn(stocked.id, product_ids)

    def test_adjust_endpoint(self):
        data = {'item_type': 'finished', 'item_id': self.product.id, 'quantity': '12.50', 'reason': 'Opening stock'}
        response = self.client.post('/api/v1/inventory/adjust/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['new_balance'], '12.50')

    def test_adjust_endpoint_reports_shortage(self):
        data = {'item_type': 'finished', 'item_id': self.product.id, 'quantity': '-1', 'reason': 'Damaged'}
        response = self.client.post('/api/v1/inventory/adjust/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error'], 'InsufficientStock')
        self.assertEqual(response.data['details']['requested'], '1.00')
        self.assertEqual(response.data['details']['available'], '0.00')

    def test_adjust_endpoint_rejects_zero(self):
        data = {'item_type': 'finished', 'item_id': self.product.id, 'quantity': '0', 'reason': 'x'}
        response = self.client.post('/api/v1/inventory/adjust/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_movement_history_filter(self):
        TestDataFactory.stock_finished_product(self.product, 5)
        response = self.client.get(f'/api/v1/inventory/movements/?finished_product={self.product.id}')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['quantity_in'], '5.00')

    def test_summary(self):
        response = self.client.get('/api/v1/inventory/summary/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['raw_material']['available_quantity'], '50.00')
        self.assertEqual(response.data['raw_material']['rolls_in_stock'], 1)


class CheckStockSyncCommandTests(TestCase):

    def setUp(self):
        self.product = TestDataFactory.create_finished_product(code='FP-SYNC')
        TestDataFactory.stock_finished_product(self.product, 30)

    def test_reports_no_drift(self):
        out = StringIO()
        call_command('check_stock_sync', stdout=out)
        self.assertIn('No discrepancies found', out.getvalue())

    def test_detects_and_fixes_drift(self):
        FinishedProductStock.objects.filter(product=self.product).update(stock_quantity=Decimal('45.00'))

        out = StringIO()
        call_command('check_stock_sync', stdout=out)
        self.assertIn('FP-SYNC', out.getvalue())
        self.assertEqual(services.finished_balance(self.product.id), Decimal('45.00'))

        call_command('check_stock_sync', '--fix', stdout=StringIO())
        self.assertEqual(services.finished_balance(self.product.id), Decimal('30.00'))

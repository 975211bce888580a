"""
Test suite for the production module
Tests: allocation, completion, quick completion, return to production, deletion and APIs
"""
from datetime import date, timedelta
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from backend.core.exceptions import (
    ValidationError, NotFound, LossExceedsInput, InsufficientMaterialStock,
    InsufficientMachineCapacity, InsufficientStockToReturn,
)
from backend.core.models import Setting, AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.core.utils import LOSS_THRESHOLD_SETTING_KEY
from backend.inventory.models import RawMaterialRoll, StockMovement
from backend.inventory.services import finished_balance, raw_material_balance
from backend.production import services
from backend.production.models import ProductionBatch, ProductionBatchOutput


class ProductionTestMixin:

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.machine = TestDataFactory.create_machine(code='M-01')
        self.material = TestDataFactory.create_raw_material(code='HDPE')
        self.product = TestDataFactory.create_finished_product(code='NET-40')
        now = timezone.now()
        self.roll_a = TestDataFactory.create_roll(self.material, 60, roll_code='RA', created_at=now - timedelta(days=3))
        self.roll_b = TestDataFactory.create_roll(self.material, 60, roll_code='RB', created_at=now - timedelta(days=2))

    def allocate(self, quantity, allocation_date=None, product=None):
        return services.allocate_production(
            self.machine.id,
            allocation_date or date(2024, 1, 10),
            [{'raw_material_id': self.material.id, 'quantity': Decimal(str(quantity))}],
            [(product or self.product).id],
        )


class AllocationTests(ProductionTestMixin, TestCase):

    def test_allocation_debits_rolls_fifo(self):
        batch = self.allocate(100)

        self.assertEqual(batch.status, 'in_progress')
        self.assertTrue(batch.code.startswith('PB-'))
        self.assertEqual(batch.total_input_quantity, Decimal('100.00'))
        inputs = [(i.roll.roll_code, i.quantity) for i in batch.inputs.select_related('roll').order_by('id')]
        self.assertEqual(inputs, [('RA', Decimal('60.00')), ('RB', Decimal('40.00'))])
        self.assertEqual(raw_material_balance(self.material.id), Decimal('20.00'))

    def test_failed_input_aborts_whole_batch(self):
        other = TestDataFactory.create_raw_material()
        TestDataFactory.create_roll(other, 5)

        with self.assertRaises(InsufficientMaterialStock):
            services.allocate_production(
                self.machine.id, date(2024, 1, 10),
                [{'raw_material_id': self.material.id, 'quantity': Decimal('50')},
                 {'raw_material_id': other.id, 'quantity': Decimal('10')}],
                [self.product.id],
            )

        self.assertFalse(ProductionBatch.objects.exists())
        self.assertEqual(raw_material_balance(self.material.id), Decimal('120.00'))
        self.assertFalse(StockMovement.objects.filter(movement_type='raw_out').exists())

    def test_inactive_machine_rejected(self):
        self.machine.status = 'inactive'
        self.machine.save()
        with self.assertRaises(ValidationError):
            self.allocate(10)

    def test_requires_inputs_and_outputs(self):
        with self.assertRaises(ValidationError):
            services.allocate_production(self.machine.id, None, [], [self.product.id])
        with self.assertRaises(ValidationError):
            services.allocate_production(
                self.machine.id, None, [{'raw_material_id': self.material.id, 'quantity': 5}], []
            )

    def test_input_limit(self):
        inputs = [{'raw_material_id': self.material.id, 'quantity': 1}] * (services.MAX_INPUTS + 1)
        with self.assertRaises(ValidationError):
            services.allocate_production(self.machine.id, None, inputs, [self.product.id])

    def test_unknown_product(self):
        with self.assertRaises(NotFound):
            services.allocate_production(
                self.machine.id, None, [{'raw_material_id': self.material.id, 'quantity': 5}], [999999]
            )


class CompletionTests(ProductionTestMixin, TestCase):

    def test_complete_credits_finished_goods(self):
        batch = self.allocate(100)
        batch, warning = services.complete_production(batch.id, [{'product_id': self.product.id, 'quantity': 96}])

        self.assertIsNone(warning)
        self.assertEqual(batch.status, 'completed')
        self.assertEqual(batch.output_quantity, Decimal('96.00'))
        self.assertEqual(batch.loss_quantity, Decimal('4.00'))
        self.assertEqual(batch.loss_percentage, Decimal('4.00'))
        self.assertEqual(batch.consumed_quantity, Decimal('100.00'))
        self.assertEqual(finished_balance(self.product.id), Decimal('96.00'))

    def test_loss_above_threshold_warns_but_succeeds(self):
        batch = self.allocate(100)
        batch, warning = services.complete_production(batch.id, [{'product_id': self.product.id, 'quantity': 93}])

        self.assertEqual(batch.status, 'completed')
        self.assertTrue(batch.loss_exceeded)
        self.assertIsNotNone(warning)
        self.assertEqual(warning.loss_percentage, Decimal('7.00'))
        self.assertEqual(warning.threshold, Decimal('5'))
        self.assertEqual(finished_balance(self.product.id), Decimal('93.00'))

    def test_threshold_setting_overrides_default(self):
        Setting.objects.create(key=LOSS_THRESHOLD_SETTING_KEY, value='8')
        batch = self.allocate(100)
        _, warning = services.complete_production(batch.id, [{'product_id': self.product.id, 'quantity': 93}])
        self.assertIsNone(warning)

    def test_output_above_input_rejected(self):
        batch = self.allocate(100)
        with self.assertRaises(LossExceedsInput):
            services.complete_production(batch.id, [{'product_id': self.product.id, 'quantity': '100.01'}])

        batch.refresh_from_db()
        self.assertEqual(batch.status, 'in_progress')
        self.assertEqual(finished_balance(self.product.id), Decimal('0.00'))

    def test_zero_output_rejected(self):
        batch = self.allocate(100)
        with self.assertRaises(ValidationError):
            services.complete_production(batch.id, [{'product_id': self.product.id, 'quantity': 0}])

    def test_only_target_products(self):
        batch = self.allocate(100)
        stranger = TestDataFactory.create_finished_product()
        with self.assertRaises(ValidationError):
            services.complete_production(batch.id, [{'product_id': stranger.id, 'quantity': 50}])

    def test_cannot_complete_twice(self):
        batch = self.allocate(100)
        services.complete_production(batch.id, [{'product_id': self.product.id, 'quantity': 90}])
        with self.assertRaises(ValidationError):
            services.complete_production(batch.id, [{'product_id': self.product.id, 'quantity': 5}])

    def test_multiple_outputs(self):
        second = TestDataFactory.create_finished_product()
        batch = services.allocate_production(
            self.machine.id, date(2024, 1, 10),
            [{'raw_material_id': self.material.id, 'quantity': 100}],
            [self.product.id, second.id],
        )
        batch, _ = services.complete_production(batch.id, [
            {'product_id': self.product.id, 'quantity': 60},
            {'product_id': second.id, 'quantity': 37},
        ])
        self.assertEqual(batch.output_quantity, Decimal('97.00'))
        self.assertEqual(finished_balance(second.id), Decimal('37.00'))


class QuickCompleteTests(ProductionTestMixin, TestCase):

    def test_pool_consumed_oldest_batch_first(self):
        first = self.allocate(50, allocation_date=date(2024, 1, 1))
        second = self.allocate(50, allocation_date=date(2024, 1, 2))

        result = services.quick_complete(self.machine.id, self.product.id, Decimal('57'), Decimal('5'))

        self.assertEqual(result['consumption']['total_consumed'], '60.00')
        self.assertEqual(result['consumption']['remaining_capacity'], '40.00')
        self.assertIsNone(result['warning'])
        first.refresh_from_db()
        second.refresh_from_db()
        self.assertEqual(first.status, 'completed')
        self.assertEqual(first.consumed_quantity, Decimal('50.00'))
        self.assertEqual(second.status, 'partially_completed')
        self.assertEqual(second.consumed_quantity, Decimal('10.00'))
        self.assertEqual(first.output_quantity + second.output_quantity, Decimal('57.00'))
        self.assertEqual(finished_balance(self.product.id), Decimal('57.00'))

    def test_insufficient_capacity(self):
        self.allocate(50)
        with self.assertRaises(InsufficientMachineCapacity):
            services.quick_complete(self.machine.id, self.product.id, Decimal('50'), Decimal('5'))
        self.assertEqual(finished_balance(self.product.id), Decimal('0.00'))

    def test_high_loss_returns_warning(self):
        self.allocate(100)
        result = services.quick_complete(self.machine.id, self.product.id, Decimal('90'), Decimal('10'))
        self.assertEqual(result['warning']['code'], 'EfficiencyWarning')

    def test_loss_percent_bounds(self):
        self.allocate(100)
        with self.assertRaises(ValidationError):
            services.quick_complete(self.machine.id, self.product.id, Decimal('10'), Decimal('100'))

    def test_rounding_never_gives_a_batch_negative_output(self):
        batches = [self.allocate('0.01') for _ in range(10)]

        services.quick_complete(self.machine.id, self.product.id, Decimal('0.05'), Decimal('50'))

        total_output = Decimal('0.00')
        for batch in batches:
            batch.refresh_from_db()
            self.assertEqual(batch.consumed_quantity, Decimal('0.01'))
            self.assertGreaterEqual(batch.output_quantity, Decimal('0.00'))
            self.assertLessEqual(batch.output_quantity, batch.consumed_quantity)
            self.assertGreaterEqual(batch.loss_quantity, Decimal('0.00'))
            self.assertLessEqual(batch.loss_quantity, batch.consumed_quantity)
            self.assertEqual(batch.status, 'completed')
            total_output += batch.output_quantity
        self.assertEqual(total_output, Decimal('0.05'))
        self.assertEqual(finished_balance(self.product.id), Decimal('0.05'))
        self.assertFalse(ProductionBatchOutput.objects.filter(quantity__lt=0).exists())


class ReturnToProductionTests(ProductionTestMixin, TestCase):

    def test_full_return_reopens_batch(self):
        batch = self.allocate(100)
        services.complete_production(batch.id, [{'product_id': self.product.id, 'quantity': 90}])

        result = services.return_to_production(self.product.id, Decimal('90'), 'Rework')

        batch.refresh_from_db()
        self.assertEqual(batch.status, 'in_progress')
        self.assertEqual(batch.output_quantity, Decimal('0.00'))
        self.assertEqual(batch.loss_quantity, Decimal('0.00'))
        self.assertEqual(batch.remaining_capacity, Decimal('100.00'))
        self.assertEqual(finished_balance(self.product.id), Decimal('0.00'))

        data = result.as_dict()
        self.assertEqual(len(data['deltas']), 1)
        self.assertEqual(data['deltas'][0]['reference'], batch.code)
        self.assertEqual(data['deltas'][0]['output_reversed'], '90.00')
        self.assertEqual(data['deltas'][0]['loss_restored'], '10.00')
        self.assertEqual(data['deltas'][0]['status'], 'in_progress')
        self.assertEqual(data['unattributed_quantity'], '0.00')

    def test_partial_return_restores_loss_proportionally(self):
        batch = self.allocate(100)
        services.complete_production(batch.id, [{'product_id': self.product.id, 'quantity': 80}])

        result = services.return_to_production(self.product.id, Decimal('40'), 'Rework')

        batch.refresh_from_db()
        self.assertEqual(batch.status, 'partially_completed')
        self.assertEqual(batch.output_quantity, Decimal('40.00'))
        self.assertEqual(batch.loss_quantity, Decimal('10.00'))
        self.assertEqual(result.deltas[0].changes['loss_restored'], Decimal('10.00'))

    def test_return_walks_batches_oldest_completion_first(self):
        older = self.allocate(50)
        newer = self.allocate(50)
        services.complete_production(older.id, [{'product_id': self.product.id, 'quantity': 45}],
                                     completion_date=date(2024, 2, 1))
        services.complete_production(newer.id, [{'product_id': self.product.id, 'quantity': 45}],
                                     completion_date=date(2024, 2, 2))

        result = services.return_to_production(self.product.id, Decimal('60'), 'Quality hold')

        older.refresh_from_db()
        newer.refresh_from_db()
        self.assertEqual([d.entity_id for d in result.deltas], [older.id, newer.id])
        self.assertEqual(older.status, 'in_progress')
        self.assertEqual(newer.status, 'partially_completed')
        self.assertEqual(newer.output_quantity, Decimal('30.00'))

    def test_more_than_stock_rejected(self):
        batch = self.allocate(100)
        services.complete_production(batch.id, [{'product_id': self.product.id, 'quantity': 90}])

        with self.assertRaises(InsufficientStockToReturn):
            services.return_to_production(self.product.id, Decimal('90.01'), 'Rework')

        batch.refresh_from_db()
        self.assertEqual(batch.status, 'completed')
        self.assertEqual(finished_balance(self.product.id), Decimal('90.00'))

    def test_reason_required(self):
        with self.assertRaises(ValidationError):
            services.return_to_production(self.product.id, Decimal('1'), '')

    def test_writes_audit_log(self):
        batch = self.allocate(100)
        services.complete_production(batch.id, [{'product_id': self.product.id, 'quantity': 90}])
        services.return_to_production(self.product.id, Decimal('10'), 'Rework')
        self.assertTrue(AuditLog.objects.filter(action='return_to_production', object_reference='NET-40').exists())


class BatchDeletionTests(ProductionTestMixin, TestCase):

    def test_delete_restores_every_roll(self):
        batch = self.allocate(100)
        result = services.delete_production_batch(batch.id)

        self.assertFalse(ProductionBatch.objects.filter(pk=batch.id).exists())
        self.assertEqual(result.summary['restored_quantity'], Decimal('100.00'))
        self.roll_a.refresh_from_db()
        self.roll_b.refresh_from_db()
        self.assertEqual(self.roll_a.consumed_quantity, Decimal('0.00'))
        self.assertEqual(self.roll_a.status, 'in_stock')
        self.assertEqual(self.roll_b.consumed_quantity, Decimal('0.00'))

    def test_completed_batch_cannot_be_deleted(self):
        batch = self.allocate(100)
        services.complete_production(batch.id, [{'product_id': self.product.id, 'quantity': 90}])
        with self.assertRaises(ValidationError):
            services.delete_production_batch(batch.id)
        self.assertTrue(RawMaterialRoll.objects.filter(pk=self.roll_a.pk, status='consumed').exists())

    def test_missing_batch(self):
        with self.assertRaises(NotFound):
            services.delete_production_batch(999999)


class ProductionAPITests(ProductionTestMixin, TestCase):
    """Test production API endpoints"""

    def setUp(self):
        super().setUp()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_allocate_and_complete(self):
        data = {
            'machine_id': self.machine.id,
            'allocation_date': '2024-01-10',
            'inputs': [{'raw_material_id': self.material.id, 'quantity': '100.00'}],
            'output_product_ids': [self.product.id],
        }
        response = self.client.post('/api/v1/production/batches/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'in_progress')
        self.assertEqual(len(response.data['inputs']), 2)
        batch_id = response.data['id']

        response = self.client.post(
            f'/api/v1/production/batches/{batch_id}/complete/',
            {'outputs': [{'product_id': self.product.id, 'quantity': '93.00'}]},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['loss_percentage'], '7.00')
        self.assertEqual(response.data['warning']['code'], 'EfficiencyWarning')
        self.assertEqual(response.data['batch']['status'], 'completed')

    def test_complete_rejects_output_above_input(self):
        batch = self.allocate(100)
        response = self.client.post(
            f'/api/v1/production/batches/{batch.id}/complete/',
            {'outputs': [{'product_id': self.product.id, 'quantity': '120.00'}]},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertEqual(response.data['error'], 'LossExceedsInput')

    def test_allocate_reports_shortage(self):
        data = {
            'machine_id': self.machine.id,
            'inputs': [{'raw_material_id': self.material.id, 'quantity': '500.00'}],
            'output_product_ids': [self.product.id],
        }
        response = self.client.post('/api/v1/production/batches/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error'], 'InsufficientMaterialStock')
        self.assertEqual(response.data['details']['available'], '120.00')

    def test_list_filters_by_status(self):
        self.allocate(10)
        done = self.allocate(10)
        services.complete_production(done.id, [{'product_id': self.product.id, 'quantity': 10}])
        response = self.client.get('/api/v1/production/batches/?status=completed')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([b['id'] for b in response.data], [done.id])

    def test_delete_batch(self):
        batch = self.allocate(10)
        response = self.client.delete(f'/api/v1/production/batches/{batch.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['restored_quantity'], '10.00')

    def test_quick_complete_endpoint(self):
        self.allocate(100)
        data = {'machine_id': self.machine.id, 'product_id': self.product.id,
                'output_weight': '95.00', 'weight_loss_percent': '5'}
        response = self.client.post('/api/v1/production/quick-complete/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['consumption']['total_consumed'], '100.00')

    def test_return_to_production_endpoint(self):
        batch = self.allocate(100)
        services.complete_production(batch.id, [{'product_id': self.product.id, 'quantity': 90}])
        data = {'product_id': self.product.id, 'quantity': '90.00', 'reason': 'Rework'}
        response = self.client.post('/api/v1/production/return-to-production/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['deltas'][0]['status'], 'in_progress')
        self.assertEqual(response.data['new_stock_balance'], '0.00')

    def test_stats(self):
        self.allocate(10)
        response = self.client.get('/api/v1/production/stats/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('batches', response.data)

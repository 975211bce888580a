"""
Test suite for the bales module
Tests: bale batch creation, editing, deletion and APIs
"""
from decimal import Decimal

from django.core.cache import cache
from django.test import TestCase
from rest_framework import status

from backend.core.exceptions import ValidationError, NotFound, InsufficientStock
from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.inventory.models import StockMovement
from backend.inventory.services import finished_balance
from backend.bales import services
from backend.bales.models import BaleBatch, BaleItem


def bale(product, gross, loss_grams=0, pieces=10):
    return {
        'product_id': product.id,
        'gross_weight': Decimal(str(gross)),
        'weight_loss_grams': Decimal(str(loss_grams)),
        'piece_count': pieces,
    }


class NetWeightTests(TestCase):

    def test_loss_is_in_grams(self):
        self.assertEqual(services.bale_net_weight(Decimal('60.50'), Decimal('500')), Decimal('60.00'))

    def test_rounds_to_two_places(self):
        self.assertEqual(services.bale_net_weight(Decimal('25'), Decimal('125')), Decimal('24.88'))


class BaleBatchCreateTests(TestCase):

    def setUp(self):
        self.product = TestDataFactory.create_finished_product(code='NET-A')
        self.other = TestDataFactory.create_finished_product(code='NET-B')
        TestDataFactory.stock_finished_product(self.product, 100)
        TestDataFactory.stock_finished_product(self.other, 10)

    def test_create_debits_net_weight(self):
        batch, usage = services.create_bale_batch([bale(self.product, '60.50', 500)])

        self.assertEqual(batch.total_weight, Decimal('60.00'))
        self.assertEqual(batch.status, 'active')
        self.assertEqual(finished_balance(self.product.id), Decimal('40.00'))
        self.assertEqual(usage, [{
            'product_id': self.product.id,
            'product_code': 'NET-A',
            'quantity_used': Decimal('60.00'),
            'remaining_stock': Decimal('40.00'),
        }])
        item = batch.items.get()
        self.assertEqual(item.status, 'available')
        self.assertEqual(item.code, f"BEL-{batch.code.split('-', 1)[1]}-001")

    def test_usage_aggregated_per_product(self):
        batch, usage = services.create_bale_batch([
            bale(self.product, 30), bale(self.product, 20), bale(self.other, 5),
        ])
        self.assertEqual(batch.items.count(), 3)
        self.assertEqual([(u['product_code'], u['quantity_used']) for u in usage],
                         [('NET-A', Decimal('50.00')), ('NET-B', Decimal('5.00'))])
        self.assertEqual(batch.total_weight, Decimal('55.00'))

    def test_shortage_on_one_product_rejects_whole_batch(self):
        with self.assertRaises(InsufficientStock) as ctx:
            services.create_bale_batch([bale(self.product, 50), bale(self.other, 20)])

        self.assertEqual(ctx.exception.details['shortages'], [
            {'product': 'NET-B', 'requested': Decimal('20.00'), 'available': Decimal('10.00')},
        ])
        self.assertEqual(finished_balance(self.product.id), Decimal('100.00'))
        self.assertEqual(finished_balance(self.other.id), Decimal('10.00'))
        self.assertFalse(BaleBatch.objects.exists())
        self.assertFalse(StockMovement.objects.filter(reference_type='bale_batch').exists())

    def test_shortage_counts_all_bales_of_a_product(self):
        with self.assertRaises(InsufficientStock):
            services.create_bale_batch([bale(self.other, 6), bale(self.other, 6)])
        self.assertEqual(finished_balance(self.other.id), Decimal('10.00'))

    def test_non_positive_net_weight_rejected(self):
        with self.assertRaises(ValidationError):
            services.create_bale_batch([bale(self.product, 10), bale(self.product, '0.50', 500)])
        self.assertFalse(BaleBatch.objects.exists())
        self.assertEqual(finished_balance(self.product.id), Decimal('100.00'))

    def test_empty_batch_rejected(self):
        with self.assertRaises(ValidationError):
            services.create_bale_batch([])

    def test_unknown_product(self):
        with self.assertRaises(NotFound):
            services.create_bale_batch([{'product_id': 999999, 'gross_weight': 5}])


class BaleEditTests(TestCase):

    def setUp(self):
        self.product = TestDataFactory.create_finished_product(code='NET-A')
        TestDataFactory.stock_finished_product(self.product, 100)
        self.batch, _ = services.create_bale_batch([bale(self.product, 60), bale(self.product, 10)])
        self.item = self.batch.items.order_by('id').first()

    def test_weight_increase_debits_difference(self):
        item = services.update_bale_item(self.item.id, net_weight=Decimal('70'))

        self.assertEqual(item.net_weight, Decimal('70.00'))
        self.assertEqual(finished_balance(self.product.id), Decimal('20.00'))
        self.batch.refresh_from_db()
        self.assertEqual(self.batch.total_weight, Decimal('80.00'))

    def test_weight_decrease_credits_difference(self):
        services.update_bale_item(self.item.id, net_weight=Decimal('50'))
        self.assertEqual(finished_balance(self.product.id), Decimal('40.00'))
        self.assertTrue(AuditLog.objects.filter(action='bale_update', object_reference=self.batch.code).exists())

    def test_increase_beyond_stock_rejected(self):
        with self.assertRaises(InsufficientStock):
            services.update_bale_item(self.item.id, net_weight=Decimal('91'))
        self.item.refresh_from_db()
        self.assertEqual(self.item.net_weight, Decimal('60.00'))
        self.assertEqual(finished_balance(self.product.id), Decimal('30.00'))

    def test_piece_count_only(self):
        item = services.update_bale_item(self.item.id, piece_count=25)
        self.assertEqual(item.piece_count, 25)
        self.assertEqual(finished_balance(self.product.id), Decimal('30.00'))

    def test_issued_bale_cannot_be_edited(self):
        BaleItem.objects.filter(pk=self.item.pk).update(status='issued')
        with self.assertRaises(ValidationError):
            services.update_bale_item(self.item.id, piece_count=5)


class BaleDeletionTests(TestCase):

    def setUp(self):
        self.product = TestDataFactory.create_finished_product(code='NET-A')
        TestDataFactory.stock_finished_product(self.product, 100)

    def test_create_then_delete_restores_stock(self):
        batch, _ = services.create_bale_batch([bale(self.product, 60)])
        self.assertEqual(finished_balance(self.product.id), Decimal('40.00'))

        result = services.delete_bale_batch(batch.id)

        self.assertEqual(finished_balance(self.product.id), Decimal('100.00'))
        self.assertEqual(result.summary['restored_quantity'], Decimal('60.00'))
        batch.refresh_from_db()
        self.assertEqual(batch.status, 'deleted')
        self.assertIsNotNone(batch.deleted_at)
        self.assertEqual(batch.items.get().status, 'deleted')

    def test_issued_bales_are_left_alone(self):
        batch, _ = services.create_bale_batch([bale(self.product, 30), bale(self.product, 20)])
        issued = batch.items.order_by('id').first()
        BaleItem.objects.filter(pk=issued.pk).update(status='issued')

        result = services.delete_bale_batch(batch.id)

        self.assertEqual(result.summary['restored_quantity'], Decimal('20.00'))
        self.assertEqual(result.summary['issued_items_kept'], 1)
        self.assertEqual(finished_balance(self.product.id), Decimal('70.00'))
        issued.refresh_from_db()
        self.assertEqual(issued.status, 'issued')

    def test_batch_cannot_be_deleted_twice(self):
        batch, _ = services.create_bale_batch([bale(self.product, 10)])
        services.delete_bale_batch(batch.id)
        with self.assertRaises(ValidationError):
            services.delete_bale_batch(batch.id)
        self.assertEqual(finished_balance(self.product.id), Decimal('100.00'))

    def test_delete_single_bale(self):
        batch, _ = services.create_bale_batch([bale(self.product, 30), bale(self.product, 20)])
        first = batch.items.order_by('id').first()

        result = services.delete_bale_item(first.id)

        self.assertEqual(finished_balance(self.product.id), Decimal('80.00'))
        self.assertEqual(result.summary['batch_total_weight'], Decimal('20.00'))
        self.assertEqual(result.summary['batch_status'], 'active')

    def test_deleting_last_bale_deletes_batch(self):
        batch, _ = services.create_bale_batch([bale(self.product, 30)])
        result = services.delete_bale_item(batch.items.get().id)

        self.assertEqual(result.summary['batch_status'], 'deleted')
        batch.refresh_from_db()
        self.assertEqual(batch.status, 'deleted')

    def test_deletion_is_audited(self):
        batch, _ = services.create_bale_batch([bale(self.product, 30)])
        services.delete_bale_batch(batch.id)
        self.assertTrue(AuditLog.objects.filter(action='bale_delete', object_reference=batch.code).exists())


class BaleAPITests(TestCase):
    """Test bale API endpoints"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()
        self.user = TestDataFactory.create_user()
        self.client.authenticate_user(self.user)
        self.product = TestDataFactory.create_finished_product(code='NET-A')
        TestDataFactory.stock_finished_product(self.product, 100)

    def test_create_batch(self):
        data = {'items': [{'product_id': self.product.id, 'gross_weight': '60.50',
                           'weight_loss_grams': '500', 'piece_count': 12, 'shade': 'Green'}]}
        response = self.client.post('/api/v1/bales/batches/', data, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['batch']['total_weight'], '60.00')
        self.assertEqual(response.data['batch']['item_count'], 1)
        self.assertEqual(response.data['stock_usage'][0]['remaining_stock'], '40.00')

    def test_create_batch_shortage(self):
        data = {'items': [{'product_id': self.product.id, 'gross_weight': '150.00'}]}
        response = self.client.post('/api/v1/bales/batches/', data, format='json')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error'], 'InsufficientStock')
        self.assertEqual(response.data['details']['shortages'][0]['available'], '100.00')

    def test_list_hides_deleted_batches(self):
        kept, _ = services.create_bale_batch([bale(self.product, 10)])
        gone, _ = services.create_bale_batch([bale(self.product, 10)])
        services.delete_bale_batch(gone.id)

        response = self.client.get('/api/v1/bales/batches/')
        self.assertEqual([b['id'] for b in response.data], [kept.id])

        response = self.client.get('/api/v1/bales/batches/?status=all')
        self.assertEqual(len(response.data), 2)

    def test_delete_batch(self):
        batch, _ = services.create_bale_batch([bale(self.product, 10)])
        response = self.client.delete(f'/api/v1/bales/batches/{batch.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['restored_quantity'], '10.00')

    def test_patch_item(self):
        batch, _ = services.create_bale_batch([bale(self.product, 10)])
        item = batch.items.get()
        response = self.client.patch(f'/api/v1/bales/items/{item.id}/', {'net_weight': '12.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['net_weight'], '12.00')
        self.assertEqual(finished_balance(self.product.id), Decimal('88.00'))

    def test_patch_requires_a_field(self):
        batch, _ = services.create_bale_batch([bale(self.product, 10)])
        response = self.client.patch(f'/api/v1/bales/items/{batch.items.get().id}/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_item_list_filters(self):
        batch, _ = services.create_bale_batch([bale(self.product, 10), bale(self.product, 5)])
        first = batch.items.order_by('id').first()
        services.delete_bale_item(first.id)

        response = self.client.get(f'/api/v1/bales/items/?batch={batch.id}')
        self.assertEqual(len(response.data), 1)
        response = self.client.get('/api/v1/bales/items/?status=deleted')
        self.assertEqual([i['id'] for i in response.data], [first.id])

    def test_stock_summary(self):
        services.create_bale_batch([bale(self.product, 10), bale(self.product, 5)])
        response = self.client.get('/api/v1/bales/stock/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data[0]['bales'], 2)
        self.assertEqual(response.data[0]['bale_weight'], '15.00')
        self.assertEqual(response.data[0]['loose_stock'], '85.00')

"""
Test suite for the sales module
Tests: invoice confirmation and cancellation, receipts and reversals,
product samples, APIs
"""
from datetime import date
from decimal import Decimal

from django.core.cache import cache
from django.test import TestCase
from rest_framework import status

from backend.bales import services as bale_services
from backend.core.exceptions import ValidationError, NotFound, InsufficientStock
from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.inventory.models import StockMovement
from backend.inventory.services import finished_balance
from backend.sales import services
from backend.sales.models import SalesInvoice, Receipt, ProductSample


class SalesTestMixin:

    def setUp(self):
        self.customer = TestDataFactory.create_customer(name='Kisan Traders')
        self.product = TestDataFactory.create_finished_product(code='NET-A')
        TestDataFactory.stock_finished_product(self.product, 100)

    def plain_line(self, quantity, rate=100, product=None):
        return {'product_id': (product or self.product).id, 'quantity': Decimal(str(quantity)),
                'rate': Decimal(str(rate))}

    def make_bale(self, weight):
        batch, _ = bale_services.create_bale_batch([
            {'product_id': self.product.id, 'gross_weight': Decimal(str(weight)), 'weight_loss_grams': 0},
        ])
        return batch.items.get()

    def confirmed_invoice(self, quantity=10, rate=100):
        invoice = services.create_invoice(self.customer.id, date(2024, 3, 1), [self.plain_line(quantity, rate)],
                                          confirm=True)
        invoice.refresh_from_db()
        return invoice


class InvoiceTotalsTests(SalesTestMixin, TestCase):

    def test_gst_defaults_to_product_rate(self):
        invoice = services.create_invoice(self.customer.id, None, [self.plain_line(10, 100)])

        self.assertEqual(invoice.status, 'draft')
        self.assertTrue(invoice.invoice_number.startswith('INV-'))
        self.assertEqual(invoice.subtotal, Decimal('1000.00'))
        self.assertEqual(invoice.tax_amount, Decimal('120.00'))
        self.assertEqual(invoice.grand_total, Decimal('1120.00'))

    def test_explicit_gst(self):
        line = {**self.plain_line(3, '10.50'), 'gst_percent': Decimal('5')}
        invoice = services.create_invoice(self.customer.id, None, [line])
        item = invoice.items.get()
        self.assertEqual(item.amount, Decimal('31.50'))
        self.assertEqual(item.tax_amount, Decimal('1.58'))
        self.assertEqual(item.line_total, Decimal('33.08'))

    def test_bale_line_sells_net_weight(self):
        bale = self.make_bale(25)
        invoice = services.create_invoice(self.customer.id, None, [{'bale_item_id': bale.id, 'rate': 100}])
        self.assertEqual(invoice.items.get().quantity, Decimal('25.00'))

    def test_draft_does_not_touch_stock(self):
        services.create_invoice(self.customer.id, None, [self.plain_line(10)])
        self.assertEqual(finished_balance(self.product.id), Decimal('100.00'))
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.outstanding_balance, Decimal('0.00'))

    def test_same_bale_twice_rejected(self):
        bale = self.make_bale(25)
        with self.assertRaises(ValidationError):
            services.create_invoice(self.customer.id, None, [
                {'bale_item_id': bale.id, 'rate': 100}, {'bale_item_id': bale.id, 'rate': 100},
            ])

    def test_unknown_customer(self):
        with self.assertRaises(NotFound):
            services.create_invoice(999999, None, [self.plain_line(1)])


class InvoiceConfirmTests(SalesTestMixin, TestCase):

    def test_confirm_debits_stock_and_raises_outstanding(self):
        invoice = self.confirmed_invoice(10, 100)

        self.assertEqual(invoice.status, 'confirmed')
        self.assertIsNotNone(invoice.confirmed_at)
        self.assertEqual(finished_balance(self.product.id), Decimal('90.00'))
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.outstanding_balance, Decimal('1120.00'))
        movement = StockMovement.objects.get(reference_type='sales_invoice')
        self.assertEqual(movement.quantity_out, Decimal('10.00'))
        self.assertEqual(movement.reference_code, invoice.invoice_number)

    def test_bale_line_issues_bale_without_second_debit(self):
        bale = self.make_bale(60)
        self.assertEqual(finished_balance(self.product.id), Decimal('40.00'))

        services.create_invoice(self.customer.id, None, [{'bale_item_id': bale.id, 'rate': 100}], confirm=True)

        bale.refresh_from_db()
        self.assertEqual(bale.status, 'issued')
        self.assertEqual(finished_balance(self.product.id), Decimal('40.00'))

    def test_shortage_leaves_everything_unchanged(self):
        bale = self.make_bale(60)
        invoice = services.create_invoice(self.customer.id, None, [
            {'bale_item_id': bale.id, 'rate': 100}, self.plain_line(50),
        ])

        with self.assertRaises(InsufficientStock) as ctx:
            services.confirm_invoice(invoice.id)

        self.assertEqual(ctx.exception.details['shortages'][0]['available'], Decimal('40.00'))
        invoice.refresh_from_db()
        bale.refresh_from_db()
        self.customer.refresh_from_db()
        self.assertEqual(invoice.status, 'draft')
        self.assertEqual(bale.status, 'available')
        self.assertEqual(finished_balance(self.product.id), Decimal('40.00'))
        self.assertEqual(self.customer.outstanding_balance, Decimal('0.00'))

    def test_issued_bale_cannot_be_sold_again(self):
        bale = self.make_bale(20)
        first = services.create_invoice(self.customer.id, None, [{'bale_item_id': bale.id, 'rate': 100}])
        second = services.create_invoice(self.customer.id, None, [{'bale_item_id': bale.id, 'rate': 90}])
        services.confirm_invoice(first.id)

        with self.assertRaises(ValidationError):
            services.confirm_invoice(second.id)

    def test_confirm_only_drafts(self):
        invoice = self.confirmed_invoice()
        with self.assertRaises(ValidationError):
            services.confirm_invoice(invoice.id)
        self.assertEqual(finished_balance(self.product.id), Decimal('90.00'))

    def test_delete_draft_only(self):
        draft = services.create_invoice(self.customer.id, None, [self.plain_line(1)])
        services.delete_draft_invoice(draft.id)
        self.assertFalse(SalesInvoice.objects.filter(pk=draft.id).exists())

        invoice = self.confirmed_invoice()
        with self.assertRaises(ValidationError):
            services.delete_draft_invoice(invoice.id)


class InvoiceCancellationTests(SalesTestMixin, TestCase):

    def test_cancel_restores_stock_bales_and_outstanding(self):
        bale = self.make_bale(60)
        invoice = services.create_invoice(self.customer.id, None, [
            {'bale_item_id': bale.id, 'rate': 100}, self.plain_line(10),
        ], confirm=True)
        self.assertEqual(finished_balance(self.product.id), Decimal('30.00'))

        result = services.cancel_invoice(invoice.id, 'Customer refused delivery')

        invoice.refresh_from_db()
        bale.refresh_from_db()
        self.customer.refresh_from_db()
        self.assertEqual(invoice.status, 'cancelled')
        self.assertEqual(invoice.cancellation_reason, 'Customer refused delivery')
        self.assertEqual(bale.status, 'available')
        self.assertEqual(finished_balance(self.product.id), Decimal('40.00'))
        self.assertEqual(self.customer.outstanding_balance, Decimal('0.00'))
        self.assertEqual(len(result.deltas), 2)
        self.assertTrue(AuditLog.objects.filter(action='invoice_cancel',
                                                object_reference=invoice.invoice_number).exists())

    def test_cancel_after_bale_batch_deleted_returns_weight_to_stock(self):
        batch, _ = bale_services.create_bale_batch([
            {'product_id': self.product.id, 'gross_weight': Decimal('20'), 'weight_loss_grams': 0},
            {'product_id': self.product.id, 'gross_weight': Decimal('20'), 'weight_loss_grams': 0},
        ])
        sold, unsold = batch.items.order_by('id')
        invoice = services.create_invoice(self.customer.id, None, [{'bale_item_id': sold.id, 'rate': 100}],
                                          confirm=True)
        bale_services.delete_bale_batch(batch.id)
        self.assertEqual(finished_balance(self.product.id), Decimal('80.00'))

        result = services.cancel_invoice(invoice.id, 'Order withdrawn')

        sold.refresh_from_db()
        batch.refresh_from_db()
        self.assertEqual(sold.status, 'deleted')
        self.assertEqual(batch.status, 'deleted')
        self.assertEqual(batch.total_weight, Decimal('0.00'))
        self.assertEqual(finished_balance(self.product.id), Decimal('100.00'))
        self.assertEqual(bale_services.bale_stock_summary(), [])
        self.assertEqual(result.as_dict()['deltas'][0]['status'], 'deleted')

    def test_reason_required(self):
        invoice = self.confirmed_invoice()
        with self.assertRaises(ValidationError):
            services.cancel_invoice(invoice.id, '  ')

    def test_paid_invoice_cannot_be_cancelled(self):
        invoice = self.confirmed_invoice()
        services.create_receipt(self.customer.id, 100, [{'invoice_id': invoice.id, 'amount': 100}])

        with self.assertRaises(ValidationError):
            services.cancel_invoice(invoice.id, 'Wrong rate')
        self.assertEqual(finished_balance(self.product.id), Decimal('90.00'))

    def test_draft_cannot_be_cancelled(self):
        draft = services.create_invoice(self.customer.id, None, [self.plain_line(1)])
        with self.assertRaises(ValidationError):
            services.cancel_invoice(draft.id, 'Wrong rate')


class ReceiptTests(SalesTestMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.invoice = self.confirmed_invoice(10, 100)

    def test_full_payment_with_advance(self):
        receipt = services.create_receipt(self.customer.id, Decimal('1500'),
                                          [{'invoice_id': self.invoice.id, 'amount': Decimal('1120')}])

        self.invoice.refresh_from_db()
        self.customer.refresh_from_db()
        self.assertTrue(receipt.code.startswith('RCPT-'))
        self.assertEqual(receipt.advance_balance, Decimal('380.00'))
        self.assertEqual(self.invoice.payment_status, 'paid')
        self.assertEqual(self.invoice.balance_due, Decimal('0.00'))
        self.assertEqual(self.customer.outstanding_balance, Decimal('-380.00'))

    def test_partial_payment(self):
        services.create_receipt(self.customer.id, 500, [{'invoice_id': self.invoice.id, 'amount': 500}])
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.payment_status, 'partial')
        self.assertEqual(self.invoice.balance_due, Decimal('620.00'))

    def test_allocation_above_balance_rejected(self):
        with self.assertRaises(ValidationError):
            services.create_receipt(self.customer.id, 2000, [{'invoice_id': self.invoice.id, 'amount': 1200}])
        self.assertFalse(Receipt.objects.exists())

    def test_allocations_above_amount_rejected(self):
        with self.assertRaises(ValidationError):
            services.create_receipt(self.customer.id, 100, [{'invoice_id': self.invoice.id, 'amount': 200}])

    def test_other_customers_invoice_rejected(self):
        stranger = TestDataFactory.create_customer()
        with self.assertRaises(ValidationError):
            services.create_receipt(stranger.id, 100, [{'invoice_id': self.invoice.id, 'amount': 100}])
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.amount_paid, Decimal('0.00'))

    def test_draft_invoice_cannot_be_settled(self):
        draft = services.create_invoice(self.customer.id, None, [self.plain_line(1)])
        with self.assertRaises(ValidationError):
            services.create_receipt(self.customer.id, 50, [{'invoice_id': draft.id, 'amount': 50}])

    def test_non_positive_amount(self):
        with self.assertRaises(ValidationError):
            services.create_receipt(self.customer.id, 0)


class ReceiptReversalTests(SalesTestMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.first = self.confirmed_invoice(10, 100)
        self.second = self.confirmed_invoice(5, 100)
        self.receipt = services.create_receipt(self.customer.id, 2000, [
            {'invoice_id': self.first.id, 'amount': 1120},
            {'invoice_id': self.second.id, 'amount': 300},
        ])

    def test_reversal_reopens_every_allocation(self):
        result = services.reverse_receipt(self.receipt.id, 'Cheque bounced')

        self.first.refresh_from_db()
        self.second.refresh_from_db()
        self.receipt.refresh_from_db()
        self.customer.refresh_from_db()
        self.assertEqual(self.first.amount_paid, Decimal('0.00'))
        self.assertEqual(self.first.payment_status, 'unpaid')
        self.assertEqual(self.second.balance_due, Decimal('560.00'))
        self.assertEqual(self.receipt.status, 'reversed')
        self.assertEqual(self.receipt.advance_balance, Decimal('0.00'))
        self.assertEqual(self.customer.outstanding_balance, Decimal('1680.00'))
        self.assertEqual(result.summary['reopened_amount'], Decimal('1420.00'))
        self.assertEqual([d.reference for d in result.deltas],
                         [self.first.invoice_number, self.second.invoice_number])

    def test_reason_required(self):
        with self.assertRaises(ValidationError):
            services.reverse_receipt(self.receipt.id, '')
        self.receipt.refresh_from_db()
        self.assertEqual(self.receipt.status, 'completed')

    def test_cannot_reverse_twice(self):
        services.reverse_receipt(self.receipt.id, 'Cheque bounced')
        with self.assertRaises(ValidationError):
            services.reverse_receipt(self.receipt.id, 'Again')
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.outstanding_balance, Decimal('1680.00'))

    def test_reversal_allows_cancellation(self):
        services.reverse_receipt(self.receipt.id, 'Cheque bounced')
        services.cancel_invoice(self.first.id, 'Goods returned')
        self.first.refresh_from_db()
        self.assertEqual(self.first.status, 'cancelled')


class SalesAPITests(SalesTestMixin, TestCase):
    """Test sales API endpoints"""

    def setUp(self):
        super().setUp()
        cache.clear()
        self.client = AuthenticatedAPIClient()
        self.user = TestDataFactory.create_user()
        self.client.authenticate_user(self.user)

    def test_create_and_confirm_invoice(self):
        data = {
            'customer_id': self.customer.id,
            'invoice_date': '2024-03-01',
            'confirm': True,
            'lines': [{'product_id': self.product.id, 'quantity': '10.00', 'rate': '100.00'}],
        }
        response = self.client.post('/api/v1/sales/invoices/', data, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'confirmed')
        self.assertEqual(response.data['grand_total'], '1120.00')
        self.assertEqual(response.data['balance_due'], '1120.00')
        self.assertEqual(finished_balance(self.product.id), Decimal('90.00'))

    def test_line_needs_product_or_bale(self):
        data = {'customer_id': self.customer.id, 'lines': [{'rate': '100.00'}]}
        response = self.client.post('/api/v1/sales/invoices/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_confirm_shortage_returns_conflict(self):
        invoice = services.create_invoice(self.customer.id, None, [self.plain_line(150)])
        response = self.client.post(f'/api/v1/sales/invoices/{invoice.id}/confirm/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error'], 'InsufficientStock')

    def test_cancel_requires_reason(self):
        invoice = self.confirmed_invoice()
        response = self.client.post(f'/api/v1/sales/invoices/{invoice.id}/cancel/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post(f'/api/v1/sales/invoices/{invoice.id}/cancel/',
                                    {'reason': 'Duplicate'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['customer_outstanding'], '0.00')

    def test_delete_draft(self):
        draft = services.create_invoice(self.customer.id, None, [self.plain_line(1)])
        response = self.client.delete(f'/api/v1/sales/invoices/{draft.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

    def test_list_filters_by_status(self):
        draft = services.create_invoice(self.customer.id, None, [self.plain_line(1)])
        self.confirmed_invoice()
        response = self.client.get('/api/v1/sales/invoices/?status=draft')
        self.assertEqual([i['id'] for i in response.data], [draft.id])

    def test_receipt_and_reversal(self):
        invoice = self.confirmed_invoice()
        data = {'customer_id': self.customer.id, 'amount': '1000.00', 'mode': 'upi',
                'allocations': [{'invoice_id': invoice.id, 'amount': '1000.00'}]}
        response = self.client.post('/api/v1/sales/receipts/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['advance_balance'], '0.00')
        receipt_id = response.data['id']

        response = self.client.get(f'/api/v1/sales/outstanding/{self.customer.id}/')
        self.assertEqual(response.data[0]['balance_due'], '120.00')

        response = self.client.post(f'/api/v1/sales/receipts/{receipt_id}/reverse/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post(f'/api/v1/sales/receipts/{receipt_id}/reverse/',
                                    {'reason': 'Payment failed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['reopened_amount'], '1000.00')
        self.assertEqual(response.data['deltas'][0]['payment_status'], 'unpaid')

    def test_available_bales(self):
        bale = self.make_bale(20)
        response = self.client.get('/api/v1/sales/available-bales/')
        self.assertEqual([b['id'] for b in response.data], [bale.id])

    def test_summary(self):
        self.confirmed_invoice()
        response = self.client.get('/api/v1/sales/summary/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_sales'], '1120.00')
        self.assertEqual(response.data['receivables'], '1120.00')


class ProductSampleTests(SalesTestMixin, TestCase):

    def test_sample_debits_finished_stock(self):
        sample = services.create_sample(self.product.id, Decimal('2.5'), customer_id=self.customer.id,
                                        purpose='Trial for monsoon order')

        self.assertTrue(sample.code.startswith('SMP-'))
        self.assertEqual(finished_balance(self.product.id), Decimal('97.50'))
        movement = StockMovement.objects.get(reference_type='sample')
        self.assertEqual(movement.movement_type, 'fg_out')
        self.assertEqual(movement.quantity_out, Decimal('2.50'))
        self.assertEqual(movement.reference_code, sample.code)
        self.assertEqual(movement.balance_after, Decimal('97.50'))
        self.assertTrue(AuditLog.objects.filter(action='sample_create', object_reference=sample.code).exists())

    def test_sample_without_customer(self):
        sample = services.create_sample(self.product.id, Decimal('1'))
        self.assertIsNone(sample.customer)

    def test_sample_above_stock_rejected(self):
        with self.assertRaises(InsufficientStock):
            services.create_sample(self.product.id, Decimal('100.01'))
        self.assertFalse(ProductSample.objects.exists())
        self.assertEqual(finished_balance(self.product.id), Decimal('100.00'))

    def test_non_positive_quantity_rejected(self):
        with self.assertRaises(ValidationError):
            services.create_sample(self.product.id, Decimal('0'))

    def test_update_quantity_moves_difference(self):
        sample = services.create_sample(self.product.id, Decimal('5'))

        services.update_sample(sample.id, self.product.id, Decimal('8'), purpose='Bigger swatch')

        sample.refresh_from_db()
        self.assertEqual(sample.quantity, Decimal('8.00'))
        self.assertEqual(sample.purpose, 'Bigger swatch')
        self.assertEqual(finished_balance(self.product.id), Decimal('92.00'))

    def test_update_switches_product(self):
        other = TestDataFactory.create_finished_product(code='NET-B')
        TestDataFactory.stock_finished_product(other, 10)
        sample = services.create_sample(self.product.id, Decimal('5'))

        services.update_sample(sample.id, other.id, Decimal('4'))

        self.assertEqual(finished_balance(self.product.id), Decimal('100.00'))
        self.assertEqual(finished_balance(other.id), Decimal('6.00'))

    def test_update_beyond_stock_leaves_sample_untouched(self):
        sample = services.create_sample(self.product.id, Decimal('5'))
        with self.assertRaises(InsufficientStock):
            services.update_sample(sample.id, self.product.id, Decimal('105.01'))

        sample.refresh_from_db()
        self.assertEqual(sample.quantity, Decimal('5.00'))
        self.assertEqual(finished_balance(self.product.id), Decimal('95.00'))

    def test_delete_credits_stock_back(self):
        sample = services.create_sample(self.product.id, Decimal('5'))

        result = services.delete_sample(sample.id)

        self.assertFalse(ProductSample.objects.filter(pk=sample.id).exists())
        self.assertEqual(finished_balance(self.product.id), Decimal('100.00'))
        self.assertEqual(result.deltas[0].changes['new_stock_balance'], Decimal('100.00'))
        self.assertEqual(StockMovement.objects.filter(reference_type='sample', movement_type='fg_in').count(), 1)
        self.assertTrue(AuditLog.objects.filter(action='sample_delete', object_reference=sample.code).exists())

    def test_missing_sample(self):
        with self.assertRaises(NotFound):
            services.delete_sample(999999)


class ProductSampleAPITests(SalesTestMixin, TestCase):
    """Test product sample API endpoints"""

    def setUp(self):
        super().setUp()
        cache.clear()
        self.client = AuthenticatedAPIClient()
        self.user = TestDataFactory.create_user()
        self.client.authenticate_user(self.user)

    def test_create_edit_delete(self):
        response = self.client.post('/api/v1/sales/samples/', {
            'finished_product_id': self.product.id,
            'customer_id': self.customer.id,
            'quantity': '3.00',
            'sample_date': '2024-03-02',
            'purpose': 'Shade approval',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['customer_name'], 'Kisan Traders')
        self.assertEqual(response.data['quantity'], '3.00')
        sample_id = response.data['id']

        response = self.client.put(f'/api/v1/sales/samples/{sample_id}/', {
            'finished_product_id': self.product.id,
            'quantity': '1.50',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIsNone(response.data['customer'])
        self.assertEqual(finished_balance(self.product.id), Decimal('98.50'))

        response = self.client.get(f'/api/v1/sales/samples/?product={self.product.id}')
        self.assertEqual([s['id'] for s in response.data], [sample_id])

        response = self.client.delete(f'/api/v1/sales/samples/{sample_id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['quantity_restored'], '1.50')
        self.assertEqual(finished_balance(self.product.id), Decimal('100.00'))

    def test_sample_above_stock_returns_conflict(self):
        response = self.client.post('/api/v1/sales/samples/', {
            'finished_product_id': self.product.id,
            'quantity': '500.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertFalse(ProductSample.objects.exists())

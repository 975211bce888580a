"""
Test suite for the purchasing module
Tests: purchase bill drafting, confirmation into rolls, roll corrections,
supplier payments and APIs
"""
from datetime import date
from decimal import Decimal

from django.core.cache import cache
from django.test import TestCase
from rest_framework import status

from backend.core.exceptions import ValidationError, NotFound
from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.inventory.models import RawMaterialRoll, StockMovement
from backend.inventory.services import raw_material_balance, allocate_material
from backend.purchasing import services
from backend.purchasing.models import PurchaseBill, SupplierPayment


class PurchaseBillTestMixin:

    def setUp(self):
        self.supplier = TestDataFactory.create_supplier(name='Polymer House')
        self.material = TestDataFactory.create_raw_material(code='HDPE', gst_percent=5)

    def roll_item(self, *rolls, rate=100):
        return {
            'raw_material': self.material,
            'rate': Decimal(str(rate)),
            'rolls': [{'gross_weight': Decimal(str(g)), 'pipe_weight': Decimal(str(p))} for g, p in rolls],
        }


class PurchaseBillModelTests(PurchaseBillTestMixin, TestCase):

    def test_totals(self):
        bill = services.create_purchase_bill(self.supplier, date(2024, 1, 5),
                                             [self.roll_item(('25.50', '0.50'), ('30', '1'))])
        self.assertEqual(str(bill), bill.code)
        self.assertEqual(bill.get_subtotal(), Decimal('5400.00'))
        self.assertEqual(bill.get_tax_total(), Decimal('270.00'))
        self.assertEqual(bill.get_total(), Decimal('5670.00'))


class PurchaseBillServiceTests(PurchaseBillTestMixin, TestCase):

    def test_draft_quantity_is_total_net_weight(self):
        bill = services.create_purchase_bill(self.supplier, date(2024, 1, 5),
                                             [self.roll_item(('25.50', '0.50'), ('30', '1'))])

        self.assertEqual(bill.status, 'draft')
        item = bill.items.get()
        self.assertEqual(item.quantity, Decimal('54.00'))
        self.assertEqual([r['net_weight'] for r in item.roll_details], ['25.00', '29.00'])
        self.assertFalse(RawMaterialRoll.objects.exists())

    def test_confirm_creates_one_roll_per_entry(self):
        bill = services.create_purchase_bill(self.supplier, date(2024, 1, 5),
                                             [self.roll_item(('25.50', '0.50'), ('30', '1'))])

        rolls = services.confirm_purchase_bill(bill.id)

        self.assertEqual([r.roll_code for r in rolls],
                         [f'ROLL-{bill.code}-001', f'ROLL-{bill.code}-002'])
        self.assertEqual([r.total_quantity for r in rolls], [Decimal('25.00'), Decimal('29.00')])
        self.assertEqual(raw_material_balance(self.material.id), Decimal('54.00'))
        self.assertEqual(StockMovement.objects.filter(reference_type='purchase_bill', reference_code=bill.code,
                                                      movement_type='raw_in').count(), 2)
        bill.refresh_from_db()
        self.assertEqual(bill.status, 'confirmed')
        self.assertIsNotNone(bill.confirmed_at)
        self.assertTrue(AuditLog.objects.filter(action='roll_intake', object_reference=bill.code).exists())

    def test_quantity_only_item_becomes_one_roll(self):
        bill = services.create_purchase_bill(
            self.supplier, date(2024, 1, 5),
            [{'raw_material': self.material, 'quantity': Decimal('40'), 'rate': Decimal('90')}],
            confirm=True,
        )
        self.assertEqual(bill.status, 'confirmed')
        roll = RawMaterialRoll.objects.get(purchase_bill=bill)
        self.assertEqual(roll.total_quantity, Decimal('40.00'))
        self.assertEqual(roll.status, 'in_stock')

    def test_non_positive_net_weight_rejected(self):
        with self.assertRaises(ValidationError):
            services.create_purchase_bill(self.supplier, date(2024, 1, 5),
                                          [self.roll_item(('20', '0.5'), ('1', '1'))])
        self.assertFalse(PurchaseBill.objects.exists())

    def test_empty_bill_rejected(self):
        with self.assertRaises(ValidationError):
            services.create_purchase_bill(self.supplier, date(2024, 1, 5), [])

    def test_confirm_twice_rejected(self):
        bill = services.create_purchase_bill(self.supplier, date(2024, 1, 5), [self.roll_item(('10', '0'))],
                                             confirm=True)
        with self.assertRaises(ValidationError):
            services.confirm_purchase_bill(bill.id)
        self.assertEqual(RawMaterialRoll.objects.count(), 1)

    def test_delete_draft_only(self):
        draft = services.create_purchase_bill(self.supplier, date(2024, 1, 5), [self.roll_item(('10', '0'))])
        services.delete_purchase_bill(draft.id)
        self.assertFalse(PurchaseBill.objects.filter(pk=draft.id).exists())

        confirmed = services.create_purchase_bill(self.supplier, date(2024, 1, 6), [self.roll_item(('10', '0'))],
                                                  confirm=True)
        with self.assertRaises(ValidationError):
            services.delete_purchase_bill(confirmed.id)

    def test_missing_bill(self):
        with self.assertRaises(NotFound):
            services.confirm_purchase_bill(999999)


class PurchaseBillAPITests(PurchaseBillTestMixin, TestCase):
    """Test purchase bill API endpoints"""

    def setUp(self):
        super().setUp()
        cache.clear()
        self.client = AuthenticatedAPIClient()
        self.user = TestDataFactory.create_user()
        self.client.authenticate_user(self.user)

    def bill_payload(self, confirm=False, rolls=None):
        return {
            'supplier': self.supplier.id,
            'bill_number': 'PH/778',
            'bill_date': '2024-01-05',
            'confirm': confirm,
            'items': [{
                'raw_material': self.material.id,
                'rate': '100.00',
                'rolls': rolls or [{'gross_weight': '25.50', 'pipe_weight': '0.50', 'shade': 'Green'}],
            }],
        }

    def test_create_and_confirm(self):
        response = self.client.post('/api/v1/purchase-bills/', self.bill_payload(confirm=True), format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'confirmed')
        self.assertEqual(response.data['roll_count'], 1)
        self.assertEqual(response.data['total'], '2625.00')
        self.assertEqual(raw_material_balance(self.material.id), Decimal('25.00'))

    def test_roll_with_no_net_weight_rejected(self):
        payload = self.bill_payload(rolls=[{'gross_weight': '2.00', 'pipe_weight': '2.00'}])
        response = self.client.post('/api/v1/purchase-bills/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(PurchaseBill.objects.exists())

    def test_confirm_endpoint_returns_rolls(self):
        response = self.client.post('/api/v1/purchase-bills/', self.bill_payload(), format='json')
        bill_id = response.data['id']

        response = self.client.post(f'/api/v1/purchase-bills/{bill_id}/confirm/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'confirmed')
        self.assertEqual(len(response.data['rolls']), 1)
        self.assertEqual(response.data['rolls'][0]['remaining_quantity'], '25.00')
        self.assertEqual(response.data['rolls'][0]['shade'], 'Green')

    def test_confirm_twice_returns_error(self):
        response = self.client.post('/api/v1/purchase-bills/', self.bill_payload(confirm=True), format='json')
        response = self.client.post(f"/api/v1/purchase-bills/{response.data['id']}/confirm/")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'ValidationError')

    def test_delete(self):
        response = self.client.post('/api/v1/purchase-bills/', self.bill_payload(), format='json')
        response = self.client.delete(f"/api/v1/purchase-bills/{response.data['id']}/")
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

    def test_list_filters(self):
        services.create_purchase_bill(self.supplier, date(2024, 1, 5), [self.roll_item(('10', '0'))])
        confirmed = services.create_purchase_bill(self.supplier, date(2024, 1, 6), [self.roll_item(('10', '0'))],
                                                  confirm=True)
        response = self.client.get('/api/v1/purchase-bills/?status=confirmed')
        self.assertEqual([b['id'] for b in response.data], [confirmed.id])


class BillRollTests(PurchaseBillTestMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.bill = services.create_purchase_bill(self.supplier, date(2024, 1, 5),
                                                  [self.roll_item(('25.50', '0.50'), ('30', '1'))], confirm=True)
        self.first, self.second = RawMaterialRoll.objects.filter(purchase_bill=self.bill).order_by('id')

    def test_reweigh_up_writes_raw_in(self):
        roll = services.update_bill_roll(self.bill.id, self.first.id, net_weight=Decimal('27.00'), shade='Blue')

        self.assertEqual(roll.total_quantity, Decimal('27.00'))
        self.assertEqual(roll.shade, 'Blue')
        self.assertEqual(raw_material_balance(self.material.id), Decimal('56.00'))
        movement = StockMovement.objects.get(reference_type='roll_adjustment')
        self.assertEqual(movement.movement_type, 'raw_in')
        self.assertEqual(movement.quantity_in, Decimal('2.00'))
        self.assertEqual(movement.reference_code, self.bill.code)
        self.assertEqual(movement.balance_after, Decimal('56.00'))
        self.assertTrue(AuditLog.objects.filter(action='roll_update', object_name=roll.roll_code).exists())

    def test_reweigh_down_writes_raw_out(self):
        services.update_bill_roll(self.bill.id, self.second.id, net_weight=Decimal('28.50'))

        movement = StockMovement.objects.get(reference_type='roll_adjustment')
        self.assertEqual(movement.movement_type, 'raw_out')
        self.assertEqual(movement.quantity_out, Decimal('0.50'))
        self.assertEqual(raw_material_balance(self.material.id), Decimal('53.50'))

    def test_money_on_bill_is_unchanged_by_reweigh(self):
        services.update_bill_roll(self.bill.id, self.first.id, net_weight=Decimal('20.00'))
        self.bill.refresh_from_db()
        self.assertEqual(self.bill.grand_total, Decimal('5670.00'))
        self.assertEqual(self.bill.get_roll_weight(), Decimal('49.00'))

    def test_reweigh_below_consumed_rejected(self):
        allocate_material(self.material, Decimal('10'), roll_id=self.first.id)

        with self.assertRaises(ValidationError):
            services.update_bill_roll(self.bill.id, self.first.id, net_weight=Decimal('9.00'))

        roll = services.update_bill_roll(self.bill.id, self.first.id, net_weight=Decimal('12.00'))
        self.assertEqual(roll.remaining_quantity, Decimal('2.00'))

    def test_consumed_roll_cannot_be_reweighed(self):
        allocate_material(self.material, Decimal('25'), roll_id=self.first.id)
        with self.assertRaises(ValidationError):
            services.update_bill_roll(self.bill.id, self.first.id, net_weight=Decimal('26.00'))

    def test_roll_of_another_bill_not_found(self):
        other = services.create_purchase_bill(self.supplier, date(2024, 1, 6), [self.roll_item(('10', '0'))],
                                              confirm=True)
        with self.assertRaises(NotFound):
            services.update_bill_roll(other.id, self.first.id, shade='Red')

    def test_delete_untouched_roll(self):
        result = services.delete_bill_roll(self.bill.id, self.first.id)

        self.assertEqual(result['quantity_removed'], Decimal('25.00'))
        self.assertEqual(result['bill_roll_weight'], Decimal('29.00'))
        self.assertFalse(RawMaterialRoll.objects.filter(pk=self.first.id).exists())
        self.assertEqual(raw_material_balance(self.material.id), Decimal('29.00'))
        movement = StockMovement.objects.get(reference_type='roll_delete')
        self.assertEqual(movement.movement_type, 'raw_out')
        self.assertEqual(movement.quantity_out, Decimal('25.00'))
        self.assertEqual(movement.balance_after, Decimal('29.00'))
        self.assertTrue(AuditLog.objects.filter(action='roll_delete', object_reference=self.bill.code).exists())

    def test_delete_partly_consumed_roll_rejected(self):
        allocate_material(self.material, Decimal('5'), roll_id=self.first.id)
        with self.assertRaises(ValidationError):
            services.delete_bill_roll(self.bill.id, self.first.id)
        self.assertTrue(RawMaterialRoll.objects.filter(pk=self.first.id).exists())


class SupplierPaymentTests(PurchaseBillTestMixin, TestCase):

    def setUp(self):
        super().setUp()
        # 5670.00 each
        self.first = services.create_purchase_bill(self.supplier, date(2024, 1, 5),
                                                   [self.roll_item(('25.50', '0.50'), ('30', '1'))], confirm=True)
        self.second = services.create_purchase_bill(self.supplier, date(2024, 1, 9),
                                                    [self.roll_item(('25.50', '0.50'), ('30', '1'))], confirm=True)

    def test_confirm_raises_supplier_outstanding(self):
        self.supplier.refresh_from_db()
        self.assertEqual(self.first.grand_total, Decimal('5670.00'))
        self.assertEqual(self.supplier.outstanding_balance, Decimal('11340.00'))

    def test_draft_bill_does_not_count(self):
        services.create_purchase_bill(self.supplier, date(2024, 1, 10), [self.roll_item(('10', '0'))])
        self.supplier.refresh_from_db()
        self.assertEqual(self.supplier.outstanding_balance, Decimal('11340.00'))

    def test_payment_settles_bills_and_holds_advance(self):
        payment = services.create_supplier_payment(self.supplier.id, Decimal('7000'), allocations=[
            {'bill_id': self.first.id, 'amount': Decimal('5670')},
            {'bill_id': self.second.id, 'amount': Decimal('1000')},
        ])

        self.assertTrue(payment.code.startswith('PAY-'))
        self.assertEqual(payment.advance_balance, Decimal('330.00'))
        self.first.refresh_from_db()
        self.second.refresh_from_db()
        self.assertEqual(self.first.payment_status, 'paid')
        self.assertEqual(self.second.payment_status, 'partial')
        self.assertEqual(self.second.balance_due, Decimal('4670.00'))
        self.supplier.refresh_from_db()
        self.assertEqual(self.supplier.outstanding_balance, Decimal('4340.00'))
        self.assertEqual(list(services.outstanding_bills(self.supplier.id)), [self.second])

    def test_allocation_above_bill_balance_rejected(self):
        with self.assertRaises(ValidationError):
            services.create_supplier_payment(self.supplier.id, Decimal('6000'), allocations=[
                {'bill_id': self.first.id, 'amount': Decimal('5670.01')},
            ])
        self.assertFalse(SupplierPayment.objects.exists())
        self.supplier.refresh_from_db()
        self.assertEqual(self.supplier.outstanding_balance, Decimal('11340.00'))

    def test_allocations_above_amount_rejected(self):
        with self.assertRaises(ValidationError):
            services.create_supplier_payment(self.supplier.id, Decimal('100'), allocations=[
                {'bill_id': self.first.id, 'amount': Decimal('60')},
                {'bill_id': self.second.id, 'amount': Decimal('60')},
            ])

    def test_draft_and_foreign_bills_rejected(self):
        draft = services.create_purchase_bill(self.supplier, date(2024, 1, 10), [self.roll_item(('10', '0'))])
        with self.assertRaises(ValidationError):
            services.create_supplier_payment(self.supplier.id, Decimal('100'),
                                             allocations=[{'bill_id': draft.id, 'amount': Decimal('100')}])

        other = TestDataFactory.create_supplier(name='Other Mills')
        with self.assertRaises(ValidationError):
            services.create_supplier_payment(other.id, Decimal('100'),
                                             allocations=[{'bill_id': self.first.id, 'amount': Decimal('100')}])

    def test_reversal_reopens_bills(self):
        payment = services.create_supplier_payment(self.supplier.id, Decimal('7000'), allocations=[
            {'bill_id': self.first.id, 'amount': Decimal('5670')},
            {'bill_id': self.second.id, 'amount': Decimal('1000')},
        ])

        result = services.reverse_supplier_payment(payment.id, 'Cheque bounced')

        payment.refresh_from_db()
        self.assertEqual(payment.status, 'reversed')
        self.assertEqual(payment.advance_balance, Decimal('0.00'))
        self.assertEqual(payment.reversal_reason, 'Cheque bounced')
        self.first.refresh_from_db()
        self.second.refresh_from_db()
        self.assertEqual(self.first.amount_paid, Decimal('0.00'))
        self.assertEqual(self.first.payment_status, 'unpaid')
        self.assertEqual(self.second.payment_status, 'unpaid')
        self.supplier.refresh_from_db()
        self.assertEqual(self.supplier.outstanding_balance, Decimal('11340.00'))
        self.assertEqual(len(result.deltas), 2)
        self.assertTrue(AuditLog.objects.filter(action='payment_reverse', object_reference=payment.code).exists())

    def test_reversal_needs_reason_and_runs_once(self):
        payment = services.create_supplier_payment(self.supplier.id, Decimal('500'))
        with self.assertRaises(ValidationError):
            services.reverse_supplier_payment(payment.id, '  ')

        services.reverse_supplier_payment(payment.id, 'Duplicate entry')
        with self.assertRaises(ValidationError):
            services.reverse_supplier_payment(payment.id, 'Again')
        self.supplier.refresh_from_db()
        self.assertEqual(self.supplier.outstanding_balance, Decimal('11340.00'))

    def test_missing_payment(self):
        with self.assertRaises(NotFound):
            services.reverse_supplier_payment(999999, 'Gone')


class SupplierPaymentAPITests(PurchaseBillTestMixin, TestCase):
    """Test bill roll and supplier payment API endpoints"""

    def setUp(self):
        super().setUp()
        cache.clear()
        self.client = AuthenticatedAPIClient()
        self.user = TestDataFactory.create_user()
        self.client.authenticate_user(self.user)
        self.bill = services.create_purchase_bill(self.supplier, date(2024, 1, 5),
                                                  [self.roll_item(('25.50', '0.50'), ('30', '1'))], confirm=True)

    def test_bill_exposes_payment_fields(self):
        response = self.client.get(f'/api/v1/purchase-bills/{self.bill.id}/')
        self.assertEqual(response.data['grand_total'], '5670.00')
        self.assertEqual(response.data['balance_due'], '5670.00')
        self.assertEqual(response.data['payment_status'], 'unpaid')
        self.assertEqual(response.data['roll_weight'], '54.00')

    def test_roll_patch_and_delete(self):
        response = self.client.get(f'/api/v1/purchase-bills/{self.bill.id}/rolls/')
        self.assertEqual(len(response.data), 2)
        first_id, second_id = response.data[0]['id'], response.data[1]['id']

        response = self.client.patch(f'/api/v1/purchase-bills/{self.bill.id}/rolls/{first_id}/',
                                     {'net_weight': '24.00', 'gsm': '60'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_quantity'], '24.00')

        response = self.client.delete(f'/api/v1/purchase-bills/{self.bill.id}/rolls/{second_id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['bill_roll_weight'], '24.00')

    def test_payment_create_and_reverse(self):
        response = self.client.post('/api/v1/supplier-payments/', {
            'supplier_id': self.supplier.id,
            'amount': '6000.00',
            'mode': 'cheque',
            'reference': 'CHQ-1182',
            'allocations': [{'bill_id': self.bill.id, 'amount': '5670.00'}],
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['advance_balance'], '330.00')
        self.assertEqual(response.data['allocations'][0]['bill_code'], self.bill.code)
        payment_id = response.data['id']

        response = self.client.get(f'/api/v1/supplier-payments/?supplier={self.supplier.id}')
        self.assertEqual([p['id'] for p in response.data], [payment_id])

        response = self.client.post(f'/api/v1/supplier-payments/{payment_id}/reverse/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post(f'/api/v1/supplier-payments/{payment_id}/reverse/',
                                    {'reason': 'Cheque bounced'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(self.client.get(f'/api/v1/supplier-payments/{payment_id}/').data['status'], 'reversed')

    def test_over_allocation_returns_error(self):
        response = self.client.post('/api/v1/supplier-payments/', {
            'supplier_id': self.supplier.id,
            'amount': '9000.00',
            'allocations': [{'bill_id': self.bill.id, 'amount': '8000.00'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'ValidationError')

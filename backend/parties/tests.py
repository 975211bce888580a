"""
Test suite for the parties module
Tests: customer and supplier APIs, customer balance repair command
"""
from decimal import Decimal
from io import StringIO

from django.core.management import call_command
from django.test import TestCase
from rest_framework import status

from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.parties.models import Customer, Supplier
from backend.sales import services as sales_services


class CustomerAPITests(TestCase):
    """Test customer endpoints"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.user = TestDataFactory.create_user()
        self.client.authenticate_user(self.user)

    def test_create_customer(self):
        data = {'name': 'Green Agro', 'phone': '9876543210', 'gst_number': '27ABCDE1234F1Z5'}
        response = self.client.post('/api/v1/customers/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['outstanding_balance'], '0.00')

    def test_outstanding_balance_is_read_only(self):
        customer = TestDataFactory.create_customer()
        response = self.client.patch(f'/api/v1/customers/{customer.id}/', {'outstanding_balance': '500.00'},
                                     format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        customer.refresh_from_db()
        self.assertEqual(customer.outstanding_balance, Decimal('0.00'))

    def test_duplicate_name_rejected(self):
        TestDataFactory.create_customer(name='Green Agro')
        response = self.client.post('/api/v1/customers/', {'name': 'Green Agro'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_search_and_outstanding_filter(self):
        owing = TestDataFactory.create_customer(name='Owing Farms')
        Customer.objects.filter(pk=owing.pk).update(outstanding_balance=Decimal('250.00'))
        TestDataFactory.create_customer(name='Clear Farms')

        response = self.client.get('/api/v1/customers/?search=owing')
        self.assertEqual([c['name'] for c in response.data], ['Owing Farms'])
        response = self.client.get('/api/v1/customers/?with_outstanding=true')
        self.assertEqual([c['name'] for c in response.data], ['Owing Farms'])

    def test_customer_with_invoices_cannot_be_deleted(self):
        customer = TestDataFactory.create_customer()
        product = TestDataFactory.create_finished_product()
        sales_services.create_invoice(customer.id, None, [{'product_id': product.id, 'quantity': 1, 'rate': 10}])

        response = self.client.delete(f'/api/v1/customers/{customer.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(Customer.objects.filter(pk=customer.id).exists())


class SupplierAPITests(TestCase):
    """Test supplier endpoints"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.user = TestDataFactory.create_user()
        self.client.authenticate_user(self.user)

    def test_create_and_update(self):
        response = self.client.post('/api/v1/suppliers/', {'name': 'Polymer House', 'contact_person': 'R. Shah'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        response = self.client.patch(f"/api/v1/suppliers/{response.data['id']}/", {'phone': '02212345678'},
                                     format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Supplier.objects.get(name='Polymer House').phone, '02212345678')

    def test_delete(self):
        supplier = TestDataFactory.create_supplier()
        response = self.client.delete(f'/api/v1/suppliers/{supplier.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)


class RepairCustomerBalancesCommandTests(TestCase):

    def setUp(self):
        self.customer = TestDataFactory.create_customer(name='Drifted Traders')
        product = TestDataFactory.create_finished_product()
        TestDataFactory.stock_finished_product(product, 50)
        invoice = sales_services.create_invoice(
            self.customer.id, None, [{'product_id': product.id, 'quantity': 10, 'rate': 100}], confirm=True,
        )
        sales_services.create_receipt(self.customer.id, 300, [{'invoice_id': invoice.id, 'amount': 300}])
        Customer.objects.filter(pk=self.customer.pk).update(outstanding_balance=Decimal('0.00'))

    def test_repairs_drifted_balance(self):
        out = StringIO()
        call_command('repair_customer_balances', stdout=out)

        self.customer.refresh_from_db()
        self.assertEqual(self.customer.outstanding_balance, Decimal('820.00'))
        self.assertIn('1 balance(s) updated', out.getvalue())

    def test_dry_run_changes_nothing(self):
        out = StringIO()
        call_command('repair_customer_balances', '--dry-run', stdout=out)

        self.customer.refresh_from_db()
        self.assertEqual(self.customer.outstanding_balance, Decimal('0.00'))
        self.assertIn('1 balance(s) would change', out.getvalue())

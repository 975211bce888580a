"""
Test suite for the masters module
Tests: raw material, finished product and machine CRUD APIs
"""
from django.test import TestCase
from rest_framework import status

from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.masters.models import RawMaterial, FinishedProduct, Machine


class MasterModelTests(TestCase):

    def test_str(self):
        material = TestDataFactory.create_raw_material(code='HDPE', name='HDPE Tape')
        machine = TestDataFactory.create_machine(code='M-07')
        self.assertEqual(str(material), 'HDPE - HDPE Tape')
        self.assertEqual(str(machine), 'M-07 - Loom M-07')

    def test_machine_is_active(self):
        self.assertTrue(TestDataFactory.create_machine(status='active').is_active)
        self.assertFalse(TestDataFactory.create_machine(status='inactive').is_active)


class RawMaterialAPITests(TestCase):
    """Test raw material endpoints"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.user = TestDataFactory.create_user()
        self.client.authenticate_user(self.user)

    def test_create(self):
        data = {'code': 'LDPE', 'name': 'LDPE Film', 'color': 'Green', 'gst_percent': '18.00'}
        response = self.client.post('/api/v1/raw-materials/', data, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['unit'], 'kg')
        self.assertTrue(RawMaterial.objects.filter(code='LDPE').exists())
        self.assertTrue(AuditLog.objects.filter(action='create', model_name='RawMaterial',
                                                object_reference='LDPE').exists())

    def test_duplicate_code_rejected(self):
        TestDataFactory.create_raw_material(code='LDPE')
        response = self.client.post('/api/v1/raw-materials/', {'code': 'LDPE', 'name': 'Again'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_gst_out_of_range(self):
        response = self.client.post('/api/v1/raw-materials/',
                                    {'code': 'X1', 'name': 'X', 'gst_percent': '120'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('gst_percent', response.data)

    def test_search_and_active_filters(self):
        TestDataFactory.create_raw_material(code='HDPE', name='HDPE Tape')
        inactive = TestDataFactory.create_raw_material(code='PP', name='PP Yarn')
        inactive.is_active = False
        inactive.save()

        response = self.client.get('/api/v1/raw-materials/?search=tape')
        self.assertEqual([m['code'] for m in response.data], ['HDPE'])
        response = self.client.get('/api/v1/raw-materials/?active=false')
        self.assertEqual([m['code'] for m in response.data], ['PP'])

    def test_patch(self):
        material = TestDataFactory.create_raw_material(code='HDPE')
        response = self.client.patch(f'/api/v1/raw-materials/{material.id}/', {'reorder_level': '250.00'},
                                     format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['reorder_level'], '250.00')

    def test_delete_unused(self):
        material = TestDataFactory.create_raw_material()
        response = self.client.delete(f'/api/v1/raw-materials/{material.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

    def test_delete_with_rolls_blocked(self):
        material = TestDataFactory.create_raw_material()
        TestDataFactory.create_roll(material, 10)
        response = self.client.delete(f'/api/v1/raw-materials/{material.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'ValidationError')
        self.assertTrue(RawMaterial.objects.filter(pk=material.id).exists())


class FinishedProductAPITests(TestCase):
    """Test finished product endpoints"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.user = TestDataFactory.create_user()
        self.client.authenticate_user(self.user)

    def test_create(self):
        data = {'code': 'NET-90', 'name': 'Shade Net 90%', 'gsm': '90.00', 'gst_percent': '12.00',
                'rate_per_kg': '185.00'}
        response = self.client.post('/api/v1/finished-products/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['rate_per_kg'], '185.00')

    def test_negative_rate_rejected(self):
        data = {'code': 'NET-91', 'name': 'Bad', 'rate_per_kg': '-1'}
        response = self.client.post('/api/v1/finished-products/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_gsm_filter(self):
        product = TestDataFactory.create_finished_product(code='NET-50')
        FinishedProduct.objects.filter(pk=product.pk).update(gsm=50)
        TestDataFactory.create_finished_product(code='NET-75')
        response = self.client.get('/api/v1/finished-products/?gsm=50')
        self.assertEqual([p['code'] for p in response.data], ['NET-50'])

    def test_delete_with_stock_history_blocked(self):
        product = TestDataFactory.create_finished_product()
        TestDataFactory.stock_finished_product(product, 5)
        response = self.client.delete(f'/api/v1/finished-products/{product.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class MachineAPITests(TestCase):
    """Test machine endpoints"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.user = TestDataFactory.create_user()
        self.client.authenticate_user(self.user)

    def test_create_and_deactivate(self):
        response = self.client.post('/api/v1/machines/', {'code': 'M-01', 'name': 'Loom 1',
                                                          'capacity': '400.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'active')

        response = self.client.patch(f"/api/v1/machines/{response.data['id']}/", {'status': 'inactive'},
                                     format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(Machine.objects.get(code='M-01').is_active)

    def test_invalid_status(self):
        response = self.client.post('/api/v1/machines/', {'code': 'M-02', 'name': 'Loom 2', 'status': 'broken'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_status_filter(self):
        TestDataFactory.create_machine(code='M-01')
        TestDataFactory.create_machine(code='M-02', status='inactive')
        response = self.client.get('/api/v1/machines/?status=inactive')
        self.assertEqual([m['code'] for m in response.data], ['M-02'])

    def test_requires_authentication(self):
        self.client.logout()
        response = self.client.get('/api/v1/machines/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

"""
Test utilities and factories for creating test data
"""
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from backend.masters.models import RawMaterial, FinishedProduct, Machine
from backend.parties.models import Customer, Supplier
from backend.inventory.models import RawMaterialRoll
from backend.inventory import services as inventory_services
from decimal import Decimal
import random
import string

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_user(username=None, email=None, password='testpass123', is_staff=False, is_superuser=False):
        """Create a test user"""
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{username}@test.com'
        user = User.objects.create_user(
            username=username,
            email=email,
            password=password,
            is_staff=is_staff,
            is_superuser=is_superuser
        )
        return user

    @staticmethod
    def create_raw_material(code=None, name=None, gst_percent=None, reorder_level=None):
        """Create a test raw material"""
        if not code:
            code = f'RM-{TestDataFactory.random_string(6).upper()}'
        return RawMaterial.objects.create(
            code=code,
            name=name or f'Fabric {code}',
            gst_percent=gst_percent if gst_percent is not None else Decimal('5.00'),
            reorder_level=reorder_level if reorder_level is not None else Decimal('0.00'),
        )

    @staticmethod
    def create_finished_product(code=None, name=None, gst_percent=None, reorder_level=None):
        """Create a test finished product"""
        if not code:
            code = f'FP-{TestDataFactory.random_string(6).upper()}'
        return FinishedProduct.objects.create(
            code=code,
            name=name or f'Net {code}',
            gst_percent=gst_percent if gst_percent is not None else Decimal('12.00'),
            rate_per_kg=Decimal('150.00'),
            reorder_level=reorder_level if reorder_level is not None else Decimal('0.00'),
        )

    @staticmethod
    def create_machine(code=None, status='active'):
        """Create a test machine"""
        if not code:
            code = f'M-{TestDataFactory.random_string(4).upper()}'
        return Machine.objects.create(code=code, name=f'Loom {code}', machine_type='Knitting', status=status)

    @staticmethod
    def create_customer(name=None, phone=None, email=None):
        """Create a test customer"""
        if not name:
            name = f'Customer_{TestDataFactory.random_string(6)}'
        if not phone:
            phone = f'9{random.randint(100000000, 999999999)}'
        if not email:
            email = f'{name.lower()}@test.com'
        return Customer.objects.create(
            name=name,
            phone=phone,
            email=email
        )

    @staticmethod
    def create_supplier(name=None, phone=None, email=None):
        """Create a test supplier"""
        if not name:
            name = f'Supplier_{TestDataFactory.random_string(6)}'
        if not phone:
            phone = f'9{random.randint(100000000, 999999999)}'
        if not email:
            email = f'{name.lower()}@test.com'
        return Supplier.objects.create(
            name=name,
            phone=phone,
            email=email
        )

    @staticmethod
    def create_roll(raw_material, quantity, roll_code=None, created_at=None, status=None):
        """Receive a roll through the roll ledger; created_at pins its FIFO position"""
        if not roll_code:
            roll_code = f'ROLL-{TestDataFactory.random_string(8).upper()}'
        roll = inventory_services.create_roll(
            raw_material, Decimal(str(quantity)), roll_code,
            reference_type='adjustment', reference_code='TEST',
        )
        updates = {}
        if created_at is not None:
            updates['created_at'] = created_at
        if status is not None:
            updates['status'] = status
        if updates:
            RawMaterialRoll.objects.filter(pk=roll.pk).update(**updates)
            roll.refresh_from_db()
        return roll

    @staticmethod
    def stock_finished_product(product, quantity):
        """Credit finished-goods stock through the ledger; returns the new balance"""
        return inventory_services.credit_finished(
            product.id, Decimal(str(quantity)), 'adjustment', 'TEST', reason='Opening stock'
        )


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()

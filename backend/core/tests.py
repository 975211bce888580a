"""
Test suite for the core module
Tests: quantity helpers, error rendering, reversal primitive, auth, settings and audit log APIs
"""
from decimal import Decimal
from io import StringIO

from django.contrib.auth.models import Group
from django.core.management import call_command
from django.test import TestCase, override_settings
from rest_framework import status
from rest_framework.exceptions import NotAuthenticated

from backend.core.exceptions import (
    ValidationError, InsufficientStock, LossExceedsInput, EfficiencyWarning, api_exception_handler,
)
from backend.core.models import Setting, AuditLog
from backend.core.reversal import Reversal, ReversalDelta, ReversalResult
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.core.utils import (
    to_kg, percentage, next_code, get_loss_threshold, create_audit_log, LOSS_THRESHOLD_SETTING_KEY,
)
from backend.inventory.models import RawMaterialRoll, StockMovement, FinishedProductStock
from backend.masters.models import Machine, FinishedProduct
from backend.sales import services as sales_services
from backend.sales.models import ProductSample


class QuantityHelperTests(TestCase):

    def test_to_kg_rounds_half_up(self):
        self.assertEqual(to_kg('10.005'), Decimal('10.01'))
        self.assertEqual(to_kg(3), Decimal('3.00'))
        self.assertEqual(to_kg(None), Decimal('0.00'))

    def test_percentage(self):
        self.assertEqual(percentage(Decimal('7'), Decimal('100')), Decimal('7.00'))
        self.assertEqual(percentage(Decimal('1'), Decimal('3')), Decimal('33.33'))
        self.assertEqual(percentage(Decimal('5'), Decimal('0')), Decimal('0.00'))

    def test_next_code_skips_taken_codes(self):
        first = TestDataFactory.create_machine(code='M-001')
        Machine.objects.create(code=f'M-{str(first.id + 1).zfill(3)}', name='Taken')
        code = next_code(Machine, 'M')
        self.assertFalse(Machine.objects.filter(code=code).exists())
        self.assertTrue(code.startswith('M-'))


class LossThresholdTests(TestCase):

    def test_default_from_settings(self):
        self.assertEqual(get_loss_threshold(), Decimal('5'))

    @override_settings(LOSS_THRESHOLD_PERCENT=Decimal('6.5'))
    def test_settings_override(self):
        self.assertEqual(get_loss_threshold(), Decimal('6.5'))

    def test_setting_row_wins(self):
        Setting.objects.create(key=LOSS_THRESHOLD_SETTING_KEY, value='3.5')
        self.assertEqual(get_loss_threshold(), Decimal('3.5'))

    def test_non_numeric_setting_falls_back(self):
        Setting.objects.create(key=LOSS_THRESHOLD_SETTING_KEY, value='high')
        self.assertEqual(get_loss_threshold(), Decimal('5'))


class ErrorRenderingTests(TestCase):

    def test_erp_error_shape(self):
        exc = InsufficientStock("Not enough", product='NET-A', requested=Decimal('12.50'),
                                shortages=[{'available': Decimal('3.00')}])
        response = api_exception_handler(exc, {})

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data, {
            'error': 'InsufficientStock',
            'message': 'Not enough',
            'details': {'product': 'NET-A', 'requested': '12.50', 'shortages': [{'available': '3.00'}]},
        })

    def test_status_codes(self):
        self.assertEqual(api_exception_handler(ValidationError("bad"), {}).status_code, 400)
        self.assertEqual(api_exception_handler(LossExceedsInput("too much"), {}).status_code, 422)

    def test_other_exceptions_use_drf_handler(self):
        response = api_exception_handler(NotAuthenticated(), {})
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_efficiency_warning(self):
        warning = EfficiencyWarning(Decimal('7.00'), Decimal('5'), reference='PB-001')
        self.assertEqual(warning.as_dict(), {
            'code': 'EfficiencyWarning',
            'message': 'Production loss 7.00% exceeds 5% threshold',
            'loss_percentage': '7.00',
            'threshold': '5',
            'reference': 'PB-001',
        })


class SettingValueReversal(Reversal):
    """Reverts Setting values to their recorded originals"""
    entity_type = 'Setting'
    audit_action = 'update'

    def __init__(self, originals, fail=False, **kwargs):
        super().__init__(**kwargs)
        self.originals = originals
        self.fail = fail

    def entity_id(self):
        return 1

    def reference(self):
        return 'settings'

    def lock(self):
        pass

    def locate(self):
        return list(Setting.objects.filter(key__in=self.originals).order_by('key'))

    def invert(self, setting):
        old = setting.value
        setting.value = self.originals[setting.key]
        setting.save()
        return ReversalDelta('Setting', setting.id, setting.key, old=old, restored=Decimal(setting.value))

    def finish(self, deltas):
        if self.fail:
            raise ValidationError("finish failed")
        return {'restored': len(deltas)}


class ReversalTests(TestCase):

    def setUp(self):
        Setting.objects.create(key='a', value='2')
        Setting.objects.create(key='b', value='4')

    def test_run_applies_every_delta(self):
        result = SettingValueReversal({'a': '1', 'b': '3'}).run()

        self.assertEqual(list(Setting.objects.order_by('key').values_list('value', flat=True)), ['1', '3'])
        self.assertEqual(result.as_dict(), {
            'entity': 'Setting',
            'id': 1,
            'reference': 'settings',
            'deltas': [
                {'entity': 'Setting', 'id': Setting.objects.get(key='a').id, 'reference': 'a',
                 'old': '2', 'restored': '1'},
                {'entity': 'Setting', 'id': Setting.objects.get(key='b').id, 'reference': 'b',
                 'old': '4', 'restored': '3'},
            ],
            'restored': 2,
        })
        self.assertTrue(AuditLog.objects.filter(model_name='Setting', object_reference='settings').exists())

    def test_failure_rolls_back_every_delta(self):
        with self.assertRaises(ValidationError):
            SettingValueReversal({'a': '1', 'b': '3'}, fail=True).run()
        self.assertEqual(list(Setting.objects.order_by('key').values_list('value', flat=True)), ['2', '4'])
        self.assertFalse(AuditLog.objects.exists())

    def test_result_stringifies_decimals(self):
        result = ReversalResult('X', 7, 'X-7', [], {'amount': Decimal('1.50'), 'count': 2, 'note': None})
        self.assertEqual(result.as_dict()['amount'], '1.50')
        self.assertEqual(result.as_dict()['count'], 2)
        self.assertIsNone(result.as_dict()['note'])


class AuditLogHelperTests(TestCase):

    def test_changes_are_json_safe(self):
        user = TestDataFactory.create_user()
        log = create_audit_log(user=user, action='update', model_name='Setting', object_id='1',
                               changes={'value': Decimal('2.50'), 'items': [Decimal('1')]})
        log.refresh_from_db()
        self.assertEqual(log.changes, {'value': '2.50', 'items': ['1']})
        self.assertEqual(log.user, user)

    def test_missing_fields_skipped(self):
        self.assertIsNone(create_audit_log(action='update', model_name='Setting'))
        self.assertFalse(AuditLog.objects.exists())


class AuthAPITests(TestCase):
    """Test login and current-user endpoints"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.user = TestDataFactory.create_user(username='supervisor')
        self.user.groups.add(Group.objects.create(name='Production'))

    def test_login_returns_tokens(self):
        response = self.client.post('/api/v1/auth/login/', {'username': 'supervisor', 'password': 'testpass123'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)

    def test_login_with_wrong_password(self):
        response = self.client.post('/api/v1/auth/login/', {'username': 'supervisor', 'password': 'nope'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me(self):
        self.client.authenticate_user(self.user)
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['groups'], ['Production'])
        self.assertFalse(response.data['is_admin'])


class SettingAPITests(TestCase):
    """Test runtime settings endpoints"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()

    def test_staff_only(self):
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.get('/api/v1/settings/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_update_loss_threshold(self):
        admin = TestDataFactory.create_user(is_staff=True)
        self.client.authenticate_user(admin)

        response = self.client.post('/api/v1/settings/', {'key': LOSS_THRESHOLD_SETTING_KEY, 'value': '4'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(get_loss_threshold(), Decimal('4'))

        response = self.client.patch(f"/api/v1/settings/{response.data['id']}/", {'value': '8'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(get_loss_threshold(), Decimal('8'))
        log = AuditLog.objects.get(action='update', model_name='Setting')
        self.assertEqual(log.changes, {'old_value': '4', 'new_value': '8'})


class AuditLogAPITests(TestCase):
    """Test audit log endpoints"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.user = TestDataFactory.create_user()
        self.other = TestDataFactory.create_user()
        create_audit_log(user=self.user, action='bale_create', model_name='BaleBatch', object_id='1',
                         object_reference='BB-0001')
        create_audit_log(user=self.other, action='bale_delete', model_name='BaleBatch', object_id='2',
                         object_reference='BB-0002')

    def test_users_see_their_own_logs(self):
        self.client.authenticate_user(self.user)
        response = self.client.get('/api/v1/audit-logs/')
        self.assertEqual([log['object_reference'] for log in response.data], ['BB-0001'])

    def test_staff_filter_by_reference(self):
        self.client.authenticate_user(TestDataFactory.create_user(is_staff=True))
        response = self.client.get('/api/v1/audit-logs/?reference=BB-0002')
        self.assertEqual([log['action'] for log in response.data], ['bale_delete'])

    def test_detail_of_someone_else(self):
        log = AuditLog.objects.get(object_reference='BB-0002')
        self.client.authenticate_user(self.user)
        response = self.client.get(f'/api/v1/audit-logs/{log.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class CreateUserGroupsCommandTests(TestCase):

    def test_creates_groups_once(self):
        out = StringIO()
        call_command('create_user_groups', stdout=out)
        call_command('create_user_groups', stdout=out)

        self.assertEqual(sorted(Group.objects.values_list('name', flat=True)),
                         ['Admin', 'Production', 'Sales', 'Stores'])
        stores = Group.objects.get(name='Stores')
        self.assertTrue(stores.permissions.filter(content_type__app_label='purchasing').exists())
        self.assertFalse(stores.permissions.filter(content_type__app_label='sales').exists())
        self.assertIn('4 groups already existed', out.getvalue())


class ClearDataCommandTests(TestCase):

    def test_clears_transactions_and_keeps_masters(self):
        material = TestDataFactory.create_raw_material()
        TestDataFactory.create_roll(material, 40)
        product = TestDataFactory.create_finished_product()
        TestDataFactory.stock_finished_product(product, 20)
        customer = TestDataFactory.create_customer()
        sales_services.create_invoice(customer.id, None, [{'product_id': product.id, 'quantity': 5, 'rate': 10}],
                                      confirm=True)
        sales_services.create_sample(product.id, 2, customer_id=customer.id)

        call_command('clear_data', '--confirm', stdout=StringIO())

        self.assertFalse(RawMaterialRoll.objects.exists())
        self.assertFalse(StockMovement.objects.exists())
        self.assertFalse(FinishedProductStock.objects.exists())
        self.assertFalse(AuditLog.objects.exists())
        self.assertFalse(ProductSample.objects.exists())
        customer.refresh_from_db()
        self.assertEqual(customer.outstanding_balance, Decimal('0.00'))
        self.assertTrue(FinishedProduct.objects.filter(pk=product.pk).exists())

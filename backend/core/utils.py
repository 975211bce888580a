"""Utility functions for audit logging, quantities, codes and runtime settings"""
import logging
import os
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from django.conf import settings
from django.contrib.auth import get_user_model

from .models import AuditLog, Setting

User = get_user_model()

logger = logging.getLogger(__name__)

KG = Decimal('0.01')
ZERO = Decimal('0.00')

LOSS_THRESHOLD_SETTING_KEY = 'production.loss_threshold_percent'


def to_kg(value):
    """Normalise a quantity to kilograms with 2 decimal places"""
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(KG, rounding=ROUND_HALF_UP)


def to_money(value):
    """Normalise a rupee amount to 2 decimal places"""
    return to_kg(value)


def percentage(part, whole):
    """part / whole * 100 rounded to 2 places (0 when whole is 0)"""
    if not whole:
        return ZERO
    return (Decimal(part) / Decimal(whole) * 100).quantize(KG, rounding=ROUND_HALF_UP)


def next_code(model, prefix, width=3, field='code'):
    """Next sequential document code, e.g. PB-001, INV-0001.

    Derived from the highest existing id so codes stay unique after deletes.
    """
    last = model.objects.order_by('-id').values_list('id', flat=True).first() or 0
    number = last + 1
    code = f"{prefix}-{str(number).zfill(width)}"
    while model.objects.filter(**{field: code}).exists():
        number += 1
        code = f"{prefix}-{str(number).zfill(width)}"
    return code


def get_decimal_setting(key, default):
    """Read a decimal policy value from the Setting table, falling back to default"""
    raw = Setting.objects.filter(key=key).values_list('value', flat=True).first()
    if raw is None or str(raw).strip() == '':
        return Decimal(str(default))
    try:
        return Decimal(str(raw).strip())
    except InvalidOperation:
        logger.warning(f"Setting {key} has non-numeric value {raw!r}; using default {default}")
        return Decimal(str(default))


def get_loss_threshold():
    """Loss percentage above which production is flagged with an EfficiencyWarning"""
    default = getattr(
        settings,
        'LOSS_THRESHOLD_PERCENT',
        os.getenv('LOSS_THRESHOLD_PERCENT', '5')
    )
    return get_decimal_setting(LOSS_THRESHOLD_SETTING_KEY, default)


def get_client_ip(request):
    """Extract client IP address from request"""
    if not request or not hasattr(request, 'META'):
        return None
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0].strip()
    else:
        ip = request.META.get('REMOTE_ADDR')
    return ip or None


def create_audit_log(request=None, action=None, model_name=None, object_id=None,
                     changes=None, user=None, object_name=None, object_reference=None):
    """
    Create an audit log entry

    Args:
        request: Django request object (for user and IP) - optional if user is provided
        action: Action type (create, bale_create, return_to_production, etc.)
        model_name: Name of the model being acted upon
        object_id: ID of the object (as string)
        changes: Dictionary of changes made
        user: Optional user override (defaults to request.user if request provided)
        object_name: Human-readable name of the object (e.g., product name, batch code)
        object_reference: Reference identifier (e.g., batch code, invoice number)
    """
    try:
        # Determine user
        audit_user = None
        if user:
            audit_user = user
        elif request and hasattr(request, 'user'):
            audit_user = request.user

        ip_address = get_client_ip(request) if request else None

        if not action or not model_name or not object_id:
            logger.warning(f"Audit log creation skipped: missing required fields (action={action}, model_name={model_name}, object_id={object_id})")
            return None

        return AuditLog.objects.create(
            user=audit_user if audit_user and audit_user.is_authenticated else None,
            action=action,
            model_name=model_name,
            object_id=str(object_id),
            object_name=object_name,
            object_reference=object_reference,
            changes=_stringify(changes or {}),
            ip_address=ip_address
        )
    except Exception as e:
        # Don't fail the main operation if audit logging fails
        logger.error(f"Failed to create audit log: {str(e)}")
        return None


def _stringify(value):
    """Make Decimals and dates JSON-safe for AuditLog.changes"""
    if isinstance(value, dict):
        return {k: _stringify(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_stringify(v) for v in value]
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)

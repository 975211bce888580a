"""
Business error taxonomy shared by every stock-mutating service.

Services raise these exceptions from inside ``transaction.atomic()`` so a
failure always rolls the database back to its pre-call state. The DRF
exception handler below turns them into ``{'error', 'message', 'details'}``
responses, the same shape the views use for hand-written errors.
"""
import logging
from decimal import Decimal

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


def _jsonable(value):
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


class ErpError(Exception):
    """Base class for business-rule failures reported to the caller"""
    code = 'ErpError'
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def as_dict(self):
        return {
            'error': self.code,
            'message': self.message,
            'details': _jsonable(self.details),
        }


class ValidationError(ErpError):
    """Malformed or missing input, or an operation not allowed in the entity's current state"""
    code = 'ValidationError'


class NotFound(ErpError):
    code = 'NotFound'
    status_code = status.HTTP_404_NOT_FOUND


class InsufficientStock(ErpError):
    """Finished-goods debit would drive the balance negative"""
    code = 'InsufficientStock'
    status_code = status.HTTP_409_CONFLICT


class InsufficientRollQuantity(ErpError):
    """A pinned roll does not hold enough remaining material"""
    code = 'InsufficientRollQuantity'
    status_code = status.HTTP_409_CONFLICT


class InsufficientMaterialStock(ErpError):
    """All in-stock rolls of a material together cannot satisfy the request"""
    code = 'InsufficientMaterialStock'
    status_code = status.HTTP_409_CONFLICT


class InsufficientMachineCapacity(ErpError):
    """Quick completion needs more input than the machine's open batches hold"""
    code = 'InsufficientMachineCapacity'
    status_code = status.HTTP_409_CONFLICT


class InsufficientStockToReturn(ErpError):
    code = 'InsufficientStockToReturn'
    status_code = status.HTTP_409_CONFLICT


class LossExceedsInput(ErpError):
    """Recorded output is larger than the input it was made from"""
    code = 'LossExceedsInput'
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class EfficiencyWarning:
    """Non-fatal notice that production loss crossed the configured threshold.

    Returned next to a successful result, never raised.
    """
    code = 'EfficiencyWarning'

    def __init__(self, loss_percentage, threshold, reference=None):
        self.loss_percentage = loss_percentage
        self.threshold = threshold
        self.reference = reference
        self.message = f"Production loss {loss_percentage:.2f}% exceeds {threshold}% threshold"

    def as_dict(self):
        data = {
            'code': self.code,
            'message': self.message,
            'loss_percentage': str(self.loss_percentage),
            'threshold': str(self.threshold),
        }
        if self.reference:
            data['reference'] = self.reference
        return data

    def __str__(self):
        return self.message


def api_exception_handler(exc, context):
    """DRF exception handler: render ErpError, defer everything else to DRF"""
    if isinstance(exc, ErpError):
        request = context.get('request')
        path = request.path if request is not None else '-'
        logger.warning(f"{exc.code} on {path}: {exc.message}")
        return Response(exc.as_dict(), status=exc.status_code)
    return exception_handler(exc, context)

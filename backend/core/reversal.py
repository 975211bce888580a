"""
Generic reversal primitive.

Return-to-production, bale deletion, production batch deletion, invoice
cancellation and receipt reversal all share one shape:

    lock the root entity -> locate the ledger entries its forward operation
    produced -> apply the inverse delta of each entry -> finish (status
    flips, movements) -> report the deltas

``Reversal.run()`` executes those steps inside one database transaction,
so either every inverse delta is applied or none is. Subclasses supply the
entity-specific steps.
"""
import logging

from django.db import transaction

from .utils import create_audit_log

logger = logging.getLogger(__name__)


class ReversalDelta:
    """One inverse adjustment applied to one ledger entry"""

    def __init__(self, entity, entity_id, reference=None, **changes):
        self.entity = entity
        self.entity_id = entity_id
        self.reference = reference
        self.changes = changes

    def as_dict(self):
        data = {
            'entity': self.entity,
            'id': self.entity_id,
            'reference': self.reference,
        }
        data.update({k: (str(v) if v is not None and not isinstance(v, (str, int, bool)) else v)
                     for k, v in self.changes.items()})
        return data


class ReversalResult:
    def __init__(self, entity_type, entity_id, reference, deltas, summary=None):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reference = reference
        self.deltas = deltas
        self.summary = summary or {}

    def as_dict(self):
        data = {
            'entity': self.entity_type,
            'id': self.entity_id,
            'reference': self.reference,
            'deltas': [d.as_dict() for d in self.deltas],
        }
        data.update({k: (str(v) if v is not None and not isinstance(v, (str, int, bool, list, dict)) else v)
                     for k, v in self.summary.items()})
        return data


class Reversal:
    """Base class for inverse operations, parameterised by entity type.

    Subclasses set ``entity_type`` and ``audit_action`` and implement
    ``lock``, ``locate`` and ``invert``; ``finish`` is optional.
    """
    entity_type = None
    audit_action = None

    def __init__(self, request=None, user=None):
        self.request = request
        self.user = user

    def lock(self):
        """Fetch and lock the root entity; raise if it cannot be reversed"""
        raise NotImplementedError

    def locate(self):
        """Ledger entries produced by the forward operation, in reversal order"""
        raise NotImplementedError

    def invert(self, entry):
        """Apply the inverse delta for one entry and describe it"""
        raise NotImplementedError

    def finish(self, deltas):
        """Hook run after all deltas; returns extra summary fields"""
        return {}

    @property
    def acting_user(self):
        return self.user or getattr(self.request, 'user', None)

    def entity_id(self):
        return None

    def reference(self):
        return None

    def run(self):
        with transaction.atomic():
            self.lock()
            deltas = []
            for entry in self.locate():
                delta = self.invert(entry)
                if delta is not None:
                    deltas.append(delta)
            summary = self.finish(deltas) or {}
            result = ReversalResult(self.entity_type, self.entity_id(), self.reference(), deltas, summary)

            if self.audit_action:
                create_audit_log(
                    request=self.request,
                    user=self.user,
                    action=self.audit_action,
                    model_name=self.entity_type,
                    object_id=str(self.entity_id()),
                    object_name=self.reference(),
                    object_reference=self.reference(),
                    changes=result.as_dict(),
                )

        logger.info(f"Reversed {self.entity_type} {self.reference()}: {len(deltas)} ledger entries restored")
        return result

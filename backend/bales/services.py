"""
Bale batching.

A bale batch turns finished-goods stock into sellable bales. Creating a
batch debits every product it uses; editing a bale moves only the weight
difference; deleting a bale or a batch credits Available bales back.
Issued bales belong to an invoice and are never touched here.
"""
import logging
from collections import OrderedDict
from decimal import InvalidOperation

from django.db import transaction
from django.utils import timezone

from backend.core.exceptions import ValidationError, NotFound, InsufficientStock
from backend.core.reversal import Reversal, ReversalDelta
from backend.core.utils import to_kg, next_code, create_audit_log, ZERO
from backend.inventory.services import lock_finished_stocks, credit_finished, debit_finished, finished_balance
from backend.masters.models import FinishedProduct
from .models import BaleBatch, BaleItem

logger = logging.getLogger(__name__)

GRAMS_PER_KG = 1000


def _kg(value, label):
    try:
        return to_kg(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{label} must be a number", value=str(value))


def _acting_user(request):
    user = getattr(request, 'user', None)
    return user if user is not None and user.is_authenticated else None


def bale_net_weight(gross_weight, weight_loss_grams):
    """Gross kg less the wrapping loss (in grams), rounded to 2dp"""
    return to_kg(to_kg(gross_weight) - _kg(weight_loss_grams or 0, 'Weight loss') / GRAMS_PER_KG)


def _item_code(batch_code, index):
    return f"BEL-{batch_code.split('-', 1)[1]}-{str(index).zfill(3)}"


def create_bale_batch(items, remarks='', request=None):
    """Create a batch of bales and debit finished goods for each product used.

    ``items`` is a list of ``{'product_id', 'gross_weight', 'weight_loss_grams',
    'piece_count', 'gsm'?, 'size'?, 'shade'?}``. Stock is checked for every
    product before anything is debited, so a shortage on one product leaves
    all stock untouched.

    Returns ``(batch, usage)`` where usage lists kg taken per product.
    """
    if not items:
        raise ValidationError("At least one bale is required")

    prepared = []
    for index, line in enumerate(items, start=1):
        gross = _kg(line.get('gross_weight'), 'Gross weight')
        if gross <= 0:
            raise ValidationError("Gross weight must be greater than 0", item=index)
        loss_grams = _kg(line.get('weight_loss_grams') or 0, 'Weight loss')
        if loss_grams < 0:
            raise ValidationError("Weight loss cannot be negative", item=index)
        net = bale_net_weight(gross, loss_grams)
        if net <= 0:
            raise ValidationError(
                f"Bale {index}: net weight must be greater than 0",
                item=index, gross_weight=gross, weight_loss_grams=loss_grams,
            )
        prepared.append({**line, 'gross_weight': gross, 'weight_loss_grams': loss_grams, 'net_weight': net})

    required = OrderedDict()
    for line in prepared:
        pid = line.get('product_id')
        required[pid] = required.get(pid, ZERO) + line['net_weight']

    products = {p.id: p for p in FinishedProduct.objects.filter(pk__in=list(required))}
    missing = [pid for pid in required if pid not in products]
    if missing:
        raise NotFound("Finished product not found", product_ids=missing)

    user = _acting_user(request)
    with transaction.atomic():
        stocks = lock_finished_stocks(required)
        shortages = [
            {'product': products[pid].code, 'requested': qty, 'available': stocks[pid].stock_quantity}
            for pid, qty in required.items() if qty > stocks[pid].stock_quantity
        ]
        if shortages:
            first = shortages[0]
            logger.warning(f"Bale batch rejected: {len(shortages)} product(s) short of stock")
            raise InsufficientStock(
                f"Insufficient stock for {first['product']}: {first['available']} kg available, "
                f"{first['requested']} kg requested",
                shortages=shortages,
            )

        batch = BaleBatch.objects.create(
            code=next_code(BaleBatch, 'BB', width=4),
            remarks=remarks or '',
            created_by=user,
        )
        BaleItem.objects.bulk_create([
            BaleItem(
                batch=batch,
                code=_item_code(batch.code, index),
                finished_product=products[line['product_id']],
                gsm=line.get('gsm'),
                size=line.get('size') or '',
                shade=line.get('shade') or '',
                gross_weight=line['gross_weight'],
                weight_loss_grams=line['weight_loss_grams'],
                net_weight=line['net_weight'],
                piece_count=line.get('piece_count') or 0,
            )
            for index, line in enumerate(prepared, start=1)
        ])

        usage = []
        for pid in sorted(required):
            balance = debit_finished(pid, required[pid], 'bale_batch', batch.code, batch.id,
                                     reason=f"Baled into {batch.code}", user=user)
            usage.append({
                'product_id': pid,
                'product_code': products[pid].code,
                'quantity_used': required[pid],
                'remaining_stock': balance,
            })

        batch.total_weight = sum((line['net_weight'] for line in prepared), ZERO)
        batch.save(update_fields=['total_weight', 'updated_at'])

        create_audit_log(
            request=request,
            action='bale_create',
            model_name='BaleBatch',
            object_id=str(batch.id),
            object_name=batch.code,
            object_reference=batch.code,
            changes={'bales': len(prepared), 'total_weight': batch.total_weight, 'usage': usage},
        )

    logger.info(f"Bale batch {batch.code} created: {len(prepared)} bales, {batch.total_weight} kg")
    return batch, usage


def _lock_item(item_id):
    item = BaleItem.objects.select_for_update().filter(pk=item_id).first()
    if item is None:
        raise NotFound(f"Bale {item_id} not found", item_id=item_id)
    return item


def update_bale_item(item_id, piece_count=None, net_weight=None, request=None):
    """Edit an Available bale; a weight change moves only the difference through the ledger"""
    user = _acting_user(request)
    with transaction.atomic():
        item = _lock_item(item_id)
        if item.status != 'available':
            raise ValidationError(f"Bale {item.code} is {item.status} and cannot be edited",
                                  bale=item.code, status=item.status)

        changes = {}
        if piece_count is not None:
            if piece_count < 0:
                raise ValidationError("Piece count cannot be negative", bale=item.code)
            changes['piece_count'] = {'old': item.piece_count, 'new': piece_count}
            item.piece_count = piece_count

        if net_weight is not None:
            new_weight = _kg(net_weight, 'Net weight')
            if new_weight <= 0:
                raise ValidationError("Net weight must be greater than 0", bale=item.code)
            difference = new_weight - item.net_weight
            reason = f"Bale {item.code} weight {item.net_weight} -> {new_weight}"
            if difference > 0:
                debit_finished(item.finished_product_id, difference, 'bale_item', item.code, item.id,
                               reason=reason, user=user)
            elif difference < 0:
                credit_finished(item.finished_product_id, -difference, 'bale_item', item.code, item.id,
                                reason=reason, user=user)
            changes['net_weight'] = {'old': item.net_weight, 'new': new_weight}
            item.net_weight = new_weight

        if not changes:
            return item

        item.save()
        batch = BaleBatch.objects.select_for_update().get(pk=item.batch_id)
        batch.recalculate_total()
        batch.save(update_fields=['total_weight', 'updated_at'])

        create_audit_log(
            request=request,
            action='bale_update',
            model_name='BaleItem',
            object_id=str(item.id),
            object_name=item.code,
            object_reference=batch.code,
            changes=changes,
        )

    logger.info(f"Bale {item.code} updated: {', '.join(changes)}")
    return item


class BaleBatchDeletion(Reversal):
    """Soft-delete a batch; Available bales go back to stock, Issued bales stay issued"""
    entity_type = 'BaleBatch'
    audit_action = 'bale_delete'

    def __init__(self, batch_id, request=None, user=None):
        super().__init__(request=request, user=user)
        self.batch_id = batch_id
        self.batch = None
        self.credits = OrderedDict()

    def entity_id(self):
        return self.batch_id

    def reference(self):
        return self.batch.code if self.batch else None

    def lock(self):
        self.batch = BaleBatch.objects.select_for_update().filter(pk=self.batch_id).first()
        if self.batch is None:
            raise NotFound(f"Bale batch {self.batch_id} not found", batch_id=self.batch_id)
        if self.batch.status == 'deleted':
            raise ValidationError(f"Bale batch {self.batch.code} is already deleted", batch=self.batch.code)

    def locate(self):
        return list(self.batch.items.select_for_update().filter(status='available').order_by('id'))

    def invert(self, item):
        item.status = 'deleted'
        item.save(update_fields=['status', 'updated_at'])
        pid = item.finished_product_id
        self.credits[pid] = self.credits.get(pid, ZERO) + item.net_weight
        return ReversalDelta('BaleItem', item.id, item.code, product_id=pid, quantity_restored=item.net_weight)

    def finish(self, deltas):
        restored = []
        for pid in sorted(self.credits):
            balance = credit_finished(pid, self.credits[pid], 'bale_batch', self.batch.code, self.batch.id,
                                      reason=f"Bale batch {self.batch.code} deleted", user=self.acting_user)
            restored.append({'product_id': pid, 'quantity_restored': str(self.credits[pid]),
                             'new_stock_balance': str(balance)})

        issued = self.batch.items.filter(status='issued').count()
        self.batch.status = 'deleted'
        self.batch.deleted_at = timezone.now()
        self.batch.recalculate_total()
        self.batch.save(update_fields=['status', 'deleted_at', 'total_weight', 'updated_at'])
        return {
            'restored_quantity': sum(self.credits.values(), ZERO),
            'products': restored,
            'issued_items_kept': issued,
        }


class BaleItemDeletion(Reversal):
    """Soft-delete one Available bale and credit its net weight back"""
    entity_type = 'BaleItem'
    audit_action = 'bale_delete'

    def __init__(self, item_id, request=None, user=None):
        super().__init__(request=request, user=user)
        self.item_id = item_id
        self.item = None

    def entity_id(self):
        return self.item_id

    def reference(self):
        return self.item.code if self.item else None

    def lock(self):
        self.item = _lock_item(self.item_id)
        if self.item.status != 'available':
            raise ValidationError(f"Bale {self.item.code} is {self.item.status} and cannot be deleted",
                                  bale=self.item.code, status=self.item.status)

    def locate(self):
        return [self.item]

    def invert(self, item):
        item.status = 'deleted'
        item.save(update_fields=['status', 'updated_at'])
        balance = credit_finished(item.finished_product_id, item.net_weight, 'bale_item', item.code, item.id,
                                  reason=f"Bale {item.code} deleted", user=self.acting_user)
        return ReversalDelta('BaleItem', item.id, item.code, product_id=item.finished_product_id,
                             quantity_restored=item.net_weight, new_stock_balance=balance)

    def finish(self, deltas):
        batch = BaleBatch.objects.select_for_update().get(pk=self.item.batch_id)
        batch.recalculate_total()
        fields = ['total_weight', 'updated_at']
        if not batch.items.exclude(status='deleted').exists():
            batch.status = 'deleted'
            batch.deleted_at = timezone.now()
            fields += ['status', 'deleted_at']
        batch.save(update_fields=fields)
        return {'batch': batch.code, 'batch_total_weight': batch.total_weight, 'batch_status': batch.status}


def delete_bale_batch(batch_id, request=None):
    return BaleBatchDeletion(batch_id, request=request).run()


def delete_bale_item(item_id, request=None):
    return BaleItemDeletion(item_id, request=request).run()


def bale_stock_summary():
    """Available bales per product next to the loose finished-goods balance"""
    rows = {}
    for item in BaleItem.objects.filter(status='available').select_related('finished_product'):
        row = rows.setdefault(item.finished_product_id, {
            'product_id': item.finished_product_id,
            'product_code': item.finished_product.code,
            'bales': 0,
            'bale_weight': ZERO,
        })
        row['bales'] += 1
        row['bale_weight'] += item.net_weight
    for row in rows.values():
        row['loose_stock'] = finished_balance(row['product_id'])
    return sorted(rows.values(), key=lambda r: r['product_code'])

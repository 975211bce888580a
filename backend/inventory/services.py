"""
Stock ledgers: the raw-material roll ledger, the FIFO consumption allocator
and the finished-goods ledger.

Every function here mutates stock inside ``transaction.atomic()`` and takes
row locks (``select_for_update``) before checking sufficiency, so the
check and the write can never be split by a concurrent request. Balances
are only ever changed together with a ``StockMovement`` row.
"""
import logging
from decimal import Decimal, InvalidOperation

from django.db import transaction
from django.db.models import F, Sum

from backend.core.cache_utils import (
    cached_query, invalidate_stock_caches,
    INVENTORY_SUMMARY_CACHE_TTL, INVENTORY_SUMMARY_PREFIX,
)
from backend.core.exceptions import (
    ValidationError, NotFound, InsufficientStock,
    InsufficientRollQuantity, InsufficientMaterialStock,
)
from backend.core.utils import to_kg, ZERO, create_audit_log
from backend.masters.models import RawMaterial, FinishedProduct
from .models import RawMaterialRoll, FinishedProductStock, StockMovement

logger = logging.getLogger(__name__)


def _positive_kg(quantity, label='Quantity'):
    try:
        quantity = to_kg(quantity)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{label} must be a number", value=str(quantity))
    if quantity <= 0:
        raise ValidationError(f"{label} must be greater than 0", value=quantity)
    return quantity


def record_movement(movement_type, quantity, reference_type, reference_code='', reference_id=None,
                    raw_material=None, roll=None, finished_product=None, balance_after=None,
                    reason='', user=None):
    """Append one row to the stock ledger"""
    inbound = movement_type in ('raw_in', 'fg_in')
    movement = StockMovement.objects.create(
        movement_type=movement_type,
        item_type='raw' if movement_type.startswith('raw') else 'finished',
        raw_material=raw_material,
        roll=roll,
        finished_product=finished_product,
        quantity_in=quantity if inbound else ZERO,
        quantity_out=ZERO if inbound else quantity,
        balance_after=balance_after,
        reference_type=reference_type,
        reference_code=reference_code or '',
        reference_id=reference_id,
        reason=reason or '',
        created_by=user if user is not None and user.is_authenticated else None,
    )
    invalidate_stock_caches()
    return movement


# ---------------------------------------------------------------------------
# Roll ledger
# ---------------------------------------------------------------------------

def raw_material_balance(material_id):
    """Remaining kg over every roll of a material (reserved rolls included)"""
    totals = RawMaterialRoll.objects.filter(raw_material_id=material_id).aggregate(
        total=Sum('total_quantity'), consumed=Sum('consumed_quantity')
    )
    return to_kg((totals['total'] or ZERO) - (totals['consumed'] or ZERO))


def create_roll(raw_material, quantity, roll_code, purchase_bill=None, reference_type='purchase_bill',
                reference_code='', reference_id=None, gross_weight=None, pipe_weight=None,
                gsm=None, width=None, shade='', reason='', user=None):
    """Take a new roll into stock and write its RAW_IN movement"""
    quantity = _positive_kg(quantity, 'Roll quantity')
    with transaction.atomic():
        roll = RawMaterialRoll.objects.create(
            raw_material=raw_material,
            purchase_bill=purchase_bill,
            roll_code=roll_code,
            total_quantity=quantity,
            gross_weight=gross_weight,
            pipe_weight=pipe_weight,
            gsm=gsm,
            width=width,
            shade=shade or '',
        )
        record_movement(
            'raw_in', quantity, reference_type, reference_code, reference_id,
            raw_material=raw_material, roll=roll,
            balance_after=raw_material_balance(raw_material.id),
            reason=reason, user=user,
        )
    logger.info(f"Roll {roll.roll_code} received: {quantity} kg of {raw_material.code}")
    return roll


def _consume(roll, quantity, reference_type, reference_code, reference_id, reason, user):
    """Debit a locked roll; caller has checked remaining >= quantity"""
    roll.consumed_quantity = roll.consumed_quantity + quantity
    roll.sync_status()
    roll.save(update_fields=['consumed_quantity', 'status', 'updated_at'])
    record_movement(
        'raw_out', quantity, reference_type, reference_code, reference_id,
        raw_material=roll.raw_material, roll=roll,
        balance_after=raw_material_balance(roll.raw_material_id),
        reason=reason, user=user,
    )
    return {'roll': roll, 'quantity_taken': quantity}


def allocate_material(raw_material, quantity, roll_id=None, reference_type='production_batch',
                      reference_code='', reference_id=None, reason='', user=None):
    """Consume ``quantity`` kg of a material, oldest roll first.

    With ``roll_id`` only that roll is used (it may be Reserved). Without it,
    in-stock rolls are taken in (created_at, id) order. Nothing is consumed
    unless the whole quantity can be satisfied.

    Returns a list of ``{'roll': RawMaterialRoll, 'quantity_taken': Decimal}``.
    """
    quantity = _positive_kg(quantity)

    with transaction.atomic():
        if roll_id is not None:
            try:
                roll = RawMaterialRoll.objects.select_for_update(of=('self',)).select_related('raw_material').get(pk=roll_id)
            except RawMaterialRoll.DoesNotExist:
                raise NotFound(f"Roll {roll_id} not found", roll_id=roll_id)
            if roll.raw_material_id != raw_material.id:
                raise ValidationError(
                    f"Roll {roll.roll_code} is not {raw_material.code}",
                    roll=roll.roll_code, material=raw_material.code,
                )
            available = roll.remaining_quantity
            if roll.status == 'consumed' or available < quantity:
                logger.warning(f"Roll {roll.roll_code}: requested {quantity} kg, available {available} kg")
                raise InsufficientRollQuantity(
                    f"Roll {roll.roll_code} has {available} kg remaining, {quantity} kg requested",
                    roll=roll.roll_code, requested=quantity, available=available,
                )
            return [_consume(roll, quantity, reference_type, reference_code, reference_id, reason, user)]

        # Lock in primary-key order, consume in FIFO order
        rolls = list(
            RawMaterialRoll.objects.select_for_update(of=('self',))
            .filter(raw_material=raw_material, status='in_stock')
            .select_related('raw_material')
            .order_by('id')
        )
        rolls.sort(key=lambda r: (r.created_at, r.id))

        available = sum((r.remaining_quantity for r in rolls), ZERO)
        if available < quantity:
            logger.warning(f"Material {raw_material.code}: requested {quantity} kg, available {available} kg")
            raise InsufficientMaterialStock(
                f"Only {available} kg of {raw_material.code} in stock, {quantity} kg requested",
                material=raw_material.code, requested=quantity, available=available,
            )

        allocations = []
        outstanding = quantity
        for roll in rolls:
            if outstanding <= 0:
                break
            take = min(roll.remaining_quantity, outstanding)
            if take <= 0:
                continue
            allocations.append(_consume(roll, take, reference_type, reference_code, reference_id, reason, user))
            outstanding -= take

    logger.info(
        f"Allocated {quantity} kg of {raw_material.code} for {reference_code or reference_type}: "
        + ", ".join(f"{a['roll'].roll_code}={a['quantity_taken']}" for a in allocations)
    )
    return allocations


def restore_roll(roll_id, quantity, reference_type, reference_code='', reference_id=None, reason='', user=None):
    """Reverse one earlier allocation of ``quantity`` kg against a roll"""
    quantity = _positive_kg(quantity)
    with transaction.atomic():
        roll = RawMaterialRoll.objects.select_for_update(of=('self',)).select_related('raw_material').get(pk=roll_id)
        if quantity > roll.consumed_quantity:
            raise ValidationError(
                f"Cannot restore {quantity} kg to roll {roll.roll_code}; only {roll.consumed_quantity} kg consumed",
                roll=roll.roll_code, requested=quantity, consumed=roll.consumed_quantity,
            )
        roll.consumed_quantity = roll.consumed_quantity - quantity
        roll.sync_status()
        roll.save(update_fields=['consumed_quantity', 'status', 'updated_at'])
        record_movement(
            'raw_in', quantity, reference_type, reference_code, reference_id,
            raw_material=roll.raw_material, roll=roll,
            balance_after=raw_material_balance(roll.raw_material_id),
            reason=reason, user=user,
        )
    logger.info(f"Restored {quantity} kg to roll {roll.roll_code} ({reference_code or reference_type})")
    return roll


def reweigh_roll(roll, new_quantity, reference_code='', reference_id=None, user=None):
    """Correct a locked roll's weight, writing the difference to the ledger.

    A fully consumed roll cannot be reweighed, and the new weight may not
    drop below what production has already taken from it.
    """
    new_quantity = _positive_kg(new_quantity, 'Roll weight')
    difference = new_quantity - roll.total_quantity
    if difference == 0:
        return roll
    if roll.status == 'consumed' or new_quantity < roll.consumed_quantity:
        logger.warning(f"Roll {roll.roll_code}: reweigh to {new_quantity} kg refused, {roll.consumed_quantity} kg consumed")
        raise ValidationError(
            f"Roll {roll.roll_code} has {roll.consumed_quantity} kg consumed; its weight cannot become {new_quantity} kg",
            roll=roll.roll_code, requested=new_quantity, consumed=roll.consumed_quantity, status=roll.status,
        )
    roll.total_quantity = new_quantity
    roll.sync_status()
    roll.save(update_fields=['total_quantity', 'status', 'updated_at'])
    record_movement(
        'raw_in' if difference > 0 else 'raw_out', abs(difference), 'roll_adjustment',
        reference_code or roll.roll_code, reference_id or roll.id,
        raw_material=roll.raw_material, roll=roll,
        balance_after=raw_material_balance(roll.raw_material_id),
        reason=f"Roll {roll.roll_code} weight corrected by {difference} kg", user=user,
    )
    logger.info(f"Roll {roll.roll_code} reweighed to {new_quantity} kg ({difference:+} kg)")
    return roll


def remove_roll(roll, reference_code='', reference_id=None, user=None):
    """Delete an untouched in-stock roll and take its weight out of the ledger"""
    if roll.status != 'in_stock' or roll.consumed_quantity > 0:
        logger.warning(f"Roll {roll.roll_code}: delete refused, status {roll.status}, consumed {roll.consumed_quantity} kg")
        raise ValidationError(
            f"Roll {roll.roll_code} is {roll.get_status_display()} with {roll.consumed_quantity} kg consumed; "
            f"reverse its production first",
            roll=roll.roll_code, status=roll.status, consumed=roll.consumed_quantity,
        )
    material = roll.raw_material
    code, quantity = roll.roll_code, roll.total_quantity
    roll.delete()
    record_movement(
        'raw_out', quantity, 'roll_delete', reference_code or code, reference_id,
        raw_material=material,
        balance_after=raw_material_balance(material.id),
        reason=f"Roll {code} deleted", user=user,
    )
    logger.info(f"Roll {code} deleted: {quantity} kg of {material.code} removed")
    return quantity


def reserve_roll(roll_id, reserved, request=None):
    """Toggle a roll between In Stock and Reserved"""
    with transaction.atomic():
        roll = RawMaterialRoll.objects.select_for_update().filter(pk=roll_id).first()
        if roll is None:
            raise NotFound(f"Roll {roll_id} not found", roll_id=roll_id)
        if reserved and roll.status != 'in_stock':
            raise ValidationError(f"Only in-stock rolls can be reserved (roll {roll.roll_code} is {roll.status})",
                                  roll=roll.roll_code, status=roll.status)
        if not reserved and roll.status != 'reserved':
            raise ValidationError(f"Roll {roll.roll_code} is not reserved", roll=roll.roll_code, status=roll.status)
        old_status = roll.status
        roll.status = 'reserved' if reserved else 'in_stock'
        roll.is_reserved = bool(reserved)
        roll.save(update_fields=['status', 'is_reserved', 'updated_at'])
        create_audit_log(
            request=request,
            action='update',
            model_name='RawMaterialRoll',
            object_id=str(roll.id),
            object_name=roll.roll_code,
            object_reference=roll.roll_code,
            changes={'status': {'old': old_status, 'new': roll.status}},
        )
    return roll


# ---------------------------------------------------------------------------
# Finished-goods ledger
# ---------------------------------------------------------------------------

def lock_finished_stock(product_id):
    """Fetch (creating at zero if needed) and lock one product's stock row"""
    stock, _ = FinishedProductStock.objects.select_for_update().get_or_create(
        product_id=product_id
    )
    return stock


def lock_finished_stocks(product_ids):
    """Lock several stock rows in primary-key order; returns {product_id: stock}"""
    return {pid: lock_finished_stock(pid) for pid in sorted(set(product_ids))}


def finished_balance(product_id):
    return FinishedProductStock.objects.filter(product_id=product_id).values_list(
        'stock_quantity', flat=True
    ).first() or ZERO


def credit_finished(product_id, quantity, reference_type, reference_code='', reference_id=None,
                    reason='', user=None):
    """Add finished goods; returns the new balance"""
    quantity = _positive_kg(quantity)
    with transaction.atomic():
        stock = lock_finished_stock(product_id)
        stock.stock_quantity = stock.stock_quantity + quantity
        stock.save(update_fields=['stock_quantity', 'updated_at'])
        record_movement(
            'fg_in', quantity, reference_type, reference_code, reference_id,
            finished_product=stock.product, balance_after=stock.stock_quantity,
            reason=reason, user=user,
        )
    logger.info(f"FG credit {stock.product.code} +{quantity} kg ({reference_code or reference_type}), balance {stock.stock_quantity}")
    return stock.stock_quantity


def debit_finished(product_id, quantity, reference_type, reference_code='', reference_id=None,
                   reason='', user=None):
    """Remove finished goods; raises InsufficientStock instead of going negative"""
    quantity = _positive_kg(quantity)
    with transaction.atomic():
        stock = lock_finished_stock(product_id)
        if quantity > stock.stock_quantity:
            logger.warning(f"FG debit {stock.product.code}: requested {quantity} kg, available {stock.stock_quantity} kg")
            raise InsufficientStock(
                f"Insufficient stock for {stock.product.name}: {stock.stock_quantity} kg available, {quantity} kg requested",
                product=stock.product.code, requested=quantity, available=stock.stock_quantity,
            )
        stock.stock_quantity = stock.stock_quantity - quantity
        stock.save(update_fields=['stock_quantity', 'updated_at'])
        record_movement(
            'fg_out', quantity, reference_type, reference_code, reference_id,
            finished_product=stock.product, balance_after=stock.stock_quantity,
            reason=reason, user=user,
        )
    logger.info(f"FG debit {stock.product.code} -{quantity} kg ({reference_code or reference_type}), balance {stock.stock_quantity}")
    return stock.stock_quantity


# ---------------------------------------------------------------------------
# Manual adjustment
# ---------------------------------------------------------------------------

def adjust_stock(item_type, item_id, signed_quantity, reason, request=None):
    """Manual stock correction; returns the item's new balance.

    Raw material: a positive quantity is taken in as a new adjustment roll,
    a negative one is consumed FIFO. Finished goods: credited or debited.
    """
    if not reason or not str(reason).strip():
        raise ValidationError("A reason is required for stock adjustments")
    try:
        signed_quantity = to_kg(signed_quantity)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError("Quantity must be a number", value=str(signed_quantity))
    if signed_quantity == 0:
        raise ValidationError("Adjustment quantity cannot be zero")

    user = getattr(request, 'user', None)
    magnitude = abs(signed_quantity)

    with transaction.atomic():
        if item_type == 'finished':
            product = FinishedProduct.objects.filter(pk=item_id).first()
            if product is None:
                raise NotFound(f"Finished product {item_id} not found", item_id=item_id)
            if signed_quantity > 0:
                balance = credit_finished(product.id, magnitude, 'adjustment', 'ADJUSTMENT', reason=reason, user=user)
            else:
                balance = debit_finished(product.id, magnitude, 'adjustment', 'ADJUSTMENT', reason=reason, user=user)
            name, code = product.name, product.code
        elif item_type == 'raw':
            material = RawMaterial.objects.filter(pk=item_id).first()
            if material is None:
                raise NotFound(f"Raw material {item_id} not found", item_id=item_id)
            if signed_quantity > 0:
                seq = RawMaterialRoll.objects.filter(roll_code__startswith=f"ADJ-{material.code}-").count() + 1
                roll_code = f"ADJ-{material.code}-{str(seq).zfill(3)}"
                while RawMaterialRoll.objects.filter(roll_code=roll_code).exists():
                    seq += 1
                    roll_code = f"ADJ-{material.code}-{str(seq).zfill(3)}"
                create_roll(material, magnitude, roll_code, reference_type='adjustment',
                            reference_code='ADJUSTMENT', reason=reason, user=user)
            else:
                allocate_material(material, magnitude, reference_type='adjustment',
                                  reference_code='ADJUSTMENT', reason=reason, user=user)
            balance = raw_material_balance(material.id)
            name, code = material.name, material.code
        else:
            raise ValidationError("item_type must be 'raw' or 'finished'", item_type=item_type)

        create_audit_log(
            request=request,
            action='stock_adjust',
            model_name='RawMaterial' if item_type == 'raw' else 'FinishedProduct',
            object_id=str(item_id),
            object_name=name,
            object_reference=code,
            changes={'quantity': signed_quantity, 'reason': reason, 'new_balance': balance},
        )

    logger.info(f"Stock adjusted {item_type} {code} by {signed_quantity} kg: {reason}")
    return balance


# ---------------------------------------------------------------------------
# Read side
# ---------------------------------------------------------------------------

def raw_stock_summary(material_id=None):
    """Per-material roll counts and remaining kg"""
    materials = RawMaterial.objects.all().order_by('name')
    if material_id:
        materials = materials.filter(pk=material_id)

    rows = (
        RawMaterialRoll.objects.values('raw_material_id')
        .annotate(total=Sum('total_quantity'), consumed=Sum('consumed_quantity'))
    )
    totals = {r['raw_material_id']: r for r in rows}
    open_counts = {}
    for material_pk in RawMaterialRoll.objects.exclude(status='consumed').values_list('raw_material_id', flat=True):
        open_counts[material_pk] = open_counts.get(material_pk, 0) + 1

    summary = []
    for material in materials:
        row = totals.get(material.id, {})
        total = row.get('total') or ZERO
        consumed = row.get('consumed') or ZERO
        available = to_kg(total - consumed)
        summary.append({
            'raw_material_id': material.id,
            'code': material.code,
            'name': material.name,
            'open_rolls': open_counts.get(material.id, 0),
            'total_quantity': to_kg(total),
            'consumed_quantity': to_kg(consumed),
            'available_quantity': available,
            'reorder_level': material.reorder_level,
            'is_low_stock': available <= material.reorder_level,
        })
    return summary


@cached_query(cache_ttl=INVENTORY_SUMMARY_CACHE_TTL, key_prefix=INVENTORY_SUMMARY_PREFIX)
def inventory_summary():
    """Dashboard totals; cached until the next stock movement"""
    roll_totals = RawMaterialRoll.objects.aggregate(total=Sum('total_quantity'), consumed=Sum('consumed_quantity'))
    raw_available = to_kg((roll_totals['total'] or ZERO) - (roll_totals['consumed'] or ZERO))
    fg_total = FinishedProductStock.objects.aggregate(total=Sum('stock_quantity'))['total'] or ZERO
    low_stock = FinishedProductStock.objects.filter(stock_quantity__lte=F('product__reorder_level')).count()

    return {
        'raw_material': {
            'rolls_in_stock': RawMaterialRoll.objects.filter(status='in_stock').count(),
            'rolls_reserved': RawMaterialRoll.objects.filter(status='reserved').count(),
            'available_quantity': str(raw_available),
        },
        'finished_goods': {
            'products_stocked': FinishedProductStock.objects.filter(stock_quantity__gt=0).count(),
            'total_quantity': str(to_kg(fg_total)),
            'low_stock_products': low_stock,
        },
        'movements': StockMovement.objects.count(),
    }


def recompute_finished_balance(product_id):
    """Finished-goods balance rebuilt from the movement ledger"""
    totals = StockMovement.objects.filter(item_type='finished', finished_product_id=product_id).aggregate(
        qty_in=Sum('quantity_in'), qty_out=Sum('quantity_out')
    )
    return to_kg((totals['qty_in'] or Decimal('0')) - (totals['qty_out'] or Decimal('0')))

"""
Production batch state machine.

    in_progress --complete / quick_complete--> partially_completed | completed
    completed | partially_completed --return_to_production--> partially_completed | in_progress

Allocation debits rolls through the FIFO allocator; completion credits
finished goods. Every operation is one database transaction.
"""
import logging
from decimal import Decimal, InvalidOperation

from django.db import transaction
from django.db.models import Count, Q, Sum
from django.utils import timezone

from backend.core.cache_utils import cached_query, PRODUCTION_STATS_CACHE_TTL, PRODUCTION_STATS_PREFIX
from backend.core.exceptions import (
    ValidationError, NotFound, LossExceedsInput, InsufficientMachineCapacity,
    InsufficientStockToReturn, EfficiencyWarning,
)
from backend.core.reversal import Reversal, ReversalDelta
from backend.core.utils import to_kg, percentage, next_code, get_loss_threshold, create_audit_log, ZERO, KG
from backend.inventory.services import allocate_material, restore_roll, credit_finished, debit_finished, lock_finished_stock
from backend.masters.models import Machine, RawMaterial, FinishedProduct
from .models import ProductionBatch, ProductionBatchInput, ProductionBatchOutput

logger = logging.getLogger(__name__)

MAX_INPUTS = 6
MAX_OUTPUTS = 4
OPEN_STATUSES = ('in_progress', 'partially_completed')
DONE_STATUSES = ('completed', 'partially_completed')


def _kg(value, label):
    try:
        return to_kg(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{label} must be a number", value=str(value))


def _acting_user(request):
    user = getattr(request, 'user', None)
    return user if user is not None and user.is_authenticated else None


def _lock_batch(batch_id):
    batch = ProductionBatch.objects.select_for_update().filter(pk=batch_id).first()
    if batch is None:
        raise NotFound(f"Production batch {batch_id} not found", batch_id=batch_id)
    return batch


def _split_output(takes, output_weight, yield_ratio):
    """Share ``output_weight`` across ``takes`` in proportion to consumption.

    Each share stays within ``[0, take]``; the rounding remainder is moved
    onto the newest batches that still have room for it.
    """
    shares = [min(to_kg(take * yield_ratio), take) for take in takes]
    remainder = output_weight - sum(shares, ZERO)
    for index in reversed(range(len(shares))):
        if remainder == 0:
            break
        if remainder > 0:
            step = min(remainder, takes[index] - shares[index])
        else:
            step = -min(-remainder, shares[index])
        shares[index] += step
        remainder -= step
    return shares


def _efficiency_warning(loss_pct, reference):
    threshold = get_loss_threshold()
    if loss_pct > threshold:
        logger.warning(f"{reference}: loss {loss_pct}% above {threshold}% threshold")
        return EfficiencyWarning(loss_pct, threshold, reference=reference)
    return None


def allocate_production(machine_id, allocation_date, inputs, output_product_ids, remarks='', request=None):
    """Create an in-progress batch and debit its raw material.

    ``inputs`` is a list of ``{'raw_material_id', 'quantity', 'roll_id'?}``.
    Each input runs through the FIFO allocator; if any input cannot be
    satisfied the whole batch is rolled back.
    """
    if not inputs:
        raise ValidationError("At least one raw material input is required")
    if len(inputs) > MAX_INPUTS:
        raise ValidationError(f"A batch takes at most {MAX_INPUTS} inputs", inputs=len(inputs))
    output_product_ids = list(dict.fromkeys(output_product_ids or []))
    if not output_product_ids:
        raise ValidationError("At least one output product is required")
    if len(output_product_ids) > MAX_OUTPUTS:
        raise ValidationError(f"A batch has at most {MAX_OUTPUTS} output products", outputs=len(output_product_ids))

    machine = Machine.objects.filter(pk=machine_id).first()
    if machine is None:
        raise NotFound(f"Machine {machine_id} not found", machine_id=machine_id)
    if not machine.is_active:
        raise ValidationError(f"Machine {machine.code} is not active", machine=machine.code)

    products = {p.id: p for p in FinishedProduct.objects.filter(pk__in=output_product_ids)}
    missing = [pid for pid in output_product_ids if pid not in products]
    if missing:
        raise NotFound("Output product not found", product_ids=missing)

    prepared = []
    for line in inputs:
        quantity = _kg(line.get('quantity'), 'Input quantity')
        if quantity <= 0:
            raise ValidationError("Input quantity must be greater than 0", raw_material_id=line.get('raw_material_id'))
        material = RawMaterial.objects.filter(pk=line.get('raw_material_id')).first()
        if material is None:
            raise NotFound(f"Raw material {line.get('raw_material_id')} not found",
                           raw_material_id=line.get('raw_material_id'))
        prepared.append((material, quantity, line.get('roll_id')))

    user = _acting_user(request)
    with transaction.atomic():
        batch = ProductionBatch.objects.create(
            code=next_code(ProductionBatch, 'PB', width=3),
            machine=machine,
            allocation_date=allocation_date or timezone.localdate(),
            total_input_quantity=sum((q for _, q, _ in prepared), ZERO),
            remarks=remarks or '',
            created_by=user,
        )
        for material, quantity, roll_id in prepared:
            allocations = allocate_material(
                material, quantity, roll_id=roll_id,
                reference_type='production_batch', reference_code=batch.code, reference_id=batch.id,
                reason=f"Allocated to {batch.code} on {machine.code}", user=user,
            )
            ProductionBatchInput.objects.bulk_create([
                ProductionBatchInput(batch=batch, raw_material=material, roll=a['roll'], quantity=a['quantity_taken'])
                for a in allocations
            ])
        ProductionBatchOutput.objects.bulk_create([
            ProductionBatchOutput(batch=batch, finished_product=products[pid]) for pid in output_product_ids
        ])

        create_audit_log(
            request=request,
            action='production_allocate',
            model_name='ProductionBatch',
            object_id=str(batch.id),
            object_name=batch.code,
            object_reference=batch.code,
            changes={
                'machine': machine.code,
                'total_input_quantity': batch.total_input_quantity,
                'rolls': [{'roll': i.roll.roll_code, 'quantity': i.quantity}
                          for i in batch.inputs.select_related('roll')],
                'outputs': [products[pid].code for pid in output_product_ids],
            },
        )

    logger.info(f"Batch {batch.code} allocated on {machine.code}: {batch.total_input_quantity} kg input")
    return batch


def complete_production(batch_id, outputs, completion_date=None, request=None):
    """Record actual output for an in-progress batch and credit finished goods.

    ``outputs`` is a list of ``{'product_id', 'quantity'}``. Output above the
    batch input is rejected; loss above the threshold only produces a warning.
    Returns ``(batch, EfficiencyWarning | None)``.
    """
    if not outputs:
        raise ValidationError("At least one output quantity is required")

    quantities = {}
    for line in outputs:
        quantity = _kg(line.get('quantity'), 'Output quantity')
        if quantity < 0:
            raise ValidationError("Output quantity cannot be negative", product_id=line.get('product_id'))
        pid = line.get('product_id')
        quantities[pid] = quantities.get(pid, ZERO) + quantity

    user = _acting_user(request)
    with transaction.atomic():
        batch = _lock_batch(batch_id)
        if batch.status != 'in_progress':
            raise ValidationError(f"Batch {batch.code} is {batch.status}; only in-progress batches can be completed",
                                  batch=batch.code, status=batch.status)

        rows = {row.finished_product_id: row for row in batch.outputs.select_related('finished_product')}
        unknown = [pid for pid in quantities if pid not in rows]
        if unknown:
            raise ValidationError(f"Products {unknown} are not output targets of {batch.code}",
                                  batch=batch.code, product_ids=unknown)

        total_output = sum(quantities.values(), ZERO)
        if total_output <= 0:
            raise ValidationError("Total output must be greater than 0", batch=batch.code)
        if total_output > batch.total_input_quantity:
            logger.warning(f"Batch {batch.code}: output {total_output} kg exceeds input {batch.total_input_quantity} kg")
            raise LossExceedsInput(
                f"Output {total_output} kg exceeds input {batch.total_input_quantity} kg for {batch.code}",
                batch=batch.code, output=total_output, input=batch.total_input_quantity,
            )

        for pid, quantity in quantities.items():
            row = rows[pid]
            row.quantity = quantity
            row.save(update_fields=['quantity'])
            if quantity > 0:
                credit_finished(pid, quantity, 'production_batch', batch.code, batch.id,
                                reason=f"Output of {batch.code}", user=user)

        loss = batch.total_input_quantity - total_output
        loss_pct = percentage(loss, batch.total_input_quantity)
        warning = _efficiency_warning(loss_pct, batch.code)

        batch.output_quantity = total_output
        batch.consumed_quantity = batch.total_input_quantity
        batch.loss_quantity = loss
        batch.loss_percentage = loss_pct
        batch.loss_exceeded = warning is not None
        batch.status = 'completed'
        batch.completion_date = completion_date or timezone.localdate()
        batch.save()

        create_audit_log(
            request=request,
            action='production_complete',
            model_name='ProductionBatch',
            object_id=str(batch.id),
            object_name=batch.code,
            object_reference=batch.code,
            changes={
                'input': batch.total_input_quantity,
                'output': total_output,
                'loss': loss,
                'loss_percentage': loss_pct,
                'outputs': {rows[pid].finished_product.code: q for pid, q in quantities.items()},
            },
        )

    logger.info(f"Batch {batch.code} completed: input {batch.total_input_quantity} kg, output {total_output} kg, loss {loss_pct}%")
    return batch, warning


def quick_complete(machine_id, product_id, output_weight, weight_loss_percent, completion_date=None, request=None):
    """Complete production on a machine from output weight and loss % alone.

    The open batches of the machine form one pool; the total consumption
    ``output / (1 - loss%/100)`` is drawn from the oldest batch first, each
    batch giving at most its remaining capacity.
    """
    output_weight = _kg(output_weight, 'Output weight')
    try:
        loss_pct = Decimal(str(weight_loss_percent))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError("Weight loss percent must be a number", value=str(weight_loss_percent))
    if output_weight <= 0:
        raise ValidationError("Output weight must be greater than 0", output_weight=output_weight)
    if loss_pct < 0 or loss_pct >= 100:
        raise ValidationError("Weight loss percent must be at least 0 and below 100", weight_loss_percent=loss_pct)

    machine = Machine.objects.filter(pk=machine_id).first()
    if machine is None:
        raise NotFound(f"Machine {machine_id} not found", machine_id=machine_id)
    product = FinishedProduct.objects.filter(pk=product_id).first()
    if product is None:
        raise NotFound(f"Finished product {product_id} not found", product_id=product_id)

    yield_ratio = 1 - loss_pct / 100
    total_consumption = to_kg(output_weight / yield_ratio)
    user = _acting_user(request)

    with transaction.atomic():
        batches = list(
            ProductionBatch.objects.select_for_update()
            .filter(machine=machine, status__in=OPEN_STATUSES)
            .order_by('id')
        )
        batches.sort(key=lambda b: (b.allocation_date, b.id))
        capacity = sum((b.remaining_capacity for b in batches), ZERO)
        if total_consumption > capacity:
            logger.warning(f"Machine {machine.code}: needs {total_consumption} kg, open batches hold {capacity} kg")
            raise InsufficientMachineCapacity(
                f"Machine {machine.code} has {capacity} kg of unconsumed input, {total_consumption} kg needed",
                machine=machine.code, requested=total_consumption, available=capacity,
            )

        threshold = get_loss_threshold()
        takes = []
        outstanding = total_consumption
        for batch in batches:
            if outstanding <= 0:
                break
            take = min(batch.remaining_capacity, outstanding)
            if take > 0:
                takes.append((batch, take))
                outstanding -= take

        affected = []
        shares = _split_output([take for _, take in takes], output_weight, yield_ratio)
        completed_on = completion_date or timezone.localdate()
        for (batch, take), batch_output in zip(takes, shares):
            batch_loss = take - batch_output

            if batch_output > 0:
                row, _ = ProductionBatchOutput.objects.get_or_create(batch=batch, finished_product=product)
                row.quantity = row.quantity + batch_output
                row.save(update_fields=['quantity'])

            batch.consumed_quantity = batch.consumed_quantity + take
            batch.output_quantity = batch.output_quantity + batch_output
            batch.loss_quantity = batch.loss_quantity + batch_loss
            batch.loss_percentage = percentage(batch.loss_quantity, batch.consumed_quantity)
            batch.loss_exceeded = batch.loss_percentage > threshold
            batch.status = 'partially_completed' if batch.remaining_capacity > KG else 'completed'
            batch.completion_date = completed_on
            batch.save()

            affected.append({
                'batch_id': batch.id,
                'code': batch.code,
                'consumed': str(take),
                'output': str(batch_output),
                'loss': str(batch_loss),
                'remaining_capacity': str(batch.remaining_capacity),
                'status': batch.status,
            })

        codes = ','.join(b.code for b, _ in takes)
        credit_finished(product.id, output_weight, 'production_batch', codes[:100], takes[0][0].id,
                        reason=f"Quick production entry on {machine.code}", user=user)

        warning = None
        if loss_pct > threshold:
            logger.warning(f"Quick entry on {machine.code}: loss {loss_pct}% above {threshold}% threshold")
            warning = EfficiencyWarning(loss_pct, threshold, reference=machine.code)

        result = {
            'machine': machine.code,
            'product': product.code,
            'consumption': {
                'output': str(output_weight),
                'loss_percent': str(loss_pct),
                'loss_kg': str(total_consumption - output_weight),
                'total_consumed': str(total_consumption),
                'remaining_capacity': str(capacity - total_consumption),
            },
            'affected_batches': affected,
            'warning': warning.as_dict() if warning else None,
        }

        create_audit_log(
            request=request,
            action='production_quick_complete',
            model_name='Machine',
            object_id=str(machine.id),
            object_name=machine.name,
            object_reference=machine.code,
            changes=result,
        )

    logger.info(f"Quick entry on {machine.code}: {output_weight} kg {product.code}, consumed {total_consumption} kg across {len(takes)} batches")
    return result


class ReturnToProduction(Reversal):
    """Send finished goods back into production, undoing batch output oldest-first.

    Each touched batch loses the returned output and gets back the matching
    share of its loss: ``returned * loss / output``. A batch with no output
    left returns to in_progress.
    """
    entity_type = 'FinishedProduct'
    audit_action = 'return_to_production'

    def __init__(self, product_id, quantity, reason, request=None, user=None):
        super().__init__(request=request, user=user)
        self.product_id = product_id
        self.quantity = _kg(quantity, 'Quantity')
        self.reason = (reason or '').strip()
        self.remaining = self.quantity
        self.product = None
        self.new_balance = None
        self._batches = {}

    def entity_id(self):
        return self.product_id

    def reference(self):
        return self.product.code if self.product else None

    def lock(self):
        if self.quantity <= 0:
            raise ValidationError("Quantity to return must be greater than 0")
        if not self.reason:
            raise ValidationError("A reason is required to return goods to production")
        self.product = FinishedProduct.objects.filter(pk=self.product_id).first()
        if self.product is None:
            raise NotFound(f"Finished product {self.product_id} not found", product_id=self.product_id)

        stock = lock_finished_stock(self.product_id)
        if self.quantity > stock.stock_quantity:
            logger.warning(f"Return {self.product.code}: requested {self.quantity} kg, stock {stock.stock_quantity} kg")
            raise InsufficientStockToReturn(
                f"Cannot return {self.quantity} kg of {self.product.name}; only {stock.stock_quantity} kg in stock",
                product=self.product.code, requested=self.quantity, available=stock.stock_quantity,
            )
        self.new_balance = debit_finished(
            self.product_id, self.quantity, 'production_return', 'RETURN-TO-PRODUCTION',
            reason=self.reason, user=self.acting_user,
        )

    def locate(self):
        rows = list(
            ProductionBatchOutput.objects
            .filter(finished_product_id=self.product_id, quantity__gt=0, batch__status__in=DONE_STATUSES)
            .order_by('batch__completion_date', 'batch_id')
        )
        batch_ids = sorted({row.batch_id for row in rows})
        self._batches = {b.id: b for b in ProductionBatch.objects.select_for_update().filter(pk__in=batch_ids).order_by('id')}
        return rows

    def invert(self, row):
        if self.remaining <= 0:
            return None
        batch = self._batches[row.batch_id]
        take = min(row.quantity, self.remaining)
        old_output, old_loss = batch.output_quantity, batch.loss_quantity

        if take >= old_output:
            loss_restored = old_loss
        else:
            loss_restored = to_kg(take * old_loss / old_output) if old_output > 0 else ZERO

        row.quantity = row.quantity - take
        row.save(update_fields=['quantity'])

        batch.output_quantity = old_output - take
        batch.loss_quantity = max(old_loss - loss_restored, ZERO)
        batch.consumed_quantity = max(batch.consumed_quantity - take - loss_restored, ZERO)
        if batch.output_quantity <= 0:
            batch.reset_to_in_progress()
        else:
            batch.status = 'partially_completed'
            batch.loss_percentage = percentage(batch.loss_quantity, batch.consumed_quantity)
            batch.loss_exceeded = batch.loss_percentage > get_loss_threshold()
        batch.save()
        self.remaining -= take

        logger.info(f"Batch {batch.code}: {take} kg output returned, {loss_restored} kg loss restored, now {batch.status}")
        return ReversalDelta(
            'ProductionBatch', batch.id, batch.code,
            output_reversed=take,
            loss_restored=loss_restored,
            capacity_restored=take + loss_restored,
            output_quantity=batch.output_quantity,
            loss_quantity=batch.loss_quantity,
            status=batch.status,
        )

    def finish(self, deltas):
        if self.remaining > 0:
            logger.warning(f"Return {self.product.code}: {self.remaining} kg not attributable to any batch")
        return {
            'quantity_returned': self.quantity,
            'unattributed_quantity': self.remaining,
            'new_stock_balance': self.new_balance,
            'reason': self.reason,
        }


class ProductionBatchDeletion(Reversal):
    """Delete an unproduced batch, giving every roll back exactly what it lost"""
    entity_type = 'ProductionBatch'
    audit_action = 'production_delete'

    def __init__(self, batch_id, request=None, user=None):
        super().__init__(request=request, user=user)
        self.batch_id = batch_id
        self.batch = None
        self.code = None

    def entity_id(self):
        return self.batch_id

    def reference(self):
        return self.code

    def lock(self):
        self.batch = _lock_batch(self.batch_id)
        self.code = self.batch.code
        if self.batch.status != 'in_progress' or self.batch.output_quantity > 0 or self.batch.consumed_quantity > 0:
            raise ValidationError(
                f"Batch {self.code} already has recorded output and cannot be deleted",
                batch=self.code, status=self.batch.status,
            )

    def locate(self):
        return list(self.batch.inputs.select_related('roll').order_by('roll_id', 'id'))

    def invert(self, entry):
        restore_roll(entry.roll_id, entry.quantity, 'production_batch', self.code, self.batch_id,
                     reason=f"Batch {self.code} deleted", user=self.acting_user)
        return ReversalDelta('RawMaterialRoll', entry.roll_id, entry.roll.roll_code, quantity_restored=entry.quantity)

    def finish(self, deltas):
        restored = sum((d.changes['quantity_restored'] for d in deltas), ZERO)
        self.batch.delete()
        return {'restored_quantity': restored}


def return_to_production(product_id, quantity, reason, request=None):
    return ReturnToProduction(product_id, quantity, reason, request=request).run()


def delete_production_batch(batch_id, request=None):
    return ProductionBatchDeletion(batch_id, request=request).run()


@cached_query(cache_ttl=PRODUCTION_STATS_CACHE_TTL, key_prefix=PRODUCTION_STATS_PREFIX)
def production_stats():
    counts = ProductionBatch.objects.aggregate(
        total=Count('id'),
        in_progress=Count('id', filter=Q(status='in_progress')),
        partially_completed=Count('id', filter=Q(status='partially_completed')),
        completed=Count('id', filter=Q(status='completed')),
        loss_exceeded=Count('id', filter=Q(loss_exceeded=True)),
        total_input=Sum('total_input_quantity'),
        total_consumed=Sum('consumed_quantity'),
        total_output=Sum('output_quantity'),
        total_loss=Sum('loss_quantity'),
    )
    total_consumed = counts['total_consumed'] or ZERO
    total_loss = counts['total_loss'] or ZERO
    return {
        'batches': {
            'total': counts['total'],
            'in_progress': counts['in_progress'],
            'partially_completed': counts['partially_completed'],
            'completed': counts['completed'],
            'loss_exceeded': counts['loss_exceeded'],
        },
        'total_input_quantity': str(to_kg(counts['total_input'] or ZERO)),
        'total_output_quantity': str(to_kg(counts['total_output'] or ZERO)),
        'total_loss_quantity': str(to_kg(total_loss)),
        'average_loss_percentage': str(percentage(total_loss, total_consumed)),
        'loss_threshold_percent': str(get_loss_threshold()),
    }

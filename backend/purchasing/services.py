"""
Purchase bills and supplier payments.

Confirming a bill takes its rolls into stock and raises the supplier's
outstanding; rolls of a bill can be corrected or deleted while untouched.
Payments settle confirmed bills and are undone with the reversal primitive.

Locks are always taken supplier first, then bills in primary-key order.
"""
import logging
from collections import OrderedDict
from decimal import Decimal, InvalidOperation

from django.db import transaction
from django.utils import timezone

from backend.core.exceptions import ValidationError, NotFound
from backend.core.reversal import Reversal, ReversalDelta
from backend.core.utils import to_kg, to_money, ZERO, next_code, create_audit_log
from backend.inventory.models import RawMaterialRoll
from backend.inventory.services import create_roll, reweigh_roll, remove_roll
from backend.parties.models import Supplier
from .models import PurchaseBill, PurchaseBillItem, SupplierPayment, BillPaymentAllocation

logger = logging.getLogger(__name__)


def _acting_user(request):
    user = getattr(request, 'user', None)
    return user if user is not None and user.is_authenticated else None


def _amount(value, label):
    try:
        return to_money(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{label} must be a number", value=str(value))


def _lock_supplier(supplier_id):
    supplier = Supplier.objects.select_for_update().filter(pk=supplier_id).first()
    if supplier is None:
        raise NotFound(f"Supplier {supplier_id} not found", supplier_id=supplier_id)
    return supplier


def _lock_bill(bill_id):
    """Lock a bill's supplier, then the bill itself"""
    supplier_id = PurchaseBill.objects.filter(pk=bill_id).values_list('supplier_id', flat=True).first()
    if supplier_id is None:
        raise NotFound(f"Purchase bill {bill_id} not found", bill_id=bill_id)
    supplier = _lock_supplier(supplier_id)
    bill = PurchaseBill.objects.select_for_update().select_related('supplier').get(pk=bill_id)
    return supplier, bill


def _net_weight(roll):
    gross = to_kg(roll.get('gross_weight'))
    pipe = to_kg(roll.get('pipe_weight') or ZERO)
    return gross - pipe


def _clean_rolls(rolls, material):
    cleaned = []
    for index, roll in enumerate(rolls or [], start=1):
        net = _net_weight(roll)
        if net <= 0:
            raise ValidationError(
                f"Roll {index} of {material.code}: net weight must be greater than 0 (gross minus pipe)",
                material=material.code, roll=index, net_weight=net,
            )
        cleaned.append({
            'gross_weight': str(to_kg(roll.get('gross_weight'))),
            'pipe_weight': str(to_kg(roll.get('pipe_weight') or ZERO)),
            'net_weight': str(net),
            'gsm': str(roll['gsm']) if roll.get('gsm') not in (None, '') else None,
            'width': str(roll['width']) if roll.get('width') not in (None, '') else None,
            'shade': roll.get('shade') or '',
        })
    return cleaned


def create_purchase_bill(supplier, bill_date, items, bill_number='', notes='', confirm=False, request=None):
    """Create a draft bill; with confirm=True the rolls are received immediately.

    ``items`` is a list of ``{'raw_material', 'quantity', 'rate', 'rolls'}``.
    When roll entries are given the item quantity is their total net weight.
    """
    if not items:
        raise ValidationError("A purchase bill needs at least one item")

    prepared = []
    for item in items:
        material = item['raw_material']
        rolls = _clean_rolls(item.get('rolls'), material)
        if rolls:
            quantity = sum((Decimal(r['net_weight']) for r in rolls), ZERO)
        else:
            quantity = to_kg(item.get('quantity'))
        if quantity <= 0:
            raise ValidationError(f"Quantity for {material.code} must be greater than 0", material=material.code)
        rate = to_kg(item.get('rate') or ZERO)
        if rate < 0:
            raise ValidationError(f"Rate for {material.code} cannot be negative", material=material.code)
        prepared.append((material, quantity, rate, rolls))

    with transaction.atomic():
        bill = PurchaseBill.objects.create(
            code=next_code(PurchaseBill, 'PUR', width=4),
            supplier=supplier,
            bill_number=bill_number or '',
            bill_date=bill_date,
            notes=notes or '',
            created_by=_acting_user(request),
        )
        for material, quantity, rate, rolls in prepared:
            PurchaseBillItem.objects.create(
                bill=bill, raw_material=material, quantity=quantity, rate=rate, roll_details=rolls,
            )
        bill.grand_total = bill.get_total()
        bill.save(update_fields=['grand_total', 'updated_at'])
        create_audit_log(
            request=request,
            action='create',
            model_name='PurchaseBill',
            object_id=str(bill.id),
            object_name=bill.code,
            object_reference=bill.code,
            changes={'supplier': supplier.name, 'items': len(prepared)},
        )
        if confirm:
            confirm_purchase_bill(bill.id, request=request)
            bill.refresh_from_db()

    logger.info(f"Purchase bill {bill.code} created for {supplier.name} ({len(prepared)} items, status {bill.status})")
    return bill


def confirm_purchase_bill(bill_id, request=None):
    """Receive every roll of a draft bill into stock; returns the created rolls"""
    user = _acting_user(request)
    with transaction.atomic():
        supplier, bill = _lock_bill(bill_id)
        if bill.status != 'draft':
            raise ValidationError(f"Purchase bill {bill.code} is already {bill.status}", bill=bill.code, status=bill.status)

        rolls = []
        sequence = 0
        for item in bill.items.select_related('raw_material'):
            entries = item.roll_details or [{'net_weight': str(item.quantity)}]
            for entry in entries:
                sequence += 1
                rolls.append(create_roll(
                    item.raw_material,
                    Decimal(entry['net_weight']),
                    roll_code=f"ROLL-{bill.code}-{str(sequence).zfill(3)}",
                    purchase_bill=bill,
                    reference_type='purchase_bill',
                    reference_code=bill.code,
                    reference_id=bill.id,
                    gross_weight=entry.get('gross_weight'),
                    pipe_weight=entry.get('pipe_weight'),
                    gsm=entry.get('gsm'),
                    width=entry.get('width'),
                    shade=entry.get('shade', ''),
                    reason=f"Purchase from {bill.supplier.name}",
                    user=user,
                ))

        bill.status = 'confirmed'
        bill.confirmed_at = timezone.now()
        bill.save(update_fields=['status', 'confirmed_at', 'updated_at'])
        supplier.outstanding_balance = supplier.outstanding_balance + bill.grand_total
        supplier.save(update_fields=['outstanding_balance', 'updated_at'])

        create_audit_log(
            request=request,
            action='roll_intake',
            model_name='PurchaseBill',
            object_id=str(bill.id),
            object_name=bill.code,
            object_reference=bill.code,
            changes={
                'rolls': [r.roll_code for r in rolls],
                'total_quantity': sum((r.total_quantity for r in rolls), ZERO),
            },
        )

    logger.info(f"Purchase bill {bill.code} confirmed: {len(rolls)} rolls received")
    return rolls


def delete_purchase_bill(bill_id, request=None):
    """Only draft bills can be deleted; confirmed ones already moved stock"""
    with transaction.atomic():
        bill = PurchaseBill.objects.select_for_update().filter(pk=bill_id).first()
        if bill is None:
            raise NotFound(f"Purchase bill {bill_id} not found", bill_id=bill_id)
        if bill.status != 'draft':
            raise ValidationError(f"Confirmed bill {bill.code} cannot be deleted", bill=bill.code)
        code = bill.code
        create_audit_log(
            request=request,
            action='delete',
            model_name='PurchaseBill',
            object_id=str(bill.id),
            object_name=code,
            object_reference=code,
            changes={'status': bill.status},
        )
        bill.delete()
    logger.info(f"Draft purchase bill {code} deleted")


# ---------------------------------------------------------------------------
# Rolls of a confirmed bill
# ---------------------------------------------------------------------------

def _lock_bill_roll(bill_id, roll_id):
    _, bill = _lock_bill(bill_id)
    roll = RawMaterialRoll.objects.select_for_update().filter(pk=roll_id, purchase_bill_id=bill.id).first()
    if roll is None:
        raise NotFound(f"Roll {roll_id} not found on purchase bill {bill.code}", bill=bill.code, roll_id=roll_id)
    return bill, roll


def update_bill_roll(bill_id, roll_id, net_weight=None, gsm=None, width=None, shade=None, request=None):
    """Correct a received roll.

    Weight corrections go through the roll ledger and are refused once the
    roll is consumed; the descriptive fields can always be fixed.
    """
    with transaction.atomic():
        bill, roll = _lock_bill_roll(bill_id, roll_id)
        old = {'total_quantity': roll.total_quantity, 'gsm': roll.gsm, 'width': roll.width, 'shade': roll.shade}

        if net_weight is not None:
            reweigh_roll(roll, net_weight, reference_code=bill.code, reference_id=bill.id, user=_acting_user(request))
        fields = []
        for name, value in (('gsm', gsm), ('width', width)):
            if value is not None:
                setattr(roll, name, _amount(value, name))
                fields.append(name)
        if shade is not None:
            roll.shade = shade
            fields.append('shade')
        if fields:
            roll.save(update_fields=fields + ['updated_at'])

        changes = {k: {'old': v, 'new': getattr(roll, k)} for k, v in old.items() if getattr(roll, k) != v}
        create_audit_log(
            request=request,
            action='roll_update',
            model_name='RawMaterialRoll',
            object_id=str(roll.id),
            object_name=roll.roll_code,
            object_reference=bill.code,
            changes=changes,
        )
    logger.info(f"Roll {roll.roll_code} on {bill.code} corrected: {sorted(changes)}")
    return roll


def delete_bill_roll(bill_id, roll_id, request=None):
    """Delete an untouched roll of a bill; bill money is left as billed"""
    with transaction.atomic():
        bill, roll = _lock_bill_roll(bill_id, roll_id)
        roll_code = roll.roll_code
        quantity = remove_roll(roll, reference_code=bill.code, reference_id=bill.id, user=_acting_user(request))
        create_audit_log(
            request=request,
            action='roll_delete',
            model_name='RawMaterialRoll',
            object_id=str(roll_id),
            object_name=roll_code,
            object_reference=bill.code,
            changes={'quantity': quantity},
        )
        remaining = bill.get_roll_weight()
    return {'roll': roll_code, 'quantity_removed': quantity, 'bill_roll_weight': remaining}


# ---------------------------------------------------------------------------
# Supplier payments
# ---------------------------------------------------------------------------

def create_supplier_payment(supplier_id, amount, allocations=None, mode='bank', payment_date=None,
                            reference='', remarks='', request=None):
    """Record money paid to a supplier and settle bills with it.

    ``allocations`` is a list of ``{'bill_id', 'amount'}``; each must fit
    the bill's balance and together they may not exceed ``amount``. Any
    remainder is held as the payment's advance balance.
    """
    amount = _amount(amount, 'Amount')
    if amount <= 0:
        raise ValidationError("Payment amount must be greater than 0", amount=amount)

    wanted = OrderedDict()
    for line in allocations or []:
        bill_id = line.get('bill_id')
        if bill_id in wanted:
            raise ValidationError("A bill appears more than once in the allocations", bill_id=bill_id)
        share = _amount(line.get('amount'), 'Allocation amount')
        if share <= 0:
            raise ValidationError("Allocation amount must be greater than 0", bill_id=bill_id)
        wanted[bill_id] = share
    allocated = sum(wanted.values(), ZERO)
    if allocated > amount:
        raise ValidationError(f"Allocations total {allocated} exceeds the payment amount {amount}",
                              allocated=allocated, amount=amount)

    with transaction.atomic():
        supplier = _lock_supplier(supplier_id)
        bills = {b.id: b for b in PurchaseBill.objects.select_for_update().filter(pk__in=list(wanted)).order_by('id')}
        for bill_id, share in wanted.items():
            bill = bills.get(bill_id)
            if bill is None:
                raise NotFound(f"Purchase bill {bill_id} not found", bill_id=bill_id)
            if bill.supplier_id != supplier.id:
                raise ValidationError(f"Purchase bill {bill.code} belongs to another supplier", bill=bill.code)
            if bill.status != 'confirmed':
                raise ValidationError(f"Purchase bill {bill.code} is {bill.status}", bill=bill.code, status=bill.status)
            if share > bill.balance_due:
                logger.warning(f"Payment to {supplier.name}: {share} asked for {bill.code}, balance {bill.balance_due}")
                raise ValidationError(
                    f"Allocation {share} exceeds the balance {bill.balance_due} of {bill.code}",
                    bill=bill.code, requested=share, balance=bill.balance_due,
                )

        payment = SupplierPayment.objects.create(
            code=next_code(SupplierPayment, 'PAY', width=4),
            supplier=supplier,
            payment_date=payment_date or timezone.localdate(),
            amount=amount,
            mode=mode or 'bank',
            reference=reference or '',
            remarks=remarks or '',
            advance_balance=amount - allocated,
            created_by=_acting_user(request),
        )
        for bill_id, share in wanted.items():
            bill = bills[bill_id]
            BillPaymentAllocation.objects.create(payment=payment, bill=bill, amount=share)
            bill.amount_paid = bill.amount_paid + share
            bill.refresh_payment_status()
            bill.save(update_fields=['amount_paid', 'payment_status', 'updated_at'])

        supplier.outstanding_balance = supplier.outstanding_balance - amount
        supplier.save(update_fields=['outstanding_balance', 'updated_at'])

        create_audit_log(
            request=request,
            action='payment_create',
            model_name='SupplierPayment',
            object_id=str(payment.id),
            object_name=payment.code,
            object_reference=payment.code,
            changes={
                'supplier': supplier.name,
                'amount': amount,
                'allocations': [{'bill': bills[b].code, 'amount': a} for b, a in wanted.items()],
                'advance_balance': payment.advance_balance,
            },
        )

    logger.info(f"Payment {payment.code} to {supplier.name}: {amount} ({allocated} allocated)")
    return payment


class SupplierPaymentReversal(Reversal):
    """Undo a supplier payment: every bill it settled is reopened by exactly its allocation"""
    entity_type = 'SupplierPayment'
    audit_action = 'payment_reverse'

    def __init__(self, payment_id, reason, request=None, user=None):
        super().__init__(request=request, user=user)
        self.payment_id = payment_id
        self.reason = (reason or '').strip()
        self.payment = None
        self.supplier = None

    def entity_id(self):
        return self.payment_id

    def reference(self):
        return self.payment.code if self.payment else None

    def lock(self):
        if not self.reason:
            raise ValidationError("A reason is required to reverse a payment")
        supplier_id = SupplierPayment.objects.filter(pk=self.payment_id).values_list('supplier_id', flat=True).first()
        if supplier_id is None:
            raise NotFound(f"Payment {self.payment_id} not found", payment_id=self.payment_id)
        self.supplier = _lock_supplier(supplier_id)
        self.payment = SupplierPayment.objects.select_for_update().get(pk=self.payment_id)
        if self.payment.status == 'reversed':
            raise ValidationError(f"Payment {self.payment.code} is already reversed", payment=self.payment.code)

    def locate(self):
        return list(self.payment.allocations.order_by('bill_id'))

    def invert(self, allocation):
        bill = PurchaseBill.objects.select_for_update().get(pk=allocation.bill_id)
        bill.amount_paid = bill.amount_paid - allocation.amount
        bill.refresh_payment_status()
        bill.save(update_fields=['amount_paid', 'payment_status', 'updated_at'])
        return ReversalDelta('PurchaseBill', bill.id, bill.code,
                             amount_reopened=allocation.amount, balance_due=bill.balance_due,
                             payment_status=bill.payment_status)

    def finish(self, deltas):
        self.payment.status = 'reversed'
        self.payment.reversal_reason = self.reason
        self.payment.reversed_at = timezone.now()
        self.payment.advance_balance = ZERO
        self.payment.save(update_fields=['status', 'reversal_reason', 'reversed_at', 'advance_balance', 'updated_at'])
        self.supplier.outstanding_balance = self.supplier.outstanding_balance + self.payment.amount
        self.supplier.save(update_fields=['outstanding_balance', 'updated_at'])
        return {
            'reason': self.reason,
            'amount': self.payment.amount,
            'reopened_amount': sum((d.changes['amount_reopened'] for d in deltas), ZERO),
            'supplier_outstanding': self.supplier.outstanding_balance,
        }


def reverse_supplier_payment(payment_id, reason, request=None):
    return SupplierPaymentReversal(payment_id, reason, request=request).run()


def outstanding_bills(supplier_id):
    """Confirmed bills with money still owed, oldest first"""
    return (
        PurchaseBill.objects.filter(supplier_id=supplier_id, status='confirmed')
        .exclude(payment_status='paid')
        .order_by('bill_date', 'id')
    )

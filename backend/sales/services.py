"""
Sales invoices and receipts, plus product samples.

Confirming an invoice is the last finished-goods debit in the chain:
plain lines debit stock, bale lines issue a bale whose weight was already
debited when it was baled. Samples leave stock the same way as plain
lines. Every inverse operation here is built on the generic reversal
primitive.

Locks are always taken customer first, then invoices in primary-key
order, then stock rows.
"""
import logging
from collections import OrderedDict
from decimal import InvalidOperation

from django.db import transaction
from django.db.models import Count, Q, Sum
from django.utils import timezone

from backend.bales.models import BaleBatch, BaleItem
from backend.core.exceptions import ValidationError, NotFound, InsufficientStock
from backend.core.reversal import Reversal, ReversalDelta
from backend.core.utils import to_kg, to_money, next_code, create_audit_log, ZERO
from backend.inventory.services import lock_finished_stocks, debit_finished, credit_finished
from backend.masters.models import FinishedProduct
from backend.parties.models import Customer
from .models import SalesInvoice, InvoiceItem, Receipt, ReceiptAllocation, ProductSample

logger = logging.getLogger(__name__)


def _amount(value, label):
    try:
        return to_money(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{label} must be a number", value=str(value))


def _acting_user(request):
    user = getattr(request, 'user', None)
    return user if user is not None and user.is_authenticated else None


def _lock_customer(customer_id):
    customer = Customer.objects.select_for_update().filter(pk=customer_id).first()
    if customer is None:
        raise NotFound(f"Customer {customer_id} not found", customer_id=customer_id)
    return customer


def _lock_invoice(invoice_id):
    """Lock an invoice's customer, then the invoice itself"""
    customer_id = SalesInvoice.objects.filter(pk=invoice_id).values_list('customer_id', flat=True).first()
    if customer_id is None:
        raise NotFound(f"Invoice {invoice_id} not found", invoice_id=invoice_id)
    customer = _lock_customer(customer_id)
    invoice = SalesInvoice.objects.select_for_update().get(pk=invoice_id)
    return customer, invoice


# ---------------------------------------------------------------------------
# Invoices
# ---------------------------------------------------------------------------

def _prepare_lines(lines):
    if not lines:
        raise ValidationError("At least one invoice line is required")

    bale_ids = [line['bale_item_id'] for line in lines if line.get('bale_item_id')]
    if len(bale_ids) != len(set(bale_ids)):
        raise ValidationError("The same bale appears on more than one line")
    bales = {b.id: b for b in BaleItem.objects.select_related('finished_product').filter(pk__in=bale_ids)}
    product_ids = [line['product_id'] for line in lines if line.get('product_id')]
    products = {p.id: p for p in FinishedProduct.objects.filter(pk__in=product_ids)}

    prepared = []
    for index, line in enumerate(lines, start=1):
        bale = None
        if line.get('bale_item_id'):
            bale = bales.get(line['bale_item_id'])
            if bale is None:
                raise NotFound(f"Bale {line['bale_item_id']} not found", line=index)
            if line.get('product_id') and line['product_id'] != bale.finished_product_id:
                raise ValidationError(f"Bale {bale.code} is not {line['product_id']}", line=index, bale=bale.code)
            product = bale.finished_product
            quantity = bale.net_weight
        else:
            product = products.get(line.get('product_id'))
            if product is None:
                raise NotFound(f"Finished product {line.get('product_id')} not found", line=index)
            try:
                quantity = to_kg(line.get('quantity'))
            except (InvalidOperation, TypeError, ValueError):
                raise ValidationError("Quantity must be a number", line=index)
            if quantity <= 0:
                raise ValidationError("Quantity must be greater than 0", line=index)

        rate = _amount(line.get('rate'), 'Rate')
        if rate < 0:
            raise ValidationError("Rate cannot be negative", line=index)
        gst_percent = line.get('gst_percent')
        gst_percent = product.gst_percent if gst_percent is None else _amount(gst_percent, 'GST %')
        amount = to_money(quantity * rate)
        tax_amount = to_money(amount * gst_percent / 100)
        prepared.append(InvoiceItem(
            finished_product=product,
            bale_item=bale,
            quantity=quantity,
            rate=rate,
            gst_percent=gst_percent,
            amount=amount,
            tax_amount=tax_amount,
            line_total=amount + tax_amount,
        ))
    return prepared


def create_invoice(customer_id, invoice_date, lines, notes='', confirm=False, request=None):
    """Draft an invoice; with confirm=True it is confirmed in the same transaction.

    ``lines`` is a list of ``{'product_id', 'quantity', 'rate', 'gst_percent'?}``
    or ``{'bale_item_id', 'rate'}``. A bale line always sells the bale's
    net weight. GST defaults to the product's rate.
    """
    customer = Customer.objects.filter(pk=customer_id).first()
    if customer is None:
        raise NotFound(f"Customer {customer_id} not found", customer_id=customer_id)
    items = _prepare_lines(lines)

    with transaction.atomic():
        subtotal = sum((i.amount for i in items), ZERO)
        tax_amount = sum((i.tax_amount for i in items), ZERO)
        invoice = SalesInvoice.objects.create(
            invoice_number=next_code(SalesInvoice, 'INV', width=4, field='invoice_number'),
            customer=customer,
            invoice_date=invoice_date or timezone.localdate(),
            subtotal=subtotal,
            tax_amount=tax_amount,
            grand_total=subtotal + tax_amount,
            notes=notes or '',
            created_by=_acting_user(request),
        )
        for item in items:
            item.invoice = invoice
        InvoiceItem.objects.bulk_create(items)

        create_audit_log(
            request=request,
            action='create',
            model_name='SalesInvoice',
            object_id=str(invoice.id),
            object_name=invoice.invoice_number,
            object_reference=invoice.invoice_number,
            changes={'customer': customer.name, 'lines': len(items), 'grand_total': invoice.grand_total},
        )

        if confirm:
            invoice = confirm_invoice(invoice.id, request=request)

    logger.info(f"Invoice {invoice.invoice_number} created for {customer.name}: {invoice.grand_total}")
    return invoice


def confirm_invoice(invoice_id, request=None):
    """Take a draft invoice's goods out of stock and raise the customer's outstanding.

    Every line is checked before anything moves: bale lines need an
    Available bale, plain lines need enough finished stock per product.
    """
    user = _acting_user(request)
    with transaction.atomic():
        customer, invoice = _lock_invoice(invoice_id)
        if invoice.status != 'draft':
            raise ValidationError(f"Invoice {invoice.invoice_number} is {invoice.status}, only drafts can be confirmed",
                                  invoice=invoice.invoice_number, status=invoice.status)

        items = list(invoice.items.select_related('finished_product').order_by('id'))
        bale_ids = sorted(i.bale_item_id for i in items if i.bale_item_id)
        bales = {b.id: b for b in BaleItem.objects.select_for_update().filter(pk__in=bale_ids).order_by('id')}
        for bale_id in bale_ids:
            bale = bales[bale_id]
            if bale.status != 'available':
                raise ValidationError(f"Bale {bale.code} is already {bale.status}", bale=bale.code, status=bale.status)

        required = OrderedDict()
        for item in items:
            if not item.bale_item_id:
                required[item.finished_product_id] = required.get(item.finished_product_id, ZERO) + item.quantity
        stocks = lock_finished_stocks(required)
        shortages = [
            {'product': stocks[pid].product.code, 'requested': qty, 'available': stocks[pid].stock_quantity}
            for pid, qty in required.items() if qty > stocks[pid].stock_quantity
        ]
        if shortages:
            first = shortages[0]
            logger.warning(f"Invoice {invoice.invoice_number} not confirmed: {len(shortages)} product(s) short of stock")
            raise InsufficientStock(
                f"Insufficient stock for {first['product']}: {first['available']} kg available, "
                f"{first['requested']} kg requested",
                invoice=invoice.invoice_number, shortages=shortages,
            )

        for bale_id in bale_ids:
            bale = bales[bale_id]
            bale.status = 'issued'
            bale.save(update_fields=['status', 'updated_at'])
        for pid in sorted(required):
            debit_finished(pid, required[pid], 'sales_invoice', invoice.invoice_number, invoice.id,
                           reason=f"Sold to {customer.name}", user=user)

        invoice.status = 'confirmed'
        invoice.confirmed_at = timezone.now()
        invoice.save(update_fields=['status', 'confirmed_at', 'updated_at'])
        customer.outstanding_balance = customer.outstanding_balance + invoice.grand_total
        customer.save(update_fields=['outstanding_balance', 'updated_at'])

        create_audit_log(
            request=request,
            action='invoice_confirm',
            model_name='SalesInvoice',
            object_id=str(invoice.id),
            object_name=invoice.invoice_number,
            object_reference=invoice.invoice_number,
            changes={
                'grand_total': invoice.grand_total,
                'bales_issued': [bales[b].code for b in bale_ids],
                'stock_debited': [{'product_id': pid, 'quantity': qty} for pid, qty in required.items()],
            },
        )

    logger.info(f"Invoice {invoice.invoice_number} confirmed: {len(bale_ids)} bales issued, "
                f"{len(required)} product(s) debited")
    return invoice


def delete_draft_invoice(invoice_id, request=None):
    with transaction.atomic():
        _, invoice = _lock_invoice(invoice_id)
        if invoice.status != 'draft':
            raise ValidationError(f"Invoice {invoice.invoice_number} is {invoice.status}; cancel it instead",
                                  invoice=invoice.invoice_number, status=invoice.status)
        number = invoice.invoice_number
        invoice.delete()
        create_audit_log(
            request=request,
            action='delete',
            model_name='SalesInvoice',
            object_id=str(invoice_id),
            object_name=number,
            object_reference=number,
        )
    return number


class InvoiceCancellation(Reversal):
    """Cancel a confirmed, unpaid invoice: stock and bales come back, outstanding goes down"""
    entity_type = 'SalesInvoice'
    audit_action = 'invoice_cancel'

    def __init__(self, invoice_id, reason, request=None, user=None):
        super().__init__(request=request, user=user)
        self.invoice_id = invoice_id
        self.reason = (reason or '').strip()
        self.invoice = None
        self.customer = None

    def entity_id(self):
        return self.invoice_id

    def reference(self):
        return self.invoice.invoice_number if self.invoice else None

    def lock(self):
        if not self.reason:
            raise ValidationError("A reason is required to cancel an invoice")
        self.customer, self.invoice = _lock_invoice(self.invoice_id)
        if self.invoice.status != 'confirmed':
            raise ValidationError(f"Invoice {self.invoice.invoice_number} is {self.invoice.status}, "
                                  f"only confirmed invoices can be cancelled",
                                  invoice=self.invoice.invoice_number, status=self.invoice.status)
        if self.invoice.amount_paid > 0:
            raise ValidationError(f"Invoice {self.invoice.invoice_number} has receipts allocated; reverse them first",
                                  invoice=self.invoice.invoice_number, amount_paid=self.invoice.amount_paid)

    def locate(self):
        return list(self.invoice.items.select_related('bale_item').order_by('finished_product_id', 'id'))

    def invert(self, item):
        if item.bale_item_id:
            bale = BaleItem.objects.select_for_update().get(pk=item.bale_item_id)
            batch = BaleBatch.objects.select_for_update().get(pk=bale.batch_id)
            if batch.status != 'deleted':
                bale.status = 'available'
                bale.save(update_fields=['status', 'updated_at'])
                return ReversalDelta('BaleItem', bale.id, bale.code, status='available', quantity=bale.net_weight)

            # The batch is gone; the bale is broken up and its weight goes back to loose stock
            bale.status = 'deleted'
            bale.save(update_fields=['status', 'updated_at'])
            batch.recalculate_total()
            batch.save(update_fields=['total_weight', 'updated_at'])
            balance = credit_finished(bale.finished_product_id, bale.net_weight, 'sales_invoice',
                                      self.invoice.invoice_number, self.invoice.id,
                                      reason=f"Invoice {self.invoice.invoice_number} cancelled: bale {bale.code} "
                                             f"of deleted batch {batch.code} returned to stock",
                                      user=self.acting_user)
            return ReversalDelta('BaleItem', bale.id, bale.code, status='deleted',
                                 quantity_restored=bale.net_weight, new_stock_balance=balance)
        balance = credit_finished(item.finished_product_id, item.quantity, 'sales_invoice',
                                  self.invoice.invoice_number, self.invoice.id,
                                  reason=f"Invoice {self.invoice.invoice_number} cancelled: {self.reason}",
                                  user=self.acting_user)
        return ReversalDelta('FinishedProduct', item.finished_product_id, self.invoice.invoice_number,
                             quantity_restored=item.quantity, new_stock_balance=balance)

    def finish(self, deltas):
        self.invoice.status = 'cancelled'
        self.invoice.cancellation_reason = self.reason
        self.invoice.cancelled_at = timezone.now()
        self.invoice.save(update_fields=['status', 'cancellation_reason', 'cancelled_at', 'updated_at'])
        self.customer.outstanding_balance = self.customer.outstanding_balance - self.invoice.grand_total
        self.customer.save(update_fields=['outstanding_balance', 'updated_at'])
        return {
            'reason': self.reason,
            'customer_outstanding': self.customer.outstanding_balance,
        }


def cancel_invoice(invoice_id, reason, request=None):
    return InvoiceCancellation(invoice_id, reason, request=request).run()


# ---------------------------------------------------------------------------
# Receipts
# ---------------------------------------------------------------------------

def create_receipt(customer_id, amount, allocations=None, mode='cash', receipt_date=None,
                   reference='', remarks='', request=None):
    """Record money received and settle invoices with it.

    ``allocations`` is a list of ``{'invoice_id', 'amount'}``; each must fit
    the invoice's balance and together they may not exceed ``amount``. Any
    remainder is held as the receipt's advance balance.
    """
    amount = _amount(amount, 'Amount')
    if amount <= 0:
        raise ValidationError("Receipt amount must be greater than 0", amount=amount)

    wanted = OrderedDict()
    for line in allocations or []:
        invoice_id = line.get('invoice_id')
        if invoice_id in wanted:
            raise ValidationError("An invoice appears more than once in the allocations", invoice_id=invoice_id)
        share = _amount(line.get('amount'), 'Allocation amount')
        if share <= 0:
            raise ValidationError("Allocation amount must be greater than 0", invoice_id=invoice_id)
        wanted[invoice_id] = share
    allocated = sum(wanted.values(), ZERO)
    if allocated > amount:
        raise ValidationError(f"Allocations total {allocated} exceeds the receipt amount {amount}",
                              allocated=allocated, amount=amount)

    with transaction.atomic():
        customer = _lock_customer(customer_id)
        invoices = {
            inv.id: inv for inv in
            SalesInvoice.objects.select_for_update().filter(pk__in=list(wanted)).order_by('id')
        }
        for invoice_id, share in wanted.items():
            invoice = invoices.get(invoice_id)
            if invoice is None:
                raise NotFound(f"Invoice {invoice_id} not found", invoice_id=invoice_id)
            if invoice.customer_id != customer.id:
                raise ValidationError(f"Invoice {invoice.invoice_number} belongs to another customer",
                                      invoice=invoice.invoice_number)
            if invoice.status != 'confirmed':
                raise ValidationError(f"Invoice {invoice.invoice_number} is {invoice.status}",
                                      invoice=invoice.invoice_number, status=invoice.status)
            if share > invoice.balance_due:
                raise ValidationError(
                    f"Allocation {share} exceeds the balance {invoice.balance_due} of {invoice.invoice_number}",
                    invoice=invoice.invoice_number, requested=share, balance=invoice.balance_due,
                )

        receipt = Receipt.objects.create(
            code=next_code(Receipt, 'RCPT', width=4),
            customer=customer,
            receipt_date=receipt_date or timezone.localdate(),
            amount=amount,
            mode=mode or 'cash',
            reference=reference or '',
            remarks=remarks or '',
            advance_balance=amount - allocated,
            created_by=_acting_user(request),
        )
        for invoice_id, share in wanted.items():
            invoice = invoices[invoice_id]
            ReceiptAllocation.objects.create(receipt=receipt, invoice=invoice, amount=share)
            invoice.amount_paid = invoice.amount_paid + share
            invoice.refresh_payment_status()
            invoice.save(update_fields=['amount_paid', 'payment_status', 'updated_at'])

        customer.outstanding_balance = customer.outstanding_balance - amount
        customer.save(update_fields=['outstanding_balance', 'updated_at'])

        create_audit_log(
            request=request,
            action='receipt_create',
            model_name='Receipt',
            object_id=str(receipt.id),
            object_name=receipt.code,
            object_reference=receipt.code,
            changes={
                'customer': customer.name,
                'amount': amount,
                'allocations': [{'invoice': invoices[i].invoice_number, 'amount': a} for i, a in wanted.items()],
                'advance_balance': receipt.advance_balance,
            },
        )

    logger.info(f"Receipt {receipt.code} from {customer.name}: {amount} ({allocated} allocated)")
    return receipt


class ReceiptReversal(Reversal):
    """Undo a receipt: every invoice it settled is reopened by exactly its allocation"""
    entity_type = 'Receipt'
    audit_action = 'receipt_reverse'

    def __init__(self, receipt_id, reason, request=None, user=None):
        super().__init__(request=request, user=user)
        self.receipt_id = receipt_id
        self.reason = (reason or '').strip()
        self.receipt = None
        self.customer = None

    def entity_id(self):
        return self.receipt_id

    def reference(self):
        return self.receipt.code if self.receipt else None

    def lock(self):
        if not self.reason:
            raise ValidationError("A reason is required to reverse a receipt")
        customer_id = Receipt.objects.filter(pk=self.receipt_id).values_list('customer_id', flat=True).first()
        if customer_id is None:
            raise NotFound(f"Receipt {self.receipt_id} not found", receipt_id=self.receipt_id)
        self.customer = _lock_customer(customer_id)
        self.receipt = Receipt.objects.select_for_update().get(pk=self.receipt_id)
        if self.receipt.status == 'reversed':
            raise ValidationError(f"Receipt {self.receipt.code} is already reversed", receipt=self.receipt.code)

    def locate(self):
        return list(self.receipt.allocations.order_by('invoice_id'))

    def invert(self, allocation):
        invoice = SalesInvoice.objects.select_for_update().get(pk=allocation.invoice_id)
        invoice.amount_paid = invoice.amount_paid - allocation.amount
        invoice.refresh_payment_status()
        invoice.save(update_fields=['amount_paid', 'payment_status', 'updated_at'])
        return ReversalDelta('SalesInvoice', invoice.id, invoice.invoice_number,
                             amount_reopened=allocation.amount, balance_due=invoice.balance_due,
                             payment_status=invoice.payment_status)

    def finish(self, deltas):
        self.receipt.status = 'reversed'
        self.receipt.reversal_reason = self.reason
        self.receipt.reversed_at = timezone.now()
        self.receipt.advance_balance = ZERO
        self.receipt.save(update_fields=['status', 'reversal_reason', 'reversed_at', 'advance_balance', 'updated_at'])
        self.customer.outstanding_balance = self.customer.outstanding_balance + self.receipt.amount
        self.customer.save(update_fields=['outstanding_balance', 'updated_at'])
        return {
            'reason': self.reason,
            'amount': self.receipt.amount,
            'reopened_amount': sum((d.changes['amount_reopened'] for d in deltas), ZERO),
            'customer_outstanding': self.customer.outstanding_balance,
        }


def reverse_receipt(receipt_id, reason, request=None):
    return ReceiptReversal(receipt_id, reason, request=request).run()


# ---------------------------------------------------------------------------
# Product samples
# ---------------------------------------------------------------------------

def _sample_fields(customer_id, finished_product_id, quantity):
    quantity = to_kg(quantity)
    if quantity <= 0:
        raise ValidationError("Sample quantity must be greater than 0", quantity=quantity)
    product = FinishedProduct.objects.filter(pk=finished_product_id).first()
    if product is None:
        raise NotFound(f"Product {finished_product_id} not found", product_id=finished_product_id)
    customer = None
    if customer_id:
        customer = Customer.objects.filter(pk=customer_id).first()
        if customer is None:
            raise NotFound(f"Customer {customer_id} not found", customer_id=customer_id)
    return customer, product, quantity


def create_sample(finished_product_id, quantity, customer_id=None, sample_date=None, purpose='', notes='',
                  batch_code='', request=None):
    """Issue a sample out of finished stock; refused if the stock cannot cover it"""
    customer, product, quantity = _sample_fields(customer_id, finished_product_id, quantity)
    user = _acting_user(request)
    with transaction.atomic():
        sample = ProductSample.objects.create(
            code=next_code(ProductSample, 'SMP'),
            customer=customer,
            finished_product=product,
            quantity=quantity,
            sample_date=sample_date or timezone.localdate(),
            purpose=purpose or '',
            notes=notes or '',
            batch_code=batch_code or '',
            created_by=user,
        )
        debit_finished(product.id, quantity, 'sample', sample.code, sample.id,
                       reason=f"Sample to {customer.name if customer else 'general'}: {purpose or 'not specified'}",
                       user=user)
        create_audit_log(
            request=request,
            action='sample_create',
            model_name='ProductSample',
            object_id=str(sample.id),
            object_name=product.name,
            object_reference=sample.code,
            changes={'product': product.code, 'quantity': quantity,
                     'customer': customer.name if customer else None},
        )
    return sample


def update_sample(sample_id, finished_product_id, quantity, customer_id=None, sample_date=None, purpose='',
                  notes='', batch_code='', request=None):
    """Edit a sample; a changed product or quantity moves stock by the difference"""
    customer, product, quantity = _sample_fields(customer_id, finished_product_id, quantity)
    user = _acting_user(request)
    with transaction.atomic():
        sample = ProductSample.objects.select_for_update().filter(pk=sample_id).first()
        if sample is None:
            raise NotFound(f"Sample {sample_id} not found", sample_id=sample_id)
        old_product_id, old_quantity = sample.finished_product_id, sample.quantity

        if old_product_id != product.id or old_quantity != quantity:
            lock_finished_stocks([old_product_id, product.id])
            credit_finished(old_product_id, old_quantity, 'sample', sample.code, sample.id,
                            reason=f"Sample {sample.code} edited: {old_quantity} kg returned", user=user)
            debit_finished(product.id, quantity, 'sample', sample.code, sample.id,
                           reason=f"Sample {sample.code} edited: {quantity} kg issued", user=user)

        sample.customer = customer
        sample.finished_product = product
        sample.quantity = quantity
        sample.sample_date = sample_date or sample.sample_date
        sample.purpose = purpose or ''
        sample.notes = notes or ''
        sample.batch_code = batch_code or ''
        sample.save()

        create_audit_log(
            request=request,
            action='sample_update',
            model_name='ProductSample',
            object_id=str(sample.id),
            object_name=product.name,
            object_reference=sample.code,
            changes={
                'product': {'old': old_product_id, 'new': product.id},
                'quantity': {'old': old_quantity, 'new': quantity},
            },
        )
    return sample


class SampleDeletion(Reversal):
    """Delete a sample and put its quantity back into finished stock"""
    entity_type = 'ProductSample'
    audit_action = 'sample_delete'

    def __init__(self, sample_id, request=None, user=None):
        super().__init__(request=request, user=user)
        self.sample_id = sample_id
        self.sample = None
        self.code = None

    def entity_id(self):
        return self.sample_id

    def reference(self):
        return self.code

    def lock(self):
        self.sample = ProductSample.objects.select_for_update().select_related('finished_product').filter(
            pk=self.sample_id).first()
        if self.sample is None:
            raise NotFound(f"Sample {self.sample_id} not found", sample_id=self.sample_id)
        self.code = self.sample.code

    def locate(self):
        return [self.sample]

    def invert(self, sample):
        balance = credit_finished(sample.finished_product_id, sample.quantity, 'sample', sample.code, sample.id,
                                  reason=f"Sample {sample.code} deleted", user=_acting_user(self.request))
        return ReversalDelta('FinishedProduct', sample.finished_product_id, sample.finished_product.code,
                             quantity_restored=sample.quantity, new_stock_balance=balance)

    def finish(self, deltas):
        quantity = self.sample.quantity
        self.sample.delete()
        return {'quantity_restored': quantity}


def delete_sample(sample_id, request=None):
    return SampleDeletion(sample_id, request=request).run()


# ---------------------------------------------------------------------------
# Read side
# ---------------------------------------------------------------------------

def outstanding_invoices(customer_id):
    """Confirmed invoices with money still due, oldest first"""
    return (
        SalesInvoice.objects.filter(customer_id=customer_id, status='confirmed')
        .exclude(payment_status='paid')
        .order_by('invoice_date', 'id')
    )


def sales_summary():
    totals = SalesInvoice.objects.filter(status='confirmed').aggregate(
        total_sales=Sum('grand_total'),
        collected=Sum('amount_paid'),
        tax_collected=Sum('tax_amount'),
        invoice_count=Count('id'),
        paid_count=Count('id', filter=Q(payment_status='paid')),
        unpaid_count=Count('id', filter=Q(payment_status='unpaid')),
    )
    total_sales = to_money(totals['total_sales'] or ZERO)
    collected = to_money(totals['collected'] or ZERO)
    advance_held = Receipt.objects.filter(status='completed').aggregate(total=Sum('advance_balance'))['total']
    return {
        'total_sales': str(total_sales),
        'collected': str(collected),
        'receivables': str(to_money(total_sales - collected)),
        'tax_collected': str(to_money(totals['tax_collected'] or ZERO)),
        'invoice_count': totals['invoice_count'],
        'paid_count': totals['paid_count'],
        'unpaid_count': totals['unpaid_count'],
        'advance_held': str(to_money(advance_held or ZERO)),
    }

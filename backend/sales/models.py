from django.db import models
from decimal import Decimal
from backend.masters.models import FinishedProduct
from backend.parties.models import Customer
from backend.bales.models import BaleItem
from backend.core.models import User


class SalesInvoice(models.Model):
    """Sales invoice; confirming it takes the goods out of finished stock"""
    STATUS_CHOICES = [
        ('draft', 'Draft'),
        ('confirmed', 'Confirmed'),
        ('cancelled', 'Cancelled'),
    ]

    PAYMENT_STATUS_CHOICES = [
        ('unpaid', 'Unpaid'),
        ('partial', 'Partially Paid'),
        ('paid', 'Paid'),
    ]

    invoice_number = models.CharField(max_length=50, unique=True)
    customer = models.ForeignKey(Customer, on_delete=models.PROTECT, related_name='invoices')
    invoice_date = models.DateField()
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='draft')
    subtotal = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    tax_amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    grand_total = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    amount_paid = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    payment_status = models.CharField(max_length=20, choices=PAYMENT_STATUS_CHOICES, default='unpaid')
    notes = models.TextField(blank=True)
    cancellation_reason = models.TextField(blank=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='sales_invoices')
    confirmed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.invoice_number

    @property
    def balance_due(self):
        return self.grand_total - self.amount_paid

    def refresh_payment_status(self):
        if self.amount_paid <= 0:
            self.payment_status = 'unpaid'
        elif self.amount_paid >= self.grand_total:
            self.payment_status = 'paid'
        else:
            self.payment_status = 'partial'

    class Meta:
        db_table = 'sales_invoices'
        ordering = ['-invoice_date', '-id']
        indexes = [
            models.Index(fields=['customer', 'status'], name='idx_invoice_customer_status'),
            models.Index(fields=['payment_status'], name='idx_invoice_payment_status'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount_paid__gte=0) & models.Q(amount_paid__lte=models.F('grand_total')),
                name='invoice_paid_within_total',
            ),
        ]


class InvoiceItem(models.Model):
    """Invoice line; a bale line sells that bale's whole net weight"""
    invoice = models.ForeignKey(SalesInvoice, on_delete=models.CASCADE, related_name='items')
    finished_product = models.ForeignKey(FinishedProduct, on_delete=models.PROTECT, related_name='invoice_items')
    bale_item = models.ForeignKey(BaleItem, on_delete=models.PROTECT, null=True, blank=True, related_name='invoice_items')
    quantity = models.DecimalField(max_digits=12, decimal_places=2)
    rate = models.DecimalField(max_digits=12, decimal_places=2)
    gst_percent = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal('0.00'))
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    tax_amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    line_total = models.DecimalField(max_digits=14, decimal_places=2)

    def __str__(self):
        return f"{self.invoice.invoice_number}: {self.finished_product.code} x {self.quantity}"

    class Meta:
        db_table = 'sales_invoice_items'
        ordering = ['id']


class Receipt(models.Model):
    """Money received from a customer, allocated against open invoices"""
    MODE_CHOICES = [
        ('cash', 'Cash'),
        ('bank', 'Bank'),
        ('cheque', 'Cheque'),
        ('upi', 'UPI'),
    ]

    STATUS_CHOICES = [
        ('completed', 'Completed'),
        ('reversed', 'Reversed'),
    ]

    code = models.CharField(max_length=50, unique=True)
    customer = models.ForeignKey(Customer, on_delete=models.PROTECT, related_name='receipts')
    receipt_date = models.DateField()
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    mode = models.CharField(max_length=20, choices=MODE_CHOICES, default='cash')
    reference = models.CharField(max_length=100, blank=True)  # Cheque / UTR number
    remarks = models.TextField(blank=True)
    # Unallocated remainder held on account for the customer
    advance_balance = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='completed')
    reversal_reason = models.TextField(blank=True)
    reversed_at = models.DateTimeField(null=True, blank=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='receipts')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.code

    class Meta:
        db_table = 'receipts'
        ordering = ['-receipt_date', '-id']
        indexes = [
            models.Index(fields=['customer', 'status'], name='idx_receipt_customer_status'),
        ]


class ReceiptAllocation(models.Model):
    receipt = models.ForeignKey(Receipt, on_delete=models.CASCADE, related_name='allocations')
    invoice = models.ForeignKey(SalesInvoice, on_delete=models.PROTECT, related_name='allocations')
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.receipt.code} -> {self.invoice.invoice_number}: {self.amount}"

    class Meta:
        db_table = 'receipt_allocations'
        ordering = ['id']
        unique_together = [['receipt', 'invoice']]


class ProductSample(models.Model):
    """Finished goods handed out as a sample; the quantity leaves stock like a sale"""
    code = models.CharField(max_length=50, unique=True)
    customer = models.ForeignKey(Customer, on_delete=models.PROTECT, null=True, blank=True, related_name='samples')
    finished_product = models.ForeignKey(FinishedProduct, on_delete=models.PROTECT, related_name='samples')
    quantity = models.DecimalField(max_digits=12, decimal_places=2)
    sample_date = models.DateField()
    purpose = models.CharField(max_length=255, blank=True)
    notes = models.TextField(blank=True)
    batch_code = models.CharField(max_length=100, blank=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='product_samples')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.code} - {self.finished_product.code} {self.quantity}"

    class Meta:
        db_table = 'product_samples'
        ordering = ['-sample_date', '-id']
        constraints = [
            models.CheckConstraint(condition=models.Q(quantity__gt=0), name='sample_quantity_positive'),
        ]

from django.db import models
from decimal import Decimal
from backend.masters.models import RawMaterial
from backend.parties.models import Supplier
from backend.core.models import User


class PurchaseBill(models.Model):
    """Supplier bill; confirming it takes the rolls into stock"""
    STATUS_CHOICES = [
        ('draft', 'Draft'),
        ('confirmed', 'Confirmed'),
    ]

    PAYMENT_STATUS_CHOICES = [
        ('unpaid', 'Unpaid'),
        ('partial', 'Partially Paid'),
        ('paid', 'Paid'),
    ]

    code = models.CharField(max_length=50, unique=True)
    supplier = models.ForeignKey(Supplier, on_delete=models.PROTECT, related_name='purchase_bills')
    bill_number = models.CharField(max_length=100, blank=True)  # Supplier's own bill number
    bill_date = models.DateField()
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='draft')
    grand_total = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    amount_paid = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    payment_status = models.CharField(max_length=20, choices=PAYMENT_STATUS_CHOICES, default='unpaid')
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='purchase_bills')
    confirmed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.code

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

    def get_subtotal(self):
        """Sum of quantity x rate over all items"""
        return sum((item.get_line_total() for item in self.items.all()), Decimal('0.00'))

    def get_tax_total(self):
        return sum((item.get_tax_amount() for item in self.items.all()), Decimal('0.00'))

    def get_total(self):
        return self.get_subtotal() + self.get_tax_total()

    def get_roll_weight(self):
        """Weight actually on the bill's rolls, after any corrections"""
        total = self.rolls.aggregate(total=models.Sum('total_quantity'))['total']
        return total or Decimal('0.00')

    class Meta:
        db_table = 'purchase_bills'
        ordering = ['-bill_date', '-created_at']
        indexes = [
            models.Index(fields=['status'], name='idx_bill_status'),
            models.Index(fields=['supplier', 'status'], name='idx_bill_supplier_status'),
        ]


class PurchaseBillItem(models.Model):
    """Bill line; roll_details lists the physical rolls received for it"""
    bill = models.ForeignKey(PurchaseBill, on_delete=models.CASCADE, related_name='items')
    raw_material = models.ForeignKey(RawMaterial, on_delete=models.PROTECT, related_name='purchase_items')
    quantity = models.DecimalField(max_digits=12, decimal_places=2)
    rate = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    # [{"gross_weight", "pipe_weight", "gsm", "width", "shade"}, ...]
    roll_details = models.JSONField(default=list, blank=True)

    def get_line_total(self):
        return (self.quantity * self.rate).quantize(Decimal('0.01'))

    def get_tax_amount(self):
        return (self.get_line_total() * self.raw_material.gst_percent / 100).quantize(Decimal('0.01'))

    class Meta:
        db_table = 'purchase_bill_items'
        ordering = ['id']


class SupplierPayment(models.Model):
    """Money paid to a supplier, allocated against confirmed bills"""
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
    supplier = models.ForeignKey(Supplier, on_delete=models.PROTECT, related_name='payments')
    payment_date = models.DateField()
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    mode = models.CharField(max_length=20, choices=MODE_CHOICES, default='bank')
    reference = models.CharField(max_length=100, blank=True)  # Cheque / UTR number
    remarks = models.TextField(blank=True)
    advance_balance = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='completed')
    reversal_reason = models.TextField(blank=True)
    reversed_at = models.DateTimeField(null=True, blank=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='supplier_payments')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.code} - {self.supplier.name}"

    class Meta:
        db_table = 'supplier_payments'
        ordering = ['-payment_date', '-id']
        indexes = [
            models.Index(fields=['supplier', 'status'], name='idx_payment_supplier_status'),
        ]


class BillPaymentAllocation(models.Model):
    payment = models.ForeignKey(SupplierPayment, on_delete=models.CASCADE, related_name='allocations')
    bill = models.ForeignKey(PurchaseBill, on_delete=models.PROTECT, related_name='payment_allocations')
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.payment.code} -> {self.bill.code}: {self.amount}"

    class Meta:
        db_table = 'bill_payment_allocations'
        ordering = ['id']
        unique_together = [['payment', 'bill']]

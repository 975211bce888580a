from django.db import models
from django.utils import timezone
from decimal import Decimal
from backend.masters.models import RawMaterial, FinishedProduct
from backend.core.models import User


class RawMaterialRoll(models.Model):
    """One physical roll/lot of raw material, consumed oldest-first"""
    STATUS_CHOICES = [
        ('in_stock', 'In Stock'),
        ('reserved', 'Reserved'),
        ('consumed', 'Consumed'),
    ]

    raw_material = models.ForeignKey(RawMaterial, on_delete=models.PROTECT, related_name='rolls')
    purchase_bill = models.ForeignKey('purchasing.PurchaseBill', on_delete=models.SET_NULL, null=True, blank=True, related_name='rolls')
    roll_code = models.CharField(max_length=100, unique=True)
    total_quantity = models.DecimalField(max_digits=12, decimal_places=2)
    consumed_quantity = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='in_stock')
    # Survives full consumption so a restored roll comes back Reserved
    is_reserved = models.BooleanField(default=False)
    gross_weight = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    pipe_weight = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    gsm = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    width = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    shade = models.CharField(max_length=100, blank=True)
    # FIFO order key; settable so imported rolls keep their original intake time
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.roll_code

    @property
    def remaining_quantity(self):
        return self.total_quantity - self.consumed_quantity

    def sync_status(self):
        """Consumed iff fully used; a restored roll goes back to its reservation state"""
        if self.consumed_quantity >= self.total_quantity:
            self.status = 'consumed'
        elif self.status == 'consumed':
            self.status = 'reserved' if self.is_reserved else 'in_stock'

    class Meta:
        db_table = 'raw_material_rolls'
        ordering = ['created_at', 'id']
        indexes = [
            models.Index(fields=['raw_material', 'status'], name='idx_roll_material_status'),
            models.Index(fields=['created_at', 'id'], name='idx_roll_fifo'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(consumed_quantity__gte=0) & models.Q(consumed_quantity__lte=models.F('total_quantity')),
                name='roll_consumed_within_total',
            ),
        ]


class FinishedProductStock(models.Model):
    """Cached finished-goods balance; only changed together with a StockMovement row"""
    product = models.OneToOneField(FinishedProduct, on_delete=models.CASCADE, related_name='stock')
    stock_quantity = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.product.code}: {self.stock_quantity}"

    @property
    def is_low_stock(self):
        return self.stock_quantity <= self.product.reorder_level

    class Meta:
        db_table = 'finished_product_stock'
        constraints = [
            models.CheckConstraint(condition=models.Q(stock_quantity__gte=0), name='fg_stock_non_negative'),
        ]


class StockMovement(models.Model):
    """Append-only stock ledger for raw material and finished goods"""
    MOVEMENT_TYPE_CHOICES = [
        ('raw_in', 'Raw Material In'),
        ('raw_out', 'Raw Material Out'),
        ('fg_in', 'Finished Goods In'),
        ('fg_out', 'Finished Goods Out'),
    ]

    ITEM_TYPE_CHOICES = [
        ('raw', 'Raw Material'),
        ('finished', 'Finished Product'),
    ]

    REFERENCE_TYPE_CHOICES = [
        ('purchase_bill', 'Purchase Bill'),
        ('roll_adjustment', 'Roll Weight Correction'),
        ('roll_delete', 'Roll Deleted'),
        ('production_batch', 'Production Batch'),
        ('production_return', 'Return To Production'),
        ('bale_batch', 'Bale Batch'),
        ('bale_item', 'Bale Item'),
        ('sales_invoice', 'Sales Invoice'),
        ('sample', 'Product Sample'),
        ('adjustment', 'Manual Adjustment'),
    ]

    movement_type = models.CharField(max_length=10, choices=MOVEMENT_TYPE_CHOICES)
    item_type = models.CharField(max_length=10, choices=ITEM_TYPE_CHOICES)
    raw_material = models.ForeignKey(RawMaterial, on_delete=models.PROTECT, null=True, blank=True, related_name='movements')
    roll = models.ForeignKey(RawMaterialRoll, on_delete=models.SET_NULL, null=True, blank=True, related_name='movements')
    finished_product = models.ForeignKey(FinishedProduct, on_delete=models.PROTECT, null=True, blank=True, related_name='movements')
    quantity_in = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    quantity_out = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    balance_after = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True, help_text='Item balance right after this movement')
    reference_type = models.CharField(max_length=30, choices=REFERENCE_TYPE_CHOICES)
    reference_id = models.PositiveBigIntegerField(null=True, blank=True)
    reference_code = models.CharField(max_length=100, blank=True)
    reason = models.TextField(blank=True)
    movement_date = models.DateField(default=timezone.localdate)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='stock_movements')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        qty = self.quantity_in or -self.quantity_out
        return f"{self.movement_type} {qty} ({self.reference_code})"

    class Meta:
        db_table = 'stock_movements'
        ordering = ['created_at', 'id']
        indexes = [
            models.Index(fields=['finished_product', 'created_at'], name='idx_mov_product_created'),
            models.Index(fields=['raw_material', 'created_at'], name='idx_mov_material_created'),
            models.Index(fields=['reference_type', 'reference_id'], name='idx_mov_reference'),
            models.Index(fields=['reference_code'], name='idx_mov_reference_code'),
        ]

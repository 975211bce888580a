from django.db import models
from decimal import Decimal
from backend.masters.models import FinishedProduct
from backend.core.models import User


class BaleBatch(models.Model):
    """A submission of bales; its items were debited from finished goods"""
    STATUS_CHOICES = [
        ('active', 'Active'),
        ('deleted', 'Deleted'),
    ]

    code = models.CharField(max_length=50, unique=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='active')
    total_weight = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    remarks = models.TextField(blank=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='bale_batches')
    deleted_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.code

    def recalculate_total(self):
        total = self.items.exclude(status='deleted').aggregate(total=models.Sum('net_weight'))['total']
        self.total_weight = total or Decimal('0.00')

    class Meta:
        db_table = 'bale_batches'
        ordering = ['-created_at', '-id']


class BaleItem(models.Model):
    """One sellable bale; net_weight is what left finished-goods stock"""
    STATUS_CHOICES = [
        ('available', 'Available'),
        ('issued', 'Issued'),
        ('deleted', 'Deleted'),
    ]

    batch = models.ForeignKey(BaleBatch, on_delete=models.CASCADE, related_name='items')
    code = models.CharField(max_length=50, unique=True)
    finished_product = models.ForeignKey(FinishedProduct, on_delete=models.PROTECT, related_name='bale_items')
    gsm = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    size = models.CharField(max_length=100, blank=True)
    shade = models.CharField(max_length=100, blank=True)
    gross_weight = models.DecimalField(max_digits=12, decimal_places=2)
    weight_loss_grams = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    net_weight = models.DecimalField(max_digits=12, decimal_places=2)
    piece_count = models.PositiveIntegerField(default=0)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='available')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.code

    class Meta:
        db_table = 'bale_items'
        ordering = ['id']
        indexes = [
            models.Index(fields=['finished_product', 'status'], name='idx_bale_product_status'),
        ]
        constraints = [
            models.CheckConstraint(condition=models.Q(net_weight__gt=0), name='bale_net_weight_positive'),
        ]

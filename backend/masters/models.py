from django.db import models
from decimal import Decimal


class RawMaterial(models.Model):
    """Raw material master (fabric, yarn, tape...) bought in rolls"""
    code = models.CharField(max_length=50, unique=True)
    name = models.CharField(max_length=200)
    color = models.CharField(max_length=100, blank=True)
    size = models.CharField(max_length=100, blank=True)
    unit = models.CharField(max_length=20, default='kg')
    hsn_code = models.CharField(max_length=20, blank=True)
    gst_percent = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal('0.00'))
    reorder_level = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.code} - {self.name}"

    class Meta:
        db_table = 'raw_materials'
        ordering = ['name']


class FinishedProduct(models.Model):
    """Finished product master; stock is kept in inventory.FinishedProductStock"""
    code = models.CharField(max_length=50, unique=True)
    name = models.CharField(max_length=200)
    length = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    width = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    gsm = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    hsn_code = models.CharField(max_length=20, blank=True)
    gst_percent = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal('0.00'))
    rate_per_kg = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    reorder_level = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.code} - {self.name}"

    class Meta:
        db_table = 'finished_products'
        ordering = ['name']


class Machine(models.Model):
    """Production machine; only active machines take new batches"""
    STATUS_CHOICES = [
        ('active', 'Active'),
        ('inactive', 'Inactive'),
    ]

    code = models.CharField(max_length=50, unique=True)
    name = models.CharField(max_length=200)
    machine_type = models.CharField(max_length=100, blank=True)
    capacity = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True, help_text='Rated capacity in kg per shift')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='active')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.code} - {self.name}"

    @property
    def is_active(self):
        return self.status == 'active'

    class Meta:
        db_table = 'machines'
        ordering = ['code']

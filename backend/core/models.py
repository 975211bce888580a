from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    """Extended user model with additional fields"""
    phone = models.CharField(max_length=20, blank=True, null=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'users'


class Setting(models.Model):
    """System settings (runtime policy parameters such as the production loss threshold)"""
    key = models.CharField(max_length=100, unique=True)
    value = models.TextField()
    description = models.TextField(blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.key

    class Meta:
        db_table = 'settings'


class AuditLog(models.Model):
    """Audit log for critical operations"""
    ACTION_CHOICES = [
        ('create', 'Create'),
        ('update', 'Update'),
        ('delete', 'Delete'),
        ('stock_adjust', 'Stock Adjustment'),
        ('roll_intake', 'Rolls Received (Purchase)'),
        ('production_allocate', 'Production Allocated'),
        ('production_complete', 'Production Completed'),
        ('production_quick_complete', 'Quick Production Entry'),
        ('production_delete', 'Production Batch Deleted'),
        ('return_to_production', 'Returned To Production'),
        ('bale_create', 'Bale Batch Created'),
        ('bale_update', 'Bale Item Updated'),
        ('bale_delete', 'Bale Deleted'),
        ('invoice_confirm', 'Invoice Confirmed'),
        ('invoice_cancel', 'Invoice Cancelled'),
        ('receipt_create', 'Receipt Created'),
        ('receipt_reverse', 'Receipt Reversed'),
        ('roll_update', 'Roll Corrected'),
        ('roll_delete', 'Roll Deleted'),
        ('payment_create', 'Supplier Payment Created'),
        ('payment_reverse', 'Supplier Payment Reversed'),
        ('sample_create', 'Sample Issued'),
        ('sample_update', 'Sample Updated'),
        ('sample_delete', 'Sample Deleted'),
    ]

    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='audit_logs')
    action = models.CharField(max_length=50, choices=ACTION_CHOICES)
    model_name = models.CharField(max_length=100)
    object_id = models.CharField(max_length=100)
    object_name = models.CharField(max_length=255, blank=True, null=True, help_text="Human-readable name of the object (e.g., product name, batch code)")
    object_reference = models.CharField(max_length=255, blank=True, null=True, help_text="Reference identifier (e.g., batch code, invoice number, receipt code)")
    changes = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['-created_at'], name='idx_audit_created'),
            models.Index(fields=['action'], name='idx_audit_action'),
            models.Index(fields=['model_name'], name='idx_audit_model'),
            models.Index(fields=['object_reference'], name='idx_audit_reference'),
        ]

from django.db import models
from decimal import Decimal
from backend.masters.models import Machine, RawMaterial, FinishedProduct
from backend.inventory.models import RawMaterialRoll
from backend.core.models import User


class ProductionBatch(models.Model):
    """One production run on a machine.

    Rolls are debited when the batch is allocated. ``consumed_quantity`` is
    the part of the input that completions have used up; what is left is
    the batch's remaining capacity for quick completion.
    """
    STATUS_CHOICES = [
        ('in_progress', 'In Progress'),
        ('partially_completed', 'Partially Completed'),
        ('completed', 'Completed'),
    ]

    code = models.CharField(max_length=50, unique=True)
    machine = models.ForeignKey(Machine, on_delete=models.PROTECT, related_name='batches')
    status = models.CharField(max_length=30, choices=STATUS_CHOICES, default='in_progress')
    allocation_date = models.DateField()
    completion_date = models.DateField(null=True, blank=True)
    total_input_quantity = models.DecimalField(max_digits=12, decimal_places=2)
    consumed_quantity = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    output_quantity = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    loss_quantity = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    loss_percentage = models.DecimalField(max_digits=7, decimal_places=2, default=Decimal('0.00'))
    loss_exceeded = models.BooleanField(default=False)
    remarks = models.TextField(blank=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='production_batches')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.code

    @property
    def remaining_capacity(self):
        return self.total_input_quantity - self.consumed_quantity

    def reset_to_in_progress(self):
        self.status = 'in_progress'
        self.consumed_quantity = Decimal('0.00')
        self.output_quantity = Decimal('0.00')
        self.loss_quantity = Decimal('0.00')
        self.loss_percentage = Decimal('0.00')
        self.loss_exceeded = False
        self.completion_date = None

    class Meta:
        db_table = 'production_batches'
        ordering = ['-allocation_date', '-id']
        indexes = [
            models.Index(fields=['machine', 'status'], name='idx_batch_machine_status'),
            models.Index(fields=['status', 'completion_date'], name='idx_batch_status_completion'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(output_quantity__lte=models.F('total_input_quantity')),
                name='batch_output_within_input',
            ),
        ]


class ProductionBatchInput(models.Model):
    """One roll allocation; kept per roll so the debit can be reversed exactly"""
    batch = models.ForeignKey(ProductionBatch, on_delete=models.CASCADE, related_name='inputs')
    raw_material = models.ForeignKey(RawMaterial, on_delete=models.PROTECT, related_name='production_inputs')
    roll = models.ForeignKey(RawMaterialRoll, on_delete=models.PROTECT, related_name='production_inputs')
    quantity = models.DecimalField(max_digits=12, decimal_places=2)

    class Meta:
        db_table = 'production_batch_inputs'
        ordering = ['id']


class ProductionBatchOutput(models.Model):
    """Target product of a batch and the quantity produced so far"""
    batch = models.ForeignKey(ProductionBatch, on_delete=models.CASCADE, related_name='outputs')
    finished_product = models.ForeignKey(FinishedProduct, on_delete=models.PROTECT, related_name='production_outputs')
    quantity = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))

    class Meta:
        db_table = 'production_batch_outputs'
        ordering = ['id']
        unique_together = [['batch', 'finished_product']]

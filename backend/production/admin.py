from django.contrib import admin
from .models import ProductionBatch, ProductionBatchInput, ProductionBatchOutput


class ProductionBatchInputInline(admin.TabularInline):
    model = ProductionBatchInput
    extra = 0
    readonly_fields = ['raw_material', 'roll', 'quantity']
    can_delete = False


class ProductionBatchOutputInline(admin.TabularInline):
    model = ProductionBatchOutput
    extra = 0
    readonly_fields = ['finished_product', 'quantity']
    can_delete = False


@admin.register(ProductionBatch)
class ProductionBatchAdmin(admin.ModelAdmin):
    list_display = ['code', 'machine', 'status', 'allocation_date', 'completion_date',
                    'total_input_quantity', 'output_quantity', 'loss_percentage', 'loss_exceeded']
    list_filter = ['status', 'machine', 'loss_exceeded']
    search_fields = ['code']
    inlines = [ProductionBatchInputInline, ProductionBatchOutputInline]
    readonly_fields = ['status', 'total_input_quantity', 'consumed_quantity', 'output_quantity',
                       'loss_quantity', 'loss_percentage', 'loss_exceeded']

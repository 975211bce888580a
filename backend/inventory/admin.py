from django.contrib import admin
from .models import RawMaterialRoll, FinishedProductStock, StockMovement


@admin.register(RawMaterialRoll)
class RawMaterialRollAdmin(admin.ModelAdmin):
    list_display = ['roll_code', 'raw_material', 'total_quantity', 'consumed_quantity', 'status', 'created_at']
    list_filter = ['status', 'raw_material']
    search_fields = ['roll_code', 'raw_material__code', 'raw_material__name']
    readonly_fields = ['consumed_quantity', 'status']


@admin.register(FinishedProductStock)
class FinishedProductStockAdmin(admin.ModelAdmin):
    list_display = ['product', 'stock_quantity', 'updated_at']
    search_fields = ['product__code', 'product__name']
    readonly_fields = ['stock_quantity']


@admin.register(StockMovement)
class StockMovementAdmin(admin.ModelAdmin):
    list_display = ['movement_date', 'movement_type', 'raw_material', 'finished_product', 'roll',
                    'quantity_in', 'quantity_out', 'balance_after', 'reference_code']
    list_filter = ['movement_type', 'item_type', 'reference_type']
    search_fields = ['reference_code', 'reason']
    ordering = ['-created_at']

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

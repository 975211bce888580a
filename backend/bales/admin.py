from django.contrib import admin
from .models import BaleBatch, BaleItem


class BaleItemInline(admin.TabularInline):
    model = BaleItem
    extra = 0
    readonly_fields = ['code', 'finished_product', 'gross_weight', 'weight_loss_grams', 'net_weight',
                       'piece_count', 'status']
    can_delete = False


@admin.register(BaleBatch)
class BaleBatchAdmin(admin.ModelAdmin):
    list_display = ['code', 'status', 'total_weight', 'created_by', 'created_at']
    list_filter = ['status']
    search_fields = ['code']
    readonly_fields = ['status', 'total_weight', 'deleted_at']
    inlines = [BaleItemInline]


@admin.register(BaleItem)
class BaleItemAdmin(admin.ModelAdmin):
    list_display = ['code', 'batch', 'finished_product', 'net_weight', 'piece_count', 'status']
    list_filter = ['status', 'finished_product']
    search_fields = ['code', 'batch__code']
    readonly_fields = ['net_weight', 'status']

from django.contrib import admin
from .models import RawMaterial, FinishedProduct, Machine


@admin.register(RawMaterial)
class RawMaterialAdmin(admin.ModelAdmin):
    list_display = ['code', 'name', 'color', 'unit', 'gst_percent', 'reorder_level', 'is_active']
    list_filter = ['is_active', 'unit']
    search_fields = ['code', 'name']


@admin.register(FinishedProduct)
class FinishedProductAdmin(admin.ModelAdmin):
    list_display = ['code', 'name', 'gsm', 'rate_per_kg', 'gst_percent', 'reorder_level', 'is_active']
    list_filter = ['is_active']
    search_fields = ['code', 'name']


@admin.register(Machine)
class MachineAdmin(admin.ModelAdmin):
    list_display = ['code', 'name', 'machine_type', 'capacity', 'status']
    list_filter = ['status']
    search_fields = ['code', 'name']

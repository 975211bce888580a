from django.contrib import admin
from .models import PurchaseBill, PurchaseBillItem, SupplierPayment, BillPaymentAllocation


class PurchaseBillItemInline(admin.TabularInline):
    model = PurchaseBillItem
    extra = 0


@admin.register(PurchaseBill)
class PurchaseBillAdmin(admin.ModelAdmin):
    list_display = ['code', 'supplier', 'bill_number', 'bill_date', 'status', 'grand_total', 'payment_status', 'created_at']
    list_filter = ['status', 'payment_status', 'bill_date']
    search_fields = ['code', 'bill_number', 'supplier__name']
    inlines = [PurchaseBillItemInline]
    readonly_fields = ['status', 'confirmed_at', 'grand_total', 'amount_paid', 'payment_status']


class BillPaymentAllocationInline(admin.TabularInline):
    model = BillPaymentAllocation
    extra = 0
    readonly_fields = ['bill', 'amount']


@admin.register(SupplierPayment)
class SupplierPaymentAdmin(admin.ModelAdmin):
    list_display = ['code', 'supplier', 'payment_date', 'amount', 'mode', 'advance_balance', 'status']
    list_filter = ['status', 'mode', 'payment_date']
    search_fields = ['code', 'reference', 'supplier__name']
    inlines = [BillPaymentAllocationInline]
    readonly_fields = ['status', 'advance_balance', 'reversal_reason', 'reversed_at']

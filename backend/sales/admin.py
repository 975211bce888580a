from django.contrib import admin
from .models import SalesInvoice, InvoiceItem, Receipt, ReceiptAllocation, ProductSample


class InvoiceItemInline(admin.TabularInline):
    model = InvoiceItem
    extra = 0
    readonly_fields = ['finished_product', 'bale_item', 'quantity', 'rate', 'gst_percent', 'amount',
                       'tax_amount', 'line_total']
    can_delete = False


@admin.register(SalesInvoice)
class SalesInvoiceAdmin(admin.ModelAdmin):
    list_display = ['invoice_number', 'customer', 'invoice_date', 'status', 'grand_total',
                    'amount_paid', 'payment_status']
    list_filter = ['status', 'payment_status']
    search_fields = ['invoice_number', 'customer__name']
    readonly_fields = ['status', 'subtotal', 'tax_amount', 'grand_total', 'amount_paid', 'payment_status']
    inlines = [InvoiceItemInline]


class ReceiptAllocationInline(admin.TabularInline):
    model = ReceiptAllocation
    extra = 0
    readonly_fields = ['invoice', 'amount']
    can_delete = False


@admin.register(Receipt)
class ReceiptAdmin(admin.ModelAdmin):
    list_display = ['code', 'customer', 'receipt_date', 'amount', 'mode', 'advance_balance', 'status']
    list_filter = ['status', 'mode']
    search_fields = ['code', 'customer__name', 'reference']
    readonly_fields = ['amount', 'advance_balance', 'status', 'reversal_reason', 'reversed_at']
    inlines = [ReceiptAllocationInline]


@admin.register(ProductSample)
class ProductSampleAdmin(admin.ModelAdmin):
    list_display = ['code', 'finished_product', 'quantity', 'customer', 'sample_date', 'purpose']
    list_filter = ['sample_date']
    search_fields = ['code', 'finished_product__name', 'customer__name', 'batch_code']
    readonly_fields = ['finished_product', 'quantity']

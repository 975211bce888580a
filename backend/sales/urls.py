from django.urls import path
from .views import (
    invoice_list_create, invoice_detail, invoice_confirm, invoice_cancel,
    available_bales, customer_outstanding, sales_summary,
    receipt_list_create, receipt_detail, receipt_reverse,
    sample_list_create, sample_detail,
)

urlpatterns = [
    path('sales/invoices/', invoice_list_create, name='invoice-list-create'),
    path('sales/invoices/<int:pk>/', invoice_detail, name='invoice-detail'),
    path('sales/invoices/<int:pk>/confirm/', invoice_confirm, name='invoice-confirm'),
    path('sales/invoices/<int:pk>/cancel/', invoice_cancel, name='invoice-cancel'),
    path('sales/available-bales/', available_bales, name='sales-available-bales'),
    path('sales/outstanding/<int:customer_id>/', customer_outstanding, name='customer-outstanding'),
    path('sales/summary/', sales_summary, name='sales-summary'),
    path('sales/receipts/', receipt_list_create, name='receipt-list-create'),
    path('sales/receipts/<int:pk>/', receipt_detail, name='receipt-detail'),
    path('sales/receipts/<int:pk>/reverse/', receipt_reverse, name='receipt-reverse'),
    path('sales/samples/', sample_list_create, name='sample-list-create'),
    path('sales/samples/<int:pk>/', sample_detail, name='sample-detail'),
]

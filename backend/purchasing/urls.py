from django.urls import path
from .views import (
    purchase_bill_list_create, purchase_bill_detail, purchase_bill_confirm,
    purchase_bill_rolls, purchase_bill_roll_detail,
    supplier_payment_list_create, supplier_payment_detail, supplier_payment_reverse,
)

urlpatterns = [
    path('purchase-bills/', purchase_bill_list_create, name='purchase-bill-list-create'),
    path('purchase-bills/<int:pk>/', purchase_bill_detail, name='purchase-bill-detail'),
    path('purchase-bills/<int:pk>/confirm/', purchase_bill_confirm, name='purchase-bill-confirm'),
    path('purchase-bills/<int:pk>/rolls/', purchase_bill_rolls, name='purchase-bill-rolls'),
    path('purchase-bills/<int:pk>/rolls/<int:roll_id>/', purchase_bill_roll_detail, name='purchase-bill-roll-detail'),
    path('supplier-payments/', supplier_payment_list_create, name='supplier-payment-list-create'),
    path('supplier-payments/<int:pk>/', supplier_payment_detail, name='supplier-payment-detail'),
    path('supplier-payments/<int:pk>/reverse/', supplier_payment_reverse, name='supplier-payment-reverse'),
]

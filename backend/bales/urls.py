from django.urls import path
from .views import bale_batch_list_create, bale_batch_detail, bale_item_list, bale_item_detail, bale_stock

urlpatterns = [
    path('bales/batches/', bale_batch_list_create, name='bale-batch-list-create'),
    path('bales/batches/<int:pk>/', bale_batch_detail, name='bale-batch-detail'),
    path('bales/items/', bale_item_list, name='bale-item-list'),
    path('bales/items/<int:pk>/', bale_item_detail, name='bale-item-detail'),
    path('bales/stock/', bale_stock, name='bale-stock'),
]

from django.urls import path
from .views import (
    roll_list, roll_detail, roll_reserve,
    raw_stock, finished_stock, movement_list, stock_adjust, inventory_summary,
)

urlpatterns = [
    # Roll ledger
    path('inventory/rolls/', roll_list, name='roll-list'),
    path('inventory/rolls/<int:pk>/', roll_detail, name='roll-detail'),
    path('inventory/rolls/<int:pk>/reserve/', roll_reserve, name='roll-reserve'),

    # Stock
    path('inventory/raw-stock/', raw_stock, name='raw-stock'),
    path('inventory/finished-stock/', finished_stock, name='finished-stock'),
    path('inventory/movements/', movement_list, name='movement-list'),
    path('inventory/adjust/', stock_adjust, name='stock-adjust'),
    path('inventory/summary/', inventory_summary, name='inventory-summary'),
]

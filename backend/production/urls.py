from django.urls import path
from .views import (
    batch_list_create, batch_detail, batch_complete,
    quick_complete, return_to_production, production_stats,
)

urlpatterns = [
    path('production/batches/', batch_list_create, name='batch-list-create'),
    path('production/batches/<int:pk>/', batch_detail, name='batch-detail'),
    path('production/batches/<int:pk>/complete/', batch_complete, name='batch-complete'),
    path('production/quick-complete/', quick_complete, name='production-quick-complete'),
    path('production/return-to-production/', return_to_production, name='return-to-production'),
    path('production/stats/', production_stats, name='production-stats'),
]

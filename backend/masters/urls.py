from django.urls import path
from .views import (
    raw_material_list_create, raw_material_detail,
    finished_product_list_create, finished_product_detail,
    machine_list_create, machine_detail,
)

urlpatterns = [
    path('raw-materials/', raw_material_list_create, name='raw-material-list-create'),
    path('raw-materials/<int:pk>/', raw_material_detail, name='raw-material-detail'),
    path('finished-products/', finished_product_list_create, name='finished-product-list-create'),
    path('finished-products/<int:pk>/', finished_product_detail, name='finished-product-detail'),
    path('machines/', machine_list_create, name='machine-list-create'),
    path('machines/<int:pk>/', machine_detail, name='machine-detail'),
]

"""
URL configuration for backend project.

Every app exposes its REST endpoints under /api/v1/.
"""
from django.contrib import admin
from django.urls import path, include

admin.site.site_header = "Net Mill ERP Admin Panel"
admin.site.site_title = "Net Mill ERP Admin Portal"
admin.site.index_title = "Welcome to the Net Mill ERP Admin Panel"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('backend.core.urls')),
    path('api/v1/', include('backend.masters.urls')),
    path('api/v1/', include('backend.parties.urls')),
    path('api/v1/', include('backend.purchasing.urls')),
    path('api/v1/', include('backend.inventory.urls')),
    path('api/v1/', include('backend.production.urls')),
    path('api/v1/', include('backend.bales.urls')),
    path('api/v1/', include('backend.sales.urls')),
]

"""
URL configuration for tvde_fleet project.
"""
from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path('admin/', admin.site.urls),
    path('settlements/', include('settlements.urls')),
]

"""
URL configuration for the ward project.

The core has no public API of its own; this module only exposes the
Django admin (bed registry and patient assignments), a health check and
the Prometheus scrape endpoint.
"""
from django.contrib import admin
from django.urls import path, include

from beds.views.health import healthz

urlpatterns = [
    path('admin/', admin.site.urls),
    path('healthz', healthz, name='healthz'),
    # Exposes /metrics
    path('', include('django_prometheus.urls')),
]

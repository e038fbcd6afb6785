"""
URL configuration for the licensing backend.

The licensing app owns everything under /api/v1/licensing/.
"""
from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path('admin/', admin.site.urls),

    # Licensing API (conflicts, renewals, analytics)
    path('api/v1/licensing/', include('licensing.urls')),
]

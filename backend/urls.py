"""
Root URL configuration for the Experience Tech backend.

- /admin/: Django admin (Jazzmin theme)
- /api/: commerce API (auth, payments, orders, prepaid cards)
"""

from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/", include("commerce.urls")),
]

"""
Commerce Application Configuration

This module contains the Django application configuration for the commerce
system: catalog (courses, products), orders and enrollments, payments and
prepaid cards.

Author: Experience Tech Development Team
Version: 1.0.0
"""

from django.apps import AppConfig


class CommerceConfig(AppConfig):
    """
    Configuration class for the commerce Django application.

    Attributes:
        default_auto_field: Default primary key field type for models
        name: Application name for Django registration
        verbose_name: Human-readable application name for admin interface
    """

    default_auto_field: str = "django.db.models.BigAutoField"
    name: str = "commerce"
    verbose_name: str = "Commerce"

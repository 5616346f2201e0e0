"""
Mobile Money Integration AppConfig

Registers ``core.mobile_money`` with Django. The package has no models; it is
an app so that its tests are discovered and its logger namespace lives under
``core``.

Author: Experience Tech Development Team
Version: 1.0.0
"""

from django.apps import AppConfig


class MobileMoneyConfig(AppConfig):
    """
    App configuration for the `core.mobile_money` package.
    """

    default_auto_field = "django.db.models.BigAutoField"
    name = "core.mobile_money"
    label = "mobile_money"
    verbose_name = "Mobile Money Integration"

"""Shared fixtures for the commerce tests."""

import hashlib
import hmac
import json
from datetime import timedelta
from decimal import Decimal

from django.contrib.auth.models import User
from django.utils import timezone

from commerce.models import Course, PrepaidCard, Product

WEBHOOK_SECRET = "test-webhook-secret"

# Simulation mode (no API credentials) with webhook secrets configured
MOBILE_MONEY_TEST_CONFIG = {
    "airtel_money": {"WEBHOOK_SECRET": WEBHOOK_SECRET},
    "moov_money": {"WEBHOOK_SECRET": WEBHOOK_SECRET},
}


def make_user(username="student", is_staff=False):
    return User.objects.create_user(
        username=username,
        password="Passw0rd!",
        email=f"{username}@example.com",
        is_staff=is_staff,
    )


def make_course(title="Python Basics", price="100", max_students=30, current_students=0, **kwargs):
    return Course.objects.create(
        title=title,
        price=Decimal(price),
        max_students=max_students,
        current_students=current_students,
        **kwargs,
    )


def make_product(sku="RTR-001", price="25000", stock=5, **kwargs):
    kwargs.setdefault("name", f"Product {sku}")
    kwargs.setdefault("category", Product.Category.NETWORKING)
    return Product.objects.create(sku=sku, price=Decimal(price), stock=stock, **kwargs)


def make_card(code="EXPTESTCARD0001", value="100", expires_in=None, **kwargs):
    expires_at = timezone.now() + expires_in if expires_in is not None else None
    return PrepaidCard.objects.create(
        code=code, value=Decimal(value), expires_at=expires_at, **kwargs
    )


def signed_body(payload):
    """Raw JSON body and its webhook signature."""
    body = json.dumps(payload).encode("utf-8")
    signature = hmac.new(WEBHOOK_SECRET.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return body, signature


ONE_DAY = timedelta(days=1)

"""
Commerce Payment Models

This module defines the payment records. A Payment is one attempt to move
money for a course enrollment, a set of cart items or an existing order.

Models:
- Payment: The attempt itself, with method/provider, amount and status
- PaymentItem: Line items of a cart-style payment (course, product or order)

Status lifecycle:
    pending → processing → completed | failed | cancelled | refunded

Once a payment reaches a terminal status it never changes again. Status
writes go through ``PaymentCoordinator`` which updates the row with a
conditional UPDATE on the current status.

Author: Experience Tech Development Team
Version: 1.0.0
"""

import uuid
from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from ..catalog.models import Currency

__all__ = ["PaymentMethod", "Payment", "PaymentItem"]


class PaymentMethod(models.TextChoices):
    AIRTEL_MONEY = "airtel_money", _("Airtel Money")
    MOOV_MONEY = "moov_money", _("Moov Money")
    BANK_TRANSFER = "bank_transfer", _("Bank transfer")
    PREPAID_CARD = "prepaid_card", _("Prepaid card")


MOBILE_MONEY_METHODS = (PaymentMethod.AIRTEL_MONEY, PaymentMethod.MOOV_MONEY)


def generate_transaction_id() -> str:
    return str(uuid.uuid4())


class Payment(models.Model):
    """
    A single payment attempt.

    Attributes:
        transaction_id: Server-generated UUID, unique per attempt
        provider_transaction_id: Reference returned by the mobile money operator
        expires_at: End of the confirmation window for asynchronous methods
        failure_reason: Why the payment failed or was cancelled
    """

    class Status(models.TextChoices):
        PENDING = "pending", _("Pending")
        PROCESSING = "processing", _("Processing")
        COMPLETED = "completed", _("Completed")
        FAILED = "failed", _("Failed")
        CANCELLED = "cancelled", _("Cancelled")
        REFUNDED = "refunded", _("Refunded")

    class Provider(models.TextChoices):
        AIRTEL_MONEY = "airtel_money", _("Airtel Money")
        MOOV_MONEY = "moov_money", _("Moov Money")
        BANK = "bank", _("Bank")
        PREPAID_CARD = "prepaid_card", _("Prepaid card")

    OPEN_STATUSES = (Status.PENDING, Status.PROCESSING)
    TERMINAL_STATUSES = (
        Status.COMPLETED,
        Status.FAILED,
        Status.CANCELLED,
        Status.REFUNDED,
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="payments",
        verbose_name=_("User"),
    )
    course = models.ForeignKey(
        "commerce.Course",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="payments",
        verbose_name=_("Course"),
    )
    enrollment = models.ForeignKey(
        "commerce.Enrollment",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="payments",
        verbose_name=_("Enrollment"),
    )
    order = models.ForeignKey(
        "commerce.Order",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="payments",
        verbose_name=_("Order"),
    )
    prepaid_card = models.ForeignKey(
        "commerce.PrepaidCard",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="payments",
        verbose_name=_("Prepaid card"),
    )
    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01"))],
        verbose_name=_("Amount"),
    )
    currency = models.CharField(
        max_length=3,
        choices=Currency.choices,
        default=Currency.XAF,
        verbose_name=_("Currency"),
    )
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
        verbose_name=_("Status"),
    )
    payment_method = models.CharField(
        max_length=20,
        choices=PaymentMethod.choices,
        verbose_name=_("Payment method"),
    )
    payment_provider = models.CharField(
        max_length=20,
        choices=Provider.choices,
        verbose_name=_("Payment provider"),
    )
    transaction_id = models.CharField(
        max_length=64,
        unique=True,
        default=generate_transaction_id,
        editable=False,
        verbose_name=_("Transaction ID"),
    )
    provider_transaction_id = models.CharField(
        max_length=100,
        blank=True,
        db_index=True,
        verbose_name=_("Provider transaction ID"),
    )
    phone_number = models.CharField(max_length=20, blank=True, verbose_name=_("Phone number"))
    operator = models.CharField(max_length=20, blank=True, verbose_name=_("Operator"))
    failure_reason = models.CharField(max_length=255, blank=True, verbose_name=_("Failure reason"))
    paid_at = models.DateTimeField(null=True, blank=True, verbose_name=_("Paid at"))
    expires_at = models.DateTimeField(null=True, blank=True, verbose_name=_("Expires at"))
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"{self.transaction_id} ({self.amount} {self.currency}, {self.status})"

    @property
    def is_open(self) -> bool:
        return self.status in self.OPEN_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self.status in self.TERMINAL_STATUSES

    @property
    def is_mobile_money(self) -> bool:
        return self.payment_method in MOBILE_MONEY_METHODS

    def is_expired(self, now=None) -> bool:
        now = now or timezone.now()
        return self.expires_at is not None and self.expires_at < now

    class Meta:
        verbose_name = _("Payment")
        verbose_name_plural = _("Payments")
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["user", "status"], name="payment_user_status_idx"),
            models.Index(fields=["status", "expires_at"], name="payment_status_expires_idx"),
            models.Index(fields=["payment_method", "status"], name="payment_method_status_idx"),
        ]


class PaymentItem(models.Model):
    """
    Line item of a cart-style payment.

    Exactly one of ``course``, ``product`` or ``order`` is set, matching
    ``item_type``.
    """

    class ItemType(models.TextChoices):
        COURSE = "course", _("Course")
        PRODUCT = "product", _("Product")
        CART = "cart", _("Cart (order)")

    payment = models.ForeignKey(Payment, on_delete=models.CASCADE, related_name="items")
    item_type = models.CharField(max_length=10, choices=ItemType.choices)
    course = models.ForeignKey(
        "commerce.Course", on_delete=models.PROTECT, null=True, blank=True, related_name="+"
    )
    product = models.ForeignKey(
        "commerce.Product", on_delete=models.PROTECT, null=True, blank=True, related_name="+"
    )
    order = models.ForeignKey(
        "commerce.Order", on_delete=models.PROTECT, null=True, blank=True, related_name="+"
    )
    name = models.CharField(max_length=200)
    quantity = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)

    def __str__(self) -> str:
        return f"{self.item_type}: {self.quantity} x {self.name}"

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity

    class Meta:
        verbose_name = _("Payment item")
        verbose_name_plural = _("Payment items")
        ordering = ["id"]

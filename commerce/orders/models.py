"""
Commerce Order and Enrollment Models

This module defines the records that represent a user's claim on catalog
items. They are created in ``pending`` state before any money moves and are
advanced by the payment coordinator.

Models:
- Enrollment: A user's seat in a course (one row per user/course pair)
- Order: A shop order with a customer snapshot and embedded payment summary
- OrderItem: Order line with the unit price snapshotted at purchase time

Lifecycle:
- Enrollment: pending → enrolled → completed, or cancelled/refunded
- Order: pending → processing → shipped → completed, or cancelled

Author: Experience Tech Development Team
Version: 1.0.0
"""

import secrets

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from ..catalog.models import Currency
from ..payments.models import PaymentMethod

__all__ = ["Enrollment", "Order", "OrderItem"]


class Enrollment(models.Model):
    """
    A user's enrollment in a course.

    Only one row exists per (user, course). A cancelled or refunded enrollment
    is reused when the user tries again, instead of inserting a second row.
    """

    class Status(models.TextChoices):
        PENDING = "pending", _("Pending")
        ENROLLED = "enrolled", _("Enrolled")
        COMPLETED = "completed", _("Completed")
        CANCELLED = "cancelled", _("Cancelled")
        REFUNDED = "refunded", _("Refunded")

    # Statuses that hold a seat and block a new purchase
    ACTIVE_STATUSES = (Status.ENROLLED, Status.COMPLETED)

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="enrollments",
        verbose_name=_("User"),
    )
    course = models.ForeignKey(
        "commerce.Course",
        on_delete=models.PROTECT,
        related_name="enrollments",
        verbose_name=_("Course"),
    )
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
        verbose_name=_("Status"),
    )
    progress = models.PositiveSmallIntegerField(
        default=0,
        validators=[MaxValueValidator(100)],
        verbose_name=_("Progress (%)"),
    )
    enrolled_at = models.DateTimeField(null=True, blank=True, verbose_name=_("Enrolled at"))
    completed_at = models.DateTimeField(null=True, blank=True, verbose_name=_("Completed at"))
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"{self.user} - {self.course} ({self.status})"

    @property
    def is_active(self) -> bool:
        return self.status in self.ACTIVE_STATUSES

    class Meta:
        verbose_name = _("Enrollment")
        verbose_name_plural = _("Enrollments")
        ordering = ["-created_at"]
        unique_together = ("user", "course")
        indexes = [
            models.Index(fields=["user", "status"], name="enrollment_user_status_idx"),
            models.Index(fields=["course", "status"], name="enrollment_course_status_idx"),
        ]


class Order(models.Model):
    """
    Shop order.

    Customer details and item prices are copied at creation time so later
    catalog edits do not change what was bought. The ``payment_*`` fields
    summarize the payment state of the order.
    """

    class Status(models.TextChoices):
        PENDING = "pending", _("Pending")
        PROCESSING = "processing", _("Processing")
        SHIPPED = "shipped", _("Shipped")
        COMPLETED = "completed", _("Completed")
        CANCELLED = "cancelled", _("Cancelled")

    class PaymentStatus(models.TextChoices):
        PENDING = "pending", _("Pending")
        PAID = "paid", _("Paid")
        FAILED = "failed", _("Failed")

    reference = models.CharField(
        max_length=20,
        unique=True,
        editable=False,
        verbose_name=_("Reference"),
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="orders",
        verbose_name=_("User"),
    )

    # Customer snapshot
    customer_full_name = models.CharField(max_length=120, verbose_name=_("Full name"))
    customer_email = models.EmailField(verbose_name=_("Email"))
    customer_phone = models.CharField(max_length=30, verbose_name=_("Phone"))
    customer_address = models.CharField(max_length=200, verbose_name=_("Address"))
    customer_city = models.CharField(max_length=100, default="N'Djamena", verbose_name=_("City"))
    customer_notes = models.CharField(max_length=300, blank=True, verbose_name=_("Delivery notes"))

    subtotal = models.DecimalField(
        max_digits=12, decimal_places=2, validators=[MinValueValidator(0)]
    )
    discount = models.DecimalField(
        max_digits=12, decimal_places=2, default=0, validators=[MinValueValidator(0)]
    )
    total = models.DecimalField(
        max_digits=12, decimal_places=2, validators=[MinValueValidator(0)]
    )
    currency = models.CharField(max_length=3, choices=Currency.choices, default=Currency.XAF)
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True,
        verbose_name=_("Status"),
    )

    # Payment summary
    payment_method = models.CharField(
        max_length=20,
        choices=PaymentMethod.choices,
        verbose_name=_("Payment method"),
    )
    payment_provider = models.CharField(max_length=30, blank=True)
    payment_status = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
        verbose_name=_("Payment status"),
    )
    payment_transaction_id = models.CharField(max_length=100, blank=True, db_index=True)
    paid_at = models.DateTimeField(null=True, blank=True)

    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return self.reference

    @classmethod
    def generate_reference(cls) -> str:
        """Return an unused reference of the form ``CMD-<year>-<6 digits>``."""
        year = timezone.now().year
        while True:
            reference = f"CMD-{year}-{100000 + secrets.randbelow(900000)}"
            if not cls.objects.filter(reference=reference).exists():
                return reference

    def save(self, *args, **kwargs):
        if not self.reference:
            self.reference = self.generate_reference()
        super().save(*args, **kwargs)

    @property
    def payment_summary(self) -> dict:
        return {
            "method": self.payment_method,
            "status": self.payment_status,
            "transactionId": self.payment_transaction_id or None,
            "provider": self.payment_provider or None,
            "paidAt": self.paid_at,
        }

    class Meta:
        verbose_name = _("Order")
        verbose_name_plural = _("Orders")
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["user", "status"], name="order_user_status_idx"),
            models.Index(fields=["status", "created_at"], name="order_status_created_idx"),
            models.Index(fields=["customer_email"], name="order_customer_email_idx"),
        ]


class OrderItem(models.Model):
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="items")
    product = models.ForeignKey(
        "commerce.Product", on_delete=models.PROTECT, related_name="order_items"
    )
    name = models.CharField(max_length=150)
    sku = models.CharField(max_length=50)
    quantity = models.PositiveIntegerField(
        validators=[MinValueValidator(1), MaxValueValidator(10)]
    )
    unit_price = models.DecimalField(
        max_digits=12, decimal_places=2, validators=[MinValueValidator(0)]
    )
    subtotal = models.DecimalField(
        max_digits=12, decimal_places=2, validators=[MinValueValidator(0)]
    )

    def __str__(self) -> str:
        return f"{self.quantity} x {self.name}"

    class Meta:
        verbose_name = _("Order item")
        verbose_name_plural = _("Order items")
        ordering = ["id"]

"""
Commerce Catalog Models

This module defines the purchasable items of the platform. Both carry a
finite counter that the payment coordinator adjusts:

Models:
- Course: Training course with a seat counter (current_students / max_students)
- Product: Hardware/accessory product with a stock counter

Invariants:
- current_students never exceeds max_students (database check constraint)
- stock never goes below zero (unsigned column)

Counters are only changed through ``commerce.catalog.inventory``, which uses
conditional UPDATE statements instead of read-modify-write.

Author: Experience Tech Development Team
Version: 1.0.0
"""

from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import F, Q
from django.utils.translation import gettext_lazy as _

__all__ = ["Currency", "Course", "Product"]


class Currency(models.TextChoices):
    XAF = "XAF", "XAF (FCFA)"
    USD = "USD", "USD"
    EUR = "EUR", "EUR"


class Course(models.Model):
    """
    Training course that users enroll in.

    Attributes:
        price: Enrollment price in ``currency``
        max_students: Number of seats (at least one)
        current_students: Seats taken by completed payments
        is_active: Inactive courses cannot be purchased
    """

    title = models.CharField(
        max_length=200,
        verbose_name=_("Title"),
    )
    description = models.TextField(
        blank=True,
        verbose_name=_("Description"),
    )
    price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(0)],
        verbose_name=_("Price"),
    )
    currency = models.CharField(
        max_length=3,
        choices=Currency.choices,
        default=Currency.XAF,
        verbose_name=_("Currency"),
    )
    max_students = models.PositiveIntegerField(
        default=30,
        validators=[MinValueValidator(1)],
        verbose_name=_("Maximum students"),
    )
    current_students = models.PositiveIntegerField(
        default=0,
        verbose_name=_("Current students"),
        help_text=_("Updated automatically when a payment completes"),
    )
    is_active = models.BooleanField(
        default=True,
        verbose_name=_("Active"),
    )
    start_date = models.DateField(
        null=True,
        blank=True,
        verbose_name=_("Start date"),
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return self.title

    @property
    def is_full(self) -> bool:
        return self.current_students >= self.max_students

    @property
    def available_seats(self) -> int:
        return max(self.max_students - self.current_students, 0)

    class Meta:
        verbose_name = _("Course")
        verbose_name_plural = _("Courses")
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=Q(current_students__lte=F("max_students")),
                name="course_current_students_lte_max",
            ),
        ]


class Product(models.Model):
    """
    Shop product (hardware, accessories, networking, printing).

    ``availability`` is kept in sync with ``stock`` by the inventory helpers:
    a product whose stock reaches zero becomes ``out_of_stock``.
    """

    class Category(models.TextChoices):
        HARDWARE = "hardware", _("Hardware")
        ACCESSORIES = "accessories", _("Accessories")
        NETWORKING = "networking", _("Networking")
        PRINTING = "printing", _("Printing")

    class Availability(models.TextChoices):
        IN_STOCK = "in_stock", _("In stock")
        OUT_OF_STOCK = "out_of_stock", _("Out of stock")
        PRE_ORDER = "pre_order", _("Pre-order")

    name = models.CharField(max_length=150, verbose_name=_("Name"))
    sku = models.CharField(
        max_length=50,
        unique=True,
        verbose_name=_("SKU"),
        help_text=_("Stock keeping unit, stored uppercase"),
    )
    brand = models.CharField(max_length=80, blank=True, verbose_name=_("Brand"))
    category = models.CharField(
        max_length=20,
        choices=Category.choices,
        verbose_name=_("Category"),
    )
    description = models.TextField(blank=True, verbose_name=_("Description"))
    price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(0)],
        verbose_name=_("Price"),
    )
    currency = models.CharField(
        max_length=3,
        choices=Currency.choices,
        default=Currency.XAF,
        verbose_name=_("Currency"),
    )
    stock = models.PositiveIntegerField(default=0, verbose_name=_("Stock"))
    availability = models.CharField(
        max_length=20,
        choices=Availability.choices,
        default=Availability.IN_STOCK,
        verbose_name=_("Availability"),
    )
    sales = models.PositiveIntegerField(default=0, verbose_name=_("Units sold"))
    is_active = models.BooleanField(default=True, verbose_name=_("Active"))
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"{self.name} ({self.sku})"

    def save(self, *args, **kwargs):
        self.sku = (self.sku or "").strip().upper()
        super().save(*args, **kwargs)

    class Meta:
        verbose_name = _("Product")
        verbose_name_plural = _("Products")
        ordering = ["name"]
        indexes = [
            models.Index(fields=["category", "is_active"], name="product_category_active_idx"),
        ]

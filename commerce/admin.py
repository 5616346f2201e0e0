"""
Commerce Django Admin Configuration

Sections:
- Catalog: courses and products (the only place they are edited)
- Orders: orders with their lines, enrollments
- Payments: payments with their items (read-mostly)
- Prepaid cards

Counters (``current_students``, ``stock``, ``sales``) and payment status
are read-only here; they are moved by the payment coordinator.

Author: Experience Tech Development Team
Version: 1.0.0
"""

from django.contrib import admin
from django.utils.translation import gettext_lazy as _

from .models import (
    Course,
    Enrollment,
    Order,
    OrderItem,
    Payment,
    PaymentItem,
    PrepaidCard,
    Product,
)

# --- Catalog ---


@admin.register(Course)
class CourseAdmin(admin.ModelAdmin):
    list_display = ("title", "price", "currency", "current_students", "max_students", "is_active")
    list_filter = ("is_active", "currency")
    search_fields = ("title",)
    readonly_fields = ("current_students", "created_at", "updated_at")


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("name", "sku", "category", "price", "stock", "availability", "is_active")
    list_filter = ("category", "availability", "is_active")
    search_fields = ("name", "sku", "brand")
    readonly_fields = ("sales", "created_at", "updated_at")


# --- Orders and enrollments ---


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ("product", "name", "sku", "quantity", "unit_price", "subtotal")
    can_delete = False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ("reference", "customer_full_name", "total", "status", "payment_status", "created_at")
    list_filter = ("status", "payment_status", "payment_method")
    search_fields = ("reference", "customer_full_name", "customer_email")
    readonly_fields = (
        "reference",
        "subtotal",
        "total",
        "payment_status",
        "payment_transaction_id",
        "paid_at",
        "created_at",
        "updated_at",
    )
    inlines = [OrderItemInline]


@admin.register(Enrollment)
class EnrollmentAdmin(admin.ModelAdmin):
    list_display = ("user", "course", "status", "progress", "enrolled_at")
    list_filter = ("status", "course")
    search_fields = ("user__username", "user__email", "course__title")
    readonly_fields = ("enrolled_at", "created_at", "updated_at")


# --- Payments ---


class PaymentItemInline(admin.TabularInline):
    model = PaymentItem
    extra = 0
    readonly_fields = ("item_type", "course", "product", "order", "name", "quantity", "unit_price")
    can_delete = False


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = (
        "transaction_id",
        "user",
        "amount",
        "currency",
        "payment_method",
        "status",
        "created_at",
    )
    list_filter = ("status", "payment_method", "currency")
    search_fields = ("transaction_id", "provider_transaction_id", "user__username", "phone_number")
    readonly_fields = [field.name for field in Payment._meta.fields]
    inlines = [PaymentItemInline]

    def has_add_permission(self, request):
        return False


# --- Prepaid cards ---


@admin.register(PrepaidCard)
class PrepaidCardAdmin(admin.ModelAdmin):
    list_display = ("code", "value", "currency", "status", "used_by", "expires_at")
    list_filter = ("status", "currency")
    search_fields = ("code", "notes")
    readonly_fields = ("used_by", "used_at", "created_by", "created_at", "updated_at")
    fieldsets = (
        (None, {"fields": ("code", "value", "currency", "status", "expires_at")}),
        (_("Usage"), {"fields": ("used_by", "used_at")}),
        (_("Administration"), {"fields": ("created_by", "notes", "created_at", "updated_at")}),
    )

    def get_readonly_fields(self, request, obj=None):
        if obj is not None and obj.status == PrepaidCard.Status.USED:
            return ("code", "value", "currency", "status") + self.readonly_fields
        return self.readonly_fields

    def save_model(self, request, obj, form, change):
        if not change and not obj.created_by_id:
            obj.created_by = request.user
        super().save_model(request, obj, form, change)

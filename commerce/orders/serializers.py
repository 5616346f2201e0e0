"""
Order Serializers

Serializers:
- OrderCreateSerializer: Validates a checkout payload and creates the order
- OrderSerializer: Full order representation (camelCase)
- OrderSummarySerializer: Short form returned right after creation
- OrderStatusSerializer: Admin status change

Order creation snapshots the customer and the unit prices, and takes the
stock with conditional updates inside one transaction; a line that cannot be
served rolls the whole order back.

Author: Experience Tech Development Team
Version: 1.0.0
"""

import logging
from decimal import Decimal
from typing import Any, Dict

from django.conf import settings
from django.db import transaction
from django.utils.translation import gettext_lazy as _
from rest_framework import serializers

from ..catalog.inventory import take_stock
from ..catalog.models import Product
from ..exceptions import CatalogItemNotFound, InsufficientStock
from ..payments.models import PaymentMethod
from .models import Order, OrderItem

logger = logging.getLogger(__name__)


class CustomerSerializer(serializers.Serializer):
    fullName = serializers.CharField(min_length=4, max_length=120)
    email = serializers.EmailField()
    phone = serializers.CharField(min_length=6, max_length=30)
    address = serializers.CharField(min_length=10, max_length=200)
    city = serializers.CharField(min_length=2, max_length=80, required=False, default="N'Djamena")
    notes = serializers.CharField(max_length=300, required=False, allow_blank=True, default="")


class OrderPaymentInputSerializer(serializers.Serializer):
    method = serializers.ChoiceField(choices=PaymentMethod.choices)
    provider = serializers.CharField(max_length=30, required=False, allow_blank=True, default="")


class OrderItemInputSerializer(serializers.Serializer):
    productId = serializers.IntegerField(min_value=1)
    quantity = serializers.IntegerField(min_value=1, max_value=10)


class OrderCreateSerializer(serializers.Serializer):
    customer = CustomerSerializer()
    items = OrderItemInputSerializer(many=True, allow_empty=False)
    payment = OrderPaymentInputSerializer(required=False)
    paymentMethod = serializers.ChoiceField(choices=PaymentMethod.choices, required=False)
    discount = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=Decimal("0"), required=False, default=Decimal("0")
    )
    notes = serializers.CharField(required=False, allow_blank=True, default="")

    def validate_items(self, items):
        product_ids = [item["productId"] for item in items]
        if len(product_ids) != len(set(product_ids)):
            raise serializers.ValidationError(_("Each product may only appear once."))
        return items

    def validate(self, attrs: Dict[str, Any]) -> Dict[str, Any]:
        """Accept either ``payment: {method, provider}`` or a flat ``paymentMethod``."""
        payment = attrs.pop("payment", None) or {}
        method = payment.get("method") or attrs.pop("paymentMethod", None)
        if not method:
            raise serializers.ValidationError({"payment": [_("A payment method is required.")]})
        attrs.pop("paymentMethod", None)
        attrs["payment_method"] = method
        attrs["payment_provider"] = payment.get("provider", "")
        return attrs

    def create(self, validated_data: Dict[str, Any]) -> Order:
        """
        Create the order and its lines.

        Raises:
            CatalogItemNotFound: A product is missing or inactive
            InsufficientStock: Not enough units left for a line
        """
        request = self.context.get("request")
        user = request.user if request and request.user.is_authenticated else None
        customer = validated_data["customer"]

        with transaction.atomic():
            products = Product.objects.in_bulk([item["productId"] for item in validated_data["items"]])
            lines = []
            for item in validated_data["items"]:
                product = products.get(item["productId"])
                if product is None or not product.is_active:
                    raise CatalogItemNotFound()
                if not take_stock(product.pk, item["quantity"]):
                    product.refresh_from_db(fields=["stock"])
                    raise InsufficientStock(product.name, product.stock)
                lines.append((product, item["quantity"]))

            subtotal = sum((product.price * quantity for product, quantity in lines), Decimal("0"))
            discount = validated_data["discount"]
            order = Order.objects.create(
                user=user,
                customer_full_name=customer["fullName"],
                customer_email=customer["email"],
                customer_phone=customer["phone"],
                customer_address=customer["address"],
                customer_city=customer["city"],
                customer_notes=customer["notes"],
                subtotal=subtotal,
                discount=discount,
                total=max(subtotal - discount, Decimal("0")),
                currency=settings.DEFAULT_CURRENCY,
                payment_method=validated_data["payment_method"],
                payment_provider=validated_data["payment_provider"],
                notes=validated_data["notes"],
            )
            OrderItem.objects.bulk_create(
                [
                    OrderItem(
                        order=order,
                        product=product,
                        name=product.name,
                        sku=product.sku,
                        quantity=quantity,
                        unit_price=product.price,
                        subtotal=product.price * quantity,
                    )
                    for product, quantity in lines
                ]
            )

        logger.info(
            "Order %s created (%s line(s), total %s %s)",
            order.reference,
            len(lines),
            order.total,
            order.currency,
        )
        return order


class OrderItemSerializer(serializers.ModelSerializer):
    productId = serializers.IntegerField(source="product_id", read_only=True)
    unitPrice = serializers.DecimalField(
        source="unit_price", max_digits=12, decimal_places=2, read_only=True
    )

    class Meta:
        model = OrderItem
        fields = ("productId", "name", "sku", "quantity", "unitPrice", "subtotal")
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    customer = serializers.SerializerMethodField()
    items = OrderItemSerializer(many=True, read_only=True)
    payment = serializers.SerializerMethodField()
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    updatedAt = serializers.DateTimeField(source="updated_at", read_only=True)

    class Meta:
        model = Order
        fields = (
            "id",
            "reference",
            "customer",
            "items",
            "subtotal",
            "discount",
            "total",
            "currency",
            "status",
            "payment",
            "notes",
            "createdAt",
            "updatedAt",
        )
        read_only_fields = fields

    def get_customer(self, obj: Order) -> Dict[str, str]:
        return {
            "fullName": obj.customer_full_name,
            "email": obj.customer_email,
            "phone": obj.customer_phone,
            "address": obj.customer_address,
            "city": obj.customer_city,
            "notes": obj.customer_notes,
        }

    def get_payment(self, obj: Order) -> Dict[str, Any]:
        summary = obj.payment_summary
        summary["paidAt"] = serializers.DateTimeField().to_representation(obj.paid_at) if obj.paid_at else None
        return summary


class OrderSummarySerializer(OrderSerializer):
    class Meta(OrderSerializer.Meta):
        fields = ("id", "reference", "total", "payment", "status", "createdAt")
        read_only_fields = fields


class OrderStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Order.Status.choices)

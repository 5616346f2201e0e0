"""
Payment Serializers

Request serializers validate the shape of incoming payloads (camelCase keys);
business checks are left to ``PaymentCoordinator``. Response serializers
render payments with camelCase keys.

Author: Experience Tech Development Team
Version: 1.0.0
"""

from typing import Any, Dict

from django.utils.translation import gettext_lazy as _
from rest_framework import serializers

from .models import Payment, PaymentItem


# --- Requests ---


class CreatePaymentIntentSerializer(serializers.Serializer):
    courseId = serializers.IntegerField(min_value=1)
    paymentMethod = serializers.CharField(max_length=20)
    provider = serializers.CharField(max_length=20, required=False, allow_blank=True)
    prepaidCardCode = serializers.CharField(max_length=50, required=False, allow_blank=True)
    phoneNumber = serializers.CharField(max_length=20, required=False, allow_blank=True)


class MobileMoneyItemSerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=PaymentItem.ItemType.choices)
    itemId = serializers.IntegerField(min_value=1, required=False)
    quantity = serializers.IntegerField(min_value=1, max_value=10, default=1)

    def validate(self, attrs: Dict[str, Any]) -> Dict[str, Any]:
        if attrs["type"] != PaymentItem.ItemType.CART and not attrs.get("itemId"):
            raise serializers.ValidationError({"itemId": _("This field is required.")})
        return attrs


class CreateMobileMoneyPaymentSerializer(serializers.Serializer):
    items = MobileMoneyItemSerializer(many=True, allow_empty=False)
    paymentMethod = serializers.CharField(max_length=20)
    phoneNumber = serializers.CharField(max_length=20)
    orderId = serializers.IntegerField(min_value=1, required=False, allow_null=True)

    def validate_items(self, items):
        keys = [(item["type"], item.get("itemId")) for item in items]
        if len(keys) != len(set(keys)):
            raise serializers.ValidationError(_("Each item may only appear once."))
        return items


class ConfirmPaymentSerializer(serializers.Serializer):
    paymentId = serializers.IntegerField(min_value=1)


# --- Responses ---


class PaymentItemSerializer(serializers.ModelSerializer):
    type = serializers.CharField(source="item_type")
    itemId = serializers.SerializerMethodField()
    unitPrice = serializers.DecimalField(source="unit_price", max_digits=12, decimal_places=2)
    subtotal = serializers.DecimalField(max_digits=12, decimal_places=2)

    class Meta:
        model = PaymentItem
        fields = ("type", "itemId", "name", "quantity", "unitPrice", "subtotal")

    def get_itemId(self, obj: PaymentItem):
        return obj.course_id or obj.product_id or obj.order_id


class PaymentSerializer(serializers.ModelSerializer):
    """Full payment representation used by history, detail and status endpoints."""

    transactionId = serializers.CharField(source="transaction_id", read_only=True)
    providerTransactionId = serializers.CharField(source="provider_transaction_id", read_only=True)
    paymentMethod = serializers.CharField(source="payment_method", read_only=True)
    paymentProvider = serializers.CharField(source="payment_provider", read_only=True)
    phoneNumber = serializers.CharField(source="phone_number", read_only=True)
    failureReason = serializers.CharField(source="failure_reason", read_only=True)
    courseId = serializers.IntegerField(source="course_id", read_only=True)
    enrollmentId = serializers.IntegerField(source="enrollment_id", read_only=True)
    orderId = serializers.IntegerField(source="order_id", read_only=True)
    paidAt = serializers.DateTimeField(source="paid_at", read_only=True)
    expiresAt = serializers.DateTimeField(source="expires_at", read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    items = PaymentItemSerializer(many=True, read_only=True)

    class Meta:
        model = Payment
        fields = (
            "id",
            "transactionId",
            "providerTransactionId",
            "amount",
            "currency",
            "status",
            "paymentMethod",
            "paymentProvider",
            "phoneNumber",
            "failureReason",
            "courseId",
            "enrollmentId",
            "orderId",
            "items",
            "paidAt",
            "expiresAt",
            "createdAt",
        )
        read_only_fields = fields


class PaymentStatusSerializer(serializers.ModelSerializer):
    paymentId = serializers.IntegerField(source="id", read_only=True)
    transactionId = serializers.CharField(source="transaction_id", read_only=True)
    providerTransactionId = serializers.CharField(source="provider_transaction_id", read_only=True)
    failureReason = serializers.CharField(source="failure_reason", read_only=True)
    paidAt = serializers.DateTimeField(source="paid_at", read_only=True)
    expiresAt = serializers.DateTimeField(source="expires_at", read_only=True)

    class Meta:
        model = Payment
        fields = (
            "paymentId",
            "transactionId",
            "providerTransactionId",
            "status",
            "amount",
            "currency",
            "failureReason",
            "paidAt",
            "expiresAt",
        )
        read_only_fields = fields

"""
Prepaid Card Serializers

Author: Experience Tech Development Team
Version: 1.0.0
"""

from django.utils import timezone
from django.utils.translation import gettext_lazy as _
from rest_framework import serializers

from .models import DEFAULT_CODE_PREFIX, PrepaidCard


class PrepaidCardSerializer(serializers.ModelSerializer):
    """
    Admin representation of a card.

    The code is generated on creation (``prefix`` + 12 random characters)
    and cannot be changed afterwards.
    """

    prefix = serializers.RegexField(
        r"^[A-Za-z0-9]{1,10}$", write_only=True, required=False, default=DEFAULT_CODE_PREFIX
    )
    usedBy = serializers.IntegerField(source="used_by_id", read_only=True)
    usedAt = serializers.DateTimeField(source="used_at", read_only=True)
    expiresAt = serializers.DateTimeField(source="expires_at", required=False, allow_null=True)
    createdBy = serializers.IntegerField(source="created_by_id", read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    isValid = serializers.BooleanField(source="is_valid", read_only=True)

    class Meta:
        model = PrepaidCard
        fields = (
            "id",
            "code",
            "prefix",
            "value",
            "currency",
            "status",
            "usedBy",
            "usedAt",
            "expiresAt",
            "createdBy",
            "notes",
            "isValid",
            "createdAt",
        )
        read_only_fields = ("id", "code")

    def validate_value(self, value):
        if value <= 0:
            raise serializers.ValidationError(_("The card value must be greater than zero."))
        return value

    def validate_expiresAt(self, value):
        if value is not None and self.instance is None and value <= timezone.now():
            raise serializers.ValidationError(_("The expiry date must be in the future."))
        return value

    def validate_status(self, value):
        if self.instance is None and value != PrepaidCard.Status.ACTIVE:
            raise serializers.ValidationError(_("New cards are always active."))
        if self.instance is not None and value == PrepaidCard.Status.USED and self.instance.status != value:
            raise serializers.ValidationError(_("A card can only become used through a payment."))
        if self.instance is not None and self.instance.status == PrepaidCard.Status.USED and value != self.instance.status:
            raise serializers.ValidationError(_("A used card cannot be reactivated."))
        return value

    def validate(self, attrs):
        if self.instance is not None and self.instance.status == PrepaidCard.Status.USED:
            for field in ("value", "currency"):
                if field in attrs and attrs[field] != getattr(self.instance, field):
                    raise serializers.ValidationError({field: _("A used card cannot be changed.")})
        return attrs

    def create(self, validated_data):
        validated_data.pop("prefix", None)
        return super().create(validated_data)

    def update(self, instance, validated_data):
        validated_data.pop("prefix", None)
        return super().update(instance, validated_data)


class ValidateCardSerializer(serializers.Serializer):
    code = serializers.CharField(max_length=50)


class CardCheckSerializer(serializers.ModelSerializer):
    isValid = serializers.BooleanField(source="is_valid", read_only=True)

    class Meta:
        model = PrepaidCard
        fields = ("code", "value", "currency", "isValid")
        read_only_fields = fields

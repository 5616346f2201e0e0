"""
Prepaid Card Model

A prepaid card is a single-use bearer credential with a fixed value. Cards
are issued by administrators and redeemed once to pay for a course.

Lifecycle:
    active → used      (consumed by a payment)
    active → expired   (presented after ``expires_at``)
    active → disabled  (set by an administrator)

Consumption is a compare-and-set on ``status=active``, so two concurrent
payments cannot both redeem the same card.

Author: Experience Tech Development Team
Version: 1.0.0
"""

import secrets
import string
from decimal import Decimal
from typing import Optional

from django.conf import settings
from django.core.validators import MinLengthValidator, MinValueValidator
from django.db import models
from django.db.models import Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from ..catalog.models import Currency

__all__ = ["PrepaidCard"]

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_RANDOM_LENGTH = 12
DEFAULT_CODE_PREFIX = "EXP"


class PrepaidCard(models.Model):
    """
    Single-use prepaid card.

    Attributes:
        code: Unique uppercase code printed on the card
        value: Amount the card can pay for
        status: active, used, expired or disabled
        used_by / used_at: Set when the card is consumed
        expires_at: Optional expiry; past it the card cannot be used
    """

    class Status(models.TextChoices):
        ACTIVE = "active", _("Active")
        USED = "used", _("Used")
        EXPIRED = "expired", _("Expired")
        DISABLED = "disabled", _("Disabled")

    code = models.CharField(
        max_length=50,
        unique=True,
        validators=[MinLengthValidator(6)],
        verbose_name=_("Code"),
    )
    value = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(0)],
        verbose_name=_("Value"),
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
        default=Status.ACTIVE,
        db_index=True,
        verbose_name=_("Status"),
    )
    used_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="used_prepaid_cards",
        verbose_name=_("Used by"),
    )
    used_at = models.DateTimeField(null=True, blank=True, verbose_name=_("Used at"))
    expires_at = models.DateTimeField(
        null=True, blank=True, db_index=True, verbose_name=_("Expires at")
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_prepaid_cards",
        verbose_name=_("Created by"),
    )
    notes = models.TextField(max_length=500, blank=True, verbose_name=_("Notes"))
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"{self.code} ({self.value} {self.currency}, {self.status})"

    def save(self, *args, **kwargs):
        self.code = self.normalize_code(self.code)
        super().save(*args, **kwargs)

    @staticmethod
    def normalize_code(code: Optional[str]) -> str:
        return (code or "").strip().upper()

    @classmethod
    def generate_code(cls, prefix: str = DEFAULT_CODE_PREFIX) -> str:
        """Return ``prefix`` followed by 12 random characters from A-Z0-9."""
        suffix = "".join(secrets.choice(CODE_ALPHABET) for i in range(CODE_RANDOM_LENGTH))
        return f"{prefix}{suffix}"

    def is_expired(self, now=None) -> bool:
        now = now or timezone.now()
        return self.expires_at is not None and self.expires_at < now

    @property
    def is_valid(self) -> bool:
        return self.status == self.Status.ACTIVE and not self.is_expired()

    @property
    def remaining_value(self) -> Decimal:
        return self.value if self.is_valid else Decimal("0")

    def mark_expired(self) -> bool:
        """
        Flip an active card whose expiry has passed to ``expired``.

        Returns:
            True if this call changed the stored status
        """
        now = timezone.now()
        updated = PrepaidCard.objects.filter(
            pk=self.pk, status=self.Status.ACTIVE, expires_at__lt=now
        ).update(status=self.Status.EXPIRED, updated_at=now)
        if updated:
            self.status = self.Status.EXPIRED
        return bool(updated)

    def consume(self, user) -> bool:
        """
        Redeem the card for ``user``.

        The write only happens if the stored card is still active and not
        expired; a card already consumed by a concurrent request is left alone.

        Returns:
            True if the card was consumed by this call
        """
        now = timezone.now()
        updated = (
            PrepaidCard.objects.filter(pk=self.pk, status=self.Status.ACTIVE)
            .filter(Q(expires_at__isnull=True) | Q(expires_at__gte=now))
            .update(status=self.Status.USED, used_by=user, used_at=now, updated_at=now)
        )
        if updated:
            self.status = self.Status.USED
            self.used_by = user
            self.used_at = now
        return bool(updated)

    class Meta:
        verbose_name = _("Prepaid card")
        verbose_name_plural = _("Prepaid cards")
        ordering = ["-created_at"]

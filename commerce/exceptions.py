"""
Commerce API Exceptions

Business-rule exceptions raised by the payment coordinator, order creation and
prepaid card handling. Every class is a DRF ``APIException`` so views can let
them propagate; the response body is message-only (``{"detail": ...}``).

Hierarchy:
- CommerceError (400)
  - BusinessRuleViolation (400): capacity, stock, duplicate enrollment,
    card state, payment state
  - ResourceNotFound (404): course/product, payment, order, prepaid card
  - UnprocessableEntity (422): request-schema errors with field details
  - PaymentProviderError (502): mobile money operator failures

``api_exception_handler`` is installed as DRF's EXCEPTION_HANDLER. It keeps
DRF's handling for API exceptions and turns anything unexpected into a logged
500 response.

Author: Experience Tech Development Team
Version: 1.0.0
"""

import logging
import traceback
from typing import Any, Dict, Optional

from django.conf import settings
from django.utils.translation import gettext_lazy as _
from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.response import Response
from rest_framework.views import exception_handler, set_rollback

logger = logging.getLogger(__name__)


class CommerceError(APIException):
    """Base class for all commerce business errors."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = _("The request could not be processed.")
    default_code = "commerce_error"


# --- 400: business rules ---


class BusinessRuleViolation(CommerceError):
    default_detail = _("This operation is not allowed.")
    default_code = "business_rule_violation"


class CapacityExceeded(BusinessRuleViolation):
    default_detail = _("This course is full.")
    default_code = "capacity_exceeded"


class InsufficientStock(BusinessRuleViolation):
    default_detail = _("Insufficient stock for this product.")
    default_code = "insufficient_stock"

    def __init__(self, product_name: Optional[str] = None, available: Optional[int] = None):
        detail = None
        if product_name is not None:
            detail = _("Insufficient stock for %(name)s (available: %(available)s).") % {
                "name": product_name,
                "available": available,
            }
        super().__init__(detail)


class DuplicateEnrollment(BusinessRuleViolation):
    default_detail = _("You are already enrolled in this course.")
    default_code = "duplicate_enrollment"


class CardNotActive(BusinessRuleViolation):
    default_detail = _("This card has already been used or is disabled.")
    default_code = "card_not_active"


class CardExpired(BusinessRuleViolation):
    default_detail = _("This card has expired.")
    default_code = "card_expired"


class InsufficientCardValue(BusinessRuleViolation):
    default_detail = _("The card value is not sufficient to pay for this item.")
    default_code = "insufficient_card_value"

    def __init__(self, card_value=None, amount=None, currency: str = "", card_currency: str = ""):
        detail = None
        if card_value is not None and amount is not None:
            detail = _(
                "The card value (%(value)s %(card_currency)s) is not sufficient to pay "
                "%(amount)s %(currency)s."
            ) % {
                "value": card_value,
                "card_currency": card_currency or currency,
                "amount": amount,
                "currency": currency,
            }
        super().__init__(detail)


class PaymentAlreadyProcessed(BusinessRuleViolation):
    default_detail = _("This payment has already been processed.")
    default_code = "payment_already_processed"


class PaymentMethodNotAllowed(BusinessRuleViolation):
    default_detail = _(
        "Payment method not allowed. Accepted methods: airtel_money, moov_money, "
        "bank_transfer, prepaid_card."
    )
    default_code = "payment_method_not_allowed"


class PaymentAwaitingProvider(BusinessRuleViolation):
    default_detail = _("This mobile money payment is awaiting provider confirmation.")
    default_code = "payment_awaiting_provider"


# --- 404: missing resources ---


class ResourceNotFound(CommerceError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = _("Not found.")
    default_code = "not_found"


class CatalogItemNotFound(ResourceNotFound):
    default_detail = _("This item does not exist or is no longer available.")
    default_code = "catalog_item_not_found"


class PaymentNotFound(ResourceNotFound):
    default_detail = _("Payment not found.")
    default_code = "payment_not_found"


class OrderNotFound(ResourceNotFound):
    default_detail = _("Order not found.")
    default_code = "order_not_found"


class InvalidCard(ResourceNotFound):
    default_detail = _("Invalid prepaid card code.")
    default_code = "invalid_card"


# --- 422 / 502 ---


class UnprocessableEntity(CommerceError):
    """
    Request-schema validation failure. The body carries the field errors:
    ``{"detail": "...", "errors": {"field": ["message"]}}``.
    """

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_detail = _("Invalid data.")
    default_code = "unprocessable_entity"

    def __init__(self, errors: Optional[Dict[str, Any]] = None, detail=None):
        super().__init__({"detail": detail or self.default_detail, "errors": errors or {}})


class PaymentProviderError(CommerceError):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = _("The mobile money provider could not process the payment.")
    default_code = "payment_provider_error"


def api_exception_handler(exc, context):
    """
    DRF exception handler.

    API exceptions (including the classes above, authentication and
    permission errors) are rendered by DRF. Anything else is logged with its
    stack trace and answered with a 500; the stack is only exposed in DEBUG.
    """
    response = exception_handler(exc, context)
    if response is not None:
        return response

    view = context.get("view")
    logger.error(
        "Unhandled error in %s: %s",
        view.__class__.__name__ if view else "unknown view",
        exc,
        exc_info=exc,
    )
    set_rollback()
    data = {"detail": "Server error"}
    if settings.DEBUG:
        data["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return Response(data, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

"""
Mobile Money Provider Adapters

This module talks to the mobile money operators (Airtel Money, Moov Money).
Each operator gets a small adapter class built on ``MobileMoneyProvider``;
the commerce payment coordinator only depends on the four public methods:

- ``create_payment(amount, phone_number, transaction_id, metadata)``
  → ``ProviderResponse(transaction_reference, status, message)``
- ``check_status(transaction_reference)`` → ``ProviderStatus(status, reason)``
- ``validate_webhook(raw_body, signature)`` → raises ``WebhookSignatureError``
- ``parse_webhook(payload)`` → ``WebhookEvent``

Operating modes:
- Live: credentials configured in ``settings.MOBILE_MONEY``; requests are
  sent with ``requests`` and a bounded timeout.
- Simulation: API key or secret missing; references are generated locally
  and ``check_status`` always answers ``pending``.

Webhook signatures are the hex HMAC-SHA256 of the raw request body keyed
with the operator's webhook secret. An optional ``sha256=`` prefix is
accepted.

Author: Experience Tech Development Team
Version: 1.0.0
"""

import hashlib
import hmac
import logging
import re
import secrets
import string
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Optional

import requests
from django.conf import settings

from .exceptions import (
    ProviderConfigurationError,
    ProviderRequestError,
    ProviderUnavailableError,
    WebhookSignatureError,
)

logger = logging.getLogger(__name__)

STATUS_PENDING = "pending"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"

# Operator status vocabulary mapped onto pending/completed/failed
_STATUS_ALIASES = {
    "success": STATUS_COMPLETED,
    "successful": STATUS_COMPLETED,
    "completed": STATUS_COMPLETED,
    "ts": STATUS_COMPLETED,
    "failed": STATUS_FAILED,
    "error": STATUS_FAILED,
    "rejected": STATUS_FAILED,
    "cancelled": STATUS_FAILED,
    "tf": STATUS_FAILED,
}

PHONE_NUMBER_PATTERN = re.compile(r"^(\+?235)?[0-9]{8}$")

_REFERENCE_ALPHABET = string.ascii_uppercase + string.digits


def normalize_status(raw_status: Optional[str]) -> str:
    """Map an operator status string to pending/completed/failed."""
    return _STATUS_ALIASES.get(str(raw_status or "").strip().lower(), STATUS_PENDING)


def normalize_phone_number(raw_phone: str) -> str:
    """
    Validate a Chadian mobile number and return its 8 local digits.

    Whitespace is ignored; an optional ``235``/``+235`` country prefix is
    stripped.

    Raises:
        ValueError: If the number does not match ``^(\\+?235)?[0-9]{8}$``
    """
    compact = re.sub(r"\s+", "", raw_phone or "")
    if not PHONE_NUMBER_PATTERN.match(compact):
        raise ValueError("Invalid phone number. Expected format: +235XXXXXXXX or XXXXXXXX")
    return compact[-8:]


@dataclass
class ProviderResponse:
    transaction_reference: str
    status: str = STATUS_PENDING
    message: str = ""
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ProviderStatus:
    status: str
    reason: str = ""


@dataclass
class WebhookEvent:
    transaction_reference: str
    status: str
    reason: str = ""


class MobileMoneyProvider:
    """
    Base adapter for a mobile money operator.

    Subclasses set ``name``, ``display_name``, ``reference_prefix`` and
    ``signature_header``; the HTTP and signature handling is shared.

    Attributes:
        REQUEST_TIMEOUT (int): Default HTTP timeout in seconds
    """

    name = ""
    display_name = ""
    reference_prefix = ""
    webhook_path = ""
    signature_header = ""

    REQUEST_TIMEOUT = 30

    def __init__(self, config: Optional[Dict[str, Any]] = None) -> None:
        config = config or {}
        self.api_key = config.get("API_KEY", "")
        self.api_secret = config.get("API_SECRET", "")
        self.merchant_id = config.get("MERCHANT_ID", "")
        self.base_url = (config.get("BASE_URL") or "").rstrip("/")
        self.webhook_secret = config.get("WEBHOOK_SECRET", "")
        self.timeout = config.get("TIMEOUT") or self.REQUEST_TIMEOUT

    @property
    def simulation_mode(self) -> bool:
        return not (self.api_key and self.api_secret)

    @property
    def callback_url(self) -> str:
        return f"{settings.API_URL.rstrip('/')}/api/payments/webhook/{self.webhook_path}/"

    @property
    def initiated_message(self) -> str:
        return (
            "Paiement initié. Un message sera envoyé sur votre téléphone "
            f"{self.display_name}."
        )

    # --- Payments ---

    def create_payment(
        self,
        amount: Decimal,
        phone_number: str,
        transaction_id: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> ProviderResponse:
        """
        Ask the operator to push a payment request to the customer's phone.

        Returns:
            ProviderResponse with the operator reference; status is normally pending

        Raises:
            ProviderRequestError: Operator rejected the request
            ProviderUnavailableError: Operator could not be reached
        """
        if self.simulation_mode:
            logger.warning(
                "%s API credentials not configured. Using simulation mode.",
                self.display_name,
            )
            return ProviderResponse(
                transaction_reference=self._simulated_reference(),
                status=STATUS_PENDING,
                message=self.initiated_message,
            )

        if not phone_number:
            raise ProviderRequestError(
                f"{self.display_name} requires a phone number", error_code="missing_phone"
            )

        payload = {
            "amount": str(amount),
            "phoneNumber": phone_number,
            "transactionId": transaction_id,
            "callbackUrl": self.callback_url,
            "metadata": metadata or {},
        }
        data = self._request("post", "/payment", json=payload)

        reference = data.get("transactionReference") or data.get("reference")
        if not reference:
            raise ProviderRequestError(
                f"{self.display_name} response did not contain a transaction reference",
                details=data,
            )
        logger.info("%s payment %s initiated as %s", self.display_name, transaction_id, reference)
        return ProviderResponse(
            transaction_reference=reference,
            status=normalize_status(data.get("status")),
            message=data.get("message") or self.initiated_message,
            raw=data,
        )

    def check_status(self, transaction_reference: str) -> ProviderStatus:
        """Query the operator for the current state of a payment."""
        if self.simulation_mode:
            return ProviderStatus(status=STATUS_PENDING)

        data = self._request("get", f"/transaction/{transaction_reference}")
        return ProviderStatus(
            status=normalize_status(data.get("status")),
            reason=data.get("reason") or data.get("message") or "",
        )

    # --- Webhooks ---

    def validate_webhook(self, raw_body: bytes, signature: Optional[str]) -> None:
        """
        Verify the HMAC-SHA256 signature of a webhook body.

        Raises:
            WebhookSignatureError: Signature missing or wrong, or no secret in production
        """
        if not self.webhook_secret:
            if settings.DEBUG:
                logger.warning(
                    "%s webhook secret not configured; accepting unsigned callback (DEBUG)",
                    self.display_name,
                )
                return
            raise WebhookSignatureError(f"{self.display_name} webhook secret not configured")

        if not signature:
            raise WebhookSignatureError("Missing webhook signature")

        provided = signature.strip()
        if provided.lower().startswith("sha256="):
            provided = provided[len("sha256="):]

        expected = self.sign(raw_body)
        if not hmac.compare_digest(expected.encode("utf-8"), provided.lower().encode("utf-8")):
            raise WebhookSignatureError()

    def sign(self, raw_body: bytes) -> str:
        """Signature the operator is expected to send for ``raw_body``."""
        return hmac.new(
            self.webhook_secret.encode("utf-8"), raw_body or b"", hashlib.sha256
        ).hexdigest()

    def parse_webhook(self, payload: Dict[str, Any]) -> WebhookEvent:
        reference = payload.get("transactionReference") or payload.get("reference") or ""
        return WebhookEvent(
            transaction_reference=str(reference),
            status=normalize_status(payload.get("status")),
            reason=payload.get("reason") or payload.get("message") or "",
        )

    # --- Helpers ---

    def _simulated_reference(self) -> str:
        suffix = "".join(secrets.choice(_REFERENCE_ALPHABET) for _ in range(9))
        return f"{self.reference_prefix}{int(time.time() * 1000)}{suffix}"

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
            "X-Merchant-Id": self.merchant_id,
        }

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            logger.debug("%s %s %s", self.display_name, method.upper(), url)
            response = requests.request(
                method, url, headers=self._headers(), timeout=self.timeout, **kwargs
            )
        except requests.exceptions.Timeout:
            raise ProviderUnavailableError(
                f"{self.display_name} request timed out after {self.timeout}s"
            )
        except requests.exceptions.ConnectionError as e:
            raise ProviderUnavailableError(
                f"Could not connect to {self.display_name}: {e}"
            )
        except requests.exceptions.RequestException as e:
            raise ProviderRequestError(f"{self.display_name} request failed: {e}")

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        if not response.ok:
            logger.error(
                "%s request failed: %s - %s", self.display_name, response.status_code, response.text
            )
            raise ProviderRequestError(
                data.get("message") or f"{self.display_name} returned HTTP {response.status_code}",
                status_code=response.status_code,
                error_code=data.get("code"),
                details=data,
            )
        return data


class AirtelMoneyProvider(MobileMoneyProvider):
    name = "airtel_money"
    display_name = "Airtel Money"
    reference_prefix = "AIR"
    webhook_path = "airtel"
    signature_header = "HTTP_X_AIRTEL_SIGNATURE"


class MoovMoneyProvider(MobileMoneyProvider):
    name = "moov_money"
    display_name = "Moov Money"
    reference_prefix = "MOOV"
    webhook_path = "moov"
    signature_header = "HTTP_X_MOOV_SIGNATURE"


PROVIDER_CLASSES = {
    AirtelMoneyProvider.name: AirtelMoneyProvider,
    MoovMoneyProvider.name: MoovMoneyProvider,
}


def get_provider(name: str) -> MobileMoneyProvider:
    """
    Build the adapter for ``name`` (``airtel_money`` or ``moov_money``) from
    ``settings.MOBILE_MONEY``.

    Raises:
        ProviderConfigurationError: Unknown provider name
    """
    try:
        provider_class = PROVIDER_CLASSES[name]
    except KeyError:
        raise ProviderConfigurationError(f"Unknown mobile money provider: {name}")
    config = getattr(settings, "MOBILE_MONEY", {}).get(name, {})
    return provider_class(config)

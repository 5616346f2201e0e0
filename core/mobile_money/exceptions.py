"""
Mobile Money Provider Exceptions

Exception classes raised by the mobile money adapters. They follow a small
hierarchy so callers can either catch everything coming from an operator
(``MobileMoneyException``) or react to one failure mode in particular.

Author: Experience Tech Development Team
Version: 1.0.0
"""

from typing import Optional, Dict, Any


class MobileMoneyException(Exception):
    """
    Base exception class for all mobile money provider errors.

    Attributes:
        message (str): Human-readable error message
        status_code (Optional[int]): HTTP status code returned by the operator, if any
        error_code (Optional[str]): Operator-specific error code
        details (Optional[Dict[str, Any]]): Additional error details

    Example:
        >>> try:
        ...     provider.create_payment(amount, phone, transaction_id, {})
        ... except MobileMoneyException as e:
        ...     logger.error("Provider error: %s", e.message)
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for logging or serialization.
        """
        return {
            "message": self.message,
            "status_code": self.status_code,
            "error_code": self.error_code,
            "details": self.details,
            "exception_type": self.__class__.__name__,
        }


class ProviderConfigurationError(MobileMoneyException):
    """Raised when a provider is unknown or misconfigured."""


class ProviderRequestError(MobileMoneyException):
    """
    Raised when the operator answers with an error (non-2xx or a rejected
    payment request).
    """


class ProviderUnavailableError(MobileMoneyException):
    """
    Raised when the operator cannot be reached (timeout, connection error).

    Attributes:
        retry_after (Optional[int]): Seconds to wait before retrying, if known
    """

    def __init__(
        self,
        message: str = "Mobile money provider is temporarily unavailable",
        retry_after: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.retry_after = retry_after
        super().__init__(message, status_code=503, details=details)


class WebhookSignatureError(MobileMoneyException):
    """Raised when a webhook callback carries a missing or invalid signature."""

    def __init__(self, message: str = "Invalid webhook signature") -> None:
        super().__init__(message, status_code=400, error_code="invalid_signature")

"""
Tests for the mobile money provider adapters.

The HTTP boundary is mocked with ``unittest.mock``; no request leaves the
test process.
"""

from decimal import Decimal
from unittest import mock

import requests
from django.test import SimpleTestCase, override_settings

from .exceptions import (
    ProviderConfigurationError,
    ProviderRequestError,
    ProviderUnavailableError,
    WebhookSignatureError,
)
from .providers import (
    AirtelMoneyProvider,
    MoovMoneyProvider,
    get_provider,
    normalize_phone_number,
)

LIVE_CONFIG = {
    "API_KEY": "key",
    "API_SECRET": "secret",
    "MERCHANT_ID": "merchant-1",
    "BASE_URL": "https://airtel.example.test/v1/",
    "WEBHOOK_SECRET": "whsec",
    "TIMEOUT": 5,
}


def _response(status_code=200, data=None):
    response = mock.Mock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    response.json.return_value = data or {}
    response.text = str(data)
    return response


class PhoneNumberTests(SimpleTestCase):
    def test_local_number_is_kept(self):
        self.assertEqual(normalize_phone_number("66123456"), "66123456")

    def test_country_code_and_whitespace_are_stripped(self):
        self.assertEqual(normalize_phone_number("+235 66 12 34 56"), "66123456")
        self.assertEqual(normalize_phone_number("23599123456"), "99123456")

    def test_invalid_numbers_are_rejected(self):
        for raw in ["", "1234567", "+33612345678", "66-12-34-56"]:
            with self.assertRaises(ValueError):
                normalize_phone_number(raw)


class SimulationModeTests(SimpleTestCase):
    def test_create_payment_generates_prefixed_reference(self):
        provider = AirtelMoneyProvider({})
        self.assertTrue(provider.simulation_mode)

        result = provider.create_payment(Decimal("5000"), "66123456", "tx-1", {})

        self.assertTrue(result.transaction_reference.startswith("AIR"))
        self.assertEqual(result.status, "pending")
        self.assertIn("Airtel Money", result.message)

    def test_moov_reference_prefix(self):
        result = MoovMoneyProvider({}).create_payment(Decimal("10"), "99123456", "tx-2")
        self.assertTrue(result.transaction_reference.startswith("MOOV"))

    def test_check_status_is_always_pending(self):
        self.assertEqual(MoovMoneyProvider({}).check_status("MOOV123").status, "pending")


class LiveModeTests(SimpleTestCase):
    @override_settings(API_URL="https://api.example.test")
    @mock.patch("core.mobile_money.providers.requests.request")
    def test_create_payment_posts_to_operator(self, mock_request):
        mock_request.return_value = _response(
            201, {"transactionReference": "AIR-LIVE-1", "status": "PENDING"}
        )
        provider = AirtelMoneyProvider(LIVE_CONFIG)

        result = provider.create_payment(Decimal("2500.00"), "66123456", "tx-3", {"paymentId": 1})

        self.assertEqual(result.transaction_reference, "AIR-LIVE-1")
        self.assertEqual(result.status, "pending")
        args, kwargs = mock_request.call_args
        self.assertEqual(args, ("post", "https://airtel.example.test/v1/payment"))
        self.assertEqual(kwargs["timeout"], 5)
        self.assertEqual(kwargs["headers"]["X-Merchant-Id"], "merchant-1")
        self.assertEqual(
            kwargs["json"]["callbackUrl"],
            "https://api.example.test/api/payments/webhook/airtel/",
        )

    @mock.patch("core.mobile_money.providers.requests.request")
    def test_check_status_maps_operator_vocabulary(self, mock_request):
        mock_request.return_value = _response(200, {"status": "SUCCESS"})
        self.assertEqual(AirtelMoneyProvider(LIVE_CONFIG).check_status("R1").status, "completed")

        mock_request.return_value = _response(200, {"status": "failed", "reason": "Solde insuffisant"})
        status = AirtelMoneyProvider(LIVE_CONFIG).check_status("R1")
        self.assertEqual(status.status, "failed")
        self.assertEqual(status.reason, "Solde insuffisant")

    @mock.patch("core.mobile_money.providers.requests.request")
    def test_timeout_raises_unavailable(self, mock_request):
        mock_request.side_effect = requests.exceptions.Timeout()
        with self.assertRaises(ProviderUnavailableError):
            AirtelMoneyProvider(LIVE_CONFIG).check_status("R1")

    @mock.patch("core.mobile_money.providers.requests.request")
    def test_error_status_raises_request_error(self, mock_request):
        mock_request.return_value = _response(400, {"message": "Invalid MSISDN", "code": "E01"})
        with self.assertRaises(ProviderRequestError) as ctx:
            AirtelMoneyProvider(LIVE_CONFIG).create_payment(Decimal("10"), "66123456", "tx-4")
        self.assertEqual(ctx.exception.status_code, 400)
        self.assertEqual(ctx.exception.error_code, "E01")

    @mock.patch("core.mobile_money.providers.requests.request")
    def test_non_object_json_is_a_request_error(self, mock_request):
        mock_request.return_value = _response(201, ["AIR-LIVE-2"])
        with self.assertRaises(ProviderRequestError):
            AirtelMoneyProvider(LIVE_CONFIG).create_payment(Decimal("10"), "66123456", "tx-6")

        mock_request.return_value = _response(500, ["boom"])
        with self.assertRaises(ProviderRequestError) as ctx:
            AirtelMoneyProvider(LIVE_CONFIG).check_status("R1")
        self.assertEqual(ctx.exception.status_code, 500)

    def test_live_mode_requires_phone_number(self):
        with self.assertRaises(ProviderRequestError):
            AirtelMoneyProvider(LIVE_CONFIG).create_payment(Decimal("10"), "", "tx-5")


class WebhookSignatureTests(SimpleTestCase):
    body = b'{"transactionReference": "AIR1", "status": "success"}'

    def test_valid_signature_is_accepted(self):
        provider = AirtelMoneyProvider(LIVE_CONFIG)
        provider.validate_webhook(self.body, provider.sign(self.body))
        provider.validate_webhook(self.body, "sha256=" + provider.sign(self.body))

    def test_tampered_body_is_rejected(self):
        provider = AirtelMoneyProvider(LIVE_CONFIG)
        signature = provider.sign(self.body)
        with self.assertRaises(WebhookSignatureError):
            provider.validate_webhook(self.body + b" ", signature)

    def test_missing_signature_is_rejected(self):
        with self.assertRaises(WebhookSignatureError):
            AirtelMoneyProvider(LIVE_CONFIG).validate_webhook(self.body, None)

    @override_settings(DEBUG=False)
    def test_missing_secret_is_rejected_in_production(self):
        with self.assertRaises(WebhookSignatureError):
            MoovMoneyProvider({}).validate_webhook(self.body, "anything")

    @override_settings(DEBUG=True)
    def test_missing_secret_is_accepted_in_debug(self):
        MoovMoneyProvider({}).validate_webhook(self.body, None)

    def test_parse_webhook(self):
        event = AirtelMoneyProvider({}).parse_webhook(
            {"transactionReference": "AIR1", "status": "error", "message": "Timeout"}
        )
        self.assertEqual(event.transaction_reference, "AIR1")
        self.assertEqual(event.status, "failed")
        self.assertEqual(event.reason, "Timeout")


class GetProviderTests(SimpleTestCase):
    @override_settings(MOBILE_MONEY={"moov_money": {"API_KEY": "k", "API_SECRET": "s"}})
    def test_builds_configured_provider(self):
        provider = get_provider("moov_money")
        self.assertIsInstance(provider, MoovMoneyProvider)
        self.assertFalse(provider.simulation_mode)

    def test_unknown_provider(self):
        with self.assertRaises(ProviderConfigurationError):
            get_provider("orange_money")

"""
Mobile money payments: creation, operator callbacks, status polling and
the races between them.

The operator runs in simulation mode (no API credentials) unless a test
swaps the adapter for a mock.
"""

from datetime import timedelta
from decimal import Decimal
from unittest import mock

from django.test import override_settings
from django.utils import timezone
from rest_framework import status
from rest_framework.exceptions import ValidationError
from rest_framework.test import APITestCase

from commerce.models import Enrollment, Order, Payment, PaymentItem, Product
from commerce.payments.coordinator import PaymentCoordinator
from core.mobile_money.exceptions import ProviderUnavailableError
from core.mobile_money.providers import ProviderStatus

from .helpers import MOBILE_MONEY_TEST_CONFIG, make_course, make_product, make_user, signed_body

CREATE_INTENT_URL = "/api/payments/create-intent/"
CREATE_MOBILE_MONEY_URL = "/api/payments/create-mobile-money/"
AIRTEL_WEBHOOK_URL = "/api/payments/webhook/airtel/"
MOOV_WEBHOOK_URL = "/api/payments/webhook/moov/"


def _mock_provider_factory(provider):
    return mock.Mock(return_value=provider)


@override_settings(MOBILE_MONEY=MOBILE_MONEY_TEST_CONFIG)
class MobileMoneyCreationTests(APITestCase):
    @classmethod
    def setUpTestData(cls):
        cls.user = make_user("dina")

    def setUp(self):
        self.client.force_authenticate(self.user)

    def test_course_payment_stays_pending_with_reference(self):
        course = make_course(price="25000")

        response = self.client.post(
            CREATE_INTENT_URL,
            {"courseId": course.pk, "paymentMethod": "airtel_money", "phoneNumber": "+235 66 12 34 56"},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        body = response.json()
        self.assertEqual(body["status"], Payment.Status.PENDING)
        self.assertTrue(body["providerTransactionId"].startswith("AIR"))
        self.assertIn("Airtel Money", body["message"])

        payment = Payment.objects.get(pk=body["paymentId"])
        self.assertEqual(payment.phone_number, "66123456")
        self.assertEqual(payment.payment_provider, Payment.Provider.AIRTEL_MONEY)
        self.assertIsNotNone(payment.expires_at)
        self.assertEqual(Enrollment.objects.get(pk=body["enrollmentId"]).status, Enrollment.Status.PENDING)
        course.refresh_from_db()
        self.assertEqual(course.current_students, 0)

    def test_provider_failure_fails_payment_and_cancels_enrollment(self):
        course = make_course()
        provider = mock.Mock()
        provider.create_payment.side_effect = ProviderUnavailableError("Airtel Money request timed out")

        with mock.patch("commerce.payments.coordinator.get_provider", _mock_provider_factory(provider)):
            response = self.client.post(
                CREATE_INTENT_URL,
                {"courseId": course.pk, "paymentMethod": "airtel_money", "phoneNumber": "66123456"},
                format="json",
            )

        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)
        payment = Payment.objects.get(user=self.user)
        self.assertEqual(payment.status, Payment.Status.FAILED)
        self.assertIn("timed out", payment.failure_reason)
        self.assertEqual(
            Enrollment.objects.get(user=self.user, course=course).status,
            Enrollment.Status.CANCELLED,
        )

    def test_cart_payment_with_products(self):
        router = make_product(sku="RTR-01", price="30000", stock=4)
        cable = make_product(sku="CBL-01", price="2500", stock=10)

        response = self.client.post(
            CREATE_MOBILE_MONEY_URL,
            {
                "items": [
                    {"type": "product", "itemId": router.pk, "quantity": 2},
                    {"type": "product", "itemId": cable.pk, "quantity": 3},
                ],
                "paymentMethod": "moov_money",
                "phoneNumber": "23599887766",
            },
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        body = response.json()
        self.assertEqual(Decimal(str(body["amount"])), Decimal("67500"))
        self.assertEqual(body["phoneNumber"], "99887766")
        self.assertTrue(body["providerTransactionId"].startswith("MOOV"))
        payment = Payment.objects.get(pk=body["paymentId"])
        self.assertEqual(payment.items.count(), 2)
        # stock only moves when the payment completes
        router.refresh_from_db()
        self.assertEqual(router.stock, 4)

    def test_invalid_phone_number(self):
        response = self.client.post(
            CREATE_MOBILE_MONEY_URL,
            {
                "items": [{"type": "course", "itemId": make_course().pk}],
                "paymentMethod": "airtel_money",
                "phoneNumber": "12345",
            },
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("phoneNumber", response.json())
        self.assertFalse(Payment.objects.exists())

    @override_settings(
        MOBILE_MONEY={"airtel_money": {"API_KEY": "key", "API_SECRET": "secret"}}
    )
    def test_course_payment_requires_phone_number(self):
        course = make_course()

        response = self.client.post(
            CREATE_INTENT_URL,
            {"courseId": course.pk, "paymentMethod": "airtel_money"},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("phoneNumber", response.json())
        self.assertFalse(Payment.objects.exists())
        self.assertFalse(Enrollment.objects.exists())

    def test_same_course_twice_is_rejected(self):
        course = make_course(price="100")

        response = self.client.post(
            CREATE_MOBILE_MONEY_URL,
            {
                "items": [
                    {"type": "course", "itemId": course.pk},
                    {"type": "course", "itemId": course.pk},
                ],
                "paymentMethod": "airtel_money",
                "phoneNumber": "66123456",
            },
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("items", response.json())
        self.assertFalse(Payment.objects.exists())

        with self.assertRaises(ValidationError):
            PaymentCoordinator().create_mobile_money_payment(
                self.user,
                [{"type": "course", "itemId": course.pk}, {"type": "course", "itemId": course.pk}],
                "airtel_money",
                "66123456",
            )
        self.assertFalse(Enrollment.objects.exists())

    def test_cart_payment_rejects_non_mobile_method(self):
        response = self.client.post(
            CREATE_MOBILE_MONEY_URL,
            {
                "items": [{"type": "course", "itemId": make_course().pk}],
                "paymentMethod": "bank_transfer",
                "phoneNumber": "66123456",
            },
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_insufficient_stock_at_creation(self):
        product = make_product(stock=1)

        response = self.client.post(
            CREATE_MOBILE_MONEY_URL,
            {
                "items": [{"type": "product", "itemId": product.pk, "quantity": 2}],
                "paymentMethod": "airtel_money",
                "phoneNumber": "66123456",
            },
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("available: 1", response.json()["detail"])

    def test_cart_item_requires_order(self):
        response = self.client.post(
            CREATE_MOBILE_MONEY_URL,
            {"items": [{"type": "cart"}], "paymentMethod": "airtel_money", "phoneNumber": "66123456"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("orderId", response.json())


@override_settings(MOBILE_MONEY=MOBILE_MONEY_TEST_CONFIG)
class WebhookTests(APITestCase):
    @classmethod
    def setUpTestData(cls):
        cls.user = make_user("emile")

    def setUp(self):
        self.course = make_course(max_students=5)
        result = PaymentCoordinator().create_course_payment(
            self.user, self.course.pk, "airtel_money", phone_number="66123456"
        )
        self.payment = result.payment

    def _deliver(self, payload, url=AIRTEL_WEBHOOK_URL, signature=None):
        body, valid_signature = signed_body(payload)
        return self.client.post(
            url,
            body,
            content_type="application/json",
            HTTP_X_AIRTEL_SIGNATURE=signature if signature is not None else valid_signature,
        )

    def test_completion_applies_once(self):
        payload = {
            "transactionReference": self.payment.provider_transaction_id,
            "status": "SUCCESS",
        }

        response = self._deliver(payload)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json(), {"received": True})
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, Payment.Status.COMPLETED)
        self.assertEqual(self.payment.enrollment.status, Enrollment.Status.ENROLLED)
        self.course.refresh_from_db()
        self.assertEqual(self.course.current_students, 1)
        paid_at = self.payment.paid_at

        # duplicate delivery
        response = self._deliver(payload)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.paid_at, paid_at)
        self.course.refresh_from_db()
        self.assertEqual(self.course.current_students, 1)

    def test_failure_after_completion_is_ignored(self):
        reference = self.payment.provider_transaction_id
        self._deliver({"transactionReference": reference, "status": "completed"})
        self._deliver({"transactionReference": reference, "status": "failed", "reason": "late"})

        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, Payment.Status.COMPLETED)
        self.assertEqual(self.payment.failure_reason, "")

    def test_failure_cancels_enrollment(self):
        response = self._deliver(
            {
                "transactionReference": self.payment.provider_transaction_id,
                "status": "FAILED",
                "reason": "Insufficient balance",
            }
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, Payment.Status.FAILED)
        self.assertEqual(self.payment.failure_reason, "Insufficient balance")
        self.assertEqual(self.payment.enrollment.status, Enrollment.Status.CANCELLED)

    def test_pending_callback_changes_nothing(self):
        response = self._deliver(
            {"transactionReference": self.payment.provider_transaction_id, "status": "PENDING"}
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, Payment.Status.PENDING)

    def test_bad_signature_is_rejected(self):
        response = self._deliver(
            {"transactionReference": self.payment.provider_transaction_id, "status": "SUCCESS"},
            signature="0" * 64,
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, Payment.Status.PENDING)

    def test_missing_signature_is_rejected(self):
        body, _ = signed_body({"transactionReference": "x", "status": "SUCCESS"})
        response = self.client.post(AIRTEL_WEBHOOK_URL, body, content_type="application/json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_unknown_reference(self):
        response = self._deliver({"transactionReference": "AIR000UNKNOWN", "status": "SUCCESS"})
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_reference_of_other_operator_is_not_matched(self):
        body, signature = signed_body(
            {"transactionReference": self.payment.provider_transaction_id, "status": "SUCCESS"}
        )
        response = self.client.post(
            MOOV_WEBHOOK_URL, body, content_type="application/json", HTTP_X_MOOV_SIGNATURE=signature
        )
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    @override_settings(MOBILE_MONEY={"airtel_money": {}, "moov_money": {}})
    def test_unsigned_callbacks_refused_without_secret(self):
        response = self._deliver(
            {"transactionReference": self.payment.provider_transaction_id, "status": "SUCCESS"}
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


@override_settings(MOBILE_MONEY=MOBILE_MONEY_TEST_CONFIG)
class CartCompletionTests(APITestCase):
    @classmethod
    def setUpTestData(cls):
        cls.user = make_user("fatime")

    def test_product_payment_takes_stock_on_completion(self):
        product = make_product(stock=3)
        coordinator = PaymentCoordinator()
        payment = coordinator.create_mobile_money_payment(
            self.user,
            [{"type": "product", "itemId": product.pk, "quantity": 2}],
            "airtel_money",
            "66123456",
        ).payment

        coordinator.finalize_payment(payment.pk, True)

        product.refresh_from_db()
        self.assertEqual(product.stock, 1)
        self.assertEqual(product.sales, 2)

    def test_stock_sold_meanwhile_is_floored(self):
        product = make_product(stock=2)
        coordinator = PaymentCoordinator()
        payment = coordinator.create_mobile_money_payment(
            self.user,
            [{"type": "product", "itemId": product.pk, "quantity": 2}],
            "airtel_money",
            "66123456",
        ).payment
        Product.objects.filter(pk=product.pk).update(stock=1)

        with self.assertLogs("commerce.catalog.inventory", level="WARNING"):
            coordinator.finalize_payment(payment.pk, True)

        product.refresh_from_db()
        self.assertEqual(product.stock, 0)

    def test_order_payment_marks_order_paid(self):
        order = Order.objects.create(
            user=self.user,
            customer_full_name="Fatime Abakar",
            customer_email="fatime@example.com",
            customer_phone="66123456",
            customer_address="Avenue Charles de Gaulle",
            subtotal=Decimal("40000"),
            total=Decimal("40000"),
            payment_method="airtel_money",
        )
        coordinator = PaymentCoordinator()
        payment = coordinator.create_mobile_money_payment(
            self.user, [{"type": "cart"}], "airtel_money", "66123456", order_id=order.pk
        ).payment
        self.assertEqual(payment.amount, Decimal("40000"))
        self.assertEqual(payment.items.get().item_type, PaymentItem.ItemType.CART)

        coordinator.finalize_payment(payment.pk, True, provider_transaction_id="AIR-REF-1")

        order.refresh_from_db()
        self.assertEqual(order.payment_status, Order.PaymentStatus.PAID)
        self.assertEqual(order.status, Order.Status.PROCESSING)
        self.assertEqual(order.payment_transaction_id, "AIR-REF-1")
        self.assertIsNotNone(order.paid_at)

    def test_failed_order_payment_cancels_order(self):
        order = Order.objects.create(
            user=self.user,
            customer_full_name="Fatime Abakar",
            customer_email="fatime@example.com",
            customer_phone="66123456",
            customer_address="Avenue Charles de Gaulle",
            subtotal=Decimal("1000"),
            total=Decimal("1000"),
            payment_method="moov_money",
        )
        coordinator = PaymentCoordinator()
        payment = coordinator.create_mobile_money_payment(
            self.user, [{"type": "cart"}], "moov_money", "66123456", order_id=order.pk
        ).payment

        coordinator.finalize_payment(payment.pk, False, failure_reason="rejected")

        order.refresh_from_db()
        self.assertEqual(order.status, Order.Status.CANCELLED)
        self.assertEqual(order.payment_status, Order.PaymentStatus.FAILED)

    def test_order_of_another_user_is_not_found(self):
        other = make_user("ghislain")
        order = Order.objects.create(
            user=other,
            customer_full_name="Ghislain",
            customer_email="g@example.com",
            customer_phone="66123456",
            customer_address="Moursal",
            subtotal=Decimal("1000"),
            total=Decimal("1000"),
            payment_method="moov_money",
        )
        self.client.force_authenticate(self.user)

        response = self.client.post(
            CREATE_MOBILE_MONEY_URL,
            {
                "items": [{"type": "cart"}],
                "orderId": order.pk,
                "paymentMethod": "moov_money",
                "phoneNumber": "66123456",
            },
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


@override_settings(MOBILE_MONEY=MOBILE_MONEY_TEST_CONFIG)
class CapacityRaceTests(APITestCase):
    """Two buyers pass the capacity check before either payment completes."""

    def test_last_seat_goes_to_first_completion(self):
        course = make_course(max_students=1)
        first_user = make_user("hawa")
        second_user = make_user("idriss")
        coordinator = PaymentCoordinator()
        first = coordinator.create_course_payment(
            first_user, course.pk, "airtel_money", phone_number="66123456"
        ).payment
        second = coordinator.create_course_payment(
            second_user, course.pk, "airtel_money", phone_number="66123457"
        ).payment

        coordinator.finalize_payment(first.pk, True)
        with self.assertLogs("commerce.payments.coordinator", level="WARNING") as logs:
            coordinator.finalize_payment(second.pk, True)

        self.assertIn("is full", logs.output[0])
        course.refresh_from_db()
        self.assertEqual(course.current_students, 1)
        self.assertEqual(
            Enrollment.objects.get(user=first_user).status, Enrollment.Status.ENROLLED
        )
        self.assertEqual(
            Enrollment.objects.get(user=second_user).status, Enrollment.Status.PENDING
        )

    def test_repeated_finalization_is_a_noop(self):
        course = make_course(max_students=3)
        user = make_user("jamal")
        coordinator = PaymentCoordinator()
        payment = coordinator.create_course_payment(
            user, course.pk, "moov_money", phone_number="99123456"
        ).payment

        _, changed_first = coordinator.finalize_payment(payment.pk, True)
        _, changed_again = coordinator.finalize_payment(payment.pk, True)
        _, changed_failure = coordinator.finalize_payment(payment.pk, False)

        self.assertTrue(changed_first)
        self.assertFalse(changed_again)
        self.assertFalse(changed_failure)
        payment.refresh_from_db()
        self.assertEqual(payment.status, Payment.Status.COMPLETED)
        course.refresh_from_db()
        self.assertEqual(course.current_students, 1)


@override_settings(MOBILE_MONEY=MOBILE_MONEY_TEST_CONFIG)
class StatusPollTests(APITestCase):
    @classmethod
    def setUpTestData(cls):
        cls.user = make_user("kaltouma")
        cls.other = make_user("lamine")

    def setUp(self):
        self.course = make_course()
        self.payment = PaymentCoordinator().create_course_payment(
            self.user, self.course.pk, "airtel_money", phone_number="66123456"
        ).payment
        self.client.force_authenticate(self.user)
        self.url = f"/api/payments/{self.payment.pk}/status/"

    def test_simulated_operator_keeps_payment_pending(self):
        response = self.client.get(self.url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["status"], Payment.Status.PENDING)

    def test_poll_finalizes_completed_payment(self):
        provider = mock.Mock()
        provider.check_status.return_value = ProviderStatus(status="completed")

        with mock.patch("commerce.payments.coordinator.get_provider", _mock_provider_factory(provider)):
            response = self.client.get(self.url)

        self.assertEqual(response.json()["status"], Payment.Status.COMPLETED)
        provider.check_status.assert_called_once_with(self.payment.provider_transaction_id)
        self.course.refresh_from_db()
        self.assertEqual(self.course.current_students, 1)

    def test_operator_outage_keeps_payment_pending(self):
        provider = mock.Mock()
        provider.check_status.side_effect = ProviderUnavailableError()

        with mock.patch("commerce.payments.coordinator.get_provider", _mock_provider_factory(provider)):
            response = self.client.get(self.url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["status"], Payment.Status.PENDING)

    def test_expired_payment_is_cancelled_on_poll(self):
        Payment.objects.filter(pk=self.payment.pk).update(
            expires_at=timezone.now() - timedelta(minutes=1)
        )

        response = self.client.get(self.url)

        body = response.json()
        self.assertEqual(body["status"], Payment.Status.CANCELLED)
        self.assertEqual(body["failureReason"], "expired")
        self.assertEqual(
            Enrollment.objects.get(user=self.user, course=self.course).status,
            Enrollment.Status.CANCELLED,
        )

    def test_other_users_payment_is_hidden(self):
        self.client.force_authenticate(self.other)
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

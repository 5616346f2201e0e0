"""
Bank transfer confirmation, payment cancellation, payment history and the
expiry sweep.
"""

from datetime import timedelta
from io import StringIO

from django.core.management import call_command
from django.test import override_settings
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from commerce.models import Enrollment, Payment
from commerce.payments.coordinator import PaymentCoordinator

from .helpers import MOBILE_MONEY_TEST_CONFIG, make_course, make_user

CONFIRM_URL = "/api/payments/confirm/"


class BankTransferTests(APITestCase):
    @classmethod
    def setUpTestData(cls):
        cls.user = make_user("pascal")
        cls.admin = make_user("staff", is_staff=True)

    def setUp(self):
        self.course = make_course(price="75000")
        self.client.force_authenticate(self.user)
        response = self.client.post(
            "/api/payments/create-intent/",
            {"courseId": self.course.pk, "paymentMethod": "bank_transfer"},
            format="json",
        )
        self.body = response.json()
        self.payment = Payment.objects.get(pk=self.body["paymentId"])

    def test_transfer_waits_with_instructions(self):
        self.assertEqual(self.body["status"], Payment.Status.PENDING)
        self.assertIn(self.payment.transaction_id, self.body["message"])
        self.assertEqual(self.payment.payment_provider, Payment.Provider.BANK)

    def test_admin_confirmation_completes_enrollment(self):
        self.client.force_authenticate(self.admin)

        response = self.client.post(CONFIRM_URL, {"paymentId": self.payment.pk}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["payment"]["status"], Payment.Status.COMPLETED)
        self.assertEqual(
            Enrollment.objects.get(pk=self.body["enrollmentId"]).status, Enrollment.Status.ENROLLED
        )
        self.course.refresh_from_db()
        self.assertEqual(self.course.current_students, 1)

        # second confirmation
        response = self.client.post(CONFIRM_URL, {"paymentId": self.payment.pk}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.course.refresh_from_db()
        self.assertEqual(self.course.current_students, 1)

    def test_customer_cannot_confirm(self):
        response = self.client.post(CONFIRM_URL, {"paymentId": self.payment.pk}, format="json")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_confirm_unknown_payment(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post(CONFIRM_URL, {"paymentId": 999999}, format="json")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_transfers_are_not_expired_by_the_sweep(self):
        Payment.objects.filter(pk=self.payment.pk).update(
            expires_at=timezone.now() - timedelta(hours=2)
        )

        expired = PaymentCoordinator().expire_stale_payments()

        self.assertEqual(expired, [])
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, Payment.Status.PENDING)

    def test_cancel_own_payment(self):
        response = self.client.post(f"/api/payments/{self.payment.pk}/cancel/")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, Payment.Status.CANCELLED)
        self.assertEqual(
            Enrollment.objects.get(pk=self.body["enrollmentId"]).status, Enrollment.Status.CANCELLED
        )

        response = self.client.post(f"/api/payments/{self.payment.pk}/cancel/")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_history_and_detail(self):
        response = self.client.get("/api/payments/history/")
        self.assertEqual(response.json()["count"], 1)
        self.assertEqual(response.json()["results"][0]["transactionId"], self.payment.transaction_id)

        response = self.client.get("/api/payments/history/", {"status": "completed"})
        self.assertEqual(response.json()["count"], 0)

        response = self.client.get(f"/api/payments/{self.payment.pk}/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["items"][0]["type"], "course")


@override_settings(MOBILE_MONEY=MOBILE_MONEY_TEST_CONFIG)
class MobileMoneyConfirmTests(APITestCase):
    def test_mobile_money_waits_for_operator(self):
        user = make_user("quentin")
        admin = make_user("boss", is_staff=True)
        payment = PaymentCoordinator().create_course_payment(
            user, make_course().pk, "moov_money", phone_number="99123456"
        ).payment
        self.client.force_authenticate(admin)

        response = self.client.post(CONFIRM_URL, {"paymentId": payment.pk}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("awaiting provider confirmation", response.json()["detail"])


@override_settings(MOBILE_MONEY=MOBILE_MONEY_TEST_CONFIG)
class ExpirePendingPaymentsCommandTests(APITestCase):
    @classmethod
    def setUpTestData(cls):
        cls.user = make_user("rachid")

    def setUp(self):
        coordinator = PaymentCoordinator()
        self.course = make_course()
        self.stale = coordinator.create_course_payment(
            self.user, self.course.pk, "airtel_money", phone_number="66123456"
        ).payment
        self.fresh = coordinator.create_course_payment(
            make_user("salma"), self.course.pk, "airtel_money", phone_number="66123457"
        ).payment
        Payment.objects.filter(pk=self.stale.pk).update(
            expires_at=timezone.now() - timedelta(minutes=5)
        )

    def test_command_cancels_stale_payments(self):
        out = StringIO()
        call_command("expire_pending_payments", stdout=out)

        self.assertIn("Successfully expired 1 payment(s)", out.getvalue())
        self.stale.refresh_from_db()
        self.assertEqual(self.stale.status, Payment.Status.CANCELLED)
        self.assertEqual(self.stale.failure_reason, "expired")
        self.assertEqual(
            Enrollment.objects.get(user=self.user, course=self.course).status,
            Enrollment.Status.CANCELLED,
        )
        self.fresh.refresh_from_db()
        self.assertEqual(self.fresh.status, Payment.Status.PENDING)

    def test_dry_run_changes_nothing(self):
        out = StringIO()
        call_command("expire_pending_payments", "--dry-run", stdout=out)

        self.assertIn(self.stale.transaction_id, out.getvalue())
        self.assertIn("1 stale payment(s) found", out.getvalue())
        self.stale.refresh_from_db()
        self.assertEqual(self.stale.status, Payment.Status.PENDING)

    def test_late_completion_after_expiry_is_ignored(self):
        PaymentCoordinator().expire_stale_payments()

        payment, changed = PaymentCoordinator().finalize_payment(self.stale.pk, True)

        self.assertFalse(changed)
        self.assertEqual(payment.status, Payment.Status.CANCELLED)
        self.course.refresh_from_db()
        self.assertEqual(self.course.current_students, 0)

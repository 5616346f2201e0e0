"""
Payment API Views

Endpoints:
- POST /api/payments/create-intent/: Pay for one course (any method)
- POST /api/payments/create-mobile-money/: Cart-style mobile money payment
- POST /api/payments/confirm/: Admin confirmation of a bank transfer
- GET  /api/payments/history/: Current user's payments (paginated)
- GET  /api/payments/<id>/: Payment detail
- GET  /api/payments/<id>/status/: Status, polling the operator if needed
- POST /api/payments/<id>/cancel/: Cancel an open payment
- POST /api/payments/webhook/airtel/, /webhook/moov/: Operator callbacks

Business errors are raised by ``PaymentCoordinator`` as DRF exceptions and
rendered by ``commerce.exceptions.api_exception_handler``.

Author: Experience Tech Development Team
Version: 1.0.0
"""

import logging

from django.utils.translation import gettext_lazy as _
from rest_framework import generics, status
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import AllowAny, IsAdminUser, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from core.mobile_money.exceptions import MobileMoneyException, WebhookSignatureError
from core.mobile_money.providers import get_provider

from .coordinator import PaymentCoordinator
from .models import Payment
from .serializers import (
    ConfirmPaymentSerializer,
    CreateMobileMoneyPaymentSerializer,
    CreatePaymentIntentSerializer,
    PaymentSerializer,
    PaymentStatusSerializer,
)

logger = logging.getLogger(__name__)


class StandardPagination(PageNumberPagination):
    page_size = 20
    page_size_query_param = "limit"
    max_page_size = 100


class CreatePaymentIntentView(APIView):
    """
    Start a course payment.

    Request Body:
        {"courseId": 1, "paymentMethod": "prepaid_card", "prepaidCardCode": "EXP..."}

    Response (201):
        {paymentId, enrollmentId, amount, currency, transactionId,
         providerTransactionId, paymentMethod, status, expiresAt, message}
    """

    permission_classes = [IsAuthenticated]

    def post(self, request: Request) -> Response:
        serializer = CreatePaymentIntentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = PaymentCoordinator().create_course_payment(
            request.user,
            data["courseId"],
            data["paymentMethod"],
            provider=data.get("provider") or None,
            prepaid_card_code=data.get("prepaidCardCode"),
            phone_number=data.get("phoneNumber") or None,
        )
        payment = result.payment
        return Response(
            {
                "paymentId": payment.pk,
                "enrollmentId": result.enrollment.pk if result.enrollment else None,
                "amount": payment.amount,
                "currency": payment.currency,
                "transactionId": payment.transaction_id,
                "providerTransactionId": payment.provider_transaction_id or None,
                "paymentMethod": payment.payment_method,
                "status": payment.status,
                "expiresAt": payment.expires_at,
                "message": result.message,
            },
            status=status.HTTP_201_CREATED,
        )


class CreateMobileMoneyPaymentView(APIView):
    """
    Start a mobile money payment for cart items.

    Request Body:
        {"items": [{"type": "product", "itemId": 3, "quantity": 2}],
         "paymentMethod": "airtel_money", "phoneNumber": "+23566123456"}
    """

    permission_classes = [IsAuthenticated]

    def post(self, request: Request) -> Response:
        serializer = CreateMobileMoneyPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = PaymentCoordinator().create_mobile_money_payment(
            request.user,
            data["items"],
            data["paymentMethod"],
            data["phoneNumber"],
            order_id=data.get("orderId"),
        )
        payment = result.payment
        return Response(
            {
                "paymentId": payment.pk,
                "transactionId": payment.transaction_id,
                "providerTransactionId": payment.provider_transaction_id or None,
                "amount": payment.amount,
                "currency": payment.currency,
                "phoneNumber": payment.phone_number,
                "status": payment.status,
                "expiresAt": payment.expires_at,
                "message": result.message,
            },
            status=status.HTTP_201_CREATED,
        )


class ConfirmPaymentView(APIView):
    """Admin confirmation of a received bank transfer."""

    permission_classes = [IsAdminUser]

    def post(self, request: Request) -> Response:
        serializer = ConfirmPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        payment = PaymentCoordinator().confirm_payment(serializer.validated_data["paymentId"])
        logger.info("Payment %s confirmed by admin %s", payment.transaction_id, request.user.pk)
        return Response(
            {"detail": _("Payment confirmed."), "payment": PaymentSerializer(payment).data}
        )


class PaymentHistoryView(generics.ListAPIView):
    """Current user's payments, newest first. Optional ``?status=`` filter."""

    serializer_class = PaymentSerializer
    permission_classes = [IsAuthenticated]
    pagination_class = StandardPagination

    def get_queryset(self):
        queryset = Payment.objects.filter(user=self.request.user).prefetch_related("items")
        payment_status = self.request.query_params.get("status")
        if payment_status:
            queryset = queryset.filter(status=payment_status)
        return queryset


class PaymentDetailView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request: Request, payment_id: int) -> Response:
        payment = PaymentCoordinator().get_payment_for(request.user, payment_id)
        return Response(PaymentSerializer(payment).data)


class PaymentStatusView(APIView):
    """
    Current status of a payment. For an open mobile money payment the
    operator is polled first and the payment finalized if it answered.
    """

    permission_classes = [IsAuthenticated]

    def get(self, request: Request, payment_id: int) -> Response:
        payment = PaymentCoordinator().check_status(request.user, payment_id)
        return Response(PaymentStatusSerializer(payment).data)


class CancelPaymentView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request: Request, payment_id: int) -> Response:
        payment = PaymentCoordinator().cancel_payment(request.user, payment_id)
        return Response(
            {"detail": _("Payment cancelled."), "payment": PaymentSerializer(payment).data}
        )


class MobileMoneyWebhookView(APIView):
    """
    Operator callback.

    The raw body is read before DRF parses it so the HMAC signature can be
    checked on the exact bytes that were sent. Answers 200
    ``{"received": true}`` for every accepted callback, duplicates included,
    and 400 on a bad signature so the operator retries.
    """

    authentication_classes = []
    permission_classes = [AllowAny]
    provider_name = ""

    def post(self, request: Request) -> Response:
        raw_body = request.body
        provider = get_provider(self.provider_name)
        signature = request.META.get(provider.signature_header) or request.META.get(
            "HTTP_AUTHORIZATION"
        )

        try:
            PaymentCoordinator().handle_webhook(self.provider_name, raw_body, signature)
        except WebhookSignatureError as e:
            logger.warning(
                "%s webhook rejected: %s", provider.display_name, e.message
            )
            return Response({"detail": e.message}, status=status.HTTP_400_BAD_REQUEST)
        except MobileMoneyException as e:
            logger.error("%s webhook failed: %s", provider.display_name, e.message, exc_info=True)
            return Response({"detail": e.message}, status=status.HTTP_400_BAD_REQUEST)

        return Response({"received": True}, status=status.HTTP_200_OK)

"""
Payment Coordinator

This module advances payments, enrollments, orders and catalog counters
together. Every entry point that changes a payment's status goes through
``PaymentCoordinator.finalize_payment``.

Creation phase:
- create_course_payment: one course, any of the four payment methods
- create_mobile_money_payment: cart-style payment (courses, products or an order)

Finalization phase (``finalize_payment``) is reached from:
- the synchronous prepaid card path
- confirm_payment (admin confirmation of bank transfers)
- check_status (client poll of the mobile money operator)
- handle_webhook (operator callback)
- cancel_payment and expire_stale_payments

Consistency rules:
- The payment row is locked and its status written with a conditional UPDATE
  on ``status in (pending, processing)``; a terminal payment is never touched
  again, so replays of the same outcome are no-ops.
- Status write, enrollment/order transitions and counter changes commit in
  one transaction.
- Counters only move through ``commerce.catalog.inventory``.

Author: Experience Tech Development Team
Version: 1.0.0
"""

import json
import logging
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple

from django.conf import settings
from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import ParseError, ValidationError

from core.mobile_money.exceptions import MobileMoneyException
from core.mobile_money.providers import (
    STATUS_COMPLETED,
    STATUS_FAILED,
    get_provider,
    normalize_phone_number,
)

from ..catalog.inventory import take_course_seat, take_stock_clamped
from ..catalog.models import Course, Product
from ..exceptions import (
    BusinessRuleViolation,
    CapacityExceeded,
    CardExpired,
    CardNotActive,
    CatalogItemNotFound,
    DuplicateEnrollment,
    InsufficientCardValue,
    InsufficientStock,
    InvalidCard,
    OrderNotFound,
    PaymentAlreadyProcessed,
    PaymentAwaitingProvider,
    PaymentMethodNotAllowed,
    PaymentNotFound,
    PaymentProviderError,
)
from ..orders.models import Enrollment, Order
from ..prepaid_cards.models import PrepaidCard
from .models import MOBILE_MONEY_METHODS, Payment, PaymentItem, PaymentMethod

logger = logging.getLogger(__name__)

EXPIRED_REASON = "expired"
CANCELLED_BY_USER_REASON = "Cancelled by user"

METHOD_TO_PROVIDER = {
    PaymentMethod.AIRTEL_MONEY: Payment.Provider.AIRTEL_MONEY,
    PaymentMethod.MOOV_MONEY: Payment.Provider.MOOV_MONEY,
    PaymentMethod.BANK_TRANSFER: Payment.Provider.BANK,
    PaymentMethod.PREPAID_CARD: Payment.Provider.PREPAID_CARD,
}


@dataclass
class PaymentResult:
    payment: Payment
    enrollment: Optional[Enrollment] = None
    message: str = ""


class PaymentCoordinator:
    """
    Creates and finalizes payments.

    Args:
        provider_factory: Callable returning a mobile money adapter for a
            payment method name. Defaults to ``core.mobile_money.get_provider``.
    """

    def __init__(self, provider_factory=None):
        self.provider_factory = provider_factory or get_provider

    # --- Creation ---

    def create_course_payment(
        self,
        user,
        course_id: int,
        payment_method: str,
        provider: Optional[str] = None,
        prepaid_card_code: Optional[str] = None,
        phone_number: Optional[str] = None,
    ) -> PaymentResult:
        """
        Start a payment for a single course enrollment.

        Raises:
            PaymentMethodNotAllowed: Unknown payment method
            ValidationError: Mobile money without a valid phone number
            CatalogItemNotFound: Course missing or inactive
            CapacityExceeded: Course already full
            DuplicateEnrollment: User already enrolled or completed
            InvalidCard / CardNotActive / CardExpired / InsufficientCardValue:
                Prepaid card rejected
            PaymentProviderError: Mobile money operator refused the request
        """
        if payment_method not in PaymentMethod.values:
            raise PaymentMethodNotAllowed()

        course = self._get_purchasable_course(course_id)
        if Enrollment.objects.filter(
            user=user, course=course, status__in=Enrollment.ACTIVE_STATUSES
        ).exists():
            raise DuplicateEnrollment()

        card = None
        if payment_method == PaymentMethod.PREPAID_CARD:
            card = self._get_usable_card(prepaid_card_code, course.price, course.currency)

        if payment_method in MOBILE_MONEY_METHODS:
            if not phone_number:
                raise ValidationError(
                    {"phoneNumber": ["This field is required for mobile money payments."]}
                )
            phone_number = self._normalize_phone(phone_number)

        with transaction.atomic():
            enrollment = self._open_enrollment(user, course)
            payment = Payment.objects.create(
                user=user,
                course=course,
                enrollment=enrollment,
                prepaid_card=card,
                amount=course.price,
                currency=course.currency,
                payment_method=payment_method,
                payment_provider=METHOD_TO_PROVIDER[payment_method],
                operator=provider or "",
                phone_number=phone_number or "",
                expires_at=self._expiry(),
            )
            PaymentItem.objects.create(
                payment=payment,
                item_type=PaymentItem.ItemType.COURSE,
                course=course,
                name=course.title,
                quantity=1,
                unit_price=course.price,
            )

            if card is not None:
                if not card.consume(user):
                    raise CardNotActive()
                payment, _ = self.finalize_payment(payment.pk, True, strict_capacity=True)
                enrollment.refresh_from_db()

        logger.info(
            "Payment %s created for course %s by user %s (%s)",
            payment.transaction_id,
            course.pk,
            user.pk,
            payment_method,
        )

        message = ""
        if payment_method == PaymentMethod.BANK_TRANSFER:
            message = self._bank_transfer_instructions(payment)
        elif payment_method in MOBILE_MONEY_METHODS:
            message = self._start_mobile_money(
                payment,
                phone_number,
                {"courseId": course.pk, "userId": user.pk},
            )
            enrollment.refresh_from_db()
        elif payment_method == PaymentMethod.PREPAID_CARD:
            message = "Paiement effectué avec la carte prépayée."

        return PaymentResult(payment=payment, enrollment=enrollment, message=message)

    def create_mobile_money_payment(
        self,
        user,
        items: Iterable[Dict[str, Any]],
        payment_method: str,
        phone_number: str,
        order_id: Optional[int] = None,
    ) -> PaymentResult:
        """
        Start a cart-style mobile money payment.

        ``items`` is a list of ``{"type": "course"|"product"|"cart",
        "itemId": int, "quantity": int}``. A ``cart`` item pays for the
        order given by ``order_id``; its amount is the order total.

        Raises:
            ValidationError: Invalid phone number or empty item list
            PaymentMethodNotAllowed: Method is not airtel_money or moov_money
            CatalogItemNotFound / OrderNotFound: Referenced item missing
            CapacityExceeded / InsufficientStock / DuplicateEnrollment:
                Item cannot be bought
            PaymentProviderError: Mobile money operator refused the request
        """
        if payment_method not in MOBILE_MONEY_METHODS:
            raise PaymentMethodNotAllowed()
        phone_number = self._normalize_phone(phone_number)

        items = list(items or [])
        if not items:
            raise ValidationError({"items": ["At least one item is required."]})

        lines, order = self._resolve_lines(user, items, order_id)
        amount = sum((line["unit_price"] * line["quantity"] for line in lines), Decimal("0"))
        if amount <= 0:
            raise BusinessRuleViolation("The payment amount must be greater than zero.")

        with transaction.atomic():
            payment = Payment.objects.create(
                user=user,
                order=order,
                amount=amount,
                currency=order.currency if order else settings.DEFAULT_CURRENCY,
                payment_method=payment_method,
                payment_provider=METHOD_TO_PROVIDER[payment_method],
                operator=payment_method,
                phone_number=phone_number,
                expires_at=self._expiry(),
            )
            course_enrollments = []
            for line in lines:
                PaymentItem.objects.create(payment=payment, **line)
                if line["item_type"] == PaymentItem.ItemType.COURSE:
                    course_enrollments.append(self._open_enrollment(user, line["course"]))
            if len(course_enrollments) == 1:
                payment.enrollment = course_enrollments[0]
                payment.save(update_fields=["enrollment", "updated_at"])
            if order is not None:
                Order.objects.filter(pk=order.pk).update(
                    payment_method=payment_method,
                    payment_provider=payment_method,
                    updated_at=timezone.now(),
                )

        logger.info(
            "Mobile money payment %s created by user %s for %s item(s), %s %s",
            payment.transaction_id,
            user.pk,
            len(lines),
            amount,
            payment.currency,
        )
        message = self._start_mobile_money(
            payment,
            phone_number,
            {"userId": user.pk, "orderId": order.pk if order else None},
        )
        return PaymentResult(payment=payment, message=message)

    # --- Finalization ---

    def finalize_payment(
        self,
        payment_id: int,
        succeeded: bool,
        *,
        provider_transaction_id: Optional[str] = None,
        failure_reason: Optional[str] = None,
        strict_capacity: bool = False,
        failure_status: str = Payment.Status.FAILED,
    ) -> Tuple[Payment, bool]:
        """
        Move an open payment to ``completed`` or to ``failure_status`` and
        apply the side effects in the same transaction.

        Args:
            payment_id: Payment primary key
            succeeded: Outcome reported by the operator, admin or card
            provider_transaction_id: Operator reference to store, if known
            failure_reason: Stored on failure
            strict_capacity: Raise CapacityExceeded (rolling back everything)
                instead of logging when a course has no seat left
            failure_status: ``failed`` or ``cancelled``

        Returns:
            (payment, changed) where ``changed`` is False if the payment was
            already terminal

        Raises:
            PaymentNotFound: No such payment
            CapacityExceeded: Course full and ``strict_capacity`` is set
        """
        with transaction.atomic():
            try:
                payment = Payment.objects.select_for_update().get(pk=payment_id)
            except Payment.DoesNotExist:
                raise PaymentNotFound()

            if payment.is_terminal:
                logger.info(
                    "Payment %s already %s; ignoring %s outcome",
                    payment.transaction_id,
                    payment.status,
                    "success" if succeeded else "failure",
                )
                return payment, False

            now = timezone.now()
            updates = {"updated_at": now}
            if provider_transaction_id:
                updates["provider_transaction_id"] = provider_transaction_id
            if succeeded:
                updates.update(status=Payment.Status.COMPLETED, paid_at=now)
            else:
                updates.update(
                    status=failure_status,
                    failure_reason=(failure_reason or "Payment failed")[:255],
                )

            changed = Payment.objects.filter(
                pk=payment.pk, status__in=Payment.OPEN_STATUSES
            ).update(**updates)
            payment.refresh_from_db()
            if not changed:
                return payment, False

            if succeeded:
                self._apply_success(payment, strict_capacity, now)
            else:
                self._apply_failure(payment, now)

        logger.info("Payment %s is now %s", payment.transaction_id, payment.status)
        return payment, True

    def confirm_payment(self, payment_id: int) -> Payment:
        """
        Manually complete a payment (bank transfer received).

        Raises:
            PaymentNotFound: No such payment
            PaymentAlreadyProcessed: Payment already terminal
            PaymentAwaitingProvider: Mobile money payments are confirmed by the operator
        """
        payment = Payment.objects.filter(pk=payment_id).first()
        if payment is None:
            raise PaymentNotFound()
        if payment.is_terminal:
            raise PaymentAlreadyProcessed()
        if payment.is_mobile_money:
            raise PaymentAwaitingProvider()

        payment, changed = self.finalize_payment(payment.pk, True)
        if not changed:
            raise PaymentAlreadyProcessed()
        return payment

    def check_status(self, user, payment_id: int) -> Payment:
        """
        Return the current payment, polling the operator first if it is an
        open mobile money payment. An open mobile money payment past its
        expiry that the operator still reports pending is cancelled.
        """
        payment = self.get_payment_for(user, payment_id)

        if payment.is_open and payment.is_mobile_money and payment.provider_transaction_id:
            try:
                provider = self.provider_factory(payment.payment_method)
                result = provider.check_status(payment.provider_transaction_id)
            except MobileMoneyException as e:
                logger.warning(
                    "Status check for payment %s failed: %s",
                    payment.transaction_id,
                    e.message,
                    exc_info=True,
                )
            else:
                if result.status == STATUS_COMPLETED:
                    payment, _ = self.finalize_payment(payment.pk, True)
                elif result.status == STATUS_FAILED:
                    payment, _ = self.finalize_payment(
                        payment.pk,
                        False,
                        failure_reason=result.reason or "Payment rejected by provider",
                    )

        if payment.is_open and payment.is_mobile_money and payment.is_expired():
            payment, _ = self.finalize_payment(
                payment.pk,
                False,
                failure_reason=EXPIRED_REASON,
                failure_status=Payment.Status.CANCELLED,
            )
        return payment

    def cancel_payment(self, user, payment_id: int) -> Payment:
        payment = self.get_payment_for(user, payment_id, allow_staff=False)
        if payment.is_terminal:
            raise PaymentAlreadyProcessed()
        payment, changed = self.finalize_payment(
            payment.pk,
            False,
            failure_reason=CANCELLED_BY_USER_REASON,
            failure_status=Payment.Status.CANCELLED,
        )
        if not changed:
            raise PaymentAlreadyProcessed()
        return payment

    def handle_webhook(
        self, provider_name: str, raw_body: bytes, signature: Optional[str]
    ) -> Tuple[Payment, bool]:
        """
        Apply an operator callback.

        The signature is checked against the raw body before anything is
        parsed. A callback still reporting ``pending`` changes nothing.

        Raises:
            WebhookSignatureError: Bad or missing signature
            ParseError: Body is not a JSON object
            PaymentNotFound: Reference does not match a payment of this operator
        """
        provider = self.provider_factory(provider_name)
        provider.validate_webhook(raw_body, signature)

        try:
            payload = json.loads(raw_body or b"{}")
        except ValueError:
            raise ParseError("Invalid webhook payload")
        if not isinstance(payload, dict):
            raise ParseError("Invalid webhook payload")

        event = provider.parse_webhook(payload)
        payment = None
        if event.transaction_reference:
            payment = Payment.objects.filter(
                provider_transaction_id=event.transaction_reference,
                payment_method=provider.name,
            ).first()
        if payment is None:
            logger.warning(
                "%s webhook for unknown reference %r",
                provider.display_name,
                event.transaction_reference,
            )
            raise PaymentNotFound()

        logger.info(
            "%s webhook for payment %s: %s",
            provider.display_name,
            payment.transaction_id,
            event.status,
        )
        if event.status == STATUS_COMPLETED:
            return self.finalize_payment(payment.pk, True)
        if event.status == STATUS_FAILED:
            return self.finalize_payment(
                payment.pk, False, failure_reason=event.reason or "Payment rejected by provider"
            )
        return payment, False

    # --- Reconciliation ---

    def stale_payments(self, now=None):
        """Open mobile money payments whose confirmation window has passed."""
        now = now or timezone.now()
        return Payment.objects.filter(
            status__in=Payment.OPEN_STATUSES,
            payment_method__in=MOBILE_MONEY_METHODS,
            expires_at__lt=now,
        ).order_by("expires_at")

    def expire_stale_payments(self, now=None) -> List[Payment]:
        """
        Cancel every stale payment (see ``stale_payments``).

        Bank transfers are left alone; they wait for a manual confirmation.

        Returns:
            The payments this call cancelled
        """
        expired = []
        for payment_id in list(self.stale_payments(now).values_list("pk", flat=True)):
            payment, changed = self.finalize_payment(
                payment_id,
                False,
                failure_reason=EXPIRED_REASON,
                failure_status=Payment.Status.CANCELLED,
            )
            if changed:
                expired.append(payment)
        if expired:
            logger.info("Expired %s stale payment(s)", len(expired))
        return expired

    # --- Lookups ---

    def get_payment_for(self, user, payment_id: int, allow_staff: bool = True) -> Payment:
        """Payment owned by ``user`` (or any payment for staff). Otherwise 404."""
        queryset = Payment.objects.all()
        if not (allow_staff and user.is_staff):
            queryset = queryset.filter(user=user)
        payment = queryset.filter(pk=payment_id).first()
        if payment is None:
            raise PaymentNotFound()
        return payment

    # --- Helpers ---

    def _get_purchasable_course(self, course_id) -> Course:
        course = Course.objects.filter(pk=course_id, is_active=True).first()
        if course is None:
            raise CatalogItemNotFound()
        if course.is_full:
            raise CapacityExceeded()
        if course.price <= 0:
            raise BusinessRuleViolation("This course has no price and cannot be paid for.")
        return course

    def _get_usable_card(self, code: Optional[str], amount: Decimal, currency: str) -> PrepaidCard:
        code = PrepaidCard.normalize_code(code)
        if not code:
            raise ValidationError({"prepaidCardCode": ["This field is required for prepaid card payments."]})
        card = PrepaidCard.objects.filter(code=code).first()
        if card is None:
            raise InvalidCard()
        if card.status != PrepaidCard.Status.ACTIVE:
            raise CardNotActive()
        if card.is_expired():
            card.mark_expired()
            logger.info("Prepaid card %s presented after expiry; marked expired", card.pk)
            raise CardExpired()
        if card.currency != currency or card.value < amount:
            raise InsufficientCardValue(card.value, amount, currency, card.currency)
        return card

    def _open_enrollment(self, user, course) -> Enrollment:
        """
        Pending enrollment for ``user`` in ``course``, reusing a cancelled,
        refunded or pending row. Must run inside a transaction.
        """
        enrollment, created = Enrollment.objects.select_for_update().get_or_create(
            user=user, course=course, defaults={"status": Enrollment.Status.PENDING}
        )
        if created:
            return enrollment
        if enrollment.is_active:
            raise DuplicateEnrollment()
        if enrollment.status != Enrollment.Status.PENDING:
            enrollment.status = Enrollment.Status.PENDING
            enrollment.save(update_fields=["status", "updated_at"])
        return enrollment

    def _resolve_lines(self, user, items, order_id) -> Tuple[List[Dict[str, Any]], Optional[Order]]:
        lines = []
        order = None
        seen = set()
        for item in items:
            item_type = item.get("type")
            item_id = item.get("itemId")
            quantity = int(item.get("quantity") or 1)
            if (item_type, item_id) in seen:
                raise ValidationError({"items": ["Each item can only be listed once."]})
            seen.add((item_type, item_id))

            if item_type == PaymentItem.ItemType.COURSE:
                course = self._get_purchasable_course(item_id)
                if Enrollment.objects.filter(
                    user=user, course=course, status__in=Enrollment.ACTIVE_STATUSES
                ).exists():
                    raise DuplicateEnrollment()
                lines.append(
                    {
                        "item_type": item_type,
                        "course": course,
                        "name": course.title,
                        "quantity": 1,
                        "unit_price": course.price,
                    }
                )
            elif item_type == PaymentItem.ItemType.PRODUCT:
                product = Product.objects.filter(pk=item_id, is_active=True).first()
                if product is None:
                    raise CatalogItemNotFound()
                if product.stock < quantity:
                    raise InsufficientStock(product.name, product.stock)
                lines.append(
                    {
                        "item_type": item_type,
                        "product": product,
                        "name": product.name,
                        "quantity": quantity,
                        "unit_price": product.price,
                    }
                )
            elif item_type == PaymentItem.ItemType.CART:
                if order is not None:
                    raise ValidationError({"items": ["Only one cart item is allowed."]})
                order = self._get_payable_order(user, order_id)
                lines.append(
                    {
                        "item_type": item_type,
                        "order": order,
                        "name": order.reference,
                        "quantity": 1,
                        "unit_price": order.total,
                    }
                )
            else:
                raise ValidationError({"items": [f"Unknown item type: {item_type}"]})
        return lines, order

    def _get_payable_order(self, user, order_id) -> Order:
        if not order_id:
            raise ValidationError({"orderId": ["This field is required for cart payments."]})
        order = Order.objects.filter(pk=order_id, user=user).first()
        if order is None:
            raise OrderNotFound()
        if order.payment_status == Order.PaymentStatus.PAID:
            raise PaymentAlreadyProcessed()
        if order.status == Order.Status.CANCELLED:
            raise BusinessRuleViolation("This order has been cancelled.")
        return order

    def _normalize_phone(self, phone_number: str) -> str:
        try:
            return normalize_phone_number(phone_number)
        except ValueError as e:
            raise ValidationError({"phoneNumber": [str(e)]})

    def _expiry(self):
        return timezone.now() + timedelta(minutes=settings.PAYMENT_EXPIRY_MINUTES)

    def _bank_transfer_instructions(self, payment: Payment) -> str:
        return (
            f"Effectuez un virement de {payment.amount} {payment.currency} en indiquant "
            f"la référence {payment.transaction_id}. Votre inscription sera activée "
            "après réception du virement."
        )

    def _start_mobile_money(self, payment: Payment, phone_number: Optional[str], metadata) -> str:
        """
        Hand the payment to the operator. On rejection the payment is failed
        and PaymentProviderError is raised.
        """
        try:
            provider = self.provider_factory(payment.payment_method)
            response = provider.create_payment(
                payment.amount, phone_number, payment.transaction_id, metadata
            )
        except MobileMoneyException as e:
            logger.error(
                "Provider rejected payment %s: %s",
                payment.transaction_id,
                e.message,
                exc_info=True,
            )
            self.finalize_payment(payment.pk, False, failure_reason=e.message)
            payment.refresh_from_db()
            raise PaymentProviderError(e.message)

        Payment.objects.filter(pk=payment.pk).update(
            provider_transaction_id=response.transaction_reference,
            updated_at=timezone.now(),
        )
        if response.status == STATUS_COMPLETED:
            self.finalize_payment(payment.pk, True)
        elif response.status == STATUS_FAILED:
            self.finalize_payment(payment.pk, False, failure_reason=response.message)
            raise PaymentProviderError(response.message or None)
        payment.refresh_from_db()
        return response.message

    def _apply_success(self, payment: Payment, strict_capacity: bool, now) -> None:
        items = list(payment.items.select_related("course", "product", "order"))
        order_ids = {payment.order_id} if payment.order_id else set()

        if items:
            for item in items:
                if item.item_type == PaymentItem.ItemType.COURSE:
                    self._enroll(payment.user_id, item.course_id, strict_capacity, now)
                elif item.item_type == PaymentItem.ItemType.PRODUCT:
                    take_stock_clamped(item.product_id, item.quantity)
                elif item.item_type == PaymentItem.ItemType.CART:
                    order_ids.add(item.order_id)
        elif payment.course_id:
            self._enroll(payment.user_id, payment.course_id, strict_capacity, now)

        for order in Order.objects.select_for_update().filter(pk__in=order_ids):
            order.payment_status = Order.PaymentStatus.PAID
            order.paid_at = now
            order.payment_transaction_id = payment.provider_transaction_id or payment.transaction_id
            if order.status == Order.Status.PENDING:
                order.status = Order.Status.PROCESSING
            order.save(
                update_fields=[
                    "payment_status",
                    "paid_at",
                    "payment_transaction_id",
                    "status",
                    "updated_at",
                ]
            )

    def _enroll(self, user_id: int, course_id: int, strict_capacity: bool, now) -> None:
        enrollment, _ = Enrollment.objects.select_for_update().get_or_create(
            user_id=user_id, course_id=course_id, defaults={"status": Enrollment.Status.PENDING}
        )
        if enrollment.is_active:
            logger.info("User %s already enrolled in course %s; no seat taken", user_id, course_id)
            return

        if not take_course_seat(course_id):
            if strict_capacity:
                raise CapacityExceeded()
            logger.warning(
                "Course %s is full; paid enrollment %s for user %s left %s",
                course_id,
                enrollment.pk,
                user_id,
                enrollment.status,
            )
            return

        enrollment.status = Enrollment.Status.ENROLLED
        enrollment.enrolled_at = now
        enrollment.save(update_fields=["status", "enrolled_at", "updated_at"])

    def _apply_failure(self, payment: Payment, now) -> None:
        course_ids = set(
            payment.items.filter(item_type=PaymentItem.ItemType.COURSE).values_list(
                "course_id", flat=True
            )
        )
        if payment.course_id:
            course_ids.add(payment.course_id)
        if course_ids:
            Enrollment.objects.filter(
                user_id=payment.user_id,
                course_id__in=course_ids,
                status=Enrollment.Status.PENDING,
            ).update(status=Enrollment.Status.CANCELLED, updated_at=now)

        order_ids = set(
            payment.items.filter(item_type=PaymentItem.ItemType.CART).values_list(
                "order_id", flat=True
            )
        )
        if payment.order_id:
            order_ids.add(payment.order_id)
        if order_ids:
            Order.objects.filter(pk__in=order_ids, status=Order.Status.PENDING).update(
                status=Order.Status.CANCELLED,
                payment_status=Order.PaymentStatus.FAILED,
                updated_at=now,
            )

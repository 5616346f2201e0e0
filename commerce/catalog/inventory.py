"""
Capacity and stock adjustment.

Every counter change is a single conditional UPDATE; the number of affected
rows tells the caller whether the guard held. Callers run these inside the
transaction that also writes the payment or order.
"""

import logging

from django.db.models import F
from django.utils import timezone

from .models import Course, Product

logger = logging.getLogger(__name__)


def take_course_seat(course_id: int) -> bool:
    """
    Increment ``current_students`` unless the course is already full.

    Returns:
        True if a seat was taken, False if the course was full
    """
    updated = Course.objects.filter(
        pk=course_id, current_students__lt=F("max_students")
    ).update(current_students=F("current_students") + 1, updated_at=timezone.now())
    return updated == 1


def take_stock(product_id: int, quantity: int) -> bool:
    """
    Decrement stock by ``quantity`` only if enough units are left.

    Also counts the units as sold and flags the product ``out_of_stock`` when
    the last unit goes.

    Returns:
        True on success, False if stock was insufficient (nothing changed)
    """
    now = timezone.now()
    updated = Product.objects.filter(pk=product_id, stock__gte=quantity).update(
        stock=F("stock") - quantity, sales=F("sales") + quantity, updated_at=now
    )
    if not updated:
        return False
    _flag_sold_out(product_id)
    return True


def take_stock_clamped(product_id: int, quantity: int) -> int:
    """
    Decrement stock by ``quantity``, flooring at zero.

    Used when money has already been collected: the sale goes through even if
    fewer units are left, and the shortfall is logged for follow-up.

    Returns:
        Number of units actually taken from stock
    """
    if take_stock(product_id, quantity):
        return quantity

    product = Product.objects.select_for_update().get(pk=product_id)
    available = product.stock
    logger.warning(
        "Product %s (%s) has %s unit(s) left but %s were paid for; stock floored at 0",
        product.pk,
        product.sku,
        available,
        quantity,
    )
    Product.objects.filter(pk=product_id).update(
        stock=0,
        sales=F("sales") + available,
        availability=Product.Availability.OUT_OF_STOCK,
        updated_at=timezone.now(),
    )
    return available


def _flag_sold_out(product_id: int) -> None:
    Product.objects.filter(pk=product_id, stock=0).exclude(
        availability=Product.Availability.OUT_OF_STOCK
    ).update(availability=Product.Availability.OUT_OF_STOCK)

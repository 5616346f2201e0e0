"""
Order API Views

Endpoints:
- GET  /api/orders/: Own orders (all orders for admins), paginated
- POST /api/orders/: Create an order from a checkout payload
- GET  /api/orders/<id>/: Order detail
- PATCH /api/orders/<id>/status/: Admin status change

Request-schema errors on this group answer 422 with field details.

Author: Experience Tech Development Team
Version: 1.0.0
"""

import logging

from rest_framework import generics, status
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from ..exceptions import OrderNotFound, UnprocessableEntity
from ..payments.views import StandardPagination
from .models import Order
from .serializers import (
    OrderCreateSerializer,
    OrderSerializer,
    OrderStatusSerializer,
    OrderSummarySerializer,
)

logger = logging.getLogger(__name__)


def _visible_orders(user):
    queryset = Order.objects.prefetch_related("items")
    if user.is_staff:
        return queryset
    return queryset.filter(user=user)


class OrderListCreateView(generics.ListAPIView):
    """
    GET lists orders (``?status=`` filter). POST creates one and answers
    ``{"order": {id, reference, total, payment, status, createdAt}}``.
    """

    serializer_class = OrderSerializer
    permission_classes = [IsAuthenticated]
    pagination_class = StandardPagination

    def get_queryset(self):
        queryset = _visible_orders(self.request.user)
        order_status = self.request.query_params.get("status")
        if order_status:
            queryset = queryset.filter(status=order_status)
        return queryset

    def post(self, request: Request) -> Response:
        serializer = OrderCreateSerializer(data=request.data, context={"request": request})
        if not serializer.is_valid():
            raise UnprocessableEntity(serializer.errors)
        order = serializer.save()
        return Response(
            {"order": OrderSummarySerializer(order).data}, status=status.HTTP_201_CREATED
        )


class OrderDetailView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request: Request, pk: int) -> Response:
        order = _visible_orders(request.user).filter(pk=pk).first()
        if order is None:
            raise OrderNotFound()
        return Response(OrderSerializer(order).data)


class OrderStatusUpdateView(APIView):
    permission_classes = [IsAdminUser]

    def patch(self, request: Request, pk: int) -> Response:
        order = Order.objects.filter(pk=pk).first()
        if order is None:
            raise OrderNotFound()

        serializer = OrderStatusSerializer(data=request.data)
        if not serializer.is_valid():
            raise UnprocessableEntity(serializer.errors)

        previous = order.status
        order.status = serializer.validated_data["status"]
        order.save(update_fields=["status", "updated_at"])
        logger.info(
            "Order %s status changed %s -> %s by admin %s",
            order.reference,
            previous,
            order.status,
            request.user.pk,
        )
        return Response(OrderSerializer(order).data)

"""
Prepaid Card API Views

Endpoints (router ``prepaid-cards``):
- GET/POST /api/prepaid-cards/: List (``?status=`` filter, paginated) / issue a card (admin)
- GET/PUT/PATCH/DELETE /api/prepaid-cards/<id>/: Manage one card (admin)
- POST /api/prepaid-cards/validate/: Check a code without consuming it (any user)

Author: Experience Tech Development Team
Version: 1.0.0
"""

import logging

from django.utils.translation import gettext_lazy as _
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response

from ..exceptions import BusinessRuleViolation, CardExpired, CardNotActive, CommerceError, InvalidCard
from ..payments.views import StandardPagination
from .models import PrepaidCard
from .serializers import CardCheckSerializer, PrepaidCardSerializer, ValidateCardSerializer

logger = logging.getLogger(__name__)

MAX_CODE_ATTEMPTS = 10


class PrepaidCardViewSet(viewsets.ModelViewSet):
    """
    Admin management of prepaid cards.

    Cards that have been used cannot be deleted; the payment that consumed
    them still references them.
    """

    serializer_class = PrepaidCardSerializer
    pagination_class = StandardPagination

    def get_permissions(self):
        if self.action == "validate":
            return [IsAuthenticated()]
        return [IsAdminUser()]

    def get_queryset(self):
        queryset = PrepaidCard.objects.select_related("used_by", "created_by")
        card_status = self.request.query_params.get("status")
        if card_status:
            queryset = queryset.filter(status=card_status)
        return queryset

    def perform_create(self, serializer):
        prefix = serializer.validated_data.get("prefix", "").upper()
        for attempt in range(MAX_CODE_ATTEMPTS):
            code = PrepaidCard.generate_code(prefix)
            if not PrepaidCard.objects.filter(code=code).exists():
                break
        else:
            logger.error("No unique prepaid card code after %s attempts", MAX_CODE_ATTEMPTS)
            raise CommerceError(_("Could not generate a unique card code, please retry."))

        card = serializer.save(code=code, created_by=self.request.user)
        logger.info("Prepaid card %s issued by admin %s", card.pk, self.request.user.pk)

    def perform_destroy(self, instance):
        if instance.status == PrepaidCard.Status.USED:
            raise BusinessRuleViolation(_("A used card cannot be deleted."))
        logger.info("Prepaid card %s deleted by admin %s", instance.pk, self.request.user.pk)
        instance.delete()

    @action(detail=False, methods=["post"])
    def validate(self, request: Request) -> Response:
        """
        Check that a card can pay, without consuming it. An active card past
        its expiry is marked expired.
        """
        serializer = ValidateCardSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        card = PrepaidCard.objects.filter(
            code=PrepaidCard.normalize_code(serializer.validated_data["code"])
        ).first()
        if card is None:
            raise InvalidCard()
        if card.status != PrepaidCard.Status.ACTIVE:
            raise CardNotActive()
        if card.is_expired():
            card.mark_expired()
            raise CardExpired()

        return Response(
            {"detail": _("Valid card."), "card": CardCheckSerializer(card).data},
            status=status.HTTP_200_OK,
        )

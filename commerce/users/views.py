"""
Authentication Views

Views:
- CustomTokenObtainPairView: Login; JWTs are stored in HTTP-only cookies
- CustomTokenRefreshView: New token pair from the refresh cookie
- LogoutView: Blacklists the refresh token and clears the cookies

Tokens never appear in response bodies. ``backend.custom_auth`` reads the
``access_token`` cookie on every request.

Author: Experience Tech Development Team
Version: 1.0.0
"""

import logging

from django.conf import settings
from django.utils.translation import gettext_lazy as _
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.serializers import TokenRefreshSerializer
from rest_framework_simplejwt.tokens import RefreshToken
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from .serializers import CustomTokenObtainPairSerializer

logger = logging.getLogger(__name__)


def _set_token_cookies(response: Response, access=None, refresh=None) -> None:
    options = {
        "httponly": True,
        "secure": settings.JWT_COOKIE_SECURE,
        "samesite": settings.JWT_COOKIE_SAMESITE,
        "path": "/",
    }
    if refresh:
        response.set_cookie(
            "refresh_token",
            refresh,
            max_age=settings.SIMPLE_JWT["REFRESH_TOKEN_LIFETIME"],
            **options,
        )
    if access:
        response.set_cookie(
            "access_token",
            access,
            max_age=settings.SIMPLE_JWT["ACCESS_TOKEN_LIFETIME"],
            **options,
        )


class CustomTokenObtainPairView(TokenObtainPairView):
    """
    Login. Calls SimpleJWT, then moves the access/refresh tokens from the
    body into HTTP-only cookies.
    """

    serializer_class = CustomTokenObtainPairSerializer

    def post(self, request, *args, **kwargs):
        response = super().post(request, *args, **kwargs)
        if response.status_code == 200:
            refresh = response.data.pop("refresh", None)
            access = response.data.pop("access", None)
            _set_token_cookies(response, access=access, refresh=refresh)
        return response


class CustomTokenRefreshView(TokenRefreshView):
    """Refresh from the ``refresh_token`` cookie instead of the body."""

    def post(self, request, *args, **kwargs):
        refresh_token = request.COOKIES.get("refresh_token")
        if not refresh_token:
            return Response(
                {"detail": _("Refresh token not provided")},
                status=status.HTTP_400_BAD_REQUEST,
            )

        serializer = TokenRefreshSerializer(data={"refresh": refresh_token})
        try:
            serializer.is_valid(raise_exception=True)
        except TokenError as e:
            return Response({"detail": str(e)}, status=status.HTTP_400_BAD_REQUEST)

        data = serializer.validated_data
        response = Response(status=status.HTTP_200_OK)
        _set_token_cookies(response, access=data.get("access"), refresh=data.get("refresh"))
        return response


class LogoutView(APIView):
    """
    Blacklist the refresh token (if any) and delete both cookies. Always
    answers 205, even when the token was already invalid.
    """

    authentication_classes = []
    permission_classes = [AllowAny]

    def post(self, request):
        refresh_token = request.COOKIES.get("refresh_token")
        if refresh_token:
            try:
                RefreshToken(refresh_token).blacklist()
            except TokenError as e:
                logger.info("Logout with unusable refresh token: %s", e)
        response = Response(
            {"detail": _("Successfully logged out.")}, status=status.HTTP_205_RESET_CONTENT
        )
        response.delete_cookie("refresh_token")
        response.delete_cookie("access_token")
        return response

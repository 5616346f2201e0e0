from typing import Optional, TypeVar

from django.contrib.auth.models import AbstractBaseUser
from rest_framework import HTTP_HEADER_ENCODING
from rest_framework.request import Request

from rest_framework_simplejwt.models import TokenUser
from rest_framework_simplejwt.tokens import Token
from rest_framework_simplejwt.authentication import JWTAuthentication as original_auth

AuthUser = TypeVar("AuthUser", AbstractBaseUser, TokenUser)


class JWTAuthentication(original_auth):
    """
    Custom JWT authentication: the access token is read from the ``access_token``
    HTTP-only cookie set by the token views. Clients that cannot carry cookies
    (mobile apps, server-to-server calls) may still send ``Authorization: Bearer``.
    """

    www_authenticate_realm = "api"
    media_type = "application/json"

    def authenticate(self, request: Request) -> Optional[tuple[AuthUser, Token]]:
        cookie = request.COOKIES.get("access_token") or None
        if cookie is None:
            # Header fallback
            return super().authenticate(request)

        raw_token = cookie.encode(HTTP_HEADER_ENCODING)

        validated_token = self.get_validated_token(raw_token)

        return self.get_user(validated_token), validated_token

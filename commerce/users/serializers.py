"""
Authentication Serializers

Serializers:
- CustomTokenObtainPairSerializer: JWT pair with the user's name and role

Author: Experience Tech Development Team
Version: 1.0.0
"""

from typing import Any, Dict

from rest_framework_simplejwt.serializers import TokenObtainPairSerializer
from rest_framework_simplejwt.tokens import RefreshToken


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    """
    Adds ``username`` and ``is_staff`` to the token payload and to the
    response body, so the frontend can tell admins apart without an extra
    request.
    """

    @classmethod
    def get_token(cls, user) -> RefreshToken:
        token = super().get_token(user)
        token["username"] = user.get_username()
        token["is_staff"] = user.is_staff
        return token

    def validate(self, attrs: Dict[str, Any]) -> Dict[str, Any]:
        data = super().validate(attrs)
        data.update(
            {
                "user_id": self.user.pk,
                "username": self.user.get_username(),
                "is_staff": self.user.is_staff,
            }
        )
        return data

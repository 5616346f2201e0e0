"""
Commerce URL Configuration

URL Structure (mounted under /api/):
- auth/: JWT cookie authentication
- payments/: Payment creation, confirmation, status, webhooks
- orders/: Shop orders
- prepaid-cards/: Prepaid card administration and validation

Author: Experience Tech Development Team
Version: 1.0.0
"""

from typing import List

from django.urls import URLPattern, include, path
from rest_framework.routers import DefaultRouter
from rest_framework_simplejwt.views import TokenVerifyView

from .orders import views as order_views
from .payments import views as payment_views
from .prepaid_cards import views as card_views
from .users import views as user_views

app_name = "commerce"


def _create_cards_router() -> DefaultRouter:
    router = DefaultRouter()
    router.register(r"prepaid-cards", card_views.PrepaidCardViewSet, basename="prepaid-cards")
    return router


cards_router = _create_cards_router()

# --- Authentication ---

auth_urlpatterns: List[URLPattern] = [
    path("token/", user_views.CustomTokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("token/refresh/", user_views.CustomTokenRefreshView.as_view(), name="token_refresh"),
    path("token/verify/", TokenVerifyView.as_view(), name="token_verify"),
    path("logout/", user_views.LogoutView.as_view(), name="logout"),
]

# --- Payments ---

payments_urlpatterns: List[URLPattern] = [
    path("create-intent/", payment_views.CreatePaymentIntentView.as_view(), name="create-intent"),
    path(
        "create-mobile-money/",
        payment_views.CreateMobileMoneyPaymentView.as_view(),
        name="create-mobile-money",
    ),
    path("confirm/", payment_views.ConfirmPaymentView.as_view(), name="confirm"),
    path("history/", payment_views.PaymentHistoryView.as_view(), name="history"),
    path("<int:payment_id>/", payment_views.PaymentDetailView.as_view(), name="detail"),
    path("<int:payment_id>/status/", payment_views.PaymentStatusView.as_view(), name="status"),
    path("<int:payment_id>/cancel/", payment_views.CancelPaymentView.as_view(), name="cancel"),
    # Operator callbacks (no authentication, signature checked)
    path(
        "webhook/airtel/",
        payment_views.MobileMoneyWebhookView.as_view(provider_name="airtel_money"),
        name="webhook-airtel",
    ),
    path(
        "webhook/moov/",
        payment_views.MobileMoneyWebhookView.as_view(provider_name="moov_money"),
        name="webhook-moov",
    ),
]

# --- Orders ---

orders_urlpatterns: List[URLPattern] = [
    path("", order_views.OrderListCreateView.as_view(), name="list-create"),
    path("<int:pk>/", order_views.OrderDetailView.as_view(), name="detail"),
    path("<int:pk>/status/", order_views.OrderStatusUpdateView.as_view(), name="status"),
]

urlpatterns: List[URLPattern] = [
    path("auth/", include((auth_urlpatterns, "auth"))),
    path("payments/", include((payments_urlpatterns, "payments"))),
    path("orders/", include((orders_urlpatterns, "orders"))),
    path("", include(cards_router.urls)),
]

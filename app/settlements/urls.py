"""
URL configuration for the settlements app.

Routes:
    - GET/POST / - List or create settlements
    - GET /summary/ - Daily store summary
    - GET /balance/ - Provider balance
    - POST /sellers/ - Register a store with the provider
    - GET /sellers/{store_id}/ - Seller account for a store
    - GET /{id}/ - Settlement detail
    - POST /{id}/process/ - Send payout
    - POST /{id}/cancel/ - Cancel settlement
    - POST /webhooks/payout/ - Provider payout.changed webhook
    - POST /webhooks/seller/ - Provider seller.changed webhook

All routes are prefixed with /api/v1/settlements/ when included in the main URLconf.

Usage:
    # In config/urls.py
    api_v1_patterns = [
        path("settlements/", include("settlements.urls")),
    ]
"""

from django.urls import path

from settlements import views
from settlements.webhooks.views import payout_webhook, seller_webhook

app_name = "settlements"

urlpatterns = [
    path("", views.SettlementListCreateView.as_view(), name="settlement_list"),
    path("summary/", views.SettlementSummaryView.as_view(), name="settlement_summary"),
    path("balance/", views.BalanceView.as_view(), name="balance"),
    path("sellers/", views.SellerRegistrationView.as_view(), name="seller_register"),
    path("sellers/<uuid:store_id>/", views.SellerAccountDetailView.as_view(), name="seller_detail"),
    path("<uuid:settlement_id>/", views.SettlementDetailView.as_view(), name="settlement_detail"),
    path("<uuid:settlement_id>/process/", views.SettlementProcessView.as_view(), name="settlement_process"),
    path("<uuid:settlement_id>/cancel/", views.SettlementCancelView.as_view(), name="settlement_cancel"),
    # Webhook endpoints
    path("webhooks/payout/", payout_webhook, name="payout_webhook"),
    path("webhooks/seller/", seller_webhook, name="seller_webhook"),
]

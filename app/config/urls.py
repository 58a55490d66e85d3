"""
URL configuration for the Django application.

The `urlpatterns` list routes URLs to views. This is the root URL configuration
that includes all app-specific routes.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (for load balancers, Docker)
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/settlements/           - Settlement endpoints
        (GET, POST)                - List/create settlements
        {id}/                      - Settlement detail
        {id}/process/              - Send payout
        {id}/cancel/               - Cancel settlement
        summary/                   - Daily store summary
        balance/                   - Provider balance
        sellers/                   - Register store with the provider
        sellers/{store_id}/        - Seller account for a store
        webhooks/payout/           - Provider payout.changed webhook (POST)
        webhooks/seller/           - Provider seller.changed webhook (POST)
    /api/v1/auth/token/            - Obtain a JWT pair (POST)
    /api/v1/auth/token/refresh/    - Refresh an access token (POST)
    /api/v1/health/                - Health check under the API prefix

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
# All routes here are prefixed with /api/v1/ automatically
api_v1_patterns = [
    # Authentication (staff JWTs)
    path("auth/token/", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("auth/token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    # Settlements
    path("settlements/", include("settlements.urls")),
    path("health/", health_check, name="api_health_check"),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Settlement Admin"
admin.site.site_title = "Settlement Admin Portal"
admin.site.index_title = "Store settlements and payouts"

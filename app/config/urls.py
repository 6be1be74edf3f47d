"""
URL configuration for the back-office application.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (for load balancers, Docker)
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/auth/token/            - Obtain JWT pair (email/password)
    /api/v1/auth/token/refresh/    - Refresh access token
    /api/v1/contracts/             - Contract budget ledger
        {id}/charge/               - Service charge
        {id}/adjust-budget/        - Cap change
        {id}/adjust-consumption/   - Consumption correction
        {id}/deactivate/           - Deactivate
    /api/v1/settlements/           - Settlement engine
        pending-expenses/          - Unliquidated expenses for requests
        preview/                   - Provisional allocation
        {id}/approve/              - Approve
        {id}/reject/               - Reject
        {id}/send/                 - Email to the vehicle owner
        {id}/pdf/                  - PDF download
    /api/v1/payables/              - Payable accounts
        {id}/pay/                  - Register payment
        {id}/cancel/               - Cancel

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from core.views import health_check
from settlements.urls import payables_urlpatterns

# =============================================================================
# API v1 Routes
# =============================================================================
api_v1_patterns = [
    # Authentication (simplejwt)
    path("auth/token/", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("auth/token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    # Contract budget ledger
    path("contracts/", include("contracts.urls")),
    # Settlements and payable accounts
    path("settlements/", include("settlements.urls")),
    path("payables/", include(payables_urlpatterns)),
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
admin.site.site_header = "Back-office Admin"
admin.site.site_title = "Back-office Admin"
admin.site.index_title = "Contracts, fleet and settlements"

"""
URL configuration for settlements API.

Routes (mounted at /api/v1/settlements/):
    /                       - List (GET), generate (POST)
    /pending-expenses/      - Unliquidated expenses for requests (GET)
    /preview/               - Provisional allocation (GET)
    /{id}/                  - Detail (GET)
    /{id}/approve/          - Approve (POST)
    /{id}/reject/           - Reject (POST)
    /{id}/send/             - Owner delivery (POST)
    /{id}/pdf/              - PDF download (GET)

``payables_urlpatterns`` is mounted at /api/v1/payables/.
"""

from rest_framework.routers import DefaultRouter

from settlements.views import PayableAccountViewSet, SettlementViewSet

router = DefaultRouter()
router.register(r"", SettlementViewSet, basename="settlement")

payables_router = DefaultRouter()
payables_router.register(r"", PayableAccountViewSet, basename="payable-account")

app_name = "settlements"
urlpatterns = router.urls
payables_urlpatterns = (payables_router.urls, "payables")

"""
URL configuration for contracts API.

Routes:
    /                           - List (GET), create (POST)
    /{id}/                      - Detail (GET)
    /{id}/charge/               - Service charge (POST)
    /{id}/adjust-budget/        - Cap change (POST)
    /{id}/adjust-consumption/   - Consumption correction (POST)
    /{id}/deactivate/           - Deactivate (POST)
"""

from rest_framework.routers import DefaultRouter

from contracts.views import ContractViewSet

router = DefaultRouter()
router.register(r"", ContractViewSet, basename="contract")

app_name = "contracts"
urlpatterns = router.urls

"""
Tests for contract API views.

These tests verify:
- Charge and budget adjustment endpoints
- Error payloads for invalid amounts and unknown contracts
- Company scoping and role checks
"""

from __future__ import annotations

from decimal import Decimal

import pytest
from django.urls import reverse
from rest_framework import status

from accounts.models import UserRole
from accounts.tests.factories import UserFactory
from contracts.models import ChargeMode, Contract, HistoryKind
from contracts.tests.factories import ContractFactory
from operations.tests.factories import ClientFactory, ServiceRequestFactory


@pytest.fixture
def contract(company):
    return ContractFactory(
        company=company,
        budget_cap=Decimal("5000000"),
        consumed=Decimal("4800000"),
    )


def _url(name, contract):
    return reverse(f"contracts:contract-{name}", kwargs={"pk": contract.id})


@pytest.mark.django_db
class TestChargeView:
    def test_charge_past_cap(self, authenticated_client, contract):
        response = authenticated_client.post(
            _url("charge", contract),
            {"amount": "500000", "notes": "HE00001"},
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["consumed"] == "5300000.00"
        assert response.data["is_over_budget"] is True
        assert response.data["version"] == contract.version + 1

    def test_outside_contract_charge(self, authenticated_client, contract):
        response = authenticated_client.post(
            _url("charge", contract),
            {"amount": "250000", "mode": ChargeMode.OUTSIDE_CONTRACT},
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["consumed"] == "4800000.00"

    def test_negative_amount(self, authenticated_client, contract):
        response = authenticated_client.post(
            _url("charge", contract), {"amount": "-1"}, format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "INVALID_AMOUNT"

    def test_other_company_contract(self, authenticated_client):
        foreign = ContractFactory()

        response = authenticated_client.post(
            _url("charge", foreign), {"amount": "1"}, format="json"
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data["error_code"] == "CONTRACT_NOT_FOUND"

    def test_charge_for_request_of_other_company(self, authenticated_client, contract):
        foreign_request = ServiceRequestFactory()

        response = authenticated_client.post(
            _url("charge", contract),
            {"amount": "1000", "service_request_id": str(foreign_request.id)},
            format="json",
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data["error_code"] == "SERVICE_REQUEST_NOT_FOUND"
        assert not contract.history.exists()

    def test_driver_cannot_charge(self, api_client, company, contract):
        api_client.force_authenticate(UserFactory(company=company, role=UserRole.DRIVER))

        response = api_client.post(_url("charge", contract), {"amount": "1"}, format="json")

        assert response.status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.django_db
class TestAdjustBudgetView:
    def test_sets_cap(self, authenticated_client, contract):
        response = authenticated_client.post(
            _url("adjust-budget", contract),
            {"budget_cap": "6000000", "notes": "Addendum 2"},
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["budget_cap"] == "6000000.00"
        assert response.data["is_over_budget"] is False
        assert contract.history.filter(kind=HistoryKind.BUDGET_SET).exists()

    def test_null_removes_cap(self, authenticated_client, contract):
        response = authenticated_client.post(
            _url("adjust-budget", contract), {"budget_cap": None}, format="json"
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["budget_cap"] is None

    def test_deactivated_contract_conflicts(self, authenticated_client, contract):
        authenticated_client.post(_url("deactivate", contract), format="json")

        response = authenticated_client.post(
            _url("adjust-budget", contract), {"budget_cap": "1"}, format="json"
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["error_code"] == "CONTRACT_INACTIVE"


@pytest.mark.django_db
class TestContractReadViews:
    def test_detail_includes_history(self, authenticated_client, contract):
        authenticated_client.post(_url("charge", contract), {"amount": "1000"}, format="json")

        response = authenticated_client.get(_url("detail", contract))

        assert response.status_code == status.HTTP_200_OK
        assert len(response.data["history"]) == 1

    def test_list_is_scoped_to_company(self, authenticated_client, contract):
        ContractFactory()

        response = authenticated_client.get(reverse("contracts:contract-list"))

        assert response.status_code == status.HTTP_200_OK
        results = response.data["results"] if isinstance(response.data, dict) else response.data
        assert [item["id"] for item in results] == [str(contract.id)]


@pytest.mark.django_db
class TestCreateContractView:
    def test_creates_contract(self, authenticated_client, company):
        client = ClientFactory(company=company)

        response = authenticated_client.post(
            reverse("contracts:contract-list"),
            {
                "client_id": str(client.id),
                "budget_cap": "5000000",
                "budget_period": "month",
                "notes": "Transporte escolar 2026",
            },
            format="json",
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["budget_cap"] == "5000000.00"
        assert response.data["consumed"] == "0.00"
        contract = Contract.objects.get(id=response.data["id"])
        assert contract.history.get().notes == "Contract created"

    def test_client_of_other_company(self, authenticated_client):
        response = authenticated_client.post(
            reverse("contracts:contract-list"),
            {
                "client_id": str(ClientFactory().id),
                "budget_cap": "1000",
                "budget_period": "year",
            },
            format="json",
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data["error_code"] == "CLIENT_NOT_FOUND"

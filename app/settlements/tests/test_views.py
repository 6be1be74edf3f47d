"""
Tests for settlement and payable account API views.

These tests verify:
- Request parsing and response shapes of each endpoint
- Error payloads produced by the exception handler
- Role and company scoping of every route
"""

from __future__ import annotations

import uuid

import pytest
from django.urls import reverse
from rest_framework import status

from accounts.models import UserRole
from accounts.tests.factories import UserFactory
from settlements.models import PayableAccount, Settlement
from settlements.states import PayableAccountState, SettlementState
from settlements.tests.factories import SettlementFactory


def _detail(name, pk):
    return reverse(f"settlements:settlement-{name}", kwargs={"pk": pk})


@pytest.mark.django_db
class TestGenerateView:
    def test_generate_returns_201(self, authenticated_client, worked_example):
        response = authenticated_client.post(
            reverse("settlements:settlement-list"),
            {
                "service_request_ids": [str(pk) for pk in worked_example.request_ids],
                "operational_expense_ids": [str(worked_example.expense.id)],
            },
            format="json",
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["number"] == "PRELIQ_MULTI_HE00001-HE00002_COLEGIO_ANDINO"
        assert response.data["state"] == SettlementState.PENDING
        assert response.data["net_total"] == "1450000.00"
        assert len(response.data["lines"]) == 2

    def test_empty_request_ids(self, authenticated_client):
        response = authenticated_client.post(
            reverse("settlements:settlement-list"),
            {"service_request_ids": []},
            format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "EMPTY_SERVICE_REQUESTS"

    def test_unknown_requests_are_404(self, authenticated_client):
        missing = str(uuid.uuid4())

        response = authenticated_client.post(
            reverse("settlements:settlement-list"),
            {"service_request_ids": [missing]},
            format="json",
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data["details"]["ids"] == [missing]

    def test_already_settled_is_409(self, authenticated_client, pending_settlement, worked_example):
        response = authenticated_client.post(
            reverse("settlements:settlement-list"),
            {"service_request_ids": [str(worked_example.r1.id)]},
            format="json",
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["error_code"] == "SERVICE_REQUESTS_ALREADY_SETTLED"

    def test_coordinator_cannot_generate(self, api_client, company, worked_example):
        api_client.force_authenticate(UserFactory(company=company, role=UserRole.COORDINATOR))

        response = api_client.post(
            reverse("settlements:settlement-list"),
            {"service_request_ids": [str(worked_example.r1.id)]},
            format="json",
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert not Settlement.objects.exists()

    def test_anonymous_is_rejected(self, api_client):
        response = api_client.get(reverse("settlements:settlement-list"))

        assert response.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.django_db
@pytest.mark.usefixtures("no_owner_notifications")
class TestDecisionViews:
    def test_approve(self, authenticated_client, pending_settlement):
        response = authenticated_client.post(
            _detail("approve", pending_settlement.id),
            {"notes": "Revisado", "version": pending_settlement.version},
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["state"] == SettlementState.APPROVED
        assert response.data["notes"] == "Revisado"
        assert {line["state"] for line in response.data["lines"]} == {"liquidado_sin_pagar"}
        assert PayableAccount.objects.count() == 2

    def test_approve_stale_version(self, authenticated_client, pending_settlement):
        response = authenticated_client.post(
            _detail("approve", pending_settlement.id),
            {"version": pending_settlement.version + 1},
            format="json",
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["error_code"] == "STALE_RECORD"

    def test_approve_twice(self, authenticated_client, pending_settlement):
        url = _detail("approve", pending_settlement.id)
        authenticated_client.post(url, {}, format="json")

        response = authenticated_client.post(url, {}, format="json")

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["error_code"] == "INVALID_STATE_TRANSITION"
        assert response.data["details"]["current_state"] == SettlementState.APPROVED

    def test_reject(self, authenticated_client, pending_settlement):
        response = authenticated_client.post(
            _detail("reject", pending_settlement.id),
            {"notes": "Valores errados"},
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["state"] == SettlementState.REJECTED

    def test_other_company_settlement_is_404(self, authenticated_client):
        foreign = SettlementFactory()

        response = authenticated_client.post(_detail("approve", foreign.id), {}, format="json")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data["error_code"] == "SETTLEMENT_NOT_FOUND"


@pytest.mark.django_db
class TestReadViews:
    def test_list_is_paginated_and_scoped(self, authenticated_client, user):
        for _ in range(3):
            SettlementFactory(company=user.company)
        SettlementFactory()

        response = authenticated_client.get(
            reverse("settlements:settlement-list"), {"per_page": 2, "page": 2}
        )

        assert response.status_code == status.HTTP_200_OK
        assert len(response.data["results"]) == 1
        assert response.data["pagination"]["total"] == 3
        assert response.data["pagination"]["page"] == 2

    def test_list_invalid_state(self, authenticated_client):
        response = authenticated_client.get(
            reverse("settlements:settlement-list"), {"state": "archived"}
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "INVALID_STATE_FILTER"

    def test_list_invalid_date(self, authenticated_client):
        response = authenticated_client.get(
            reverse("settlements:settlement-list"), {"date_from": "yesterday"}
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "INVALID_DATE_FILTER"

    def test_coordinator_can_read(self, api_client, company, pending_settlement):
        api_client.force_authenticate(UserFactory(company=company, role=UserRole.COORDINATOR))

        response = api_client.get(_detail("detail", pending_settlement.id))

        assert response.status_code == status.HTTP_200_OK
        assert response.data["number"] == pending_settlement.number

    def test_pending_expenses(self, authenticated_client, worked_example):
        response = authenticated_client.get(
            reverse("settlements:settlement-pending-expenses"),
            {"service_request_ids": ",".join(str(pk) for pk in worked_example.request_ids)},
        )

        assert response.status_code == status.HTTP_200_OK
        assert [e["id"] for e in response.data["operational"]] == [str(worked_example.expense.id)]
        assert response.data["total_operational"] == "150000.00"

    def test_preview(self, authenticated_client, worked_example):
        url = reverse("settlements:settlement-preview")
        query = "&".join(f"service_request_ids={pk}" for pk in worked_example.request_ids)

        response = authenticated_client.get(f"{url}?{query}")

        assert response.status_code == status.HTTP_200_OK
        assert response.data["net_total"] == "1450000.00"
        assert {line["plate"] for line in response.data["lines"]} == {"AAA111", "BBB222"}
        assert not Settlement.objects.exists()

    def test_pdf_download(self, authenticated_client, pending_settlement):
        response = authenticated_client.get(_detail("pdf", pending_settlement.id))

        assert response.status_code == status.HTTP_200_OK
        assert response["Content-Type"] == "application/pdf"
        assert pending_settlement.number in response["Content-Disposition"]
        assert response.content.startswith(b"%PDF")


@pytest.mark.django_db
class TestSendView:
    def test_pending_settlement_is_409(self, authenticated_client, pending_settlement):
        response = authenticated_client.post(_detail("send", pending_settlement.id), {}, format="json")

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["error_code"] == "SETTLEMENT_NOT_APPROVED"

    def test_send_is_accepted(
        self, authenticated_client, pending_settlement, user, no_owner_notifications, mocker
    ):
        from settlements.services import SettlementService

        SettlementService.approve(pending_settlement.id, actor=user, company_id=user.company_id)
        mocker.patch("settlements.tasks.deliver_settlement.delay")

        response = authenticated_client.post(
            _detail("send", pending_settlement.id), {"notes": "Saludos"}, format="json"
        )

        assert response.status_code == status.HTTP_202_ACCEPTED
        assert response.data["recipients"] == ["pagos@afiliados.example.com"]
        assert response.data["status"] == "queued"


@pytest.mark.django_db
@pytest.mark.usefixtures("no_owner_notifications")
class TestPayableAccountViews:
    @pytest.fixture
    def approved(self, pending_settlement, user):
        from settlements.services import SettlementService

        return SettlementService.approve(pending_settlement.id, actor=user, company_id=user.company_id)

    def test_list(self, authenticated_client, approved):
        response = authenticated_client.get(
            reverse("payables:payable-account-list"), {"state": PayableAccountState.CALCULADA}
        )

        assert response.status_code == status.HTTP_200_OK
        results = response.data["results"] if isinstance(response.data, dict) else response.data
        assert {a["service_request_code"] for a in results} == {"HE00001", "HE00002"}

    def test_retrieve_invalid_id_is_404(self, authenticated_client):
        response = authenticated_client.get(
            reverse("payables:payable-account-detail", kwargs={"pk": "nope"})
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_pay(self, authenticated_client, approved, worked_example):
        account = PayableAccount.objects.get(service_request=worked_example.r1)

        response = authenticated_client.post(
            reverse("payables:payable-account-pay", kwargs={"pk": account.id}),
            {"payment_date": "2026-05-02", "disbursement_number": "EG-77"},
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["state"] == PayableAccountState.PAGADA
        assert response.data["payment_date"] == "2026-05-02"

    def test_cancel_requires_reason(self, authenticated_client, approved, worked_example):
        account = PayableAccount.objects.get(service_request=worked_example.r1)

        response = authenticated_client.post(
            reverse("payables:payable-account-cancel", kwargs={"pk": account.id}),
            {},
            format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

"""Tests for operations models."""

import pytest

from operations.models import AccountingStatus
from operations.tests.factories import ServiceRequestFactory


@pytest.mark.django_db
class TestIsInvoiced:
    def test_invoiced_status(self):
        request = ServiceRequestFactory(invoice_number="")

        assert request.is_invoiced

    def test_invoice_number_without_status(self):
        request = ServiceRequestFactory(
            accounting_status=AccountingStatus.NOT_STARTED,
            invoice_number="FV-100",
        )

        assert request.is_invoiced

    def test_neither(self):
        request = ServiceRequestFactory(
            accounting_status=AccountingStatus.NOT_STARTED,
            invoice_number="",
        )

        assert not request.is_invoiced

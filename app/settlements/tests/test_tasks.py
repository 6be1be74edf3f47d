"""
Tests for the settlement delivery task.

The task is called directly (synchronously); Celery's autoretry re-raises
the original exception when a task is not running inside a worker.
"""

from __future__ import annotations

import uuid

import pytest

from core.exceptions import ExternalServiceError, ValidationError
from core.services import ServiceResult
from settlements.models import Settlement, SettlementDelivery
from settlements.states import DeliveryStatus
from settlements.tasks import deliver_settlement
from settlements.tests.factories import SettlementDeliveryFactory, VehicleSettlementFactory


@pytest.fixture
def delivery(db, user):
    delivery = SettlementDeliveryFactory(
        settlement__company=user.company,
        settlement__number="PRELIQ_HE00001_ACME",
        sent_by=user,
        notes="Adjunto la preliquidación",
    )
    VehicleSettlementFactory(settlement=delivery.settlement)
    return delivery


@pytest.mark.django_db
class TestDeliverSettlement:
    def test_sends_email_with_pdf(self, delivery, user, mailoutbox):
        result = deliver_settlement(str(delivery.id))

        assert result == {"status": "sent", "delivery_id": str(delivery.id)}
        assert len(mailoutbox) == 1
        message = mailoutbox[0]
        assert message.to == ["owner@example.com"]
        assert "PRELIQ_HE00001_ACME" in message.subject
        assert "Adjunto la preliquidación" in message.body
        filename, content, mimetype = message.attachments[0]
        assert filename == "PRELIQ_HE00001_ACME.pdf"
        assert mimetype == "application/pdf"
        assert content.startswith(b"%PDF")

    def test_marks_delivery_and_settlement_sent(self, delivery, user, mailoutbox):
        deliver_settlement(str(delivery.id))

        delivery.refresh_from_db()
        assert delivery.status == DeliveryStatus.SENT
        assert delivery.attempts == 1
        assert delivery.sent_at is not None
        settlement = Settlement.objects.get(pk=delivery.settlement_id)
        assert settlement.sent_to_client is True
        assert settlement.sent_by == user

    def test_already_sent_is_skipped(self, delivery, mailoutbox):
        SettlementDelivery.objects.filter(pk=delivery.pk).update(status=DeliveryStatus.SENT)

        result = deliver_settlement(str(delivery.id))

        assert result["status"] == "already_sent"
        assert mailoutbox == []

    def test_redelivery_sends_once(self, delivery, mailoutbox):
        deliver_settlement(str(delivery.id))
        deliver_settlement(str(delivery.id))

        assert len(mailoutbox) == 1

    @pytest.mark.parametrize("delivery_id", ["not-a-uuid", str(uuid.uuid4())])
    def test_unknown_delivery(self, db, delivery_id):
        assert deliver_settlement(delivery_id)["status"] == "not_found"

    def test_email_failure_records_error_and_raises(self, delivery, mocker):
        mocker.patch(
            "toolkit.services.email.EmailService.send",
            return_value=ServiceResult.failure("SMTP down", error_code="EMAIL_SEND_FAILED"),
        )

        with pytest.raises(ExternalServiceError) as exc_info:
            deliver_settlement(str(delivery.id))

        assert exc_info.value.error_code == "SETTLEMENT_DELIVERY_FAILED"
        delivery.refresh_from_db()
        assert delivery.status == DeliveryStatus.FAILED
        assert delivery.last_error == "SMTP down"
        assert delivery.attempts == 1
        assert Settlement.objects.get(pk=delivery.settlement_id).sent_to_client is False

    def test_pdf_failure_records_error_and_raises(self, delivery, mocker, mailoutbox):
        mocker.patch(
            "settlements.pdf.render_settlement_pdf",
            side_effect=ExternalServiceError(
                "Settlement PDF could not be rendered", error_code="PDF_RENDER_FAILED"
            ),
        )

        with pytest.raises(ExternalServiceError) as exc_info:
            deliver_settlement(str(delivery.id))

        assert exc_info.value.error_code == "PDF_RENDER_FAILED"
        delivery.refresh_from_db()
        assert delivery.status == DeliveryStatus.FAILED
        assert delivery.last_error == "Settlement PDF could not be rendered"
        assert delivery.attempts == 1
        assert mailoutbox == []

    def test_missing_recipients_is_not_retried(self, delivery):
        SettlementDelivery.objects.filter(pk=delivery.pk).update(recipients=[])

        with pytest.raises(ValidationError) as exc_info:
            deliver_settlement(str(delivery.id))

        assert exc_info.value.error_code == "SETTLEMENT_DELIVERY_REJECTED"
        assert exc_info.value.details["reason"] == "EMAIL_NO_RECIPIENTS"
        assert not isinstance(exc_info.value, deliver_settlement.autoretry_for)
        delivery.refresh_from_db()
        assert delivery.status == DeliveryStatus.FAILED
        assert delivery.last_error == "No recipients"

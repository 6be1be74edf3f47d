"""
Celery tasks for settlement delivery.

Tasks:
- deliver_settlement: Email one approved settlement, with its PDF, to the
  recipients recorded on a SettlementDelivery

Usage:
    from settlements.tasks import deliver_settlement

    # Queued by SettlementService after the approving transaction commits
    deliver_settlement.delay(str(delivery.id))
"""

from __future__ import annotations

import logging
from uuid import UUID

from celery import shared_task
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from core.exceptions import ExternalServiceError, ValidationError
from settlements.models import Settlement, SettlementDelivery
from settlements.states import DeliveryStatus

logger = logging.getLogger(__name__)

MAX_RETRY_ATTEMPTS = 5

DELIVERY_TEMPLATE = "settlements/email/settlement_delivery"

# Retrying cannot fix these
PERMANENT_EMAIL_ERRORS = frozenset({"EMAIL_NO_RECIPIENTS"})


@shared_task(
    bind=True,
    autoretry_for=(ExternalServiceError,),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_kwargs={"max_retries": MAX_RETRY_ATTEMPTS},
    acks_late=True,
)
def deliver_settlement(self, delivery_id: str) -> dict:
    """
    Send a settlement to its owner and record the outcome.

    Idempotent: a delivery already marked sent is skipped, so a redelivered
    message never emails twice.

    Returns:
        Dict with:
        - status: One of "sent", "already_sent", "not_found"
        - delivery_id: The delivery processed

    Raises:
        ExternalServiceError: PDF rendering or the email backend failed;
            triggers Celery retry
        ValidationError: The email can never be sent (no recipients); not retried
    """
    from settlements.pdf import render_settlement_pdf
    from toolkit.services.email import EmailService

    try:
        delivery_uuid = UUID(str(delivery_id))
    except ValueError:
        logger.error(f"Invalid delivery_id format: {delivery_id}")
        return {"status": "not_found", "delivery_id": str(delivery_id)}

    delivery = (
        SettlementDelivery.objects.select_related("settlement__client")
        .filter(id=delivery_uuid)
        .first()
    )
    if delivery is None:
        logger.warning("Settlement delivery not found", extra={"delivery_id": str(delivery_id)})
        return {"status": "not_found", "delivery_id": str(delivery_id)}

    if delivery.status == DeliveryStatus.SENT:
        logger.info(
            "Settlement delivery already sent, skipping",
            extra={"delivery_id": str(delivery.id)},
        )
        return {"status": "already_sent", "delivery_id": str(delivery.id)}

    settlement = delivery.settlement
    SettlementDelivery.objects.filter(pk=delivery.pk).update(attempts=F("attempts") + 1)

    logger.info(
        "Delivering settlement",
        extra={
            "delivery_id": str(delivery.id),
            "settlement_id": str(settlement.id),
            "celery_retries": self.request.retries,
        },
    )

    try:
        content = render_settlement_pdf(settlement)
    except ExternalServiceError as exc:
        _mark_failed(delivery, exc.message)
        raise

    result = EmailService.send(
        to=delivery.recipients,
        subject=f"Settlement {settlement.number}",
        template_name=DELIVERY_TEMPLATE,
        context={"settlement": settlement, "notes": delivery.notes},
        attachments=[(f"{settlement.number}.pdf", content, "application/pdf")],
    )

    if not result.success:
        _mark_failed(delivery, result.error)
        details = {"delivery_id": str(delivery.id), "reason": result.error_code}
        if result.error_code in PERMANENT_EMAIL_ERRORS:
            raise ValidationError(
                "Settlement email cannot be delivered",
                error_code="SETTLEMENT_DELIVERY_REJECTED",
                details=details,
            )
        raise ExternalServiceError(
            "Settlement email could not be sent",
            error_code="SETTLEMENT_DELIVERY_FAILED",
            details=details,
        )

    now = timezone.now()
    with transaction.atomic():
        SettlementDelivery.objects.filter(pk=delivery.pk).update(
            status=DeliveryStatus.SENT,
            sent_at=now,
            last_error="",
        )
        Settlement.objects.filter(pk=settlement.pk).update(
            sent_to_client=True,
            sent_at=now,
            sent_by_id=delivery.sent_by_id,
        )

    logger.info(
        "Settlement delivered",
        extra={
            "delivery_id": str(delivery.id),
            "settlement_id": str(settlement.id),
            "recipient_count": len(delivery.recipients),
        },
    )
    return {"status": "sent", "delivery_id": str(delivery.id)}


def _mark_failed(delivery: SettlementDelivery, error: str | None) -> None:
    SettlementDelivery.objects.filter(pk=delivery.pk).update(
        status=DeliveryStatus.FAILED,
        last_error=error or "",
    )

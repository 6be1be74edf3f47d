"""
State enums for settlement models.

These are Django TextChoices used by django-fsm fields and plain state
columns alike.

State Machines Overview:

Settlement States:
    pending → approved   (terminal)
    pending → rejected   (terminal)

VehicleSettlement States:
    pendiente → liquidado_sin_pagar → pagado

PayableAccount States:
    pendiente → calculada → pagada
    pendiente/calculada → cancelada
"""

from django.db import models


class SettlementState(models.TextChoices):
    """
    States for the Settlement lifecycle.

    Terminal states: APPROVED, REJECTED
    """

    PENDING = "pending", "Pending"
    APPROVED = "approved", "Approved"
    REJECTED = "rejected", "Rejected"


class VehicleSettlementState(models.TextChoices):
    """
    States for one vehicle's line of a settlement.

    State Flow:
        PENDIENTE → LIQUIDADO_SIN_PAGAR (settlement approved)
        LIQUIDADO_SIN_PAGAR → PAGADO (payable account paid)
    """

    PENDIENTE = "pendiente", "Pending"
    LIQUIDADO_SIN_PAGAR = "liquidado_sin_pagar", "Settled, unpaid"
    PAGADO = "pagado", "Paid"


class PayableAccountState(models.TextChoices):
    """
    States for a payable account (cuenta de cobro).

    Terminal states: PAGADA, CANCELADA

    State Flow:
        PENDIENTE → CALCULADA (line items appended and totals recomputed)
        CALCULADA → CALCULADA (another line item appended)
        CALCULADA → PAGADA (payment registered)
        PENDIENTE/CALCULADA → CANCELADA
    """

    PENDIENTE = "pendiente", "Pending"
    CALCULADA = "calculada", "Calculated"
    PAGADA = "pagada", "Paid"
    CANCELADA = "cancelada", "Cancelled"


class PayeeType(models.TextChoices):
    COMPANY = "company", "Company"
    USER = "user", "Person"


class DeliveryStatus(models.TextChoices):
    QUEUED = "queued", "Queued"
    SENT = "sent", "Sent"
    FAILED = "failed", "Failed"

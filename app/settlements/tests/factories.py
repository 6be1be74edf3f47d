"""
Factory Boy factories for settlement test data.

These build rows directly; use SettlementService.generate when a test needs
claimed requests and reserved expenses.

Usage:
    from settlements.tests.factories import SettlementFactory

    settlement = SettlementFactory(state=SettlementState.APPROVED)
    account = PayableAccountFactory(state=PayableAccountState.CALCULADA)
"""

from decimal import Decimal

import factory

from accounts.tests.factories import CompanyFactory
from fleet.tests.factories import VehicleFactory
from operations.tests.factories import ClientFactory, ServiceRequestFactory
from settlements.models import (
    PayableAccount,
    Settlement,
    SettlementDelivery,
    VehicleSettlement,
)
from settlements.states import PayeeType, SettlementState


class SettlementFactory(factory.django.DjangoModelFactory):
    """
    Factory for settlements.

    Default is a pending settlement with zero totals and no lines.
    """

    class Meta:
        model = Settlement

    company = factory.SubFactory(CompanyFactory)
    client = factory.SubFactory(ClientFactory, company=factory.SelfAttribute("..company"))
    number = factory.Sequence(lambda n: f"PRELIQ_HE{n:05d}_CLIENTE")
    state = SettlementState.PENDING


class VehicleSettlementFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = VehicleSettlement

    settlement = factory.SubFactory(SettlementFactory)
    vehicle = factory.SubFactory(
        VehicleFactory, company=factory.SelfAttribute("..settlement.company")
    )
    plate = factory.SelfAttribute("vehicle.plate")
    fleet = factory.SelfAttribute("vehicle.fleet")
    owner_type = PayeeType.COMPANY
    owner_company = factory.SelfAttribute("settlement.company")
    owner_name = factory.SelfAttribute("owner_company.name")
    total_services = Decimal("1000000.00")
    total_operational_expenses = Decimal("0.00")
    net = Decimal("1000000.00")


class PayableAccountFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = PayableAccount

    company = factory.SubFactory(CompanyFactory)
    service_request = factory.SubFactory(
        ServiceRequestFactory, company=factory.SelfAttribute("..company")
    )


class SettlementDeliveryFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = SettlementDelivery

    settlement = factory.SubFactory(SettlementFactory, state=SettlementState.APPROVED)
    recipients = factory.LazyFunction(lambda: ["owner@example.com"])

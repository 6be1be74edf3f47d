"""
Tests for the settlement and payable account state machines.

State fields are protected django-fsm fields: only the transition methods
change them, and terminal states accept no further transitions.
"""

from __future__ import annotations

import pytest
from django_fsm import TransitionNotAllowed

from settlements.states import PayableAccountState, SettlementState
from settlements.tests.factories import PayableAccountFactory, SettlementFactory


@pytest.mark.django_db
class TestSettlementTransitions:
    def test_approve_records_actor(self, user):
        settlement = SettlementFactory(company=user.company)

        settlement.approve(actor=user, notes="ok")

        assert settlement.state == SettlementState.APPROVED
        assert settlement.approved_by == user
        assert settlement.approved_at is not None
        assert settlement.last_modified_by == user
        assert settlement.notes == "ok"

    def test_reject_keeps_existing_notes_when_none_given(self, user):
        settlement = SettlementFactory(company=user.company, notes="draft")

        settlement.reject(actor=user)

        assert settlement.state == SettlementState.REJECTED
        assert settlement.rejected_by == user
        assert settlement.notes == "draft"

    @pytest.mark.parametrize("state", [SettlementState.APPROVED, SettlementState.REJECTED])
    @pytest.mark.parametrize("transition", ["approve", "reject"])
    def test_terminal_states(self, state, transition):
        settlement = SettlementFactory(state=state)

        with pytest.raises(TransitionNotAllowed):
            getattr(settlement, transition)()

        assert settlement.state == state

    def test_state_cannot_be_assigned(self):
        settlement = SettlementFactory()

        with pytest.raises(AttributeError):
            settlement.state = SettlementState.APPROVED

    def test_version_increments_on_save(self, user):
        settlement = SettlementFactory()
        version = settlement.version

        settlement.approve(actor=user)
        settlement.save()

        assert settlement.version == version + 1


@pytest.mark.django_db
class TestPayableAccountTransitions:
    def test_calculate_recomputes_totals(self):
        account = PayableAccountFactory()

        account.calculate()

        assert account.state == PayableAccountState.CALCULADA
        assert account.net_total == 0

    def test_calculate_again_stays_calculated(self):
        account = PayableAccountFactory(state=PayableAccountState.CALCULADA)

        account.calculate()

        assert account.state == PayableAccountState.CALCULADA

    def test_pay_defaults_payment_date(self, user):
        account = PayableAccountFactory(state=PayableAccountState.CALCULADA)

        account.pay(actor=user, disbursement_number="EG-9")

        assert account.state == PayableAccountState.PAGADA
        assert account.payment_date is not None
        assert account.disbursement_number == "EG-9"
        assert account.updated_by == user

    def test_pending_account_cannot_be_paid(self):
        account = PayableAccountFactory()

        with pytest.raises(TransitionNotAllowed):
            account.pay()

    @pytest.mark.parametrize("state", [PayableAccountState.PENDIENTE, PayableAccountState.CALCULADA])
    def test_cancel(self, state):
        account = PayableAccountFactory(state=state)

        account.cancel(reason="duplicated")

        assert account.state == PayableAccountState.CANCELADA
        assert account.cancellation_reason == "duplicated"

    @pytest.mark.parametrize("state", [PayableAccountState.PAGADA, PayableAccountState.CANCELADA])
    @pytest.mark.parametrize("transition", ["calculate", "pay", "cancel"])
    def test_terminal_states(self, state, transition):
        account = PayableAccountFactory(state=state)

        with pytest.raises(TransitionNotAllowed):
            getattr(account, transition)()

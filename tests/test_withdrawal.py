# tests/test_withdrawal.py

import json
from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from app.core.errors import DistributionStateError, DistributionValidationError, WithdrawalRejected
from app.models.distribution import DistributorStatus
from app.models.security_alert import SecurityAlert, SecurityAlertType
from app.models.withdrawal import CommissionWithdrawal, WithdrawalStatus
from app.schemas.system_config import DistributionConfig
from app.schemas.withdrawal import WithdrawalCreate, WithdrawalDecision
from app.services.withdrawal import compute_fee, decide_withdrawal, get_velocity_counters, request_withdrawal
from tests.helpers import NOW

BANK = dict(bank_name="Test Bank", bank_account="6222000011112222", bank_account_name="Test Distributor")


def withdrawal_request(amount, **overrides) -> WithdrawalCreate:
    return WithdrawalCreate(amount=Decimal(str(amount)), **{**BANK, **overrides})


def test_request_reserves_amount_and_charges_fee(db_session, make_distributor):
    """Balance 100, withdrawal of 50, fee rate 0.02."""
    distributor = make_distributor(available_balance=Decimal("100"))
    config = DistributionConfig(withdrawal_min_amount=Decimal("10"), withdrawal_fee_rate=Decimal("0.02"))

    result = request_withdrawal(db_session, distributor.id, withdrawal_request(50), config, now=NOW)

    db_session.refresh(distributor)
    assert distributor.available_balance == Decimal("50")
    assert result.withdrawal.fee == Decimal("1.00")
    assert result.withdrawal.actual_amount == Decimal("49.00")
    assert result.withdrawal.bank_account == "****2222"


def test_fee_is_rounded_to_cents():
    assert compute_fee(Decimal("123.45"), Decimal("0.02")) == Decimal("2.47")
    assert compute_fee(Decimal("100.25"), Decimal("0.02")) == Decimal("2.01")


def test_low_risk_request_is_auto_approved_when_enabled(db_session, make_distributor):
    distributor = make_distributor(available_balance=Decimal("1000"))
    config = DistributionConfig(withdrawal_auto_approve=True)

    result = request_withdrawal(db_session, distributor.id, withdrawal_request(200), config, now=NOW)

    assert result.routing == "auto_approved"
    assert result.withdrawal.status == WithdrawalStatus.PROCESSING
    assert result.withdrawal.is_auto_approved is True


def test_medium_risk_request_waits_for_review(db_session, make_distributor, config):
    distributor = make_distributor(available_balance=Decimal("1000"), first_withdrawal_at=None)

    result = request_withdrawal(db_session, distributor.id, withdrawal_request(200), config, now=NOW)

    assert result.routing == "manual_review"
    assert result.withdrawal.status == WithdrawalStatus.PENDING
    assert result.withdrawal.risk_score == 20
    withdrawal = db_session.get(CommissionWithdrawal, result.withdrawal.id)
    assert json.loads(withdrawal.risk_check_result)["factors"] == ["first_withdrawal"]
    db_session.refresh(distributor)
    assert distributor.first_withdrawal_at is not None
    assert db_session.query(SecurityAlert).count() == 0


def test_high_risk_request_raises_alert(db_session, make_distributor, config):
    distributor = make_distributor(available_balance=Decimal("10000"), is_frozen=True, frozen_reason="manual check")

    result = request_withdrawal(db_session, distributor.id, withdrawal_request(6000), config, now=NOW)

    assert result.withdrawal.status == WithdrawalStatus.PENDING
    alert = db_session.query(SecurityAlert).one()
    assert alert.type == SecurityAlertType.HIGH_RISK_WITHDRAWAL
    assert json.loads(alert.alert_metadata)["withdrawal_id"] == result.withdrawal.id


def test_failed_alert_does_not_undo_the_withdrawal(db_session, make_distributor, config, mocker):
    distributor = make_distributor(available_balance=Decimal("10000"), is_frozen=True)
    mocker.patch("app.services.withdrawal.crud_alert.create_alert", side_effect=RuntimeError("alert store down"))

    result = request_withdrawal(db_session, distributor.id, withdrawal_request(6000), config, now=NOW)

    assert db_session.get(CommissionWithdrawal, result.withdrawal.id) is not None
    db_session.refresh(distributor)
    assert distributor.available_balance == Decimal("4000")


@pytest.mark.parametrize(
    "amount, overrides, distributor_fields, reason",
    [
        (50, {}, {}, "amount_below_minimum"),
        (60000, {}, {"available_balance": Decimal("100000")}, "amount_above_maximum"),
        (200, {"bank_account": "  "}, {}, "bank_info_incomplete"),
        (5000, {}, {}, "insufficient_balance"),
        (200, {}, {"status": DistributorStatus.SUSPENDED}, "distributor_not_active"),
    ],
)
def test_basic_validation(db_session, make_distributor, config, amount, overrides, distributor_fields, reason):
    fields = {"available_balance": Decimal("1000"), **distributor_fields}
    distributor = make_distributor(**fields)

    with pytest.raises(WithdrawalRejected) as exc_info:
        request_withdrawal(db_session, distributor.id, withdrawal_request(amount, **overrides), config, now=NOW)

    assert exc_info.value.reason == reason
    db_session.refresh(distributor)
    assert distributor.available_balance == fields["available_balance"]
    assert db_session.query(CommissionWithdrawal).count() == 0


def test_only_one_active_withdrawal(db_session, make_distributor, config):
    distributor = make_distributor(available_balance=Decimal("1000"))
    request_withdrawal(db_session, distributor.id, withdrawal_request(200), config, now=NOW)

    with pytest.raises(WithdrawalRejected) as exc_info:
        request_withdrawal(db_session, distributor.id, withdrawal_request(200), config, now=NOW)

    assert exc_info.value.reason == "active_withdrawal_exists"
    assert exc_info.value.status_code == 409
    db_session.refresh(distributor)
    assert distributor.available_balance == Decimal("800")


def test_database_refuses_a_second_active_withdrawal(db_session, make_distributor):
    """The partial unique index holds even if the service check is bypassed."""
    distributor = make_distributor()
    for _ in range(2):
        db_session.add(CommissionWithdrawal(
            distributor_id=distributor.id, amount=Decimal("100"), fee=Decimal("2"), actual_amount=Decimal("98"),
            status=WithdrawalStatus.PENDING, risk_score=0, **BANK,
        ))
    with pytest.raises(IntegrityError):
        db_session.commit()
    db_session.rollback()


def _finish(db_session, withdrawal_id):
    decide_withdrawal(db_session, withdrawal_id, WithdrawalDecision(action="approve"), now=NOW)
    decide_withdrawal(db_session, withdrawal_id, WithdrawalDecision(action="complete", transaction_id="TX"), now=NOW)


def test_daily_count_limit(db_session, make_distributor):
    distributor = make_distributor(available_balance=Decimal("5000"))
    config = DistributionConfig(withdrawal_daily_count_limit=2)
    for _ in range(2):
        result = request_withdrawal(db_session, distributor.id, withdrawal_request(100), config, now=NOW)
        _finish(db_session, result.withdrawal.id)

    with pytest.raises(WithdrawalRejected) as exc_info:
        request_withdrawal(db_session, distributor.id, withdrawal_request(100), config, now=NOW)
    assert exc_info.value.reason == "daily_count_limit"

    # A new day starts a new count
    request_withdrawal(db_session, distributor.id, withdrawal_request(100), config, now=NOW + timedelta(days=1))


def test_rejected_withdrawals_do_not_count_towards_daily_limits(db_session, make_distributor):
    distributor = make_distributor(available_balance=Decimal("5000"))
    config = DistributionConfig(withdrawal_daily_count_limit=1)
    first = request_withdrawal(db_session, distributor.id, withdrawal_request(100), config, now=NOW)
    decide_withdrawal(db_session, first.withdrawal.id, WithdrawalDecision(action="reject", reason="typo"), now=NOW)

    request_withdrawal(db_session, distributor.id, withdrawal_request(100), config, now=NOW)


def test_daily_amount_limit(db_session, make_distributor):
    distributor = make_distributor(available_balance=Decimal("20000"))
    config = DistributionConfig(withdrawal_daily_amount_limit=Decimal("1000"))
    first = request_withdrawal(db_session, distributor.id, withdrawal_request(800), config, now=NOW)
    _finish(db_session, first.withdrawal.id)

    with pytest.raises(WithdrawalRejected) as exc_info:
        request_withdrawal(db_session, distributor.id, withdrawal_request(300), config, now=NOW)
    assert exc_info.value.reason == "daily_amount_limit"


def test_monthly_amount_counts_money_in_flight_and_paid(db_session, make_distributor):
    distributor = make_distributor(available_balance=Decimal("20000"))
    config = DistributionConfig(withdrawal_monthly_amount_limit=Decimal("1000"))
    first = request_withdrawal(db_session, distributor.id, withdrawal_request(700), config, now=NOW - timedelta(days=3))
    _finish(db_session, first.withdrawal.id)

    counters = get_velocity_counters(db_session, distributor.id, NOW)
    assert counters.today_count == 0
    assert counters.month_amount == Decimal("700")

    with pytest.raises(WithdrawalRejected) as exc_info:
        request_withdrawal(db_session, distributor.id, withdrawal_request(400), config, now=NOW)
    assert exc_info.value.reason == "monthly_amount_limit"


# --- Admin decisions ---

def test_approve_then_complete(db_session, make_distributor, admin_user, config):
    distributor = make_distributor(available_balance=Decimal("1000"))
    created = request_withdrawal(db_session, distributor.id, withdrawal_request(300), config, now=NOW)

    approved = decide_withdrawal(db_session, created.withdrawal.id, WithdrawalDecision(action="approve"), admin_user.id, now=NOW)
    assert approved.status == WithdrawalStatus.PROCESSING
    assert approved.processed_by == admin_user.id

    completed = decide_withdrawal(
        db_session, created.withdrawal.id,
        WithdrawalDecision(action="complete", transaction_id="BANK-001"), admin_user.id, now=NOW,
    )
    assert completed.status == WithdrawalStatus.COMPLETED
    assert completed.transaction_id == "BANK-001"

    db_session.refresh(distributor)
    assert distributor.available_balance == Decimal("700")
    assert distributor.withdrawn_amount == Decimal("300")


def test_reject_returns_the_reservation(db_session, make_distributor, config):
    distributor = make_distributor(available_balance=Decimal("1000"))
    created = request_withdrawal(db_session, distributor.id, withdrawal_request(300), config, now=NOW)

    rejected = decide_withdrawal(
        db_session, created.withdrawal.id, WithdrawalDecision(action="reject", reason="account name mismatch"), now=NOW
    )

    assert rejected.status == WithdrawalStatus.REJECTED
    assert rejected.rejected_reason == "account name mismatch"
    db_session.refresh(distributor)
    assert distributor.available_balance == Decimal("1000")
    assert distributor.withdrawn_amount == Decimal("0")


def test_decisions_follow_the_state_machine(db_session, make_distributor, config):
    distributor = make_distributor(available_balance=Decimal("1000"))
    created = request_withdrawal(db_session, distributor.id, withdrawal_request(300), config, now=NOW)
    withdrawal_id = created.withdrawal.id

    with pytest.raises(DistributionStateError):
        decide_withdrawal(db_session, withdrawal_id, WithdrawalDecision(action="complete", transaction_id="TX"))
    with pytest.raises(DistributionValidationError):
        decide_withdrawal(db_session, withdrawal_id, WithdrawalDecision(action="reject"))

    decide_withdrawal(db_session, withdrawal_id, WithdrawalDecision(action="reject", reason="duplicate"))
    with pytest.raises(DistributionStateError):
        decide_withdrawal(db_session, withdrawal_id, WithdrawalDecision(action="reject", reason="again"))

    db_session.refresh(distributor)
    assert distributor.available_balance == Decimal("1000")


def test_balances_add_up_after_a_full_cycle(db_session, make_distributor, make_paid_sale, config):
    """pending + available + withdrawn equals the live commissions once nothing is in flight."""
    from app.services.refund import refund_order
    from app.services.settlement import run_settlement_sweep

    distributor = make_distributor()
    sales = [
        make_paid_sale(distributor, Decimal(amount), paid_at=NOW - timedelta(days=days))
        for amount, days in [("1500", 40), ("2500", 30), ("800", 20), ("1200", 2)]
    ]
    run_settlement_sweep(db_session, config, now=NOW)
    refund_order(db_session, sales[1].order_id, now=NOW)
    refund_order(db_session, sales[3].order_id, now=NOW)

    created = request_withdrawal(db_session, distributor.id, withdrawal_request(150), config, now=NOW)
    _finish(db_session, created.withdrawal.id)

    db_session.refresh(distributor)
    live = sum(
        (item.commission_amount for item in distributor.distribution_orders if item.status != "cancelled"),
        Decimal("0"),
    )
    assert live == Decimal("230")
    assert distributor.pending_commission + distributor.available_balance + distributor.withdrawn_amount == live
    assert distributor.total_earnings == live


def test_failed_completion_leaves_withdrawal_processing(db_session, make_distributor, config, mocker):
    distributor = make_distributor(available_balance=Decimal("1000"))
    created = request_withdrawal(db_session, distributor.id, withdrawal_request(300), config, now=NOW)
    withdrawal_id = created.withdrawal.id
    decide_withdrawal(db_session, withdrawal_id, WithdrawalDecision(action="approve"), now=NOW)

    ledger_call = mocker.patch(
        "app.services.withdrawal.ledger.record_withdrawal_completed", side_effect=RuntimeError("ledger unavailable")
    )
    with pytest.raises(RuntimeError):
        decide_withdrawal(db_session, withdrawal_id, WithdrawalDecision(action="complete", transaction_id="BANK-9"), now=NOW)

    withdrawal = db_session.get(CommissionWithdrawal, withdrawal_id)
    assert withdrawal.status == WithdrawalStatus.PROCESSING
    assert withdrawal.transaction_id is None

    mocker.stop(ledger_call)
    completed = decide_withdrawal(
        db_session, withdrawal_id, WithdrawalDecision(action="complete", transaction_id="BANK-9"), now=NOW
    )
    assert completed.status == WithdrawalStatus.COMPLETED
    db_session.refresh(distributor)
    assert distributor.withdrawn_amount == Decimal("300")

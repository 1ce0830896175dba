# tests/test_risk.py

from datetime import timedelta
from decimal import Decimal

from app.models.distribution import Distributor, RiskLevel
from app.schemas.system_config import DistributionConfig
from app.schemas.withdrawal import VelocityCounters
from app.services.risk import AutoApprove, ManualReview, assess_withdrawal_risk, route_withdrawal
from tests.helpers import NOW


def clean_distributor(**overrides) -> Distributor:
    """Transient distributor that triggers no factor by itself."""
    fields = dict(
        is_frozen=False,
        frozen_reason=None,
        is_test_account=False,
        first_withdrawal_at=NOW - timedelta(days=20),
        created_at=NOW - timedelta(days=60),
        is_verified=True,
        risk_level=RiskLevel.LOW,
        last_bank_info_update=None,
    )
    fields.update(overrides)
    return Distributor(**fields)


def test_clean_request_is_low_risk_and_follows_global_switch():
    distributor = clean_distributor()

    off = assess_withdrawal_risk(Decimal("100"), distributor, VelocityCounters(), DistributionConfig(), NOW)
    assert off.score == 0
    assert off.level == "low"
    assert off.auto_approvable is False
    assert isinstance(route_withdrawal(off), ManualReview)

    on = assess_withdrawal_risk(
        Decimal("100"), distributor, VelocityCounters(), DistributionConfig(withdrawal_auto_approve=True), NOW
    )
    assert on.auto_approvable is True
    assert isinstance(route_withdrawal(on), AutoApprove)


def test_large_amount_alone_is_medium():
    """Large amount only, 60 day old verified account, auto threshold 10."""
    config = DistributionConfig(withdrawal_risk_threshold_manual=40)

    result = assess_withdrawal_risk(Decimal("6000"), clean_distributor(), VelocityCounters(), config, NOW)

    assert result.score == 30
    assert result.factors == ["large_amount"]
    assert result.level == "medium"
    assert result.auto_approvable is False
    assert result.should_alert is False
    assert route_withdrawal(result) == ManualReview(level="medium", alert=False)


def test_score_equal_to_manual_threshold_is_high():
    result = assess_withdrawal_risk(
        Decimal("6000"), clean_distributor(), VelocityCounters(), DistributionConfig(), NOW
    )

    assert result.score == 30
    assert result.level == "high"
    assert result.should_alert is True
    assert route_withdrawal(result) == ManualReview(level="high", alert=True)


def test_every_factor_adds_its_weight():
    distributor = clean_distributor(
        is_frozen=True,
        frozen_reason="chargeback investigation",
        is_test_account=True,
        first_withdrawal_at=None,
        created_at=NOW - timedelta(days=3),
        is_verified=False,
        risk_level=RiskLevel.HIGH,
        last_bank_info_update=NOW - timedelta(days=1),
    )
    config = DistributionConfig(withdrawal_auto_require_verified=True)
    counters = VelocityCounters(today_count=3, today_amount=Decimal("9900"))

    result = assess_withdrawal_risk(Decimal("5000"), distributor, counters, config, NOW)

    assert result.factors == [
        "frozen_account",
        "test_account",
        "large_amount",
        "first_withdrawal",
        "new_account",
        "not_verified",
        "high_risk_account",
        "bank_info_changed",
        "daily_count_limit",
        "daily_amount_limit",
    ]
    assert result.score == 100 + 50 + 30 + 20 + 15 + 15 + 10 + 10 + 5 + 5
    assert len(result.reasons) == len(result.factors)
    assert "chargeback investigation" in result.reasons[0]


def test_medium_risk_flag_and_unverified_without_requirement():
    distributor = clean_distributor(risk_level=RiskLevel.MEDIUM, is_verified=False)

    result = assess_withdrawal_risk(Decimal("100"), distributor, VelocityCounters(), DistributionConfig(), NOW)

    assert result.factors == ["medium_risk_account"]
    assert result.score == 5
    assert result.level == "low"


def test_test_account_never_auto_approves():
    config = DistributionConfig(withdrawal_auto_approve=True)

    result = assess_withdrawal_risk(
        Decimal("100"), clean_distributor(is_test_account=True), VelocityCounters(), config, NOW
    )

    assert result.score == 50
    assert result.auto_approvable is False
    assert isinstance(route_withdrawal(result), ManualReview)


def test_bank_info_stability_window_is_rounded_to_days():
    config = DistributionConfig()
    recent = clean_distributor(last_bank_info_update=NOW - timedelta(days=6, hours=11))
    stable = clean_distributor(last_bank_info_update=NOW - timedelta(days=6, hours=13))

    assert "bank_info_changed" in assess_withdrawal_risk(Decimal("100"), recent, VelocityCounters(), config, NOW).factors
    assert "bank_info_changed" not in assess_withdrawal_risk(Decimal("100"), stable, VelocityCounters(), config, NOW).factors


def test_naive_timestamps_are_treated_as_utc():
    distributor = clean_distributor(created_at=(NOW - timedelta(days=5)).replace(tzinfo=None))

    result = assess_withdrawal_risk(Decimal("100"), distributor, VelocityCounters(), DistributionConfig(), NOW)

    assert result.factors == ["new_account"]

# app/services/risk.py
"""
Withdrawal risk scoring.

Everything here is a pure function of its arguments: the caller loads the
distributor, the velocity counters and the config snapshot and passes them in.
The engine never rejects a request, it only decides who handles it.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from app.models.distribution import Distributor, RiskLevel
from app.schemas.system_config import DistributionConfig
from app.schemas.withdrawal import RiskAssessment, VelocityCounters
from app.utils.dates import days_between


# --- Routing outcomes ---

@dataclass(frozen=True)
class AutoApprove:
    """Goes straight to the payout queue (status 'processing')."""


@dataclass(frozen=True)
class ManualReview:
    """Waits for a human (status 'pending'). `alert` asks for a security alert."""
    level: str
    alert: bool = False


@dataclass(frozen=True)
class Blocked:
    """Refused before scoring, nothing is reserved."""
    reason: str
    message: str


def _money(value: Decimal) -> str:
    return f"{Decimal(value):.2f}"


def assess_withdrawal_risk(
    amount: Decimal,
    distributor: Distributor,
    counters: VelocityCounters,
    config: DistributionConfig,
    now: datetime,
) -> RiskAssessment:
    """Adds up the weights of every triggered factor and maps the score to a level."""
    factors: list[str] = []
    reasons: list[str] = []
    score = 0

    def hit(factor: str, weight: int, reason: str):
        nonlocal score
        factors.append(factor)
        reasons.append(reason)
        score += weight

    if distributor.is_frozen:
        hit("frozen_account", config.withdrawal_risk_weight_frozen,
            f"Account is frozen: {distributor.frozen_reason or 'no reason given'}")

    if distributor.is_test_account:
        hit("test_account", config.withdrawal_risk_weight_test_account,
            "Designated test account, withdrawals always go to manual review")

    if amount >= config.withdrawal_auto_max_amount:
        hit("large_amount", config.withdrawal_risk_weight_large_amount,
            f"Amount {_money(amount)} reaches the auto-approval limit {_money(config.withdrawal_auto_max_amount)}")

    if distributor.first_withdrawal_at is None:
        hit("first_withdrawal", config.withdrawal_risk_weight_first_withdrawal,
            "First withdrawal of this distributor")

    account_age = days_between(now, distributor.created_at)
    if account_age < config.withdrawal_auto_min_days:
        hit("new_account", config.withdrawal_risk_weight_new_account,
            f"Account is {account_age} days old, {config.withdrawal_auto_min_days} required")

    if config.withdrawal_auto_require_verified and not distributor.is_verified:
        hit("not_verified", config.withdrawal_risk_weight_not_verified,
            "Account is not verified")

    if distributor.risk_level == RiskLevel.HIGH:
        hit("high_risk_account", config.withdrawal_risk_weight_high_risk_account,
            "Account is flagged as high risk")
    elif distributor.risk_level == RiskLevel.MEDIUM:
        hit("medium_risk_account", config.withdrawal_risk_weight_medium_risk_account,
            "Account is flagged as medium risk")

    if distributor.last_bank_info_update is not None:
        since_update = days_between(now, distributor.last_bank_info_update)
        if since_update < config.withdrawal_bank_info_stable_days:
            hit("bank_info_changed", config.withdrawal_risk_weight_bank_changed,
                f"Bank details changed {since_update} days ago, "
                f"{config.withdrawal_bank_info_stable_days} days required")

    if counters.today_count >= config.withdrawal_daily_count_limit:
        hit("daily_count_limit", config.withdrawal_risk_weight_daily_limit,
            f"{counters.today_count} withdrawals today, limit is {config.withdrawal_daily_count_limit}")

    if counters.today_amount + amount > config.withdrawal_daily_amount_limit:
        hit("daily_amount_limit", config.withdrawal_risk_weight_daily_limit,
            f"Today {_money(counters.today_amount)} plus {_money(amount)} exceeds "
            f"the daily limit {_money(config.withdrawal_daily_amount_limit)}")

    if score >= config.withdrawal_risk_threshold_manual:
        level, auto_approvable, should_alert = RiskLevel.HIGH, False, True
    elif score >= config.withdrawal_risk_threshold_auto:
        level, auto_approvable, should_alert = RiskLevel.MEDIUM, False, False
    else:
        # A low score is necessary, the global switch still has the last word
        level, auto_approvable, should_alert = RiskLevel.LOW, config.withdrawal_auto_approve, False

    return RiskAssessment(
        score=score,
        level=level,
        auto_approvable=auto_approvable,
        should_alert=should_alert,
        factors=factors,
        reasons=reasons,
    )


def route_withdrawal(assessment: RiskAssessment) -> AutoApprove | ManualReview:
    if assessment.auto_approvable:
        return AutoApprove()
    return ManualReview(level=assessment.level, alert=assessment.should_alert)

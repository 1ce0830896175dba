# app/services/withdrawal.py

import logging
import math
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import (
    DistributionNotFoundError,
    DistributionStateError,
    DistributionValidationError,
    WithdrawalRejected,
)
from app.crud import distributor as crud_distributor
from app.crud import security_alert as crud_alert
from app.crud import withdrawal as crud_withdrawal
from app.models.distribution import Distributor, DistributorStatus
from app.models.security_alert import SecurityAlertType
from app.models.withdrawal import CommissionWithdrawal, WithdrawalStatus
from app.schemas.system_config import DistributionConfig
from app.schemas.withdrawal import (
    AdminWithdrawal,
    PaginatedAdminWithdrawals,
    PaginatedWithdrawals,
    RiskAssessment,
    VelocityCounters,
    Withdrawal,
    WithdrawalCreate,
    WithdrawalDecision,
    WithdrawalRequestResult,
)
from app.services import ledger
from app.services.risk import AutoApprove, Blocked, ManualReview, assess_withdrawal_risk, route_withdrawal
from app.utils.dates import start_of_day, start_of_month, utcnow

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def compute_fee(amount: Decimal, fee_rate: Decimal) -> Decimal:
    return (Decimal(amount) * Decimal(fee_rate)).quantize(CENT, rounding=ROUND_HALF_UP)


def get_velocity_counters(db: Session, distributor_id: int, now: datetime) -> VelocityCounters:
    """
    Today's counters skip rejected requests but keep pending ones, the monthly
    amount only counts money in flight or paid out.
    """
    today_count, today_amount = crud_withdrawal.get_stats_since(
        db, distributor_id, start_of_day(now), exclude_statuses=[WithdrawalStatus.REJECTED]
    )
    _, month_amount = crud_withdrawal.get_stats_since(
        db, distributor_id, start_of_month(now),
        statuses=[WithdrawalStatus.PROCESSING, WithdrawalStatus.COMPLETED],
    )
    return VelocityCounters(today_count=today_count, today_amount=today_amount, month_amount=month_amount)


def validate_withdrawal_request(
    distributor: Distributor,
    data: WithdrawalCreate,
    config: DistributionConfig,
    counters: VelocityCounters,
    active_count: int,
) -> Blocked | None:
    """Checks that run before scoring. Returns the first failure, or None."""
    amount = data.amount

    if distributor.status != DistributorStatus.ACTIVE:
        return Blocked("distributor_not_active", "Only active distributors can withdraw commission")
    if amount < config.withdrawal_min_amount:
        return Blocked("amount_below_minimum", f"Minimum withdrawal amount is {config.withdrawal_min_amount:.2f}")
    if amount > config.withdrawal_max_amount:
        return Blocked("amount_above_maximum", f"Maximum withdrawal amount is {config.withdrawal_max_amount:.2f}")
    if not data.is_complete():
        return Blocked("bank_info_incomplete", "Bank name, account number and account holder are required")
    if Decimal(distributor.available_balance) < amount:
        return Blocked(
            "insufficient_balance",
            f"Available balance {Decimal(distributor.available_balance):.2f} is lower than {amount:.2f}",
        )

    if active_count > 0:
        return Blocked("active_withdrawal_exists", "You already have a withdrawal in progress")
    if counters.today_count >= config.withdrawal_daily_count_limit:
        return Blocked(
            "daily_count_limit",
            f"Daily limit of {config.withdrawal_daily_count_limit} withdrawals reached",
        )
    if counters.today_amount + amount > config.withdrawal_daily_amount_limit:
        return Blocked(
            "daily_amount_limit",
            f"Daily withdrawal limit is {config.withdrawal_daily_amount_limit:.2f}, "
            f"{counters.today_amount:.2f} already requested today",
        )
    if counters.month_amount + amount > config.withdrawal_monthly_amount_limit:
        return Blocked(
            "monthly_amount_limit",
            f"Monthly withdrawal limit is {config.withdrawal_monthly_amount_limit:.2f}, "
            f"{counters.month_amount:.2f} already withdrawn this month",
        )
    return None


def _alert_high_risk(db: Session, distributor: Distributor, withdrawal: CommissionWithdrawal, assessment: RiskAssessment) -> None:
    """Best effort: the withdrawal is already committed and stays whatever happens here."""
    try:
        crud_alert.create_alert(
            db,
            type=SecurityAlertType.HIGH_RISK_WITHDRAWAL,
            severity="high",
            user_id=distributor.user_id,
            description=(
                f"Withdrawal {withdrawal.id} of {withdrawal.amount} by distributor {distributor.code} "
                f"scored {assessment.score}: {'; '.join(assessment.reasons)}"
            ),
            metadata={
                "withdrawal_id": withdrawal.id,
                "distributor_id": distributor.id,
                "amount": withdrawal.amount,
                "risk_score": assessment.score,
                "factors": assessment.factors,
                "reasons": assessment.reasons,
            },
        )
        db.commit()
    except Exception:
        db.rollback()
        logger.error(f"Failed to record high risk alert for withdrawal {withdrawal.id}", exc_info=True)


def request_withdrawal(
    db: Session,
    distributor_id: int,
    data: WithdrawalCreate,
    config: DistributionConfig,
    now: datetime | None = None,
) -> WithdrawalRequestResult:
    """
    Validates, scores and records a withdrawal request.

    The reservation and the withdrawal row are committed together. The only
    work after that commit is the optional high risk alert.
    """
    now = now or utcnow()
    distributor = crud_distributor.get_distributor(db, distributor_id)
    if distributor is None:
        raise DistributionNotFoundError("distributor", distributor_id)

    counters = get_velocity_counters(db, distributor.id, now)
    active_count = crud_withdrawal.count_active_withdrawals(db, distributor.id)
    blocked = validate_withdrawal_request(distributor, data, config, counters, active_count)
    if blocked is not None:
        logger.info(f"Withdrawal of {data.amount} by distributor {distributor.id} refused: {blocked.reason}")
        raise WithdrawalRejected(blocked.reason, blocked.message)

    fee = compute_fee(data.amount, config.withdrawal_fee_rate)
    assessment = assess_withdrawal_risk(data.amount, distributor, counters, config, now)
    routing = route_withdrawal(assessment)
    auto_approved = isinstance(routing, AutoApprove)

    try:
        locked = crud_distributor.get_distributor_for_update(db, distributor.id)
        # Re-checked under the row lock, the partial unique index backs this up
        if crud_withdrawal.count_active_withdrawals(db, locked.id):
            raise WithdrawalRejected("active_withdrawal_exists", "You already have a withdrawal in progress")

        try:
            ledger.reserve_for_withdrawal(db, locked.id, data.amount)
        except DistributionStateError as e:
            raise WithdrawalRejected(e.code, e.message)

        if locked.first_withdrawal_at is None:
            locked.first_withdrawal_at = now

        withdrawal = crud_withdrawal.create_withdrawal(
            db,
            distributor_id=locked.id,
            amount=data.amount,
            fee=fee,
            actual_amount=data.amount - fee,
            bank_name=data.bank_name,
            bank_account=data.bank_account,
            bank_account_name=data.bank_account_name,
            status=WithdrawalStatus.PROCESSING if auto_approved else WithdrawalStatus.PENDING,
            risk_score=assessment.score,
            risk_check_result=assessment.model_dump_json(),
            is_auto_approved=auto_approved,
            auto_approved_at=now if auto_approved else None,
            created_at=now,
        )
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning(f"Concurrent withdrawal request for distributor {distributor_id} refused")
        raise WithdrawalRejected("active_withdrawal_exists", "You already have a withdrawal in progress")
    except Exception:
        db.rollback()
        raise

    db.refresh(withdrawal)
    logger.info(
        f"Withdrawal {withdrawal.id} of {withdrawal.amount} for distributor {distributor_id} created "
        f"as {withdrawal.status} (risk {assessment.score}, {assessment.level})"
    )

    if isinstance(routing, AutoApprove):
        routing_name = "auto_approved"
        message = f"Withdrawal approved, {withdrawal.actual_amount:.2f} will be transferred after a {withdrawal.fee:.2f} fee."
    elif isinstance(routing, ManualReview):
        routing_name = "manual_review"
        message = "Withdrawal submitted and waiting for review."
        if routing.alert:
            _alert_high_risk(db, distributor, withdrawal, assessment)
            message = "Withdrawal submitted. It needs additional review before the transfer."
    else:
        raise TypeError(f"Unexpected routing outcome: {routing!r}")

    return WithdrawalRequestResult(
        withdrawal=Withdrawal.model_validate(withdrawal),
        routing=routing_name,
        message=message,
    )


# --- Admin decisions ---

def decide_withdrawal(
    db: Session,
    withdrawal_id: int,
    decision: WithdrawalDecision,
    admin_user_id: int | None = None,
    now: datetime | None = None,
) -> CommissionWithdrawal:
    """
    The manual half of the workflow:
    approve  pending -> processing
    complete processing -> completed, adds the amount to withdrawn_amount
    reject   pending|processing -> rejected, gives the reservation back
    """
    now = now or utcnow()
    withdrawal = crud_withdrawal.get_withdrawal(db, withdrawal_id)
    if withdrawal is None:
        raise DistributionNotFoundError("withdrawal", withdrawal_id)
    amount = Decimal(withdrawal.amount)
    distributor_id = withdrawal.distributor_id

    try:
        if decision.action == "approve":
            moved = crud_withdrawal.transition_status(
                db, withdrawal.id, [WithdrawalStatus.PENDING], WithdrawalStatus.PROCESSING,
                processed_by=admin_user_id, processed_at=now,
            )
            if not moved:
                raise DistributionStateError("withdrawal_not_pending", f"Withdrawal is {withdrawal.status}, not pending")

        elif decision.action == "complete":
            if not decision.transaction_id:
                raise DistributionValidationError("transaction_id_required", "A transfer reference is required to complete a withdrawal")
            moved = crud_withdrawal.transition_status(
                db, withdrawal.id, [WithdrawalStatus.PROCESSING], WithdrawalStatus.COMPLETED,
                transaction_id=decision.transaction_id, completed_at=now, processed_by=admin_user_id,
            )
            if not moved:
                raise DistributionStateError("withdrawal_not_processing", f"Withdrawal is {withdrawal.status}, not processing")
            ledger.record_withdrawal_completed(db, distributor_id, amount)

        elif decision.action == "reject":
            if not decision.reason:
                raise DistributionValidationError("reason_required", "A reason is required to reject a withdrawal")
            moved = crud_withdrawal.transition_status(
                db, withdrawal.id, WithdrawalStatus.ACTIVE, WithdrawalStatus.REJECTED,
                rejected_reason=decision.reason, processed_by=admin_user_id, processed_at=now,
            )
            if not moved:
                raise DistributionStateError("withdrawal_closed", f"Withdrawal is already {withdrawal.status}")
            ledger.release_reservation(db, distributor_id, amount)

        db.commit()
        db.refresh(withdrawal)
    except Exception:
        db.rollback()
        raise
    logger.info(f"Withdrawal {withdrawal.id}: admin {admin_user_id} chose '{decision.action}', now {withdrawal.status}")
    return withdrawal


# --- Listings ---

def list_distributor_withdrawals(db: Session, distributor_id: int, page: int = 1, size: int = 20) -> PaginatedWithdrawals:
    skip = (page - 1) * size
    items = crud_withdrawal.get_distributor_withdrawals(db, distributor_id, skip=skip, limit=size)
    total = crud_withdrawal.count_distributor_withdrawals(db, distributor_id)
    return PaginatedWithdrawals(
        total_items=total,
        total_pages=math.ceil(total / size) if total else 0,
        current_page=page,
        size=size,
        items=[Withdrawal.model_validate(item) for item in items],
    )


def list_withdrawals(db: Session, status: str | None = None, page: int = 1, size: int = 20) -> PaginatedAdminWithdrawals:
    skip = (page - 1) * size
    items = crud_withdrawal.get_withdrawals(db, status=status, skip=skip, limit=size)
    total = crud_withdrawal.count_withdrawals(db, status=status)
    return PaginatedAdminWithdrawals(
        total_items=total,
        total_pages=math.ceil(total / size) if total else 0,
        current_page=page,
        size=size,
        items=[AdminWithdrawal.model_validate(item) for item in items],
    )

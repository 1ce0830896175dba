# app/services/ledger.py
"""
Distributor ledger: the only place that changes the four running balances.

Earnings are recognized at confirmation: `total_earnings` grows in
`credit_pending` and shrinks on either reversal, `settle` only moves money
from pending to available.

None of these functions commit. The caller owns the transaction and must
guarantee one call per logical event (status-gated transitions do that).
"""

import logging
from decimal import Decimal
from typing import Any, Dict

from sqlalchemy.orm import Session

from app.core.errors import DistributionNotFoundError, DistributionStateError
from app.crud import distributor as crud_distributor
from app.crud import security_alert as crud_alert
from app.models.security_alert import SecurityAlertType

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def _require_positive(amount: Decimal) -> Decimal:
    amount = Decimal(amount)
    if amount <= ZERO:
        raise ValueError(f"Ledger amounts must be positive, got {amount}")
    return amount


def _apply(db: Session, distributor_id: int, deltas: Dict[str, Decimal], min_available: Decimal | None = None) -> bool:
    applied = crud_distributor.apply_balance_deltas(db, distributor_id, deltas, min_available=min_available)
    if not applied and min_available is None:
        raise DistributionNotFoundError("distributor", distributor_id)
    return applied


def credit_pending(db: Session, distributor_id: int, amount: Decimal) -> None:
    """Sale confirmed: commission enters the pending bucket and counts as earned."""
    amount = _require_positive(amount)
    _apply(db, distributor_id, {"pending_commission": amount, "total_earnings": amount})
    logger.info(f"Distributor {distributor_id}: +{amount} pending commission")


def settle(db: Session, distributor_id: int, amount: Decimal) -> None:
    """Cooldown over: commission moves from pending to withdrawable."""
    amount = _require_positive(amount)
    _apply(db, distributor_id, {"pending_commission": -amount, "available_balance": amount})
    logger.info(f"Distributor {distributor_id}: settled {amount} from pending to available")


def reverse_from_pending(db: Session, distributor_id: int, amount: Decimal) -> None:
    """Refund of a confirmed, not yet settled sale."""
    amount = _require_positive(amount)
    _apply(db, distributor_id, {"pending_commission": -amount, "total_earnings": -amount})
    logger.info(f"Distributor {distributor_id}: reversed {amount} from pending commission")


def reverse_from_available(
    db: Session,
    distributor_id: int,
    amount: Decimal,
    context: Dict[str, Any] | None = None,
) -> Decimal:
    """
    Refund of a settled sale. Takes the commission back from the withdrawable
    balance when it is still there. If the distributor already withdrew it, no
    balance is touched and a REFUND_COMMISSION_SHORTAGE alert records the deficit.

    Returns the shortfall (0 when the reversal went through).
    """
    amount = _require_positive(amount)
    if _apply(db, distributor_id, {"available_balance": -amount, "total_earnings": -amount}, min_available=amount):
        logger.info(f"Distributor {distributor_id}: reversed {amount} from available balance")
        return ZERO

    distributor = crud_distributor.get_distributor(db, distributor_id)
    if distributor is None:
        raise DistributionNotFoundError("distributor", distributor_id)
    db.refresh(distributor)

    available = Decimal(distributor.available_balance)
    shortfall = amount - available
    context = context or {}
    crud_alert.create_alert(
        db,
        type=SecurityAlertType.REFUND_COMMISSION_SHORTAGE,
        severity="high",
        user_id=distributor.user_id,
        description=(
            f"Refund needs {amount} commission back but distributor {distributor.code} "
            f"has only {available} available. Shortfall: {shortfall}."
        ),
        metadata={
            **context,
            "distributor_id": distributor.id,
            "commission_amount": amount,
            "current_balance": available,
            "shortage": shortfall,
        },
    )
    logger.warning(
        f"Distributor {distributor_id}: refund shortfall of {shortfall} "
        f"(commission {amount}, available {available}). Alert created."
    )
    return shortfall


def reserve_for_withdrawal(db: Session, distributor_id: int, amount: Decimal) -> None:
    """Withdrawal requested: the amount leaves the available balance right away."""
    amount = _require_positive(amount)
    if not _apply(db, distributor_id, {"available_balance": -amount}, min_available=amount):
        raise DistributionStateError("insufficient_balance", "Available balance is lower than the requested amount")
    logger.info(f"Distributor {distributor_id}: reserved {amount} for withdrawal")


def release_reservation(db: Session, distributor_id: int, amount: Decimal) -> None:
    """Withdrawal rejected: the reserved amount goes back to the available balance."""
    amount = _require_positive(amount)
    _apply(db, distributor_id, {"available_balance": amount})
    logger.info(f"Distributor {distributor_id}: released reservation of {amount}")


def record_withdrawal_completed(db: Session, distributor_id: int, amount: Decimal) -> None:
    """Bank transfer done. The amount was already taken from available at request time."""
    amount = _require_positive(amount)
    _apply(db, distributor_id, {"withdrawn_amount": amount})
    logger.info(f"Distributor {distributor_id}: withdrawn amount +{amount}")

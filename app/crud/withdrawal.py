# app/crud/withdrawal.py

from datetime import datetime
from decimal import Decimal
from typing import Iterable, List, Tuple
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models.withdrawal import CommissionWithdrawal, WithdrawalStatus


def create_withdrawal(db: Session, **fields) -> CommissionWithdrawal:
    """
    Adds a withdrawal to the session.
    Requires an external db.commit().
    """
    withdrawal = CommissionWithdrawal(**fields)
    db.add(withdrawal)
    return withdrawal


def get_withdrawal(db: Session, withdrawal_id: int) -> CommissionWithdrawal | None:
    return db.query(CommissionWithdrawal).filter(CommissionWithdrawal.id == withdrawal_id).first()


def count_active_withdrawals(db: Session, distributor_id: int) -> int:
    """Withdrawals still waiting for a decision or for the bank transfer."""
    return db.query(CommissionWithdrawal).filter(
        CommissionWithdrawal.distributor_id == distributor_id,
        CommissionWithdrawal.status.in_(WithdrawalStatus.ACTIVE),
    ).count()


def get_stats_since(
    db: Session,
    distributor_id: int,
    since: datetime,
    statuses: Iterable[str] | None = None,
    exclude_statuses: Iterable[str] | None = None,
) -> Tuple[int, Decimal]:
    """Returns (count, total amount) of withdrawals created at or after `since`."""
    query = db.query(
        func.count(CommissionWithdrawal.id),
        func.coalesce(func.sum(CommissionWithdrawal.amount), 0),
    ).filter(
        CommissionWithdrawal.distributor_id == distributor_id,
        CommissionWithdrawal.created_at >= since,
    )
    if statuses is not None:
        query = query.filter(CommissionWithdrawal.status.in_(list(statuses)))
    if exclude_statuses is not None:
        query = query.filter(CommissionWithdrawal.status.notin_(list(exclude_statuses)))
    count, amount = query.one()
    return int(count or 0), Decimal(str(amount or 0)).quantize(Decimal("0.01"))


def transition_status(
    db: Session,
    withdrawal_id: int,
    from_statuses: Iterable[str],
    to_status: str,
    **fields,
) -> bool:
    """Compare-and-swap on status. Requires an external db.commit()."""
    updated = db.query(CommissionWithdrawal).filter(
        CommissionWithdrawal.id == withdrawal_id,
        CommissionWithdrawal.status.in_(list(from_statuses)),
    ).update({"status": to_status, **fields}, synchronize_session="fetch")
    return updated == 1


def get_distributor_withdrawals(db: Session, distributor_id: int, skip: int = 0, limit: int = 20) -> List[CommissionWithdrawal]:
    """Paginated withdrawals of one distributor, newest first."""
    return db.query(CommissionWithdrawal).filter(
        CommissionWithdrawal.distributor_id == distributor_id
    ).order_by(CommissionWithdrawal.created_at.desc(), CommissionWithdrawal.id.desc()).offset(skip).limit(limit).all()


def count_distributor_withdrawals(db: Session, distributor_id: int) -> int:
    return db.query(CommissionWithdrawal).filter(CommissionWithdrawal.distributor_id == distributor_id).count()


def get_all_distributor_withdrawals(db: Session, distributor_id: int) -> List[CommissionWithdrawal]:
    return db.query(CommissionWithdrawal).filter(CommissionWithdrawal.distributor_id == distributor_id).all()


def get_withdrawals(db: Session, status: str | None = None, skip: int = 0, limit: int = 20) -> List[CommissionWithdrawal]:
    query = db.query(CommissionWithdrawal)
    if status:
        query = query.filter(CommissionWithdrawal.status == status)
    return query.order_by(CommissionWithdrawal.created_at.desc(), CommissionWithdrawal.id.desc()).offset(skip).limit(limit).all()


def count_withdrawals(db: Session, status: str | None = None) -> int:
    query = db.query(CommissionWithdrawal)
    if status:
        query = query.filter(CommissionWithdrawal.status == status)
    return query.count()

# app/crud/distribution_order.py

from datetime import datetime
from typing import Dict, Iterable, List
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from app.models.distribution import DistributionOrder, DistributionOrderStatus, Distributor


def create_distribution_order(db: Session, **fields) -> DistributionOrder:
    """
    Adds a distribution order to the session.
    Requires an external db.commit().
    """
    distribution_order = DistributionOrder(**fields)
    db.add(distribution_order)
    return distribution_order


def get_by_order_id(db: Session, order_id: int) -> DistributionOrder | None:
    return db.query(DistributionOrder).filter(DistributionOrder.order_id == order_id).first()


def get_by_order_id_for_update(db: Session, order_id: int) -> DistributionOrder | None:
    return db.query(DistributionOrder).filter(DistributionOrder.order_id == order_id).with_for_update().first()


def transition_status(
    db: Session,
    distribution_order_id: int,
    from_statuses: Iterable[str],
    to_status: str,
    **fields,
) -> bool:
    """
    Compare-and-swap on status: the row changes only if its current status is
    one of `from_statuses`. Returns False when another transaction got there first.
    Requires an external db.commit().
    """
    updated = db.query(DistributionOrder).filter(
        DistributionOrder.id == distribution_order_id,
        DistributionOrder.status.in_(list(from_statuses)),
    ).update({"status": to_status, **fields}, synchronize_session="fetch")
    return updated == 1


def get_confirmed_before(db: Session, deadline: datetime) -> List[DistributionOrder]:
    """Confirmed orders whose cooldown ended at `deadline` or earlier."""
    return db.query(DistributionOrder).options(
        joinedload(DistributionOrder.order)
    ).filter(
        DistributionOrder.status == DistributionOrderStatus.CONFIRMED,
        DistributionOrder.confirmed_at <= deadline,
    ).order_by(DistributionOrder.confirmed_at.asc()).all()


def get_confirmed_with_cooldown_override(db: Session) -> List[DistributionOrder]:
    """Confirmed orders of distributors that have their own cooldown configured."""
    return db.query(DistributionOrder).join(
        Distributor, Distributor.id == DistributionOrder.distributor_id
    ).options(
        joinedload(DistributionOrder.order),
        joinedload(DistributionOrder.distributor),
    ).filter(
        DistributionOrder.status == DistributionOrderStatus.CONFIRMED,
        Distributor.cooldown_override_days.isnot(None),
    ).order_by(DistributionOrder.confirmed_at.asc()).all()


def count_by_status(db: Session, distributor_id: int) -> Dict[str, int]:
    rows = db.query(DistributionOrder.status, func.count(DistributionOrder.id)).filter(
        DistributionOrder.distributor_id == distributor_id
    ).group_by(DistributionOrder.status).all()
    return {status: count for status, count in rows}


def get_distributor_orders(
    db: Session,
    distributor_id: int,
    status: str | None = None,
    skip: int = 0,
    limit: int = 20,
) -> List[DistributionOrder]:
    query = db.query(DistributionOrder).filter(DistributionOrder.distributor_id == distributor_id)
    if status:
        query = query.filter(DistributionOrder.status == status)
    return query.order_by(DistributionOrder.created_at.desc(), DistributionOrder.id.desc()).offset(skip).limit(limit).all()


def count_distributor_orders(db: Session, distributor_id: int, status: str | None = None) -> int:
    query = db.query(DistributionOrder).filter(DistributionOrder.distributor_id == distributor_id)
    if status:
        query = query.filter(DistributionOrder.status == status)
    return query.count()


def get_all_distributor_orders(db: Session, distributor_id: int) -> List[DistributionOrder]:
    return db.query(DistributionOrder).filter(DistributionOrder.distributor_id == distributor_id).all()

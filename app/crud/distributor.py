# app/crud/distributor.py

from decimal import Decimal
from typing import Dict, List
from sqlalchemy.orm import Session

from app.models.distribution import Distributor

BALANCE_FIELDS = ("total_earnings", "pending_commission", "available_balance", "withdrawn_amount")


def get_distributor(db: Session, distributor_id: int) -> Distributor | None:
    return db.query(Distributor).filter(Distributor.id == distributor_id).first()


def get_distributor_for_update(db: Session, distributor_id: int) -> Distributor | None:
    """Loads the distributor with a row lock (SELECT ... FOR UPDATE) held until commit."""
    return db.query(Distributor).filter(Distributor.id == distributor_id).with_for_update().first()


def get_distributor_by_code(db: Session, code: str) -> Distributor | None:
    return db.query(Distributor).filter(Distributor.code == code).first()


def get_distributor_by_user_id(db: Session, user_id: int) -> Distributor | None:
    return db.query(Distributor).filter(Distributor.user_id == user_id).first()


def create_distributor(db: Session, **fields) -> Distributor:
    """
    Adds a new distributor to the session.
    Requires an external db.commit().
    """
    distributor = Distributor(**fields)
    db.add(distributor)
    return distributor


def list_distributors(db: Session, status: str | None = None, skip: int = 0, limit: int = 20) -> List[Distributor]:
    query = db.query(Distributor)
    if status:
        query = query.filter(Distributor.status == status)
    return query.order_by(Distributor.created_at.desc(), Distributor.id.desc()).offset(skip).limit(limit).all()


def count_distributors(db: Session, status: str | None = None) -> int:
    query = db.query(Distributor)
    if status:
        query = query.filter(Distributor.status == status)
    return query.count()


def get_all_distributors(db: Session) -> List[Distributor]:
    return db.query(Distributor).order_by(Distributor.id).all()


def apply_balance_deltas(
    db: Session,
    distributor_id: int,
    deltas: Dict[str, Decimal],
    min_available: Decimal | None = None,
) -> bool:
    """
    Adds the deltas to the balance columns in a single UPDATE, so concurrent
    callers never overwrite each other. With `min_available` the update only
    happens while available_balance >= min_available.
    Returns False when no row matched. Requires an external db.commit().
    """
    unknown = set(deltas) - set(BALANCE_FIELDS)
    if unknown:
        raise ValueError(f"Unknown balance fields: {sorted(unknown)}")

    values = {
        getattr(Distributor, field): getattr(Distributor, field) + delta
        for field, delta in deltas.items()
    }
    query = db.query(Distributor).filter(Distributor.id == distributor_id)
    if min_available is not None:
        query = query.filter(Distributor.available_balance >= min_available)

    updated = query.update(values, synchronize_session="fetch")
    return updated == 1

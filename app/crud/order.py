# app/crud/order.py

from sqlalchemy.orm import Session

from app.models.order import Order


def get_order_for_update(db: Session, order_id: int) -> Order | None:
    return db.query(Order).filter(Order.id == order_id).with_for_update().first()

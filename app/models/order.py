# app/models/order.py

from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Numeric, func
from sqlalchemy.orm import relationship
from app.db.session import Base


class OrderStatus:
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"


class Order(Base):
    """
    A storefront sale. The catalog and checkout own everything else about it;
    here we only keep what the commission flow needs.
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    order_number = Column(String, unique=True, index=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    total_amount = Column(Numeric(12, 2), nullable=False)
    status = Column(String, default=OrderStatus.PENDING, nullable=False, server_default=OrderStatus.PENDING)

    # Set when the buyer came through a referral code
    distributor_id = Column(Integer, ForeignKey("distributors.id"), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    refunded_at = Column(DateTime(timezone=True), nullable=True)
    refund_reason = Column(String, nullable=True)

    distribution_order = relationship("DistributionOrder", back_populates="order", uselist=False)

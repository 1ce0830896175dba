# app/models/distribution.py

from sqlalchemy import (
    Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, Text, func,
)
from sqlalchemy.orm import relationship

from app.db.session import Base


class DistributorStatus:
    PENDING = "pending"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    REJECTED = "rejected"


class RiskLevel:
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    ALL = (LOW, MEDIUM, HIGH)


class DistributionOrderStatus:
    PENDING = "pending"
    CONFIRMED = "confirmed"
    SETTLED = "settled"
    CANCELLED = "cancelled"


class Distributor(Base):
    __tablename__ = "distributors"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)
    code = Column(String, unique=True, index=True, nullable=False)

    status = Column(String, default=DistributorStatus.PENDING, nullable=False, server_default=DistributorStatus.PENDING)
    # Fraction, 0.1 == 10%. Snapshotted into every DistributionOrder at attribution time.
    commission_rate = Column(Numeric(5, 4), nullable=False, default=0.1)

    contact_name = Column(String, nullable=True)
    contact_phone = Column(String, nullable=True)
    contact_email = Column(String, nullable=True)
    bank_name = Column(String, nullable=True)
    bank_account = Column(String, nullable=True)
    bank_account_name = Column(String, nullable=True)

    # --- Running balances, changed through app.services.ledger or a reconciliation fix ---
    total_earnings = Column(Numeric(12, 2), nullable=False, default=0, server_default="0")
    pending_commission = Column(Numeric(12, 2), nullable=False, default=0, server_default="0")
    available_balance = Column(Numeric(12, 2), nullable=False, default=0, server_default="0")
    withdrawn_amount = Column(Numeric(12, 2), nullable=False, default=0, server_default="0")

    # --- Risk attributes ---
    risk_level = Column(String, default=RiskLevel.LOW, nullable=False, server_default=RiskLevel.LOW)
    is_frozen = Column(Boolean, default=False, nullable=False, server_default="false")
    frozen_reason = Column(String, nullable=True)
    is_verified = Column(Boolean, default=False, nullable=False, server_default="false")
    verified_at = Column(DateTime(timezone=True), nullable=True)
    last_bank_info_update = Column(DateTime(timezone=True), nullable=True)
    first_withdrawal_at = Column(DateTime(timezone=True), nullable=True)

    # Controlled-testing affordances, set by admins per distributor
    is_test_account = Column(Boolean, default=False, nullable=False, server_default="false")
    cooldown_override_days = Column(Integer, nullable=True)

    applied_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    rejected_reason = Column(String, nullable=True)
    suspended_reason = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="distributor")
    distribution_orders = relationship("DistributionOrder", back_populates="distributor")
    withdrawals = relationship("CommissionWithdrawal", back_populates="distributor")


class DistributionOrder(Base):
    """
    Commission record for one attributed sale.
    Amount and rate are frozen at creation, only status and timestamps move.
    """
    __tablename__ = "distribution_orders"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, unique=True)
    distributor_id = Column(Integer, ForeignKey("distributors.id"), nullable=False, index=True)

    order_amount = Column(Numeric(12, 2), nullable=False)
    commission_rate = Column(Numeric(5, 4), nullable=False)
    commission_amount = Column(Numeric(12, 2), nullable=False)

    status = Column(String, default=DistributionOrderStatus.PENDING, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    confirmed_at = Column(DateTime(timezone=True), nullable=True, index=True)
    settled_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancel_reason = Column(Text, nullable=True)

    order = relationship("Order", back_populates="distribution_order")
    distributor = relationship("Distributor", back_populates="distribution_orders")

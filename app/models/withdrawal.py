# app/models/withdrawal.py

from sqlalchemy import (
    Boolean, Column, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, func, text,
)
from sqlalchemy.orm import relationship

from app.db.session import Base


class WithdrawalStatus:
    PENDING = "pending"          # waiting for a human
    PROCESSING = "processing"    # approved, bank transfer not done yet
    COMPLETED = "completed"
    REJECTED = "rejected"

    ACTIVE = (PENDING, PROCESSING)


# At most one pending/processing withdrawal per distributor, enforced by the database
_ACTIVE_ONLY = text("status IN ('pending', 'processing')")


class CommissionWithdrawal(Base):
    __tablename__ = "commission_withdrawals"
    __table_args__ = (
        Index(
            "uq_commission_withdrawals_one_active",
            "distributor_id",
            unique=True,
            postgresql_where=_ACTIVE_ONLY,
            sqlite_where=_ACTIVE_ONLY,
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    distributor_id = Column(Integer, ForeignKey("distributors.id"), nullable=False, index=True)

    amount = Column(Numeric(12, 2), nullable=False)
    fee = Column(Numeric(12, 2), nullable=False)
    actual_amount = Column(Numeric(12, 2), nullable=False)

    # Destination captured at request time
    bank_name = Column(String, nullable=False)
    bank_account = Column(String, nullable=False)
    bank_account_name = Column(String, nullable=False)

    status = Column(String, default=WithdrawalStatus.PENDING, nullable=False, index=True)

    risk_score = Column(Integer, nullable=False, default=0)
    # JSON dump of app.schemas.withdrawal.RiskAssessment
    risk_check_result = Column(Text, nullable=True)
    is_auto_approved = Column(Boolean, default=False, nullable=False, server_default="false")
    auto_approved_at = Column(DateTime(timezone=True), nullable=True)

    processed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    transaction_id = Column(String, nullable=True)
    rejected_reason = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    distributor = relationship("Distributor", back_populates="withdrawals")

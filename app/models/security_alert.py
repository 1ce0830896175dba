# app/models/security_alert.py

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, func

from app.db.session import Base


class SecurityAlertType:
    HIGH_RISK_WITHDRAWAL = "HIGH_RISK_WITHDRAWAL"
    REFUND_COMMISSION_SHORTAGE = "REFUND_COMMISSION_SHORTAGE"
    SETTLEMENT_ORDER_NOT_PAID = "SETTLEMENT_ORDER_NOT_PAID"


class SecurityAlertStatus:
    UNRESOLVED = "unresolved"
    INVESTIGATING = "investigating"
    RESOLVED = "resolved"
    FALSE_POSITIVE = "false_positive"

    CLOSED = (RESOLVED, FALSE_POSITIVE)


class SecurityAlert(Base):
    """Append-only anomaly record. Admin tooling reads it and moves the status."""
    __tablename__ = "security_alerts"

    id = Column(Integer, primary_key=True, index=True)
    type = Column(String, nullable=False, index=True)
    # 'low' | 'medium' | 'high'
    severity = Column(String, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    description = Column(Text, nullable=False)
    # JSON with the numbers an admin needs to act on the alert
    alert_metadata = Column("metadata", Text, nullable=True)
    status = Column(String, default=SecurityAlertStatus.UNRESOLVED, nullable=False, index=True)

    resolved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

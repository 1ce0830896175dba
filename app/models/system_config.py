# app/models/system_config.py

from sqlalchemy import Column, DateTime, Integer, String, func

from app.db.session import Base


class SystemConfig(Base):
    __tablename__ = "system_configs"

    id = Column(Integer, primary_key=True, index=True)
    key = Column(String, unique=True, index=True, nullable=False)
    # Always stored as text, `type` says how to read it: 'number' | 'boolean' | 'string'
    value = Column(String, nullable=False)
    type = Column(String, nullable=False, default="string")
    # 'withdrawal' | 'withdrawal_risk' | 'commission'
    category = Column(String, nullable=False, index=True)
    description = Column(String, nullable=True)

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

# app/models/user.py

from sqlalchemy import Column, Integer, String, DateTime, func
from sqlalchemy.orm import relationship
from app.db.session import Base

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=True)
    # 'user' or 'admin', copied from the shop auth service
    role = Column(String, default="user", nullable=False, server_default="user")

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    distributor = relationship("Distributor", back_populates="user", uselist=False)

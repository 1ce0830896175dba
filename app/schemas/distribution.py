# app/schemas/distribution.py
from datetime import datetime
from decimal import Decimal
from typing import Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.schemas.common import PaginatedResponse


class DistributorApply(BaseModel):
    contact_name: str = Field(..., min_length=1)
    contact_phone: str = Field(..., min_length=1)
    contact_email: str = Field(..., min_length=3)
    bank_name: Optional[str] = None
    bank_account: Optional[str] = None
    bank_account_name: Optional[str] = None


class DistributorProfileUpdate(BaseModel):
    """Fields left as None are not changed."""
    contact_name: Optional[str] = None
    contact_phone: Optional[str] = None
    contact_email: Optional[str] = None
    bank_name: Optional[str] = None
    bank_account: Optional[str] = None
    bank_account_name: Optional[str] = None


class Distributor(BaseModel):
    id: int
    user_id: int
    code: str
    status: str
    commission_rate: Decimal
    risk_level: str
    is_frozen: bool
    is_verified: bool
    applied_at: datetime
    approved_at: Optional[datetime] = None
    rejected_reason: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class DistributorProfile(Distributor):
    contact_name: Optional[str] = None
    contact_phone: Optional[str] = None
    contact_email: Optional[str] = None
    bank_name: Optional[str] = None
    bank_account: Optional[str] = None
    bank_account_name: Optional[str] = None
    last_bank_info_update: Optional[datetime] = None

    @field_validator("bank_account")
    @classmethod
    def mask_account(cls, v: Optional[str]) -> Optional[str]:
        return f"****{v[-4:]}" if v and len(v) > 4 else v


class AdminDistributor(Distributor):
    frozen_reason: Optional[str] = None
    suspended_reason: Optional[str] = None
    is_test_account: bool
    cooldown_override_days: Optional[int] = None
    last_bank_info_update: Optional[datetime] = None
    first_withdrawal_at: Optional[datetime] = None
    total_earnings: Decimal
    pending_commission: Decimal
    available_balance: Decimal
    withdrawn_amount: Decimal


class PaginatedAdminDistributors(PaginatedResponse[AdminDistributor]):
    pass


class DistributorSummary(BaseModel):
    distributor_id: int
    code: str
    status: str
    commission_rate: Decimal
    total_earnings: Decimal
    pending_commission: Decimal
    available_balance: Decimal
    withdrawn_amount: Decimal
    orders_by_status: Dict[str, int]
    total_orders: int
    total_withdrawals: int
    active_withdrawals: int


class DistributionOrder(BaseModel):
    id: int
    order_id: int
    distributor_id: int
    order_amount: Decimal
    commission_rate: Decimal
    commission_amount: Decimal
    status: str
    created_at: datetime
    confirmed_at: Optional[datetime] = None
    settled_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class PaginatedDistributionOrders(PaginatedResponse[DistributionOrder]):
    pass


# --- Admin actions ---

class ApproveDistributorRequest(BaseModel):
    commission_rate: Optional[Decimal] = Field(None, ge=0, le=1)


class ReasonRequest(BaseModel):
    reason: str = Field(..., min_length=1)


class VerifyRequest(BaseModel):
    is_verified: bool


class RiskLevelRequest(BaseModel):
    risk_level: Literal["low", "medium", "high"]


class TestingOverridesRequest(BaseModel):
    is_test_account: Optional[bool] = None
    # An explicit null clears the override
    cooldown_override_days: Optional[int] = Field(None, ge=0)

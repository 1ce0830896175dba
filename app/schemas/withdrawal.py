# app/schemas/withdrawal.py
from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.schemas.common import PaginatedResponse


class VelocityCounters(BaseModel):
    """Rolling withdrawal counters a distributor has accumulated."""
    today_count: int = 0
    today_amount: Decimal = Decimal("0")
    month_amount: Decimal = Decimal("0")


class RiskAssessment(BaseModel):
    """Result of scoring one withdrawal request. Stored as JSON on the withdrawal."""
    score: int
    level: Literal["low", "medium", "high"]
    auto_approvable: bool
    should_alert: bool
    factors: List[str] = []
    reasons: List[str] = []


class BankInfo(BaseModel):
    bank_name: str = ""
    bank_account: str = ""
    bank_account_name: str = ""

    @field_validator("bank_name", "bank_account", "bank_account_name", mode="before")
    @classmethod
    def strip_value(cls, v):
        return v.strip() if isinstance(v, str) else v

    def is_complete(self) -> bool:
        return bool(self.bank_name and self.bank_account and self.bank_account_name)


class WithdrawalCreate(BankInfo):
    amount: Decimal = Field(..., gt=0, decimal_places=2)


class Withdrawal(BaseModel):
    id: int
    distributor_id: int
    amount: Decimal
    fee: Decimal
    actual_amount: Decimal
    status: str
    bank_name: str
    bank_account: str
    bank_account_name: str
    risk_score: int
    is_auto_approved: bool
    rejected_reason: Optional[str] = None
    transaction_id: Optional[str] = None
    created_at: datetime
    processed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator("bank_account")
    @classmethod
    def mask_account(cls, v: str) -> str:
        # Only the last 4 digits ever leave the service
        return f"****{v[-4:]}" if len(v) > 4 else v


class AdminWithdrawal(Withdrawal):
    risk_check_result: Optional[RiskAssessment] = None
    auto_approved_at: Optional[datetime] = None
    processed_by: Optional[int] = None

    @field_validator("bank_account")
    @classmethod
    def mask_account(cls, v: str) -> str:
        # Admins make the transfer and need the full account
        return v

    @field_validator("risk_check_result", mode="before")
    @classmethod
    def parse_risk_result(cls, v):
        if isinstance(v, str):
            return RiskAssessment.model_validate_json(v)
        return v


class WithdrawalRequestResult(BaseModel):
    withdrawal: Withdrawal
    routing: Literal["auto_approved", "manual_review"]
    message: str


class WithdrawalDecision(BaseModel):
    action: Literal["approve", "complete", "reject"]
    reason: Optional[str] = None
    transaction_id: Optional[str] = None


class PaginatedWithdrawals(PaginatedResponse[Withdrawal]):
    pass


class PaginatedAdminWithdrawals(PaginatedResponse[AdminWithdrawal]):
    pass

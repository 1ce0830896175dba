# app/schemas/system_config.py
from datetime import datetime
from decimal import Decimal
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field


class DistributionConfig(BaseModel):
    """
    Typed snapshot of the business configuration.
    Field names are the keys of the `system_configs` table, defaults apply
    whenever a key is missing or unreadable.
    """
    model_config = ConfigDict(frozen=True)

    # --- Commission settlement ---
    commission_settlement_cooldown_days: int = Field(15, ge=0, description="Days a confirmed commission waits before settlement")

    # --- Withdrawal basics ---
    withdrawal_auto_approve: bool = Field(False, description="Global switch for automatic withdrawal approval")
    withdrawal_min_amount: Decimal = Field(Decimal("100"), ge=0, description="Minimum withdrawal amount")
    withdrawal_max_amount: Decimal = Field(Decimal("50000"), ge=0, description="Maximum withdrawal amount")
    withdrawal_fee_rate: Decimal = Field(Decimal("0.02"), ge=0, le=1, description="Withdrawal fee rate, 0.02 means 2%")

    # --- Auto-approval rules ---
    withdrawal_auto_max_amount: Decimal = Field(Decimal("5000"), ge=0, description="Amounts at or above this need review")
    withdrawal_auto_min_days: int = Field(30, ge=0, description="Minimum account age in days for auto approval")
    withdrawal_auto_require_verified: bool = Field(False, description="Require a verified account for auto approval")
    withdrawal_bank_info_stable_days: int = Field(7, ge=0, description="Days bank details must stay unchanged")

    # --- Limits ---
    withdrawal_daily_count_limit: int = Field(3, ge=0, description="Withdrawals allowed per day")
    withdrawal_daily_amount_limit: Decimal = Field(Decimal("10000"), ge=0, description="Amount allowed per day")
    withdrawal_monthly_amount_limit: Decimal = Field(Decimal("50000"), ge=0, description="Amount allowed per month")

    # --- Risk weights ---
    withdrawal_risk_weight_frozen: int = Field(100, ge=0, description="Weight: frozen account")
    withdrawal_risk_weight_test_account: int = Field(50, ge=0, description="Weight: designated test account")
    withdrawal_risk_weight_large_amount: int = Field(30, ge=0, description="Weight: large amount")
    withdrawal_risk_weight_first_withdrawal: int = Field(20, ge=0, description="Weight: first withdrawal")
    withdrawal_risk_weight_not_verified: int = Field(15, ge=0, description="Weight: account not verified")
    withdrawal_risk_weight_new_account: int = Field(15, ge=0, description="Weight: new account")
    withdrawal_risk_weight_high_risk_account: int = Field(10, ge=0, description="Weight: account flagged high risk")
    withdrawal_risk_weight_bank_changed: int = Field(10, ge=0, description="Weight: bank details changed recently")
    withdrawal_risk_weight_medium_risk_account: int = Field(5, ge=0, description="Weight: account flagged medium risk")
    withdrawal_risk_weight_daily_limit: int = Field(5, ge=0, description="Weight: daily count or amount limit reached")

    # --- Risk thresholds ---
    withdrawal_risk_threshold_auto: int = Field(10, ge=0, description="Scores below this may be auto approved")
    withdrawal_risk_threshold_manual: int = Field(30, ge=0, description="Scores at or above this raise an alert")


class ConfigEntry(BaseModel):
    key: str
    value: str
    type: str
    category: str
    description: str | None = None
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class ConfigUpdateRequest(BaseModel):
    values: Dict[str, str | int | float | bool] = Field(..., min_length=1)


class ConfigListResponse(BaseModel):
    entries: List[ConfigEntry]
    effective: DistributionConfig

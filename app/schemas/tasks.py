# app/schemas/tasks.py
from decimal import Decimal
from typing import List, Literal

from pydantic import BaseModel, Field


class SettlementResult(BaseModel):
    settled_count: int = 0
    failed_count: int = 0
    # Confirmed orders whose sale is no longer paid, or lost to a concurrent refund
    skipped_count: int = 0
    errors: List[str] = Field(default_factory=list)


class BalanceDiscrepancy(BaseModel):
    distributor_id: int
    code: str
    field: str
    stored: Decimal
    expected: Decimal


class BalanceDeficit(BaseModel):
    distributor_id: int
    code: str
    # Withdrawn or reserved beyond what was ever settled
    deficit: Decimal
    open_shortfall_alert: bool


class ReconciliationReport(BaseModel):
    checked_count: int = 0
    discrepancies: List[BalanceDiscrepancy] = Field(default_factory=list)
    negative_balances: List[BalanceDiscrepancy] = Field(default_factory=list)
    deficits: List[BalanceDeficit] = Field(default_factory=list)
    fixed_count: int = 0
    # Mismatched distributors left untouched because a shortfall is still open
    held_count: int = 0


class TaskInfo(BaseModel):
    task_name: str
    description: str


class TaskRunRequest(BaseModel):
    task_name: Literal["settle_commissions", "recalculate_distributor_stats", "all"]

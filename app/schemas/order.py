# app/schemas/order.py
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field


class SaleAttribution(BaseModel):
    """Sent by checkout when an order is placed with a referral code."""
    distributor_code: str = Field(..., min_length=1)


class SalePaidEvent(BaseModel):
    distributor_id: Optional[int] = None
    sale_amount: Optional[Decimal] = Field(None, gt=0)


class SaleRefundedEvent(BaseModel):
    reason: Optional[str] = None


class RefundResult(BaseModel):
    order_id: int
    order_status: str
    commission_action: Literal["none", "reversed_from_pending", "reversed_from_available", "shortfall"]
    commission_amount: Decimal = Decimal("0")
    shortfall: Decimal = Decimal("0")


class SalePaidResult(BaseModel):
    order_id: int
    order_status: str
    distribution_order_id: Optional[int] = None
    distribution_order_status: Optional[str] = None
    commission_amount: Optional[Decimal] = None

# app/routers/webhooks.py

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.dependencies import get_db, verify_webhook_secret
from app.schemas.distribution import DistributionOrder
from app.schemas.order import RefundResult, SaleAttribution, SalePaidEvent, SalePaidResult, SaleRefundedEvent
from app.services import distribution as distribution_service
from app.services import refund as refund_service

logger = logging.getLogger(__name__)

# --- Checkout callbacks ---
# Mounted in main.py with the /internal/webhooks prefix
checkout_router = APIRouter(
    prefix="/sales",
    dependencies=[Depends(verify_webhook_secret)],
)


@checkout_router.post("/{order_id}/attribute", response_model=DistributionOrder | None)
async def sale_attributed_webhook(order_id: int, data: SaleAttribution, db: Session = Depends(get_db)):
    """
    An order was placed with a referral code. Returns the pending commission
    record, or null when the code cannot earn commission.
    """
    return distribution_service.attribute_sale(db, order_id, data.distributor_code)


@checkout_router.post("/{order_id}/paid", response_model=SalePaidResult)
async def sale_paid_webhook(order_id: int, data: SalePaidEvent, db: Session = Depends(get_db)):
    """Payment verified. Safe to deliver more than once."""
    logger.info(f"Checkout reports order {order_id} as paid")
    return distribution_service.handle_sale_paid(
        db, order_id, distributor_id=data.distributor_id, sale_amount=data.sale_amount
    )


@checkout_router.post("/{order_id}/refunded", response_model=RefundResult, status_code=status.HTTP_200_OK)
async def sale_refunded_webhook(order_id: int, data: SaleRefundedEvent, db: Session = Depends(get_db)):
    logger.info(f"Checkout reports order {order_id} as refunded")
    return refund_service.refund_order(db, order_id, data.reason)

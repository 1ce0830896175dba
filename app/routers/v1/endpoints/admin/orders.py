# app/routers/v1/endpoints/admin/orders.py

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.dependencies import get_admin_user, get_db
from app.models.user import User
from app.schemas.order import RefundResult, SaleRefundedEvent
from app.services import refund as refund_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/{order_id}/refund", response_model=RefundResult)
async def refund_order_endpoint(
    order_id: int,
    data: SaleRefundedEvent,
    db: Session = Depends(get_db),
    admin_user: User = Depends(get_admin_user)
):
    """
    [ADMIN] Marks a paid order as refunded and takes the commission back.
    A commission the distributor already withdrew shows up as `shortfall`
    and a security alert, the refund itself still goes through.
    """
    logger.info(f"Admin {admin_user.id} refunds order {order_id}")
    return refund_service.refund_order(db, order_id, data.reason)

# app/services/refund.py

import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy.orm import Session

from app.core.errors import DistributionNotFoundError, DistributionStateError
from app.crud import distribution_order as crud_distribution_order
from app.crud import order as crud_order
from app.models.distribution import DistributionOrderStatus
from app.models.order import OrderStatus
from app.schemas.order import RefundResult
from app.services import ledger
from app.utils.dates import utcnow

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def refund_order(db: Session, order_id: int, reason: str | None = None, now: datetime | None = None) -> RefundResult:
    """
    Marks a paid sale as refunded and takes its commission back, all in one
    transaction.

    - confirmed commission: removed from the pending bucket;
    - settled commission: removed from the available balance, or, if the
      distributor already withdrew it, a shortfall alert is recorded;
    - pending or cancelled commission: nothing to reverse.

    The distribution order is closed as cancelled even when a shortfall remains.
    """
    now = now or utcnow()
    order = crud_order.get_order_for_update(db, order_id)
    if order is None:
        raise DistributionNotFoundError("order", order_id)
    if order.status != OrderStatus.PAID:
        raise DistributionStateError("order_not_paid", f"Only paid orders can be refunded, order is {order.status}")

    order.status = OrderStatus.REFUNDED
    order.refunded_at = now
    order.refund_reason = reason

    result = RefundResult(order_id=order.id, order_status=OrderStatus.REFUNDED, commission_action="none")
    cancel_reason = f"Order refunded: {reason}" if reason else "Order refunded"

    distribution_order = crud_distribution_order.get_by_order_id_for_update(db, order.id)
    if distribution_order is None:
        db.commit()
        logger.info(f"Order {order.id} refunded, no commission attached")
        return result

    previous_status = distribution_order.status
    distributor_id = distribution_order.distributor_id
    amount = Decimal(distribution_order.commission_amount)

    if previous_status not in (DistributionOrderStatus.CONFIRMED, DistributionOrderStatus.SETTLED):
        db.commit()
        logger.info(f"Order {order.id} refunded, commission was {previous_status}, nothing to reverse")
        return result

    cancelled = crud_distribution_order.transition_status(
        db,
        distribution_order.id,
        from_statuses=[previous_status],
        to_status=DistributionOrderStatus.CANCELLED,
        cancelled_at=now,
        cancel_reason=cancel_reason,
    )
    if not cancelled:
        db.rollback()
        raise DistributionStateError(
            "commission_state_changed",
            "The commission changed state while the refund was processed, retry the refund",
        )

    result.commission_amount = amount
    if amount > ZERO:
        if previous_status == DistributionOrderStatus.CONFIRMED:
            ledger.reverse_from_pending(db, distributor_id, amount)
            result.commission_action = "reversed_from_pending"
        else:
            shortfall = ledger.reverse_from_available(
                db,
                distributor_id,
                amount,
                context={
                    "order_id": order.id,
                    "order_number": order.order_number,
                    "distribution_order_id": distribution_order.id,
                    "refund_reason": reason,
                },
            )
            result.shortfall = shortfall
            result.commission_action = "shortfall" if shortfall > ZERO else "reversed_from_available"
    else:
        result.commission_action = (
            "reversed_from_pending" if previous_status == DistributionOrderStatus.CONFIRMED
            else "reversed_from_available"
        )

    db.commit()
    logger.info(
        f"Order {order.id} refunded, commission {amount} of distributor {distributor_id} "
        f"cancelled from {previous_status} ({result.commission_action})"
    )
    return result

# app/services/settlement.py

import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, List

from sqlalchemy.orm import Session

from app.core.redis import redis_client
from app.crud import distribution_order as crud_distribution_order
from app.crud import order as crud_order
from app.crud import security_alert as crud_alert
from app.db.session import SessionLocal
from app.models.distribution import DistributionOrder, DistributionOrderStatus
from app.models.order import OrderStatus
from app.models.security_alert import SecurityAlertType
from app.schemas.system_config import DistributionConfig
from app.schemas.tasks import SettlementResult
from app.services import ledger
from app.services.system_config import get_distribution_config
from app.utils.dates import ensure_utc, utcnow

logger = logging.getLogger(__name__)


def _collect_due_orders(db: Session, config: DistributionConfig, now: datetime) -> List[DistributionOrder]:
    """
    Confirmed orders whose cooldown is over. A distributor with its own
    `cooldown_override_days` uses that instead of the global cooldown.
    """
    deadline = now - timedelta(days=config.commission_settlement_cooldown_days)
    candidates: Dict[int, DistributionOrder] = {}
    for distribution_order in crud_distribution_order.get_confirmed_before(db, deadline):
        candidates[distribution_order.id] = distribution_order
    for distribution_order in crud_distribution_order.get_confirmed_with_cooldown_override(db):
        candidates.setdefault(distribution_order.id, distribution_order)

    due = []
    for distribution_order in candidates.values():
        override = distribution_order.distributor.cooldown_override_days
        cooldown_days = override if override is not None else config.commission_settlement_cooldown_days
        if ensure_utc(distribution_order.confirmed_at) <= now - timedelta(days=cooldown_days):
            due.append(distribution_order)
    return sorted(due, key=lambda item: (ensure_utc(item.confirmed_at), item.id))


def _report_unpaid_sale(db: Session, distribution_order: DistributionOrder, order_status: str | None) -> None:
    """
    A confirmed commission whose sale is no longer paid means a refund reversal was missed.
    One open alert per distribution order, later sweeps only log.
    """
    logger.warning(
        f"Distribution order {distribution_order.id}: sale {distribution_order.order_id} is "
        f"'{order_status}', not paid. Skipping settlement."
    )
    try:
        existing = crud_alert.find_open_alert(
            db, SecurityAlertType.SETTLEMENT_ORDER_NOT_PAID, distribution_order_id=distribution_order.id
        )
        if existing is not None:
            logger.info(f"Distribution order {distribution_order.id} already reported in alert {existing.id}")
            return
        crud_alert.create_alert(
            db,
            type=SecurityAlertType.SETTLEMENT_ORDER_NOT_PAID,
            severity="medium",
            user_id=distribution_order.distributor.user_id,
            description=(
                f"Confirmed commission {distribution_order.commission_amount} for order "
                f"{distribution_order.order_id} was not settled: the order is '{order_status}'."
            ),
            metadata={
                "distribution_order_id": distribution_order.id,
                "order_id": distribution_order.order_id,
                "distributor_id": distribution_order.distributor_id,
                "order_status": order_status,
                "commission_amount": distribution_order.commission_amount,
            },
        )
        db.commit()
    except Exception:
        logger.error(f"Failed to record alert for distribution order {distribution_order.id}", exc_info=True)
        db.rollback()


def run_settlement_sweep(db: Session, config: DistributionConfig, now: datetime | None = None) -> SettlementResult:
    """
    Moves every due confirmed commission from pending to available.

    Each order is settled and committed on its own, so one failure does not stop
    the batch. The status guard makes a re-run settle nothing twice.
    """
    now = now or utcnow()
    result = SettlementResult()

    due_orders = _collect_due_orders(db, config, now)
    if not due_orders:
        logger.info("No confirmed commissions are due for settlement.")
        return result

    logger.info(f"Found {len(due_orders)} confirmed commissions due for settlement.")

    # Plain values only: a rollback expires the ORM objects
    snapshots = [
        (item.id, item.order_id, item.distributor_id, Decimal(item.commission_amount), item)
        for item in due_orders
    ]

    for distribution_order_id, order_id, distributor_id, amount, distribution_order in snapshots:
        try:
            # The sale status is read under the row lock a refund takes
            order = crud_order.get_order_for_update(db, order_id)
            order_status = order.status if order else None
            if order_status != OrderStatus.PAID:
                db.rollback()
                result.skipped_count += 1
                _report_unpaid_sale(db, distribution_order, order_status)
                continue

            settled = crud_distribution_order.transition_status(
                db,
                distribution_order_id,
                from_statuses=[DistributionOrderStatus.CONFIRMED],
                to_status=DistributionOrderStatus.SETTLED,
                settled_at=now,
            )
            if not settled:
                # A refund got there first
                logger.info(f"Distribution order {distribution_order_id} is no longer confirmed, skipped.")
                result.skipped_count += 1
                db.rollback()
                continue

            if amount > 0:
                ledger.settle(db, distributor_id, amount)
            db.commit()
            result.settled_count += 1
            logger.info(f"Distribution order {distribution_order_id} settled: {amount} for distributor {distributor_id}")
        except Exception as e:
            db.rollback()
            result.failed_count += 1
            result.errors.append(f"Distribution order {distribution_order_id}: {e}")
            logger.error(f"Failed to settle distribution order {distribution_order_id}", exc_info=True)

    logger.info(
        f"Settlement sweep done: settled={result.settled_count}, "
        f"failed={result.failed_count}, skipped={result.skipped_count}"
    )
    return result


async def settle_commissions_task() -> SettlementResult:
    """Scheduled job: loads the config snapshot and runs one sweep."""
    logger.info("--- Starting scheduled job: Settle Commissions ---")
    result = SettlementResult()
    try:
        with SessionLocal() as db:
            config = await get_distribution_config(db, redis_client)
            result = run_settlement_sweep(db, config)
    except Exception:
        logger.error("A critical error occurred during settle_commissions_task", exc_info=True)
    logger.info("--- Finished scheduled job: Settle Commissions ---")
    return result

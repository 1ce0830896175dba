# app/services/reconciliation.py

import logging
from decimal import Decimal
from typing import Dict, Tuple

from sqlalchemy.orm import Session

from app.crud import distribution_order as crud_distribution_order
from app.crud import distributor as crud_distributor
from app.crud import security_alert as crud_alert
from app.crud import withdrawal as crud_withdrawal
from app.db.session import SessionLocal
from app.models.distribution import DistributionOrderStatus, Distributor
from app.models.security_alert import SecurityAlertType
from app.models.withdrawal import WithdrawalStatus
from app.schemas.tasks import BalanceDeficit, BalanceDiscrepancy, ReconciliationReport

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def rebuild_balances(db: Session, distributor: Distributor) -> Tuple[Dict[str, Decimal], Decimal]:
    """
    Rebuilds the four balances from the distribution orders and withdrawals:
    total = confirmed + settled commissions, available = settled minus every
    withdrawal that was not rejected.

    Available never goes below zero. When withdrawals exceed what is still
    settled (a refund shortfall) the difference is returned as the deficit.
    """
    confirmed = settled = ZERO
    for item in crud_distribution_order.get_all_distributor_orders(db, distributor.id):
        amount = Decimal(item.commission_amount)
        if item.status == DistributionOrderStatus.CONFIRMED:
            confirmed += amount
        elif item.status == DistributionOrderStatus.SETTLED:
            settled += amount

    reserved = withdrawn = ZERO
    for item in crud_withdrawal.get_all_distributor_withdrawals(db, distributor.id):
        amount = Decimal(item.amount)
        if item.status == WithdrawalStatus.COMPLETED:
            withdrawn += amount
        if item.status != WithdrawalStatus.REJECTED:
            reserved += amount

    balances = {
        "total_earnings": confirmed + settled,
        "pending_commission": confirmed,
        "available_balance": max(settled - reserved, ZERO),
        "withdrawn_amount": withdrawn,
    }
    return balances, max(reserved - settled, ZERO)


def expected_balances(db: Session, distributor: Distributor) -> Dict[str, Decimal]:
    return rebuild_balances(db, distributor)[0]


def recalculate_distributor_balances(db: Session, fix: bool = False) -> ReconciliationReport:
    """
    Compares stored balances with the ones rebuilt from history.
    With `fix=True` the stored balances are overwritten, otherwise it only reports.

    A distributor with an open REFUND_COMMISSION_SHORTAGE alert is never
    overwritten: the shortfall is settled by hand and the alert closed first.
    """
    report = ReconciliationReport()
    for distributor in crud_distributor.get_all_distributors(db):
        report.checked_count += 1
        expected, deficit = rebuild_balances(db, distributor)
        open_shortfall = crud_alert.find_open_alert(
            db, SecurityAlertType.REFUND_COMMISSION_SHORTAGE, distributor_id=distributor.id
        ) is not None
        if deficit > ZERO:
            report.deficits.append(BalanceDeficit(
                distributor_id=distributor.id, code=distributor.code,
                deficit=deficit, open_shortfall_alert=open_shortfall,
            ))
            logger.warning(f"Distributor {distributor.id} withdrew {deficit} more than its settled commissions")

        mismatched = False
        for field, value in expected.items():
            stored = Decimal(getattr(distributor, field))
            if stored != value:
                mismatched = True
                report.discrepancies.append(BalanceDiscrepancy(
                    distributor_id=distributor.id, code=distributor.code,
                    field=field, stored=stored, expected=value,
                ))
            if stored < ZERO:
                report.negative_balances.append(BalanceDiscrepancy(
                    distributor_id=distributor.id, code=distributor.code,
                    field=field, stored=stored, expected=value,
                ))

        if mismatched:
            logger.warning(f"Distributor {distributor.id} balances differ from history: {expected}")
            if fix and open_shortfall:
                logger.warning(f"Distributor {distributor.id} has an open refund shortfall, balances left as stored")
                report.held_count += 1
            elif fix:
                locked = crud_distributor.get_distributor_for_update(db, distributor.id)
                for field, value in expected.items():
                    setattr(locked, field, value)
                db.commit()
                report.fixed_count += 1

    logger.info(
        f"Reconciliation checked {report.checked_count} distributors: "
        f"{len(report.discrepancies)} discrepancies, {len(report.negative_balances)} negative balances, "
        f"{len(report.deficits)} deficits, {report.fixed_count} fixed, {report.held_count} held"
    )
    return report


async def recalculate_distributor_stats_task(fix: bool = False) -> ReconciliationReport:
    logger.info("--- Starting job: Recalculate Distributor Stats ---")
    report = ReconciliationReport()
    try:
        with SessionLocal() as db:
            report = recalculate_distributor_balances(db, fix=fix)
    except Exception:
        logger.error("A critical error occurred during recalculate_distributor_stats_task", exc_info=True)
    logger.info("--- Finished job: Recalculate Distributor Stats ---")
    return report

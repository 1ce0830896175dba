# app/services/distribution.py

import logging
import math
import secrets
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import (
    DistributionNotFoundError,
    DistributionStateError,
    DistributionValidationError,
)
from app.crud import distribution_order as crud_distribution_order
from app.crud import distributor as crud_distributor
from app.crud import order as crud_order
from app.crud import withdrawal as crud_withdrawal
from app.models.distribution import (
    DistributionOrder,
    DistributionOrderStatus,
    Distributor,
    DistributorStatus,
    RiskLevel,
)
from app.models.order import Order, OrderStatus
from app.models.user import User
from app.schemas.distribution import (
    AdminDistributor,
    DistributionOrder as DistributionOrderSchema,
    DistributorApply,
    DistributorProfileUpdate,
    DistributorSummary,
    PaginatedAdminDistributors,
    PaginatedDistributionOrders,
    TestingOverridesRequest,
)
from app.schemas.order import SalePaidResult
from app.services import ledger
from app.utils.dates import utcnow

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
BANK_FIELDS = ("bank_name", "bank_account", "bank_account_name")


def compute_commission(order_amount: Decimal, commission_rate: Decimal) -> Decimal:
    return (Decimal(order_amount) * Decimal(commission_rate)).quantize(CENT, rounding=ROUND_HALF_UP)


def get_distributor_or_404(db: Session, distributor_id: int) -> Distributor:
    distributor = crud_distributor.get_distributor(db, distributor_id)
    if distributor is None:
        raise DistributionNotFoundError("distributor", distributor_id)
    return distributor


def _generate_unique_code(db: Session) -> str:
    code = secrets.token_hex(4).upper()
    # Collisions are very unlikely, but the code must be unique
    while crud_distributor.get_distributor_by_code(db, code):
        code = secrets.token_hex(4).upper()
    return code


# --- Distributor lifecycle ---

def apply_for_distribution(db: Session, user: User, data: DistributorApply, now: datetime | None = None) -> Distributor:
    """Creates a pending distributor for the user. One application per user."""
    existing = crud_distributor.get_distributor_by_user_id(db, user.id)
    if existing:
        messages = {
            DistributorStatus.PENDING: ("application_pending", "Your application is still under review"),
            DistributorStatus.ACTIVE: ("already_distributor", "You are already a distributor"),
            DistributorStatus.REJECTED: (
                "application_rejected",
                f"Your application was rejected: {existing.rejected_reason or 'no reason given'}",
            ),
            DistributorStatus.SUSPENDED: ("distributor_suspended", "Your distributor account is suspended"),
        }
        code, message = messages.get(existing.status, ("already_applied", "You have already applied"))
        raise DistributionStateError(code, message)

    now = now or utcnow()
    has_bank_info = any(getattr(data, field) for field in BANK_FIELDS)
    distributor = crud_distributor.create_distributor(
        db,
        user_id=user.id,
        code=_generate_unique_code(db),
        status=DistributorStatus.PENDING,
        commission_rate=Decimal(str(settings.DEFAULT_COMMISSION_RATE)),
        contact_name=data.contact_name,
        contact_phone=data.contact_phone,
        contact_email=data.contact_email,
        bank_name=data.bank_name or None,
        bank_account=data.bank_account or None,
        bank_account_name=data.bank_account_name or None,
        last_bank_info_update=now if has_bank_info else None,
        applied_at=now,
        created_at=now,
    )
    db.commit()
    db.refresh(distributor)
    logger.info(f"User {user.id} applied for distribution, code {distributor.code}")
    return distributor


def approve_distributor(
    db: Session,
    distributor_id: int,
    commission_rate: Decimal | None = None,
    now: datetime | None = None,
) -> Distributor:
    """
    Activates a pending distributor. The rate only applies to sales attributed
    from now on, existing distribution orders keep their snapshot.
    """
    distributor = get_distributor_or_404(db, distributor_id)
    if distributor.status != DistributorStatus.PENDING:
        raise DistributionStateError("application_processed", f"Application is already {distributor.status}")
    if commission_rate is not None:
        if not Decimal("0") <= Decimal(commission_rate) <= Decimal("1"):
            raise DistributionValidationError("invalid_commission_rate", "Commission rate must be between 0 and 1")
        distributor.commission_rate = Decimal(commission_rate)

    distributor.status = DistributorStatus.ACTIVE
    distributor.approved_at = now or utcnow()
    db.commit()
    db.refresh(distributor)
    logger.info(f"Distributor {distributor.id} approved at rate {distributor.commission_rate}")
    return distributor


def reject_distributor(db: Session, distributor_id: int, reason: str) -> Distributor:
    distributor = get_distributor_or_404(db, distributor_id)
    if distributor.status != DistributorStatus.PENDING:
        raise DistributionStateError("application_processed", f"Application is already {distributor.status}")
    distributor.status = DistributorStatus.REJECTED
    distributor.rejected_reason = reason
    db.commit()
    db.refresh(distributor)
    logger.info(f"Distributor {distributor.id} rejected: {reason}")
    return distributor


def suspend_distributor(db: Session, distributor_id: int, reason: str) -> Distributor:
    distributor = get_distributor_or_404(db, distributor_id)
    if distributor.status != DistributorStatus.ACTIVE:
        raise DistributionStateError("distributor_not_active", "Only active distributors can be suspended")
    distributor.status = DistributorStatus.SUSPENDED
    distributor.suspended_reason = reason
    db.commit()
    db.refresh(distributor)
    logger.info(f"Distributor {distributor.id} suspended: {reason}")
    return distributor


def reactivate_distributor(db: Session, distributor_id: int) -> Distributor:
    distributor = get_distributor_or_404(db, distributor_id)
    if distributor.status != DistributorStatus.SUSPENDED:
        raise DistributionStateError("distributor_not_suspended", "Only suspended distributors can be reactivated")
    distributor.status = DistributorStatus.ACTIVE
    distributor.suspended_reason = None
    db.commit()
    db.refresh(distributor)
    return distributor


def freeze_distributor(db: Session, distributor_id: int, reason: str) -> Distributor:
    distributor = get_distributor_or_404(db, distributor_id)
    distributor.is_frozen = True
    distributor.frozen_reason = reason
    db.commit()
    db.refresh(distributor)
    logger.warning(f"Distributor {distributor.id} frozen: {reason}")
    return distributor


def unfreeze_distributor(db: Session, distributor_id: int) -> Distributor:
    distributor = get_distributor_or_404(db, distributor_id)
    distributor.is_frozen = False
    distributor.frozen_reason = None
    db.commit()
    db.refresh(distributor)
    return distributor


def set_verified(db: Session, distributor_id: int, is_verified: bool, now: datetime | None = None) -> Distributor:
    distributor = get_distributor_or_404(db, distributor_id)
    distributor.is_verified = is_verified
    distributor.verified_at = (now or utcnow()) if is_verified else None
    db.commit()
    db.refresh(distributor)
    return distributor


def set_risk_level(db: Session, distributor_id: int, risk_level: str) -> Distributor:
    if risk_level not in RiskLevel.ALL:
        raise DistributionValidationError("invalid_risk_level", f"Risk level must be one of {', '.join(RiskLevel.ALL)}")
    distributor = get_distributor_or_404(db, distributor_id)
    distributor.risk_level = risk_level
    db.commit()
    db.refresh(distributor)
    return distributor


def set_testing_overrides(db: Session, distributor_id: int, data: TestingOverridesRequest) -> Distributor:
    distributor = get_distributor_or_404(db, distributor_id)
    if data.is_test_account is not None:
        distributor.is_test_account = data.is_test_account
    if "cooldown_override_days" in data.model_fields_set:
        distributor.cooldown_override_days = data.cooldown_override_days
    db.commit()
    db.refresh(distributor)
    logger.info(
        f"Distributor {distributor.id} testing overrides: test_account={distributor.is_test_account}, "
        f"cooldown_override_days={distributor.cooldown_override_days}"
    )
    return distributor


def update_profile(
    db: Session,
    distributor_id: int,
    data: DistributorProfileUpdate,
    now: datetime | None = None,
) -> Distributor:
    """
    Updates contact and bank details. `last_bank_info_update` is stamped only
    when a bank field really changes, the risk engine keys off that timestamp.
    """
    distributor = get_distributor_or_404(db, distributor_id)
    changes = data.model_dump(exclude_unset=True, exclude_none=True)

    bank_changed = any(
        field in changes and changes[field] != getattr(distributor, field)
        for field in BANK_FIELDS
    )
    for field, value in changes.items():
        setattr(distributor, field, value)
    if bank_changed:
        distributor.last_bank_info_update = now or utcnow()
        logger.info(f"Distributor {distributor.id} changed bank details")

    db.commit()
    db.refresh(distributor)
    return distributor


# --- Sale attribution and confirmation ---

def _create_distribution_order(db: Session, order: Order, distributor: Distributor, now: datetime) -> DistributionOrder:
    rate = Decimal(distributor.commission_rate)
    return crud_distribution_order.create_distribution_order(
        db,
        order_id=order.id,
        distributor_id=distributor.id,
        order_amount=Decimal(order.total_amount),
        commission_rate=rate,
        commission_amount=compute_commission(order.total_amount, rate),
        status=DistributionOrderStatus.PENDING,
        created_at=now,
    )


def _can_attribute(distributor: Distributor, order: Order) -> bool:
    if distributor.status != DistributorStatus.ACTIVE:
        logger.info(f"Distributor {distributor.id} is {distributor.status}, order {order.id} not attributed")
        return False
    if order.user_id is not None and order.user_id == distributor.user_id:
        logger.info(f"Order {order.id} is the distributor's own purchase, not attributed")
        return False
    return True


def attribute_sale(db: Session, order_id: int, distributor_code: str, now: datetime | None = None) -> DistributionOrder | None:
    """
    Links a freshly placed order to the distributor behind `distributor_code`
    and freezes the commission. Returns None when the code cannot earn commission.
    """
    order = crud_order.get_order_for_update(db, order_id)
    if order is None:
        raise DistributionNotFoundError("order", order_id)
    if order.status != OrderStatus.PENDING:
        raise DistributionStateError("order_not_pending", f"Order is already {order.status}")

    existing = crud_distribution_order.get_by_order_id(db, order.id)
    if existing:
        return existing

    distributor = crud_distributor.get_distributor_by_code(db, distributor_code)
    if distributor is None:
        logger.info(f"Unknown distributor code '{distributor_code}' on order {order.id}")
        return None
    if not _can_attribute(distributor, order):
        return None

    now = now or utcnow()
    order.distributor_id = distributor.id
    distribution_order = _create_distribution_order(db, order, distributor, now)
    db.commit()
    db.refresh(distribution_order)
    logger.info(
        f"Order {order.id} attributed to distributor {distributor.id}, "
        f"commission {distribution_order.commission_amount}"
    )
    return distribution_order


def handle_sale_paid(
    db: Session,
    order_id: int,
    distributor_id: int | None = None,
    sale_amount: Decimal | None = None,
    now: datetime | None = None,
) -> SalePaidResult:
    """
    Payment verified. Marks the sale paid and confirms its distribution order
    exactly once: a repeated callback finds the order already confirmed and
    changes nothing.
    """
    now = now or utcnow()
    order = crud_order.get_order_for_update(db, order_id)
    if order is None:
        raise DistributionNotFoundError("order", order_id)

    if order.status == OrderStatus.PENDING:
        if sale_amount is not None:
            order.total_amount = sale_amount
        order.status = OrderStatus.PAID
        order.paid_at = now
    elif order.status != OrderStatus.PAID:
        raise DistributionStateError("order_not_payable", f"Order is {order.status} and cannot be paid")

    distribution_order = crud_distribution_order.get_by_order_id_for_update(db, order.id)
    target_distributor_id = distributor_id or order.distributor_id
    if distribution_order is None and target_distributor_id is not None:
        distributor = crud_distributor.get_distributor(db, target_distributor_id)
        if distributor is not None and _can_attribute(distributor, order):
            order.distributor_id = distributor.id
            distribution_order = _create_distribution_order(db, order, distributor, now)
            db.flush()

    if distribution_order is not None and distribution_order.status == DistributionOrderStatus.PENDING:
        confirmed = crud_distribution_order.transition_status(
            db,
            distribution_order.id,
            from_statuses=[DistributionOrderStatus.PENDING],
            to_status=DistributionOrderStatus.CONFIRMED,
            confirmed_at=now,
        )
        if confirmed and Decimal(distribution_order.commission_amount) > 0:
            ledger.credit_pending(db, distribution_order.distributor_id, distribution_order.commission_amount)

    db.commit()

    result = SalePaidResult(order_id=order.id, order_status=order.status)
    if distribution_order is not None:
        db.refresh(distribution_order)
        result.distribution_order_id = distribution_order.id
        result.distribution_order_status = distribution_order.status
        result.commission_amount = distribution_order.commission_amount
        logger.info(
            f"Order {order.id} paid, distribution order {distribution_order.id} "
            f"is {distribution_order.status} ({distribution_order.commission_amount})"
        )
    return result


# --- Read side ---

def get_distributor_summary(db: Session, distributor_id: int) -> DistributorSummary:
    distributor = get_distributor_or_404(db, distributor_id)
    orders_by_status = crud_distribution_order.count_by_status(db, distributor.id)
    return DistributorSummary(
        distributor_id=distributor.id,
        code=distributor.code,
        status=distributor.status,
        commission_rate=distributor.commission_rate,
        total_earnings=distributor.total_earnings,
        pending_commission=distributor.pending_commission,
        available_balance=distributor.available_balance,
        withdrawn_amount=distributor.withdrawn_amount,
        orders_by_status=orders_by_status,
        total_orders=sum(orders_by_status.values()),
        total_withdrawals=crud_withdrawal.count_distributor_withdrawals(db, distributor.id),
        active_withdrawals=crud_withdrawal.count_active_withdrawals(db, distributor.id),
    )


def list_distribution_orders(
    db: Session,
    distributor_id: int,
    page: int = 1,
    size: int = 20,
    status: str | None = None,
) -> PaginatedDistributionOrders:
    get_distributor_or_404(db, distributor_id)
    skip = (page - 1) * size
    items = crud_distribution_order.get_distributor_orders(db, distributor_id, status=status, skip=skip, limit=size)
    total = crud_distribution_order.count_distributor_orders(db, distributor_id, status=status)
    return PaginatedDistributionOrders(
        total_items=total,
        total_pages=math.ceil(total / size) if total else 0,
        current_page=page,
        size=size,
        items=[DistributionOrderSchema.model_validate(item) for item in items],
    )


def list_distributors(db: Session, status: str | None = None, page: int = 1, size: int = 20) -> PaginatedAdminDistributors:
    skip = (page - 1) * size
    items = crud_distributor.list_distributors(db, status=status, skip=skip, limit=size)
    total = crud_distributor.count_distributors(db, status=status)
    return PaginatedAdminDistributors(
        total_items=total,
        total_pages=math.ceil(total / size) if total else 0,
        current_page=page,
        size=size,
        items=[AdminDistributor.model_validate(item) for item in items],
    )

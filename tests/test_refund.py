# tests/test_refund.py

from datetime import timedelta
from decimal import Decimal

import pytest

from app.core.errors import DistributionNotFoundError, DistributionStateError
from app.models.distribution import DistributionOrderStatus
from app.models.order import OrderStatus
from app.models.security_alert import SecurityAlert, SecurityAlertType
from app.services import distribution as distribution_service
from app.services.refund import refund_order
from app.services.settlement import run_settlement_sweep
from tests.helpers import NOW


def test_refund_of_confirmed_commission(db_session, make_distributor, make_paid_sale):
    distributor = make_distributor()
    distribution_order = make_paid_sale(distributor, Decimal("1000"))

    result = refund_order(db_session, distribution_order.order_id, "customer changed mind", now=NOW + timedelta(days=2))

    assert result.commission_action == "reversed_from_pending"
    assert result.commission_amount == Decimal("100")
    db_session.refresh(distributor)
    db_session.refresh(distribution_order)
    assert distributor.pending_commission == Decimal("0")
    assert distributor.total_earnings == Decimal("0")
    assert distribution_order.status == DistributionOrderStatus.CANCELLED
    assert distribution_order.cancel_reason == "Order refunded: customer changed mind"
    assert distribution_order.order.status == OrderStatus.REFUNDED
    assert distribution_order.order.refund_reason == "customer changed mind"


def test_refund_of_settled_commission_takes_it_from_available(db_session, make_distributor, make_paid_sale, config):
    distributor = make_distributor()
    distribution_order = make_paid_sale(distributor, Decimal("1000"), paid_at=NOW - timedelta(days=20))
    run_settlement_sweep(db_session, config, now=NOW)

    result = refund_order(db_session, distribution_order.order_id, now=NOW)

    assert result.commission_action == "reversed_from_available"
    db_session.refresh(distributor)
    assert distributor.available_balance == Decimal("0")
    assert distributor.total_earnings == Decimal("0")
    assert db_session.query(SecurityAlert).count() == 0


def test_refund_after_withdrawal_records_shortfall(db_session, make_distributor, make_paid_sale, config):
    """Settled commission of 100, only 30 still available: the order closes, the 70 is alerted."""
    distributor = make_distributor()
    distribution_order = make_paid_sale(distributor, Decimal("1000"), paid_at=NOW - timedelta(days=20))
    run_settlement_sweep(db_session, config, now=NOW)
    # 70 already paid out
    db_session.refresh(distributor)
    distributor.available_balance = Decimal("30")
    distributor.withdrawn_amount = Decimal("70")
    db_session.commit()

    result = refund_order(db_session, distribution_order.order_id, "chargeback", now=NOW)

    assert result.commission_action == "shortfall"
    assert result.shortfall == Decimal("70")
    db_session.refresh(distributor)
    db_session.refresh(distribution_order)
    assert distributor.available_balance == Decimal("30")
    assert distributor.available_balance >= 0
    assert distribution_order.status == DistributionOrderStatus.CANCELLED

    alert = db_session.query(SecurityAlert).one()
    assert alert.type == SecurityAlertType.REFUND_COMMISSION_SHORTAGE
    assert "70" in alert.description


def test_refund_of_pending_commission_changes_no_balance(db_session, make_distributor, make_order):
    distributor = make_distributor()
    order = make_order(Decimal("1000"))
    distribution_service.attribute_sale(db_session, order.id, distributor.code, now=NOW)
    # Paid without confirming the commission, e.g. by an older checkout version
    order.status = OrderStatus.PAID
    db_session.commit()

    result = refund_order(db_session, order.id, now=NOW)

    assert result.commission_action == "none"
    db_session.refresh(distributor)
    assert distributor.pending_commission == Decimal("0")
    assert distributor.total_earnings == Decimal("0")
    assert order.distribution_order.status == DistributionOrderStatus.PENDING


def test_refund_without_commission(db_session, make_order):
    order = make_order(Decimal("300"), status=OrderStatus.PAID)

    result = refund_order(db_session, order.id, now=NOW)

    assert result.commission_action == "none"
    db_session.refresh(order)
    assert order.status == OrderStatus.REFUNDED


def test_second_refund_is_refused(db_session, make_distributor, make_paid_sale):
    distributor = make_distributor()
    distribution_order = make_paid_sale(distributor, Decimal("1000"))
    refund_order(db_session, distribution_order.order_id, now=NOW)

    with pytest.raises(DistributionStateError) as exc_info:
        refund_order(db_session, distribution_order.order_id, now=NOW)

    assert exc_info.value.code == "order_not_paid"
    db_session.refresh(distributor)
    assert distributor.pending_commission == Decimal("0")


def test_refund_of_unpaid_order_is_refused(db_session, make_order):
    order = make_order(status=OrderStatus.PENDING)
    with pytest.raises(DistributionStateError):
        refund_order(db_session, order.id)


def test_refund_of_unknown_order(db_session):
    with pytest.raises(DistributionNotFoundError):
        refund_order(db_session, 404)


def test_cancelled_commission_never_comes_back(db_session, make_distributor, make_paid_sale, config):
    distributor = make_distributor()
    distribution_order = make_paid_sale(distributor, Decimal("1000"), paid_at=NOW - timedelta(days=20))
    refund_order(db_session, distribution_order.order_id, now=NOW - timedelta(days=19))

    result = run_settlement_sweep(db_session, config, now=NOW)

    assert result.settled_count == 0
    db_session.refresh(distribution_order)
    assert distribution_order.status == DistributionOrderStatus.CANCELLED
    db_session.refresh(distributor)
    assert distributor.available_balance == Decimal("0")

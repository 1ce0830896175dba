# tests/test_settlement.py

import json
from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy.orm import sessionmaker

from app.crud import order as crud_order
from app.models.distribution import DistributionOrderStatus
from app.models.order import OrderStatus
from app.models.security_alert import SecurityAlert, SecurityAlertStatus, SecurityAlertType
from app.schemas.system_config import DistributionConfig
from app.services import ledger
from app.services.settlement import run_settlement_sweep, settle_commissions_task
from tests.helpers import NOW


def test_commission_settles_only_after_cooldown(db_session, make_distributor, make_paid_sale, config):
    """Rate 0.1, sale of 1000: 100 pending until the 15 day cooldown is over."""
    distributor = make_distributor(commission_rate=Decimal("0.1"))
    distribution_order = make_paid_sale(distributor, Decimal("1000"), paid_at=NOW)

    db_session.refresh(distributor)
    assert distributor.pending_commission == Decimal("100")
    assert distribution_order.status == DistributionOrderStatus.CONFIRMED

    early = run_settlement_sweep(db_session, config, now=NOW + timedelta(days=14))
    assert early.settled_count == 0
    db_session.refresh(distributor)
    assert distributor.pending_commission == Decimal("100")
    assert distributor.available_balance == Decimal("0")

    result = run_settlement_sweep(db_session, config, now=NOW + timedelta(days=15))
    assert result.settled_count == 1
    assert result.failed_count == 0

    db_session.refresh(distributor)
    db_session.refresh(distribution_order)
    assert distributor.pending_commission == Decimal("0")
    assert distributor.available_balance == Decimal("100")
    assert distributor.total_earnings == Decimal("100")
    assert distribution_order.status == DistributionOrderStatus.SETTLED
    assert distribution_order.settled_at is not None


def test_sweep_is_idempotent(db_session, make_distributor, make_paid_sale, config):
    distributor = make_distributor()
    make_paid_sale(distributor, Decimal("1000"), paid_at=NOW - timedelta(days=20))
    make_paid_sale(distributor, Decimal("500"), paid_at=NOW - timedelta(days=16))
    later = NOW

    first = run_settlement_sweep(db_session, config, now=later)
    second = run_settlement_sweep(db_session, config, now=later)

    assert first.settled_count == 2
    assert second.settled_count == 0
    db_session.refresh(distributor)
    assert distributor.available_balance == Decimal("150")
    assert distributor.pending_commission == Decimal("0")


def test_cooldown_override_settles_immediately(db_session, make_distributor, make_paid_sale, config):
    tester = make_distributor(cooldown_override_days=0, is_test_account=True)
    regular = make_distributor()
    make_paid_sale(tester, Decimal("200"), paid_at=NOW)
    make_paid_sale(regular, Decimal("200"), paid_at=NOW)

    result = run_settlement_sweep(db_session, config, now=NOW + timedelta(minutes=1))

    assert result.settled_count == 1
    db_session.refresh(tester)
    db_session.refresh(regular)
    assert tester.available_balance == Decimal("20")
    assert regular.available_balance == Decimal("0")


def test_longer_override_replaces_global_cooldown(db_session, make_distributor, make_paid_sale, config):
    distributor = make_distributor(cooldown_override_days=30)
    make_paid_sale(distributor, Decimal("200"), paid_at=NOW)

    assert run_settlement_sweep(db_session, config, now=NOW + timedelta(days=20)).settled_count == 0
    assert run_settlement_sweep(db_session, config, now=NOW + timedelta(days=30)).settled_count == 1


def test_cooldown_comes_from_config(db_session, make_distributor, make_paid_sale):
    distributor = make_distributor()
    make_paid_sale(distributor, Decimal("200"), paid_at=NOW)

    result = run_settlement_sweep(
        db_session, DistributionConfig(commission_settlement_cooldown_days=3), now=NOW + timedelta(days=3)
    )
    assert result.settled_count == 1


def test_unpaid_sale_is_skipped_and_reported(db_session, make_distributor, make_paid_sale, config):
    distributor = make_distributor()
    distribution_order = make_paid_sale(distributor, Decimal("1000"), paid_at=NOW - timedelta(days=20))
    # The sale was refunded without the reversal running
    distribution_order.order.status = OrderStatus.REFUNDED
    db_session.commit()

    result = run_settlement_sweep(db_session, config, now=NOW)

    assert result.settled_count == 0
    assert result.skipped_count == 1
    db_session.refresh(distribution_order)
    assert distribution_order.status == DistributionOrderStatus.CONFIRMED
    db_session.refresh(distributor)
    assert distributor.pending_commission == Decimal("100")

    alert = db_session.query(SecurityAlert).one()
    assert alert.type == SecurityAlertType.SETTLEMENT_ORDER_NOT_PAID
    assert json.loads(alert.alert_metadata)["order_status"] == OrderStatus.REFUNDED



def test_stuck_order_is_reported_once_while_alert_is_open(db_session, make_distributor, make_paid_sale, config):
    distributor = make_distributor()
    distribution_order = make_paid_sale(distributor, Decimal("1000"), paid_at=NOW - timedelta(days=20))
    distribution_order.order.status = OrderStatus.REFUNDED
    db_session.commit()

    for day in range(3):
        result = run_settlement_sweep(db_session, config, now=NOW + timedelta(days=day))
        assert result.skipped_count == 1

    alert = db_session.query(SecurityAlert).one()
    assert json.loads(alert.alert_metadata)["distribution_order_id"] == distribution_order.id

    # Closing the alert without fixing the order lets the next sweep report it again
    alert.status = SecurityAlertStatus.RESOLVED
    db_session.commit()
    run_settlement_sweep(db_session, config, now=NOW + timedelta(days=3))

    assert db_session.query(SecurityAlert).count() == 2


def test_sale_status_is_read_when_the_order_is_settled(db_session, make_distributor, make_paid_sale, config, mocker):
    distributor = make_distributor()
    distribution_order = make_paid_sale(distributor, Decimal("1000"), paid_at=NOW - timedelta(days=20))
    order_id = distribution_order.order_id
    lock_order = mocker.spy(crud_order, "get_order_for_update")

    run_settlement_sweep(db_session, config, now=NOW)

    lock_order.assert_called_once_with(db_session, order_id)


def test_one_failing_order_does_not_stop_the_sweep(db_session, make_distributor, make_paid_sale, config, mocker):
    distributor = make_distributor()
    first = make_paid_sale(distributor, Decimal("1000"), paid_at=NOW - timedelta(days=30))
    make_paid_sale(distributor, Decimal("500"), paid_at=NOW - timedelta(days=20))

    real_settle = ledger.settle
    calls = {"n": 0}

    def flaky_settle(db, distributor_id, amount):
        calls["n"] += 1
        if calls["n"] == 1:
            raise RuntimeError("database went away")
        return real_settle(db, distributor_id, amount)

    mocker.patch("app.services.settlement.ledger.settle", side_effect=flaky_settle)

    result = run_settlement_sweep(db_session, config, now=NOW)

    assert result.settled_count == 1
    assert result.failed_count == 1
    assert "database went away" in result.errors[0]
    db_session.refresh(first)
    # Rolled back together with the failed ledger call
    assert first.status == DistributionOrderStatus.CONFIRMED
    db_session.refresh(distributor)
    assert distributor.available_balance == Decimal("50")
    assert distributor.pending_commission == Decimal("100")


@pytest.mark.asyncio
async def test_scheduled_task_uses_its_own_session(db_session, make_distributor, make_paid_sale, mocker):
    distributor = make_distributor()
    make_paid_sale(distributor, Decimal("1000"), paid_at=NOW - timedelta(days=30))

    # Same in-memory database, separate session, no Redis
    mocker.patch("app.services.settlement.SessionLocal", sessionmaker(autoflush=False, bind=db_session.get_bind()))
    mocker.patch("app.services.settlement.redis_client", None)

    result = await settle_commissions_task()

    assert result.settled_count == 1
    db_session.refresh(distributor)
    assert distributor.available_balance == Decimal("100")

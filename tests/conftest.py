# tests/conftest.py
import itertools
from datetime import datetime, timedelta
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from app.core.redis import get_redis_client
from app.db.session import Base
from app.dependencies import get_db
from app.main import app
from app import models as _all_models  # noqa: F401  (every model, so create_all sees all tables)
from app.models.distribution import DistributionOrder, Distributor, DistributorStatus, RiskLevel
from app.models.order import Order, OrderStatus
from app.models.user import User
from app.schemas.system_config import DistributionConfig
from app.services import distribution as distribution_service
from tests.helpers import NOW, auth_headers_for

# In-memory SQLite: fast and isolated. StaticPool keeps one connection,
# so the app and the test see the same database.
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

_sequence = itertools.count(1)


@pytest.fixture(scope="function")
def db_session() -> Session:
    """
    A clean database for every test.
    """
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def config() -> DistributionConfig:
    return DistributionConfig()


# --- Factories ---

@pytest.fixture
def make_user(db_session):
    def _make(role: str = "user", **fields) -> User:
        n = next(_sequence)
        user = User(email=f"user{n}@example.com", name=f"User {n}", role=role, created_at=NOW - timedelta(days=90), **fields)
        db_session.add(user)
        db_session.commit()
        return user
    return _make


@pytest.fixture
def make_distributor(db_session, make_user):
    """
    Active, verified, 60 days old, bank details set long ago, already withdrew
    once: a distributor that triggers no risk factor unless a test says so.
    """
    def _make(**overrides) -> Distributor:
        n = next(_sequence)
        fields = dict(
            user_id=overrides.pop("user_id", None) or make_user().id,
            code=f"CODE{n:04d}",
            status=DistributorStatus.ACTIVE,
            commission_rate=Decimal("0.1"),
            contact_name="Test Distributor",
            contact_phone="+10000000000",
            contact_email=f"dist{n}@example.com",
            bank_name="Test Bank",
            bank_account="6222000011112222",
            bank_account_name="Test Distributor",
            total_earnings=Decimal("0"),
            pending_commission=Decimal("0"),
            available_balance=Decimal("0"),
            withdrawn_amount=Decimal("0"),
            risk_level=RiskLevel.LOW,
            is_frozen=False,
            is_verified=True,
            verified_at=NOW - timedelta(days=50),
            last_bank_info_update=NOW - timedelta(days=60),
            first_withdrawal_at=NOW - timedelta(days=40),
            is_test_account=False,
            applied_at=NOW - timedelta(days=61),
            approved_at=NOW - timedelta(days=60),
            created_at=NOW - timedelta(days=60),
        )
        fields.update(overrides)
        distributor = Distributor(**fields)
        db_session.add(distributor)
        db_session.commit()
        return distributor
    return _make


@pytest.fixture
def make_order(db_session, make_user):
    def _make(amount: Decimal = Decimal("1000"), status: str = OrderStatus.PENDING, **fields) -> Order:
        n = next(_sequence)
        order = Order(
            order_number=f"KS-{n:06d}",
            user_id=fields.pop("user_id", None) or make_user().id,
            total_amount=amount,
            status=status,
            created_at=NOW - timedelta(days=1),
            **fields,
        )
        db_session.add(order)
        db_session.commit()
        return order
    return _make


@pytest.fixture
def make_paid_sale(db_session, make_order):
    """Attributes a new order to the distributor and confirms its payment at `paid_at`."""
    def _make(distributor: Distributor, amount: Decimal = Decimal("1000"), paid_at: datetime = NOW) -> DistributionOrder:
        order = make_order(amount=amount)
        distribution_service.attribute_sale(db_session, order.id, distributor.code, now=paid_at)
        distribution_service.handle_sale_paid(db_session, order.id, now=paid_at)
        return db_session.query(DistributionOrder).filter(DistributionOrder.order_id == order.id).one()
    return _make


# --- API ---

@pytest_asyncio.fixture
async def client(db_session):
    """httpx client bound to the app, sharing the test DB session, no Redis."""
    app.dependency_overrides[get_db] = lambda: db_session
    app.dependency_overrides[get_redis_client] = lambda: None
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def admin_user(make_user) -> User:
    return make_user(role="admin")


@pytest.fixture
def admin_auth_headers(admin_user) -> dict:
    return auth_headers_for(admin_user)

"""
TradeDoc Tracker - Test Configuration

Pytest fixtures and configuration.
"""

import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL_ASYNC", "sqlite+aiosqlite:///./test_tradedoc.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("REMINDER_SWEEP_ENABLED", "false")
os.environ.setdefault("EMAIL_PROVIDER", "mock")

from datetime import date, datetime
from decimal import Decimal
from typing import AsyncGenerator, List, Optional
from zoneinfo import ZoneInfo

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

import tradedoc.models  # noqa: F401
from tradedoc.database import Base, get_async_session
from tradedoc.models.customer import Customer
from tradedoc.models.transaction import Transaction
from tradedoc.services.job_queue import InProcessJobQueue
from tradedoc.services.reminder_scheduler import ReminderScheduler, get_reminder_scheduler
from tradedoc.utils.permissions import Actor, UserRole
from tradedoc.utils.security import create_access_token
from main import app


BUSINESS_TZ = ZoneInfo("Asia/Ho_Chi_Minh")

# Fixed "now" for reminder tests: 1 March 2024, 08:00 business time
FIXED_NOW = datetime(2024, 3, 1, 8, 0, tzinfo=BUSINESS_TZ)


# ===========================================
# DATABASE FIXTURES
# ===========================================

@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path):
    """File-backed SQLite engine so separate sessions see each other's commits."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'tradedoc.db'}", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker:
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


# ===========================================
# REMINDER FIXTURES
# ===========================================

class FakeNotifier:
    """Records sends; returns `result` or raises `error`."""

    def __init__(self, result: bool = True, error: Optional[Exception] = None):
        self.result = result
        self.error = error
        self.sent: List[dict] = []

    async def send(self, from_addr, to, subject, html_body, password=None) -> bool:
        self.sent.append(
            {
                "from_addr": from_addr,
                "to": to,
                "subject": subject,
                "html_body": html_body,
                "password": password,
            }
        )
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def job_queue() -> InProcessJobQueue:
    return InProcessJobQueue()


@pytest.fixture
def scheduler(session_factory, notifier, job_queue) -> ReminderScheduler:
    return ReminderScheduler(
        session_factory=session_factory,
        notifier=notifier,
        job_queue=job_queue,
        lead_days=10,
        dispatch_hour=9,
        subject_template="Reminder {trref}",
        clock=lambda: FIXED_NOW,
    )


# ===========================================
# CLIENT FIXTURES
# ===========================================

@pytest_asyncio.fixture(scope="function")
async def client(session_factory, scheduler) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with database session and scheduler overrides."""

    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_async_session] = override_get_session
    app.dependency_overrides[get_reminder_scheduler] = lambda: scheduler

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


def _auth_headers(role: UserRole, name: str) -> dict:
    token = create_access_token({"sub": name.lower(), "name": name, "role": role.value})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def teller_headers() -> dict:
    return _auth_headers(UserRole.TELLER, "Teller")


@pytest.fixture
def controller_headers() -> dict:
    return _auth_headers(UserRole.CONTROLLER, "Controller")


@pytest.fixture
def inspector_headers() -> dict:
    return _auth_headers(UserRole.POST_INSPECTOR, "Inspector")


@pytest.fixture
def admin_headers() -> dict:
    return _auth_headers(UserRole.ADMIN, "Admin")


# ===========================================
# ACTORS
# ===========================================

@pytest.fixture
def teller() -> Actor:
    return Actor(id="gdv01", name="Teller", role=UserRole.TELLER)


@pytest.fixture
def controller() -> Actor:
    return Actor(id="ksv01", name="Controller", role=UserRole.CONTROLLER)


@pytest.fixture
def inspector() -> Actor:
    return Actor(id="kts01", name="Inspector", role=UserRole.POST_INSPECTOR)


@pytest.fixture
def admin() -> Actor:
    return Actor(id="admin", name="Admin", role=UserRole.ADMIN)


# ===========================================
# DATA FIXTURES
# ===========================================

def make_transaction(**overrides) -> Transaction:
    values = dict(
        trref="FT24001",
        custno="C001",
        custnm="Acme Trading",
        tradate=date(2024, 1, 10),
        currency="USD",
        amount=Decimal("1500.00"),
        bencust="Shenzhen Parts Co",
        remark="HD 123, TT truoc 240115",
        contract_number="123",
        expected_delivery_date=date(2024, 1, 15),
        expected_declaration_date=date(2024, 2, 14),
        additional_date=date(2024, 3, 15),
    )
    values.update(overrides)
    return Transaction(**values)


async def add_all(session_factory, *objects):
    """Persist objects in their own session and return their ids."""
    async with session_factory() as session:
        session.add_all(objects)
        await session.commit()
        return [obj.id for obj in objects]


@pytest_asyncio.fixture
async def test_customer(session_factory) -> Customer:
    """Create a test customer."""
    customer = Customer(
        custno="C001",
        name="Acme Trading",
        email="accounts@acme-trading.vn",
        contact_person="Nguyen Van A",
        phone_number="0901234567",
    )
    await add_all(session_factory, customer)
    return customer


@pytest_asyncio.fixture
async def test_transaction(session_factory, test_customer) -> Transaction:
    """Create a test transaction for the test customer."""
    transaction = make_transaction()
    await add_all(session_factory, transaction)
    return transaction

"""
Event Ledger - Test Configuration

Pytest fixtures and configuration.
"""

from datetime import date
from typing import AsyncGenerator
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

import event_ledger.models  # noqa: F401
from event_ledger.database import Base, get_async_session
from event_ledger.models.accounting_event import AccountingEvent, AccountingEventType, EventStatus
from main import app


@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path):
    """File-backed SQLite engine so several sessions see the same data."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/test.db", echo=False)
    
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    
    yield engine
    
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture(scope="function")
def session_factory(test_engine):
    """Session factory bound to the test engine."""
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


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with database session override."""
    
    async def override_get_session():
        yield db_session
    
    app.dependency_overrides[get_async_session] = override_get_session
    
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    
    app.dependency_overrides.clear()


# ===========================================
# DATA FIXTURES
# ===========================================

@pytest.fixture
def company_a():
    return uuid4()


@pytest.fixture
def company_b():
    return uuid4()


@pytest.fixture
def expense_approved_data():
    """Balanced expense approval: 1000 subtotal + 75 VAT."""
    return {
        "expenseNumber": "EXP-0001",
        "vendorName": "Acme Supplies",
        "lineItems": [
            {"description": "Office chairs", "accountCode": "6100", "amount": "1000.00"},
        ],
        "totalSubtotal": "1000.00",
        "totalVatAmount": "75.00",
        "totalAmount": "1075.00",
        "payableAccountCode": "2050",
    }


@pytest.fixture
def management_fee_data(company_a, company_b):
    return {
        "periodFrom": "2026-01-01",
        "periodTo": "2026-03-31",
        "projectId": "PRJ-1",
        "projectName": "Harbour Tower",
        "projectCompanyId": str(company_a),
        "managementCompanyId": str(company_b),
        "feePercentage": "10",
        "grossIncome": "25000.00",
        "feeAmount": "2500.00",
    }


@pytest.fixture
def make_event():
    """Build an unattached event for handler unit tests."""
    
    def _make_event(
        event_type: AccountingEventType,
        event_data: dict,
        companies,
        event_date: date = date(2026, 3, 31),
        status: EventStatus = EventStatus.PENDING,
    ) -> AccountingEvent:
        return AccountingEvent(
            id=uuid4(),
            event_type=event_type,
            event_date=event_date,
            status=status,
            affected_companies=[str(c) for c in companies],
            event_data=event_data,
            retry_count=0,
            skipped_companies=[],
        )
    
    return _make_event

"""Pytest configuration and fixtures for StoreCredit tests.

Each test gets a fresh in-memory SQLite database built from the model
metadata; the app's `get_db` dependency is overridden to hand out the
test session.
"""

import os

# Must be set before storecredit.config is imported
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("LEDGER_AUDIT_ENABLED", "false")
os.environ.setdefault("ENVIRONMENT", "test")

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from storecredit.auth.jwt import create_access_token
from storecredit.auth.permissions import resolve_permissions
from storecredit.database import Base, get_db
from storecredit.main import app
from storecredit.models import Customer, Store, User, UserRole
from storecredit.schemas.credit import LedgerReference, ReferenceType, TransactionCreate, TransactionType
from storecredit.services.credit_ledger import create_transaction


# ── Test Database Setup ──────────────────────────────────────────

@pytest_asyncio.fixture
async def test_engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    session_factory = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(db_session) -> AsyncGenerator[AsyncClient, None]:
    """Test client sharing the test session, with the same commit/rollback
    behaviour as the real dependency."""

    async def override_get_db():
        try:
            yield db_session
            await db_session.commit()
        except Exception:
            await db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as client:
        yield client

    app.dependency_overrides.clear()


# ── Test Data Fixtures ───────────────────────────────────────────

@pytest_asyncio.fixture
async def store(db_session: AsyncSession) -> Store:
    store = Store(name="Green Cross Pharmacy", code="PH-001")
    db_session.add(store)
    await db_session.commit()
    return store


@pytest_asyncio.fixture
async def other_store(db_session: AsyncSession) -> Store:
    store = Store(name="Riverside Chemists", code="PH-002")
    db_session.add(store)
    await db_session.commit()
    return store


async def _add_user(
    db: AsyncSession, store: Store | None, role: UserRole, email: str, name: str,
    custom_permissions: dict | None = None,
) -> User:
    user = User(
        email=email,
        full_name=name,
        role=role,
        store_id=store.id if store else None,
        custom_permissions=custom_permissions,
    )
    db.add(user)
    await db.commit()
    return user


@pytest_asyncio.fixture
async def manager(db_session: AsyncSession, store: Store) -> User:
    return await _add_user(
        db_session, store, UserRole.STORE_MANAGER, "manager@greencross.test", "Asha Manager",
    )


@pytest_asyncio.fixture
async def staff(db_session: AsyncSession, store: Store) -> User:
    return await _add_user(
        db_session, store, UserRole.STAFF, "staff@greencross.test", "Ravi Staff",
    )


@pytest_asyncio.fixture
async def read_only_manager(db_session: AsyncSession, store: Store) -> User:
    return await _add_user(
        db_session, store, UserRole.STORE_MANAGER, "readonly@greencross.test", "Meera Manager",
        custom_permissions={"credit.write": False, "credit.limit": False},
    )


def _token_for(user: User) -> str:
    return create_access_token(
        user_id=user.id,
        role=user.role.value,
        permissions=resolve_permissions(user.role.value, user.custom_permissions),
        store_id=user.store_id,
    )


def _headers_for(user: User) -> dict:
    return {"Authorization": f"Bearer {_token_for(user)}"}


@pytest.fixture
def make_headers():
    """Build bearer headers for any user."""
    return _headers_for


@pytest.fixture
def auth_headers(manager: User) -> dict:
    """Authorization headers for the store manager."""
    return _headers_for(manager)


@pytest_asyncio.fixture
async def make_customer(db_session: AsyncSession, manager: User):
    """Factory for customers.  An opening balance is booked as a credit
    sale so the ledger and the balance agree from the start."""

    async def _make(
        store: Store,
        *,
        name: str = "Priya Sharma",
        phone: str = "9800000001",
        credit_limit: float = 5000,
        opening_balance: float = 0,
    ) -> Customer:
        customer = Customer(
            store_id=store.id, name=name, phone=phone, credit_limit=credit_limit,
        )
        db_session.add(customer)
        await db_session.flush()

        if opening_balance:
            await create_transaction(db_session, TransactionCreate(
                store_id=store.id,
                customer_id=customer.id,
                transaction_type=TransactionType.CREDIT_SALE,
                amount=opening_balance,
                balance_change=opening_balance,
                reference=LedgerReference(type=ReferenceType.SALE, number="INV-OPENING"),
                description="Opening balance",
                processed_by=manager.id,
            ))

        await db_session.commit()
        await db_session.refresh(customer)
        return customer

    return _make


@pytest_asyncio.fixture
async def customer(make_customer, store: Store) -> Customer:
    """Customer owing 1000 against a 5000 limit."""
    return await make_customer(store, opening_balance=1000)


# ── Test Markers ─────────────────────────────────────────────────

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "api: HTTP API tests")
    config.addinivalue_line("markers", "integration: Tests that touch the database")

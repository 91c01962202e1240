# ==== SHARED TEST FIXTURES AND CONFIGURATION ==== #

"""
Shared test fixtures and configuration.

Every test gets a fresh in-memory SQLite schema, an application instance
served through ``httpx.ASGITransport`` and factories for the organisations
and users the workflows need.
"""

import os
from datetime import UTC, datetime
from types import SimpleNamespace

import pytest
import pytest_asyncio
from freezegun import freeze_time
from httpx import AsyncClient, ASGITransport


# ==== FORCE ENVIRONMENT SETUP BEFORE ANY IMPORTS ==== #

# Set environment variables BEFORE importing any app modules
os.environ.update({
    "APP_ENV": "test",
    "DATABASE_URL": "sqlite+aiosqlite:///:memory:",
    "JWT_SECRET": "test-secret-key-for-testing-only-0123456789",
    "LOG_LEVEL": "WARNING",
    "LOG_DIR": "",
    "DEFAULT_TENANT_ID": "default",
    "REQUIRE_TENANT_HEADER": "false",
})

# Now import app modules after environment is set
from app.main import create_app
from app.storage import db as storage_db
from app.storage.db import close_database, create_all, drop_all, get_session, init_database
from tests.factories.data_factories import ProcurementFactory


# ==== DATABASE FIXTURES ==== #


@pytest_asyncio.fixture
async def database():
    """
    Fresh in-memory schema for one test.

    The engine is rebuilt per test so that it is bound to the test's event
    loop; disposing it drops the in-memory database.
    """
    storage_db.engine = None
    storage_db.SessionLocal = None

    init_database()
    await create_all()

    yield

    await drop_all()
    await close_database()


@pytest_asyncio.fixture
async def db_session(database):
    """Database session committed when the test finishes."""
    async with get_session() as session:
        yield session


# ==== APPLICATION FIXTURES ==== #


@pytest_asyncio.fixture
async def app(database):
    """FastAPI application backed by the test database."""
    yield create_app()


@pytest_asyncio.fixture
async def client(app):
    """
    Create test client.

    Returns:
        AsyncClient: HTTP test client instance
    """
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# ==== DATA FIXTURES ==== #


@pytest.fixture
def factory(database):
    """Row factory writing through committed sessions."""
    return ProcurementFactory()


@pytest_asyncio.fixture
async def world(factory):
    """
    One administrator, a member with a buyer, and two partners with a
    sales user each, plus a category to file quotes under.

    Returns:
        SimpleNamespace: Rows and ready-made auth headers
    """
    category = await factory.category()
    member = await factory.member(name="Sakura Dining", payer_name="SAKURA DINING")
    other_member = await factory.member(name="Harbor Bistro", payer_name="HARBOR BISTRO")
    partner = await factory.partner(name="Fresh Farms Supply")
    other_partner = await factory.partner(name="Kitchen Pro Equipment")

    admin = await factory.user(role="admin")
    buyer = await factory.user(role="member", member_id=member.id)
    other_buyer = await factory.user(role="member", member_id=other_member.id)
    seller = await factory.user(role="partner", partner_id=partner.id)
    other_seller = await factory.user(role="partner", partner_id=other_partner.id)

    return SimpleNamespace(
        category=category,
        member=member,
        other_member=other_member,
        partner=partner,
        other_partner=other_partner,
        admin=admin,
        buyer=buyer,
        other_buyer=other_buyer,
        seller=seller,
        other_seller=other_seller,
        admin_headers=factory.headers(admin),
        buyer_headers=factory.headers(buyer),
        other_buyer_headers=factory.headers(other_buyer),
        seller_headers=factory.headers(seller),
        other_seller_headers=factory.headers(other_seller),
    )


# ==== TIME AND TENANT FIXTURES ==== #


@pytest.fixture
def base_time():
    """
    Base time for tests.

    Returns:
        datetime: Base timestamp for tests
    """
    return datetime(2025, 8, 17, 10, 0, 0, tzinfo=UTC)


@pytest.fixture
def frozen_time(base_time):
    """Freeze the clock at ``base_time``."""
    with freeze_time(base_time) as frozen:
        yield frozen


@pytest.fixture
def tenant_headers():
    """Headers selecting the test tenant."""
    return {"X-Tenant-Id": "test-tenant"}

"""
Pytest configuration and fixtures for the inventory ledger tests.

Every test gets its own SQLite database file, a pinned clock and a private
lock registry, so tests never share ledger state.
"""
import os

# Set test environment before importing app modules
os.environ["ENVIRONMENT"] = "development"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["DEBUG"] = "false"

from typing import Optional

import httpx
import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from inventory_ledger.core.clock import FixedClock
from inventory_ledger.core.config import Settings
from inventory_ledger.core.database import create_all_tables
from inventory_ledger.core.locks import KeyedLock
from inventory_ledger.models import Product, ProductVariant
from inventory_ledger.services import (
    AdjustmentService,
    InventoryQueryService,
    MovementLog,
    StockRepository,
)


def make_settings(**overrides) -> Settings:
    values = {
        "DATABASE_URL": "sqlite+aiosqlite:///:memory:",
        "ENVIRONMENT": "development",
        "STOCK_ADJUST_RETRY_BACKOFF_SECONDS": 0,
        "STOCK_LOCK_TIMEOUT_SECONDS": 2.0,
    }
    values.update(overrides)
    return Settings(**values)


def enable_sqlite_foreign_keys(engine) -> None:
    @event.listens_for(engine.sync_engine, "connect")
    def _fk_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


class Ledger:
    """Services wired to one test database."""

    def __init__(self, session_factory: async_sessionmaker, config: Settings):
        self.session_factory = session_factory
        self.config = config
        self.clock = FixedClock()
        self.locks = KeyedLock()
        self.movement_log = MovementLog(session_factory, config)
        self.repository = StockRepository(session_factory, self.movement_log)
        self.adjustments = AdjustmentService(
            session_factory,
            movement_log=self.movement_log,
            stock_repository=self.repository,
            clock=self.clock,
            locks=self.locks,
            config=config,
        )
        self.queries = InventoryQueryService(session_factory, self.movement_log, config)

    async def add_product(
        self,
        name: str = "Test Product",
        sku: Optional[str] = None,
        stock: int = 0,
        min_stock_level: int = 5,
        is_active: bool = True,
    ) -> str:
        """Insert a catalog row directly (no movement), returning its id."""
        async with self.session_factory() as db:
            product = Product(
                name=name,
                sku=sku,
                stock=stock,
                min_stock_level=min_stock_level,
                is_active=is_active,
            )
            db.add(product)
            await db.commit()
            return product.id

    async def add_variant(self, product_id: str, name: str = "Default", sku: Optional[str] = None) -> str:
        async with self.session_factory() as db:
            variant = ProductVariant(product_id=product_id, name=name, sku=sku, stock=0)
            db.add(variant)
            await db.commit()
            return variant.id


@pytest.fixture
def settings_factory():
    return make_settings


@pytest.fixture
def test_settings() -> Settings:
    return make_settings()


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    enable_sqlite_foreign_keys(engine)
    await create_all_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def ledger(session_factory, test_settings) -> Ledger:
    return Ledger(session_factory, test_settings)


@pytest.fixture
def ledger_factory(test_settings):
    """Build a Ledger on a caller-owned session factory."""
    return lambda session_factory: Ledger(session_factory, test_settings)


@pytest_asyncio.fixture
async def client(ledger):
    """HTTP client against the ASGI app, with services bound to the test database."""
    from inventory_ledger.api.deps import (
        get_adjustment_service,
        get_query_service,
        get_stock_repository,
    )
    from inventory_ledger.main import app

    app.dependency_overrides[get_adjustment_service] = lambda: ledger.adjustments
    app.dependency_overrides[get_query_service] = lambda: ledger.queries
    app.dependency_overrides[get_stock_repository] = lambda: ledger.repository

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()

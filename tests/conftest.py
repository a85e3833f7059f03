"""
Test fixtures for the Visitor Ledger API.

The relational adapter runs against a throwaway SQLite file, the document
adapter against mongomock-motor's in-memory client.
"""

from typing import AsyncGenerator

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from mongomock_motor import AsyncMongoMockClient

from visitor_ledger.core.config import Settings
from visitor_ledger.models.database import create_engine
from visitor_ledger.services.ledger import VisitorLedger, get_ledger
from visitor_ledger.services.mongo_ledger import MongoVisitorLedger
from visitor_ledger.services.sql_ledger import SqlVisitorLedger


@pytest_asyncio.fixture
async def sql_ledger(tmp_path) -> AsyncGenerator[SqlVisitorLedger, None]:
    """SQLite-backed ledger with the schema created."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    ledger = SqlVisitorLedger(engine)
    await ledger.ensure_schema()
    yield ledger
    await ledger.close()


@pytest_asyncio.fixture
async def mongo_ledger() -> AsyncGenerator[MongoVisitorLedger, None]:
    """In-memory Mongo-backed ledger with the unique index created."""
    client = AsyncMongoMockClient()
    ledger = MongoVisitorLedger(client["visitor_ledger_test"]["visitors"])
    await ledger.ensure_schema()
    yield ledger


@pytest_asyncio.fixture(params=["sql", "mongo"])
async def ledger(request, tmp_path) -> AsyncGenerator[VisitorLedger, None]:
    """Each test using this fixture runs once per storage adapter."""
    if request.param == "sql":
        engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
        adapter = SqlVisitorLedger(engine)
    else:
        client = AsyncMongoMockClient()
        adapter = MongoVisitorLedger(client["visitor_ledger_test"]["visitors"])

    await adapter.ensure_schema()
    yield adapter
    await adapter.close()


def make_app(ledger: VisitorLedger, **overrides):
    """Build an app whose routes use the given ledger."""
    from main import create_app

    config = Settings(API_REQUEST_LOGGING_ENABLED=False, **overrides)
    app = create_app(config)
    app.dependency_overrides[get_ledger] = lambda: ledger
    return app


@pytest_asyncio.fixture
async def client(ledger: VisitorLedger) -> AsyncGenerator[AsyncClient, None]:
    """Test client for the default API prefix, backed by each adapter in turn."""
    app = make_app(ledger)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()

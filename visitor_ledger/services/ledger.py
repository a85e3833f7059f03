"""
Visitor Ledger
==============
One record per client identifier (an IP address). A record is created on the
first "site opened" or "login attempt" event, whichever comes first, and the
only mutation afterwards is flipping ``has_logged_in`` to true. The whole ledger
can be cleared at once; there is no per-record delete.

Two interchangeable adapters implement :class:`VisitorLedger`:

* ``SqlVisitorLedger``   - SQLAlchemy async engine (SQLite / PostgreSQL)
* ``MongoVisitorLedger`` - pymongo asyncio client

Both rely on a unique index on the identifier and atomic upserts, so the
at-most-one-record-per-identifier invariant holds under concurrent writers.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterator, Protocol

from fastapi import Request

from visitor_ledger.models.enums import EntryOutcome, LedgerBackend

if TYPE_CHECKING:
    from visitor_ledger.core.config import Settings


class LedgerError(Exception):
    """A storage operation failed. Carries the ledger operation name."""

    def __init__(self, operation: str, message: str = "storage operation failed") -> None:
        super().__init__(f"{operation}: {message}")
        self.operation = operation


@contextmanager
def storage_errors(operation: str, *errors: type[BaseException]) -> Iterator[None]:
    """Re-raise driver exceptions of the given types as :class:`LedgerError`."""
    try:
        yield
    except errors as exc:
        raise LedgerError(operation, str(exc) or type(exc).__name__) from exc


@dataclass(frozen=True)
class LedgerStats:
    total_entered: int = 0
    total_logged_in: int = 0
    total_not_logged_in: int = 0


class VisitorLedger(Protocol):
    """Port: the visitor ledger operations shared by every storage adapter."""

    async def ensure_schema(self) -> None: ...

    async def record_entry(self, identifier: str) -> EntryOutcome: ...

    async def record_login(self, identifier: str) -> EntryOutcome: ...

    async def list_all(self) -> list[dict]: ...

    async def clear_all(self) -> int: ...

    async def get_stats(self) -> LedgerStats: ...

    async def close(self) -> None: ...


def get_ledger(request: Request) -> VisitorLedger:
    """FastAPI dependency: the ledger the app opened in its lifespan."""
    return request.app.state.ledger


def build_ledger(settings: Settings) -> VisitorLedger:
    """Create the ledger adapter selected by ``LEDGER_BACKEND``."""
    backend = LedgerBackend(settings.LEDGER_BACKEND)

    if backend is LedgerBackend.MONGO:
        from pymongo import AsyncMongoClient
        from visitor_ledger.services.mongo_ledger import MongoVisitorLedger

        client = AsyncMongoClient(settings.MONGO_URL, tz_aware=True)
        collection = client[settings.MONGO_DATABASE][settings.MONGO_COLLECTION]
        return MongoVisitorLedger(collection, client=client)

    from visitor_ledger.models.database import create_engine
    from visitor_ledger.services.sql_ledger import SqlVisitorLedger

    return SqlVisitorLedger(create_engine(settings.DATABASE_URL, echo=settings.DATABASE_ECHO))

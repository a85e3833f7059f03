"""
Relational visitor ledger backed by a SQLAlchemy async engine.

Each operation opens its own session from the pooled engine. Writes use the
dialect's ``INSERT ... ON CONFLICT`` so a concurrent first contact from the same
identifier cannot produce a second row.
"""

import logging

from sqlalchemy import case, delete, func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from visitor_ledger.models.database import VisitorRecord, create_session_factory, init_db, utcnow
from visitor_ledger.models.enums import EntryOutcome
from visitor_ledger.services.ledger import LedgerStats, storage_errors

logger = logging.getLogger("uvicorn.error")

_UPSERT_INSERTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}

_DB_ERRORS = (SQLAlchemyError, OSError)


class SqlVisitorLedger:
    def __init__(
        self,
        engine: AsyncEngine,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
    ) -> None:
        dialect = engine.dialect.name
        if dialect not in _UPSERT_INSERTS:
            raise ValueError(f"Unsupported database dialect for the visitor ledger: {dialect}")
        self._engine = engine
        self._insert = _UPSERT_INSERTS[dialect]
        self._session_factory = session_factory or create_session_factory(engine)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def ensure_schema(self) -> None:
        """Create the visitors table and its unique index if missing."""
        with storage_errors("ensure_schema", *_DB_ERRORS):
            await init_db(self._engine)

    async def close(self) -> None:
        await self._engine.dispose()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def record_entry(self, identifier: str) -> EntryOutcome:
        """Insert a fresh record for the identifier unless one already exists."""
        now = utcnow()
        stmt = (
            self._insert(VisitorRecord)
            .values(
                identifier=identifier,
                entry_count=1,
                has_logged_in=False,
                created_at=now,
                updated_at=now,
            )
            .on_conflict_do_nothing(index_elements=[VisitorRecord.identifier])
        )

        with storage_errors("record_entry", *_DB_ERRORS):
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                await session.commit()

        if result.rowcount:
            logger.info("Visitor ledger: recorded new visitor %s", identifier)
            return EntryOutcome.CREATED
        return EntryOutcome.EXISTED

    async def record_login(self, identifier: str) -> EntryOutcome:
        """Mark the identifier as logged in, creating the record if needed.

        The insert decides the outcome: only the caller whose row was actually
        inserted sees CREATED, everyone else flips the flag on the existing row.
        """
        now = utcnow()
        insert_stmt = (
            self._insert(VisitorRecord)
            .values(
                identifier=identifier,
                entry_count=1,
                has_logged_in=True,
                created_at=now,
                updated_at=now,
            )
            .on_conflict_do_nothing(index_elements=[VisitorRecord.identifier])
        )
        update_stmt = (
            update(VisitorRecord)
            .where(VisitorRecord.identifier == identifier)
            .values(has_logged_in=True, updated_at=now)
        )

        with storage_errors("record_login", *_DB_ERRORS):
            async with self._session_factory() as session:
                result = await session.execute(insert_stmt)
                created = bool(result.rowcount)
                if not created:
                    await session.execute(update_stmt)
                await session.commit()

        if created:
            logger.info("Visitor ledger: recorded new visitor %s on login", identifier)
            return EntryOutcome.CREATED
        return EntryOutcome.EXISTED

    async def clear_all(self) -> int:
        """Delete every record. Returns the number of rows removed."""
        with storage_errors("clear_all", *_DB_ERRORS):
            async with self._session_factory() as session:
                result = await session.execute(delete(VisitorRecord))
                await session.commit()

        logger.warning("Visitor ledger: cleared %d record(s)", result.rowcount)
        return result.rowcount

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_all(self) -> list[dict]:
        with storage_errors("list_all", *_DB_ERRORS):
            async with self._session_factory() as session:
                result = await session.execute(select(VisitorRecord))
                return [row.to_dict() for row in result.scalars().all()]

    async def get_stats(self) -> LedgerStats:
        """Count all, logged-in and not-logged-in records in a single query."""
        logged_in = case((VisitorRecord.has_logged_in.is_(True), 1), else_=0)
        not_logged_in = case((VisitorRecord.has_logged_in.is_(False), 1), else_=0)
        stmt = select(
            func.count(VisitorRecord.id),
            func.coalesce(func.sum(logged_in), 0),
            func.coalesce(func.sum(not_logged_in), 0),
        )

        with storage_errors("get_stats", *_DB_ERRORS):
            async with self._session_factory() as session:
                row = (await session.execute(stmt)).one()

        return LedgerStats(
            total_entered=int(row[0]),
            total_logged_in=int(row[1]),
            total_not_logged_in=int(row[2]),
        )

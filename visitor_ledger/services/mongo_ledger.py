"""
Document visitor ledger backed by a MongoDB collection.

The adapter holds one long-lived client for the lifetime of the app. A unique
index on ``identifier`` plus ``update_one(..., upsert=True)`` keeps one document
per visitor; a duplicate-key error from two racing upserts means another
writer created the document first.
"""

import logging
from typing import Any

from pymongo.errors import DuplicateKeyError, PyMongoError

from visitor_ledger.models.database import as_utc, utcnow
from visitor_ledger.models.enums import EntryOutcome
from visitor_ledger.services.ledger import LedgerStats, storage_errors

logger = logging.getLogger("uvicorn.error")

_DB_ERRORS = (PyMongoError, OSError)


class MongoVisitorLedger:
    def __init__(self, collection: Any, client: Any | None = None) -> None:
        # Any async collection with the pymongo API (AsyncCollection, mongomock-motor, ...)
        self._collection = collection
        self._client = client

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def ensure_schema(self) -> None:
        with storage_errors("ensure_schema", *_DB_ERRORS):
            await self._collection.create_index("identifier", unique=True)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def record_entry(self, identifier: str) -> EntryOutcome:
        """Insert a fresh document for the identifier unless one already exists."""
        now = utcnow()
        update = {
            "$setOnInsert": {
                "entry_count": 1,
                "has_logged_in": False,
                "created_at": now,
                "updated_at": now,
            }
        }

        with storage_errors("record_entry", *_DB_ERRORS):
            try:
                result = await self._collection.update_one(
                    {"identifier": identifier}, update, upsert=True
                )
            except DuplicateKeyError:
                return EntryOutcome.EXISTED

        if result.upserted_id is not None:
            logger.info("Visitor ledger: recorded new visitor %s", identifier)
            return EntryOutcome.CREATED
        return EntryOutcome.EXISTED

    async def record_login(self, identifier: str) -> EntryOutcome:
        """Mark the identifier as logged in, creating the document if needed."""
        now = utcnow()
        update = {
            "$set": {"has_logged_in": True, "updated_at": now},
            "$setOnInsert": {"entry_count": 1, "created_at": now},
        }

        with storage_errors("record_login", *_DB_ERRORS):
            try:
                result = await self._collection.update_one(
                    {"identifier": identifier}, update, upsert=True
                )
            except DuplicateKeyError:
                # Lost the insert race; the document exists now.
                await self._collection.update_one({"identifier": identifier}, {"$set": update["$set"]})
                return EntryOutcome.EXISTED

        if result.upserted_id is not None:
            logger.info("Visitor ledger: recorded new visitor %s on login", identifier)
            return EntryOutcome.CREATED
        return EntryOutcome.EXISTED

    async def clear_all(self) -> int:
        with storage_errors("clear_all", *_DB_ERRORS):
            result = await self._collection.delete_many({})

        logger.warning("Visitor ledger: cleared %d record(s)", result.deleted_count)
        return result.deleted_count

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_all(self) -> list[dict]:
        with storage_errors("list_all", *_DB_ERRORS):
            documents = await self._collection.find({}).to_list(length=None)
        return [self._to_dict(doc) for doc in documents]

    async def get_stats(self) -> LedgerStats:
        with storage_errors("get_stats", *_DB_ERRORS):
            total = await self._collection.count_documents({})
            logged_in = await self._collection.count_documents({"has_logged_in": True})
            not_logged_in = await self._collection.count_documents({"has_logged_in": {"$ne": True}})

        return LedgerStats(
            total_entered=total,
            total_logged_in=logged_in,
            total_not_logged_in=not_logged_in,
        )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    @staticmethod
    def _to_dict(doc: dict) -> dict:
        return {
            "id": str(doc["_id"]),
            "identifier": doc["identifier"],
            "entry_count": doc.get("entry_count", 1),
            "has_logged_in": bool(doc.get("has_logged_in", False)),
            "created_at": as_utc(doc.get("created_at")),
            "updated_at": as_utc(doc.get("updated_at")),
        }

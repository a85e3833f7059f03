"""Tests for the ledger adapters. Tests using the `ledger` fixture run against SQL and Mongo."""

import asyncio
from datetime import timedelta

import pytest
from pymongo.errors import DuplicateKeyError
from pymongo.results import UpdateResult

from visitor_ledger.models.database import VisitorRecord
from visitor_ledger.models.enums import EntryOutcome
from visitor_ledger.services.ledger import LedgerStats, VisitorLedger
from visitor_ledger.services.mongo_ledger import MongoVisitorLedger


def _assert_consistent(stats: LedgerStats) -> None:
    assert stats.total_logged_in + stats.total_not_logged_in == stats.total_entered


# --- record_entry ---


@pytest.mark.asyncio
async def test_entry_creates_single_record(ledger: VisitorLedger):
    """A new identifier should produce exactly one not-logged-in record."""
    outcome = await ledger.record_entry("10.0.0.1")
    assert outcome is EntryOutcome.CREATED

    rows = await ledger.list_all()
    assert len(rows) == 1
    assert rows[0]["identifier"] == "10.0.0.1"
    assert rows[0]["has_logged_in"] is False
    assert rows[0]["entry_count"] == 1


@pytest.mark.asyncio
async def test_entry_is_idempotent(ledger: VisitorLedger):
    """Recording the same identifier twice should keep one record."""
    first = await ledger.record_entry("10.0.0.1")
    second = await ledger.record_entry("10.0.0.1")

    assert first is EntryOutcome.CREATED
    assert second is EntryOutcome.EXISTED
    rows = await ledger.list_all()
    assert [r["identifier"] for r in rows] == ["10.0.0.1"]


@pytest.mark.asyncio
async def test_entry_does_not_increment_entry_count(ledger: VisitorLedger):
    for _ in range(3):
        await ledger.record_entry("10.0.0.1")

    rows = await ledger.list_all()
    assert rows[0]["entry_count"] == 1


@pytest.mark.asyncio
async def test_entry_does_not_reset_login(ledger: VisitorLedger):
    """Opening the site after logging in must not flip the flag back."""
    await ledger.record_login("10.0.0.1")
    outcome = await ledger.record_entry("10.0.0.1")

    assert outcome is EntryOutcome.EXISTED
    rows = await ledger.list_all()
    assert rows[0]["has_logged_in"] is True


# --- record_login ---


@pytest.mark.asyncio
async def test_login_on_absent_identifier_creates_logged_in_record(ledger: VisitorLedger):
    outcome = await ledger.record_login("10.0.0.2")
    assert outcome is EntryOutcome.CREATED

    rows = await ledger.list_all()
    assert len(rows) == 1
    assert rows[0]["identifier"] == "10.0.0.2"
    assert rows[0]["has_logged_in"] is True


@pytest.mark.asyncio
async def test_login_marks_existing_record(ledger: VisitorLedger):
    await ledger.record_entry("10.0.0.3")
    outcome = await ledger.record_login("10.0.0.3")

    assert outcome is EntryOutcome.EXISTED
    rows = await ledger.list_all()
    assert len(rows) == 1
    assert rows[0]["has_logged_in"] is True


@pytest.mark.asyncio
async def test_login_is_idempotent(ledger: VisitorLedger):
    """Logging in twice should leave the same state as logging in once."""
    await ledger.record_login("10.0.0.4")
    once = await ledger.list_all()
    await ledger.record_login("10.0.0.4")
    twice = await ledger.list_all()

    assert len(twice) == 1
    assert once[0]["identifier"] == twice[0]["identifier"]
    assert once[0]["has_logged_in"] is twice[0]["has_logged_in"] is True
    assert once[0]["entry_count"] == twice[0]["entry_count"] == 1


# --- stats / clear ---


@pytest.mark.asyncio
async def test_stats_empty_ledger(ledger: VisitorLedger):
    assert await ledger.get_stats() == LedgerStats(0, 0, 0)


@pytest.mark.asyncio
async def test_stats_counts_stay_consistent(ledger: VisitorLedger):
    """logged in + not logged in must equal the total after any sequence."""
    await ledger.record_entry("a")
    _assert_consistent(await ledger.get_stats())

    await ledger.record_entry("b")
    await ledger.record_login("b")
    await ledger.record_login("c")
    await ledger.record_entry("c")
    await ledger.record_entry("d")

    stats = await ledger.get_stats()
    _assert_consistent(stats)
    assert stats == LedgerStats(total_entered=4, total_logged_in=2, total_not_logged_in=2)


@pytest.mark.asyncio
async def test_clear_all(ledger: VisitorLedger):
    await ledger.record_entry("a")
    await ledger.record_login("b")

    removed = await ledger.clear_all()

    assert removed == 2
    assert await ledger.list_all() == []
    assert await ledger.get_stats() == LedgerStats(0, 0, 0)


@pytest.mark.asyncio
async def test_identifier_reusable_after_clear(ledger: VisitorLedger):
    await ledger.record_login("a")
    await ledger.clear_all()

    assert await ledger.record_entry("a") is EntryOutcome.CREATED
    rows = await ledger.list_all()
    assert rows[0]["has_logged_in"] is False


@pytest.mark.asyncio
async def test_entry_then_login_scenario(ledger: VisitorLedger):
    await ledger.record_entry("1.2.3.4")
    rows = await ledger.list_all()
    assert [(r["identifier"], r["has_logged_in"]) for r in rows] == [("1.2.3.4", False)]

    await ledger.record_login("1.2.3.4")
    rows = await ledger.list_all()
    assert [(r["identifier"], r["has_logged_in"]) for r in rows] == [("1.2.3.4", True)]

    assert await ledger.get_stats() == LedgerStats(1, 1, 0)


@pytest.mark.asyncio
async def test_records_carry_timestamps(ledger: VisitorLedger):
    await ledger.record_entry("a")
    rows = await ledger.list_all()
    assert rows[0]["created_at"] is not None
    assert rows[0]["updated_at"] is not None
    assert rows[0]["id"]


# --- Concurrent writers ---


@pytest.mark.asyncio
async def test_concurrent_entries_create_one_record(ledger: VisitorLedger):
    """Racing first visits for one identifier should leave one record and one CREATED."""
    outcomes = await asyncio.gather(*(ledger.record_entry("10.1.1.1") for _ in range(10)))

    assert outcomes.count(EntryOutcome.CREATED) == 1
    assert outcomes.count(EntryOutcome.EXISTED) == 9
    rows = await ledger.list_all()
    assert [r["identifier"] for r in rows] == ["10.1.1.1"]


@pytest.mark.asyncio
async def test_concurrent_logins_create_one_record(ledger: VisitorLedger):
    """Racing logins for a new identifier should report CREATED exactly once."""
    outcomes = await asyncio.gather(*(ledger.record_login("10.1.1.2") for _ in range(10)))

    assert outcomes.count(EntryOutcome.CREATED) == 1
    rows = await ledger.list_all()
    assert len(rows) == 1
    assert rows[0]["has_logged_in"] is True


@pytest.mark.asyncio
async def test_concurrent_entry_and_login_mix(ledger: VisitorLedger):
    calls = [ledger.record_entry("10.1.1.3") for _ in range(5)]
    calls += [ledger.record_login("10.1.1.3") for _ in range(5)]
    outcomes = await asyncio.gather(*calls)

    assert outcomes.count(EntryOutcome.CREATED) == 1
    rows = await ledger.list_all()
    assert len(rows) == 1
    assert rows[0]["has_logged_in"] is True
    stats = await ledger.get_stats()
    assert stats == LedgerStats(1, 1, 0)


# --- Timestamps ---


@pytest.mark.asyncio
async def test_timestamps_are_utc_aware(ledger: VisitorLedger):
    await ledger.record_login("a")
    row = (await ledger.list_all())[0]

    for field in ("created_at", "updated_at"):
        assert row[field].tzinfo is not None
        assert row[field].utcoffset() == timedelta(0)


def test_sql_timestamp_columns_store_timezone():
    columns = VisitorRecord.__table__.c
    assert columns.created_at.type.timezone is True
    assert columns.updated_at.type.timezone is True


# --- Mongo duplicate-key race ---


class RacingCollection:
    """Collection whose upserts always lose the insert race to another writer."""

    def __init__(self) -> None:
        self.calls: list[tuple[dict, dict, bool]] = []

    async def update_one(self, query, update, upsert=False):
        self.calls.append((query, update, upsert))
        if upsert:
            raise DuplicateKeyError("E11000 duplicate key error")
        return UpdateResult({"n": 1, "nModified": 1}, acknowledged=True)


@pytest.mark.asyncio
async def test_mongo_entry_duplicate_key_reports_existed():
    collection = RacingCollection()
    ledger = MongoVisitorLedger(collection)

    assert await ledger.record_entry("10.2.2.2") is EntryOutcome.EXISTED
    assert len(collection.calls) == 1


@pytest.mark.asyncio
async def test_mongo_login_duplicate_key_updates_existing_document():
    collection = RacingCollection()
    ledger = MongoVisitorLedger(collection)

    assert await ledger.record_login("10.2.2.2") is EntryOutcome.EXISTED

    assert len(collection.calls) == 2
    query, update, upsert = collection.calls[1]
    assert query == {"identifier": "10.2.2.2"}
    assert upsert is False
    assert update["$set"]["has_logged_in"] is True
    assert "$setOnInsert" not in update

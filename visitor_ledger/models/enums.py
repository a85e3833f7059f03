"""
Enum definitions for the application.
"""

from enum import Enum


class LedgerBackend(str, Enum):
    """Storage engine behind the visitor ledger."""
    SQL = "sql"
    MONGO = "mongo"


class EntryOutcome(str, Enum):
    """Result of an upsert against the ledger. Both values are successes."""
    CREATED = "inserted"
    EXISTED = "exists"

"""SQLite storage implementations."""

from stockledger.infrastructure.storage.sqlite.connection import (
    ConnectionPool,
    close_pool,
    get_pool,
)
from stockledger.infrastructure.storage.sqlite.ledger_store import (
    SQLiteLedgerSession,
    SQLiteLedgerStore,
)

# Singleton instance
_ledger_store: SQLiteLedgerStore | None = None


async def get_ledger_store() -> SQLiteLedgerStore:
    """Get singleton ledger store instance."""
    global _ledger_store
    if _ledger_store is None:
        _ledger_store = SQLiteLedgerStore(pool=await get_pool())
    return _ledger_store


def reset_ledger_store() -> None:
    """Drop the singleton (for testing and shutdown)."""
    global _ledger_store
    _ledger_store = None


__all__ = [
    # Connection
    "ConnectionPool",
    "get_pool",
    "close_pool",
    # Stores
    "SQLiteLedgerSession",
    "SQLiteLedgerStore",
    "get_ledger_store",
    "reset_ledger_store",
]

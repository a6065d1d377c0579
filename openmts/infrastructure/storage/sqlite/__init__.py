"""SQLite storage implementations."""

from openmts.infrastructure.storage.sqlite.batch_store import SQLiteMaterialBatchStore
from openmts.infrastructure.storage.sqlite.connection import (
    ConnectionPool,
    close_pool,
    get_connection,
    get_pool,
    get_transaction,
)
from openmts.infrastructure.storage.sqlite.transaction_log_store import (
    SQLiteTransactionLogStore,
)

# Singleton instances
_batch_store: SQLiteMaterialBatchStore | None = None
_transaction_log_store: SQLiteTransactionLogStore | None = None


async def get_batch_store() -> SQLiteMaterialBatchStore:
    """Get singleton material batch store instance."""
    global _batch_store
    if _batch_store is None:
        _batch_store = SQLiteMaterialBatchStore()
    return _batch_store


async def get_transaction_log_store() -> SQLiteTransactionLogStore:
    """Get singleton transaction log store instance."""
    global _transaction_log_store
    if _transaction_log_store is None:
        _transaction_log_store = SQLiteTransactionLogStore()
    return _transaction_log_store


__all__ = [
    # Connection
    "ConnectionPool",
    "get_pool",
    "close_pool",
    "get_connection",
    "get_transaction",
    # Store classes
    "SQLiteMaterialBatchStore",
    "SQLiteTransactionLogStore",
    # Factory functions
    "get_batch_store",
    "get_transaction_log_store",
]

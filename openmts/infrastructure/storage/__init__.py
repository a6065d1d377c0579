"""Storage infrastructure implementations."""

from openmts.infrastructure.storage.memory import (
    MemoryMaterialBatchStore,
    MemoryTransactionLogStore,
)
from openmts.infrastructure.storage.sqlite import (
    SQLiteMaterialBatchStore,
    SQLiteTransactionLogStore,
    close_pool,
    get_connection,
    get_pool,
    get_transaction,
)

__all__ = [
    # SQLite stores
    "SQLiteMaterialBatchStore",
    "SQLiteTransactionLogStore",
    # Memory stores
    "MemoryMaterialBatchStore",
    "MemoryTransactionLogStore",
    # Connection pool
    "get_pool",
    "close_pool",
    "get_connection",
    "get_transaction",
]

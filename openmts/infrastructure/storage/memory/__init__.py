"""In-memory storage implementations."""

from openmts.infrastructure.storage.memory.batch_store import MemoryMaterialBatchStore
from openmts.infrastructure.storage.memory.transaction_log_store import (
    MemoryTransactionLogStore,
)

__all__ = [
    "MemoryMaterialBatchStore",
    "MemoryTransactionLogStore",
]

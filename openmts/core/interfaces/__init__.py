"""Core interfaces (ports) for dependency injection."""

from openmts.core.interfaces.batch_store import IMaterialBatchStore
from openmts.core.interfaces.transaction_log import ITransactionLogStore

__all__ = [
    "IMaterialBatchStore",
    "ITransactionLogStore",
]

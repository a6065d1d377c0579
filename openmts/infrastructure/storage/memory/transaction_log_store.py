"""In-memory implementation of the transaction log."""

import asyncio
from collections import defaultdict

from openmts.config import get_logger
from openmts.core.entities.transaction import Transaction
from openmts.core.exceptions import StaleAmendmentError, TransactionNotFoundError
from openmts.core.interfaces.transaction_log import ITransactionLogStore

logger = get_logger(__name__)


class MemoryTransactionLogStore(ITransactionLogStore):
    """Transaction log keyed by batch ID, held as lists in insertion order."""

    def __init__(self) -> None:
        self._logs: defaultdict[str, list[Transaction]] = defaultdict(list)
        self._lock = asyncio.Lock()

    async def append(self, transaction: Transaction) -> Transaction:
        async with self._lock:
            self._logs[transaction.batch_id].append(transaction.model_copy())
        logger.info(
            "transaction_logged",
            transaction_id=transaction.id,
            batch_id=transaction.batch_id,
            quantity=transaction.quantity,
        )
        return transaction

    async def get_all(self, batch_id: str) -> list[Transaction]:
        async with self._lock:
            return [t.model_copy() for t in self._logs.get(batch_id, [])]

    async def get_last(self, batch_id: str) -> Transaction:
        async with self._lock:
            entries = self._logs.get(batch_id)
            if not entries:
                raise TransactionNotFoundError(batch_id)
            return entries[-1].model_copy()

    async def amend_last(
        self, batch_id: str, expected_transaction_id: str, new_quantity: float
    ) -> Transaction:
        async with self._lock:
            entries = self._logs.get(batch_id)
            if not entries:
                raise TransactionNotFoundError(batch_id, expected_transaction_id)
            last = entries[-1]
            if last.id != expected_transaction_id:
                raise StaleAmendmentError(batch_id, expected_transaction_id, last.id)
            amended = last.model_copy(update={"quantity": new_quantity})
            entries[-1] = amended
        logger.info(
            "transaction_amended",
            transaction_id=amended.id,
            batch_id=batch_id,
            quantity=new_quantity,
        )
        return amended.model_copy()

"""SQLite implementation of the transaction log."""

from datetime import datetime

import aiosqlite

from openmts.config import get_logger
from openmts.core.entities.transaction import Transaction
from openmts.core.exceptions import StaleAmendmentError, TransactionNotFoundError
from openmts.core.interfaces.transaction_log import ITransactionLogStore
from openmts.infrastructure.storage.sqlite.connection import get_connection, get_transaction

logger = get_logger(__name__)

_SELECT_LAST = """
    SELECT * FROM batch_transactions
    WHERE batch_id = ?
    ORDER BY seq DESC
    LIMIT 1
"""


class SQLiteTransactionLogStore(ITransactionLogStore):
    """Transaction log stored in ``batch_transactions``, ordered by ``seq``."""

    async def append(self, transaction: Transaction) -> Transaction:
        """Record a transaction at the end of its batch's log."""
        async with get_transaction() as conn:
            await conn.execute(
                """
                INSERT INTO batch_transactions (id, batch_id, quantity, user_id, timestamp)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    transaction.id,
                    transaction.batch_id,
                    transaction.quantity,
                    transaction.user_id,
                    transaction.timestamp.isoformat(),
                ),
            )
        logger.info(
            "transaction_logged",
            transaction_id=transaction.id,
            batch_id=transaction.batch_id,
            quantity=transaction.quantity,
        )
        return transaction

    async def get_all(self, batch_id: str) -> list[Transaction]:
        """Get the full log of a batch, oldest first."""
        async with get_connection() as conn:
            cursor = await conn.execute(
                "SELECT * FROM batch_transactions WHERE batch_id = ? ORDER BY seq",
                (batch_id,),
            )
            rows = await cursor.fetchall()
            return [self._row_to_transaction(row) for row in rows]

    async def get_last(self, batch_id: str) -> Transaction:
        """Get the most recent entry of a batch's log."""
        async with get_connection() as conn:
            cursor = await conn.execute(_SELECT_LAST, (batch_id,))
            row = await cursor.fetchone()
            if row is None:
                raise TransactionNotFoundError(batch_id)
            return self._row_to_transaction(row)

    async def amend_last(
        self, batch_id: str, expected_transaction_id: str, new_quantity: float
    ) -> Transaction:
        """
        Amend the tip of a batch's log.

        The tip check is part of the UPDATE itself, so an append racing with
        the amendment makes the UPDATE match nothing instead of rewriting an
        older entry.
        """
        async with get_transaction() as conn:
            cursor = await conn.execute(
                """
                UPDATE batch_transactions SET quantity = ?
                WHERE id = ? AND batch_id = ?
                  AND seq = (SELECT MAX(seq) FROM batch_transactions WHERE batch_id = ?)
                """,
                (new_quantity, expected_transaction_id, batch_id, batch_id),
            )
            cursor = await conn.execute(_SELECT_LAST, (batch_id,))
            row = await cursor.fetchone()
            if row is None:
                raise TransactionNotFoundError(batch_id, expected_transaction_id)
            last = self._row_to_transaction(row)
            if last.id != expected_transaction_id:
                raise StaleAmendmentError(batch_id, expected_transaction_id, last.id)
        logger.info(
            "transaction_amended",
            transaction_id=last.id,
            batch_id=batch_id,
            quantity=last.quantity,
        )
        return last

    @staticmethod
    def _row_to_transaction(row: aiosqlite.Row) -> Transaction:
        """Convert a database row to a Transaction entity."""
        return Transaction(
            id=row["id"],
            batch_id=row["batch_id"],
            quantity=float(row["quantity"]),
            user_id=row["user_id"],
            timestamp=datetime.fromisoformat(row["timestamp"]),
        )

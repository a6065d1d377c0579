"""Abstract interface for the per-batch transaction log."""

from abc import ABC, abstractmethod

from openmts.core.entities.transaction import Transaction


class ITransactionLogStore(ABC):
    """
    Append-only, per-batch history of quantity movements.

    The single exception to append-only is ``amend_last``, which rewrites the
    quantity of the most recent entry of a batch.
    """

    @abstractmethod
    async def append(self, transaction: Transaction) -> Transaction:
        """Append a transaction to its batch's log."""
        pass

    @abstractmethod
    async def get_all(self, batch_id: str) -> list[Transaction]:
        """Get the full log of a batch, oldest first."""
        pass

    @abstractmethod
    async def get_last(self, batch_id: str) -> Transaction:
        """
        Get the most recent entry of a batch's log.

        Raises:
            TransactionNotFoundError: If the batch has no log entries.
        """
        pass

    @abstractmethod
    async def amend_last(
        self, batch_id: str, expected_transaction_id: str, new_quantity: float
    ) -> Transaction:
        """
        Set the quantity of the most recent entry, if it is still the expected one.

        The tip check and the write must be atomic with respect to appends.

        Raises:
            TransactionNotFoundError: If the batch has no log entries.
            StaleAmendmentError: If the current last entry is a different transaction.
        """
        pass

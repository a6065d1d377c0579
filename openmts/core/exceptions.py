"""
Domain exceptions for the OpenMTS inventory core.

Every error carries a stable ``code`` and a ``details`` mapping so callers
can translate failures (for example into HTTP responses) without parsing
messages.
"""

from typing import Any


class InventoryError(Exception):
    """Base exception for all inventory errors."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


# Not found
class NotFoundError(InventoryError):
    """A batch or transaction ID does not resolve."""

    pass


class BatchNotFoundError(NotFoundError):
    """Material batch not found."""

    def __init__(self, batch_id: str):
        super().__init__(
            f"Material batch not found: {batch_id}",
            code="BATCH_NOT_FOUND",
            details={"batch_id": batch_id},
        )


class TransactionNotFoundError(NotFoundError):
    """No transaction recorded for a batch."""

    def __init__(self, batch_id: str, transaction_id: str | None = None):
        target = transaction_id or "last entry"
        super().__init__(
            f"Transaction not found for batch {batch_id}: {target}",
            code="TRANSACTION_NOT_FOUND",
            details={"batch_id": batch_id, "transaction_id": transaction_id},
        )


# Invalid arguments
class InvalidArgumentError(InventoryError):
    """Input rejected by a business rule; the caller must correct it."""

    pass


class NegativeQuantityError(InvalidArgumentError):
    """Resulting batch quantity would drop below zero."""

    def __init__(self, batch_id: str | None, current: float, delta: float):
        super().__init__(
            "The quantity of a batch cannot be less than 0. "
            f"Cannot apply {delta} to a batch holding {current}.",
            code="NEGATIVE_QUANTITY",
            details={"batch_id": batch_id, "current": current, "delta": delta},
        )


class InvalidExpirationDateError(InvalidArgumentError):
    """Expiration date is not after the batch's original check-in date."""

    def __init__(self, batch_id: str, expiration_date: Any, check_in_date: Any):
        super().__init__(
            "The expiration date cannot be set prior to the original "
            f"check-in date of the material batch ({check_in_date}).",
            code="INVALID_EXPIRATION_DATE",
            details={
                "batch_id": batch_id,
                "expiration_date": str(expiration_date),
                "check_in_date": str(check_in_date),
            },
        )


# Forbidden
class ForbiddenError(InventoryError):
    """Operation not permitted by batch state or authorship rules."""

    pass


class BatchLockedError(ForbiddenError):
    """Transaction attempted on a locked batch."""

    def __init__(self, batch_id: str):
        super().__init__(
            f"Material batch is locked: {batch_id}",
            code="BATCH_LOCKED",
            details={"batch_id": batch_id},
        )


class NotTransactionAuthorError(ForbiddenError):
    """Amendment attempted by someone other than the entry's author."""

    def __init__(self, transaction_id: str, user_id: str):
        super().__init__(
            "The last transaction was performed by a different user.",
            code="NOT_TRANSACTION_AUTHOR",
            details={"transaction_id": transaction_id, "user_id": user_id},
        )


# Amendment
class StaleAmendmentError(InventoryError):
    """Amendment target is no longer the most recent log entry."""

    def __init__(self, batch_id: str, transaction_id: str, last_transaction_id: str | None):
        super().__init__(
            f"Transaction {transaction_id} is not the last log entry of batch {batch_id}",
            code="STALE_AMENDMENT",
            details={
                "batch_id": batch_id,
                "transaction_id": transaction_id,
                "last_transaction_id": last_transaction_id,
            },
        )


# Consistency
class InconsistentStateError(InventoryError):
    """
    Batch record and transaction log disagree after a partial write.

    Raised when the first of the two writes of an operation succeeded and
    the second failed. ``details["completed"]`` names the write that landed
    so an operator can reconcile the batch.
    """

    def __init__(self, batch_id: str, operation: str, completed: str, error: str):
        super().__init__(
            f"Batch {batch_id} left inconsistent by {operation}: "
            f"{completed} succeeded but the follow-up write failed ({error})",
            code="INCONSISTENT_STATE",
            details={
                "batch_id": batch_id,
                "operation": operation,
                "completed": completed,
                "error": error,
            },
        )


class OperationTimeoutError(InventoryError):
    """Deadline expired before the operation could take its batch lock."""

    def __init__(self, batch_id: str, operation: str, timeout: float):
        super().__init__(
            f"{operation} on batch {batch_id} timed out after {timeout} seconds",
            code="OPERATION_TIMEOUT",
            details={"batch_id": batch_id, "operation": operation, "timeout": timeout},
        )


# Storage Exceptions
class StorageError(InventoryError):
    """Base exception for storage operations."""

    pass


class DatabaseError(StorageError):
    """Database operation failed."""

    def __init__(self, operation: str, error: str):
        super().__init__(
            f"Database error during {operation}: {error}",
            code="DATABASE_ERROR",
            details={"operation": operation, "error": error},
        )

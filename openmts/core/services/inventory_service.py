"""
Inventory service.

Keeps every material batch in agreement with its transaction log: the batch
quantity always equals the rounded running sum of the log, locked batches
take no transactions, and a batch that runs empty is archived for good.

Pure service - no infrastructure imports; both stores are injected via the
constructor. Writes touching the same batch are serialised through a
``BatchLockRegistry``.

Every write that changes both stores goes log first, batch second. If the
second write fails an ``InconsistentStateError`` is raised and the batch
record lags behind the log, which ``check_consistency`` detects and
``reconcile_batch`` repairs on request.
"""

import asyncio
from collections.abc import AsyncIterator, Awaitable
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass
from datetime import UTC, datetime, time
from typing import TypeVar

import structlog

from openmts.config import get_logger
from openmts.core.entities.batch import MaterialBatch, StorageLocation
from openmts.core.entities.transaction import Transaction
from openmts.core.exceptions import (
    BatchLockedError,
    BatchNotFoundError,
    InconsistentStateError,
    InventoryError,
    InvalidExpirationDateError,
    NegativeQuantityError,
    NotTransactionAuthorError,
    OperationTimeoutError,
    StaleAmendmentError,
    TransactionNotFoundError,
)
from openmts.core.interfaces.batch_store import IMaterialBatchStore
from openmts.core.interfaces.transaction_log import ITransactionLogStore
from openmts.core.services.batch_locks import BatchLockRegistry
from openmts.core.services.quantity import round_quantity, sum_quantities

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class ConsistencyReport:
    """Comparison of a batch's stored quantity with the sum of its log."""

    batch_id: str
    batch_quantity: float
    log_quantity: float
    entries: int

    @property
    def is_consistent(self) -> bool:
        return self.batch_quantity == self.log_quantity

    @property
    def difference(self) -> float:
        return round_quantity(self.log_quantity - self.batch_quantity)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class InventoryService:
    """
    Service for querying and managing the inventory.

    Access control happens before this service is called; ``user_id`` is an
    already authenticated, opaque actor identifier.
    """

    def __init__(
        self,
        batch_store: IMaterialBatchStore,
        transaction_log: ITransactionLogStore,
        *,
        lock_registry: BatchLockRegistry | None = None,
        lock_timeout: float | None = None,
        amend_enforces_non_negative: bool = False,
    ):
        self._batch_store = batch_store
        self._transaction_log = transaction_log
        self._locks = lock_registry or BatchLockRegistry()
        self._lock_timeout = lock_timeout
        self._amend_enforces_non_negative = amend_enforces_non_negative

    # Batches

    async def get_batches(
        self, material_id: int | None = None, site_id: str | None = None
    ) -> list[MaterialBatch]:
        """Get material batches, optionally filtered by material and storage site."""
        return await self._batch_store.get_filtered(material_id=material_id, site_id=site_id)

    async def get_batch(self, batch_id: str) -> MaterialBatch:
        """Get a material batch by its ID."""
        async with self._operation(batch_id, "get_batch"):
            return await self._require_batch(batch_id)

    async def create_batch(
        self,
        material_id: int,
        expiration_date: datetime,
        storage_location: StorageLocation,
        batch_number: int,
        quantity: float,
        custom_props: dict[str, str] | None,
        is_locked: bool,
        user_id: str,
        *,
        material_name: str | None = None,
    ) -> MaterialBatch:
        """
        Create a new material batch and log its initial check-in.

        Raises:
            NegativeQuantityError: If the starting quantity is below zero.
            InconsistentStateError: If the batch was stored but the initial
                transaction could not be logged.
        """
        quantity = round_quantity(quantity)
        if quantity < 0:
            raise NegativeQuantityError(None, 0.0, quantity)

        now = datetime.now(UTC)
        batch = MaterialBatch(
            material_id=material_id,
            material_name=material_name,
            storage_location=storage_location,
            batch_number=batch_number,
            expiration_date=expiration_date,
            quantity=quantity,
            custom_props=dict(custom_props or {}),
            is_locked=is_locked,
            created_at=now,
            updated_at=now,
        )

        async def commit() -> MaterialBatch:
            created = await self._batch_store.create(batch)
            initial = Transaction(
                batch_id=created.id,  # type: ignore[arg-type]
                quantity=quantity,
                user_id=user_id,
                timestamp=now,
            )
            try:
                await self._transaction_log.append(initial)
            except Exception as e:
                logger.error(
                    "batch_left_inconsistent",
                    batch_id=created.id,
                    operation="create_batch",
                    error=str(e),
                )
                raise InconsistentStateError(
                    created.id, "create_batch", "batch_create", str(e)  # type: ignore[arg-type]
                ) from e
            return created

        created = await self._commit(commit())
        logger.info(
            "batch_created",
            batch_id=created.id,
            material_id=material_id,
            quantity=quantity,
            user_id=user_id,
        )
        return created

    async def update_batch(
        self,
        batch_id: str,
        material_id: int,
        expiration_date: datetime,
        storage_location: StorageLocation,
        batch_number: int,
        custom_props: dict[str, str] | None,
        *,
        material_name: str | None = None,
        timeout: float | None = None,
    ) -> MaterialBatch:
        """
        Update the descriptive fields of a batch.

        Quantity, lock and archive state are left untouched.

        Raises:
            BatchNotFoundError: If no matching batch exists.
            InvalidExpirationDateError: If the expiration date is not after
                the date of the batch's original check-in.
        """
        async with self._operation(batch_id, "update_batch", lock=True, timeout=timeout):
            batch = await self._require_batch(batch_id)

            log = await self._transaction_log.get_all(batch_id)
            if not log:
                raise TransactionNotFoundError(batch_id)
            check_in_date = _as_utc(log[0].timestamp).date()
            expiration_date = _as_utc(expiration_date)
            if expiration_date <= datetime.combine(check_in_date, time.min, tzinfo=UTC):
                raise InvalidExpirationDateError(batch_id, expiration_date, check_in_date)

            updated = batch.model_copy(
                update={
                    "material_id": material_id,
                    "material_name": material_name,
                    "expiration_date": expiration_date,
                    "storage_location": storage_location,
                    "batch_number": batch_number,
                    "custom_props": dict(custom_props or {}),
                    "updated_at": datetime.now(UTC),
                }
            )
            updated = await self._commit(self._batch_store.update(updated))
            logger.info("batch_updated", batch_id=batch_id)
            return updated

    async def update_batch_status(
        self, batch_id: str, is_locked: bool, *, timeout: float | None = None
    ) -> None:
        """Lock or unlock a batch. Not a quantity event, so nothing is logged."""
        async with self._operation(batch_id, "update_batch_status", lock=True, timeout=timeout):
            batch = await self._require_batch(batch_id)
            updated = batch.model_copy(
                update={"is_locked": is_locked, "updated_at": datetime.now(UTC)}
            )
            await self._commit(self._batch_store.update(updated))
            logger.info("batch_status_updated", batch_id=batch_id, is_locked=is_locked)

    # Transactions & log

    async def get_transaction_log(self, batch_id: str) -> list[Transaction]:
        """Get the full transaction log of a batch, oldest first."""
        async with self._operation(batch_id, "get_transaction_log"):
            await self._require_batch(batch_id)
            return await self._transaction_log.get_all(batch_id)

    async def get_last_transaction(self, batch_id: str) -> Transaction:
        """Get the most recent transaction of a batch."""
        async with self._operation(batch_id, "get_last_transaction"):
            await self._require_batch(batch_id)
            return await self._transaction_log.get_last(batch_id)

    async def perform_transaction(
        self,
        batch_id: str,
        quantity: float,
        user_id: str,
        *,
        timeout: float | None = None,
    ) -> Transaction:
        """
        Check material in (positive quantity) or out (negative quantity).

        Raises:
            BatchNotFoundError: If no matching batch exists.
            BatchLockedError: If the batch is locked.
            NegativeQuantityError: If more would be checked out than is in stock.
            InconsistentStateError: If the transaction was logged but the
                batch could not be persisted.
        """
        async with self._operation(batch_id, "perform_transaction", lock=True, timeout=timeout):
            batch = await self._require_batch(batch_id)
            if batch.is_locked:
                raise BatchLockedError(batch_id)

            delta = round_quantity(quantity)
            new_quantity = round_quantity(batch.quantity + delta)
            if new_quantity < 0:
                raise NegativeQuantityError(batch_id, batch.quantity, delta)

            now = datetime.now(UTC)
            transaction = Transaction(
                batch_id=batch_id,
                quantity=delta,
                user_id=user_id,
                timestamp=now,
            )
            updated = batch.model_copy(
                update={
                    "quantity": new_quantity,
                    "is_archived": batch.is_archived or new_quantity == 0,
                    "updated_at": now,
                }
            )

            async def commit() -> Transaction:
                logged = await self._transaction_log.append(transaction)
                await self._persist_after_log(updated, "perform_transaction", "log_append")
                return logged

            logged = await self._commit(commit())
            logger.info(
                "transaction_performed",
                transaction_id=logged.id,
                kind="check_out" if logged.is_check_out else "check_in",
                quantity=delta,
                new_quantity=new_quantity,
                archived=updated.is_archived,
                user_id=user_id,
            )
            return logged

    async def amend_last_transaction(
        self,
        batch_id: str,
        transaction_id: str,
        quantity: float,
        user_id: str,
        *,
        timeout: float | None = None,
    ) -> Transaction:
        """
        Correct the quantity of a batch's most recent transaction.

        Only the tip of the log can be amended, and only by the user who
        performed it. The batch quantity is recomputed by replacing the old
        delta with the new one. The result is not checked against zero
        unless the service was built with ``amend_enforces_non_negative``.

        Raises:
            BatchNotFoundError: If no matching batch exists.
            StaleAmendmentError: If ``transaction_id`` is not the last log entry.
            NotTransactionAuthorError: If the last entry was made by another user.
            NegativeQuantityError: If the amended batch quantity would be
                negative and non-negative amendments are enforced.
            InconsistentStateError: If the log entry was amended but the batch
                could not be persisted.
        """
        async with self._operation(batch_id, "amend_last_transaction", lock=True, timeout=timeout):
            batch = await self._require_batch(batch_id)

            last = await self._transaction_log.get_last(batch_id)
            if last.id != transaction_id:
                raise StaleAmendmentError(batch_id, transaction_id, last.id)
            if last.user_id != user_id:
                raise NotTransactionAuthorError(transaction_id, user_id)

            new_delta = round_quantity(quantity)
            new_quantity = round_quantity(batch.quantity - last.quantity + new_delta)
            if self._amend_enforces_non_negative and new_quantity < 0:
                raise NegativeQuantityError(
                    batch_id, batch.quantity, round_quantity(new_delta - last.quantity)
                )

            updated = batch.model_copy(
                update={
                    "quantity": new_quantity,
                    "is_archived": batch.is_archived or new_quantity == 0,
                    "updated_at": datetime.now(UTC),
                }
            )

            async def commit() -> Transaction:
                amended = await self._transaction_log.amend_last(
                    batch_id, transaction_id, new_delta
                )
                await self._persist_after_log(updated, "amend_last_transaction", "log_amend")
                return amended

            amended = await self._commit(commit())
            logger.info(
                "transaction_amended",
                transaction_id=transaction_id,
                old_quantity=last.quantity,
                new_quantity=new_delta,
                batch_quantity=new_quantity,
                user_id=user_id,
            )
            return amended

    # Consistency

    async def check_consistency(self, batch_id: str) -> ConsistencyReport:
        """Compare a batch's quantity with the rounded sum of its transaction log."""
        async with self._operation(batch_id, "check_consistency"):
            batch = await self._require_batch(batch_id)
            return await self._build_report(batch)

    async def reconcile_batch(
        self, batch_id: str, *, timeout: float | None = None
    ) -> ConsistencyReport:
        """
        Reset a batch's quantity to the sum of its transaction log.

        For operators recovering from an ``InconsistentStateError``. The log
        is treated as the record of truth; a batch that is already consistent
        is left alone.
        """
        async with self._operation(batch_id, "reconcile_batch", lock=True, timeout=timeout):
            batch = await self._require_batch(batch_id)
            report = await self._build_report(batch)
            if report.is_consistent:
                return report

            logger.warning(
                "batch_reconciled",
                batch_quantity=report.batch_quantity,
                log_quantity=report.log_quantity,
            )
            updated = batch.model_copy(
                update={
                    "quantity": report.log_quantity,
                    "is_archived": batch.is_archived or report.log_quantity == 0,
                    "updated_at": datetime.now(UTC),
                }
            )
            await self._commit(self._batch_store.update(updated))
            return ConsistencyReport(
                batch_id=batch_id,
                batch_quantity=report.log_quantity,
                log_quantity=report.log_quantity,
                entries=report.entries,
            )

    # Private helpers

    async def _require_batch(self, batch_id: str) -> MaterialBatch:
        batch = await self._batch_store.get(batch_id)
        if batch is None:
            raise BatchNotFoundError(batch_id)
        return batch

    async def _build_report(self, batch: MaterialBatch) -> ConsistencyReport:
        log = await self._transaction_log.get_all(batch.id)  # type: ignore[arg-type]
        return ConsistencyReport(
            batch_id=batch.id,  # type: ignore[arg-type]
            batch_quantity=batch.quantity,
            log_quantity=sum_quantities(t.quantity for t in log),
            entries=len(log),
        )

    async def _persist_after_log(
        self, batch: MaterialBatch, operation: str, completed: str
    ) -> None:
        """Persist a batch whose log write already landed."""
        try:
            await self._batch_store.update(batch)
        except Exception as e:
            logger.error("batch_left_inconsistent", completed=completed, error=str(e))
            raise InconsistentStateError(
                batch.id, operation, completed, str(e)  # type: ignore[arg-type]
            ) from e

    async def _commit(self, writes: Awaitable[T]) -> T:
        """
        Run the write phase of an operation to completion.

        If the caller is cancelled mid-write the writes still finish before
        the cancellation propagates, so a cancelled call never leaves half of
        a two-store update behind or releases the batch lock early.
        """
        task = asyncio.ensure_future(writes)
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            await asyncio.wait([task])
            raise

    @asynccontextmanager
    async def _operation(
        self,
        batch_id: str,
        operation: str,
        *,
        lock: bool = False,
        timeout: float | None = None,
    ) -> AsyncIterator[None]:
        """Bind log context, optionally take the batch lock, and annotate store failures."""
        with structlog.contextvars.bound_contextvars(batch_id=batch_id, operation=operation):
            async with AsyncExitStack() as stack:
                if lock:
                    wait = timeout if timeout is not None else self._lock_timeout
                    try:
                        await stack.enter_async_context(self._locks.hold(batch_id, timeout=wait))
                    except TimeoutError as e:
                        logger.warning("batch_lock_timeout", timeout=wait)
                        raise OperationTimeoutError(batch_id, operation, wait) from e  # type: ignore[arg-type]
                try:
                    yield
                except InventoryError:
                    raise
                except Exception as e:
                    e.add_note(f"while running {operation} on batch {batch_id}")
                    logger.error("inventory_store_failure", error=str(e))
                    raise

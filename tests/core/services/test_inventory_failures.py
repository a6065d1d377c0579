"""Tests for store failures, write ordering and cancellation in InventoryService."""

import asyncio
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from openmts.core.entities import MaterialBatch, StorageLocation, Transaction
from openmts.core.exceptions import (
    InconsistentStateError,
    OperationTimeoutError,
    StaleAmendmentError,
)
from openmts.core.services import BatchLockRegistry, InventoryService


def _batch(**overrides) -> MaterialBatch:
    params = {
        "id": "batch-1",
        "material_id": 1,
        "storage_location": StorageLocation(storage_site_id="s", storage_area_id="a"),
        "batch_number": 34,
        "expiration_date": datetime.now(UTC) + timedelta(days=30),
        "quantity": 100.0,
    }
    params.update(overrides)
    return MaterialBatch(**params)


@pytest.fixture
def mock_batch_store():
    store = AsyncMock()
    store.get.return_value = _batch()
    store.create.side_effect = lambda batch: batch.model_copy(update={"id": "batch-1"})
    store.update.side_effect = lambda batch: batch
    return store


@pytest.fixture
def mock_transaction_log():
    log = AsyncMock()
    log.append.side_effect = lambda transaction: transaction
    return log


@pytest.fixture
def registry():
    return BatchLockRegistry()


@pytest.fixture
def mocked_service(mock_batch_store, mock_transaction_log, registry):
    return InventoryService(
        batch_store=mock_batch_store,
        transaction_log=mock_transaction_log,
        lock_registry=registry,
    )


class TestWriteOrdering:
    async def test_log_is_written_before_batch(self, mocked_service, mock_batch_store, mock_transaction_log):
        calls: list[str] = []
        mock_transaction_log.append.side_effect = lambda t: calls.append("append") or t
        mock_batch_store.update.side_effect = lambda b: calls.append("update") or b

        await mocked_service.perform_transaction("batch-1", -10, "alex")

        assert calls == ["append", "update"]
        persisted = mock_batch_store.update.call_args[0][0]
        assert persisted.quantity == 90

    async def test_amend_writes_log_before_batch(self, mocked_service, mock_batch_store, mock_transaction_log):
        calls: list[str] = []
        mock_transaction_log.get_last.return_value = Transaction(
            id="t-1", batch_id="batch-1", quantity=-10, user_id="alex"
        )
        mock_transaction_log.amend_last.side_effect = (
            lambda batch_id, tid, qty: calls.append("amend")
            or Transaction(id=tid, batch_id=batch_id, quantity=qty, user_id="alex")
        )
        mock_batch_store.update.side_effect = lambda b: calls.append("update") or b

        await mocked_service.amend_last_transaction("batch-1", "t-1", -5, "alex")

        assert calls == ["amend", "update"]
        mock_transaction_log.amend_last.assert_awaited_once_with("batch-1", "t-1", -5.0)
        assert mock_batch_store.update.call_args[0][0].quantity == 105


class TestPartialWrites:
    async def test_batch_persist_failure_after_append(self, mocked_service, mock_batch_store):
        mock_batch_store.update.side_effect = RuntimeError("disk full")

        with pytest.raises(InconsistentStateError) as exc_info:
            await mocked_service.perform_transaction("batch-1", -10, "alex")

        error = exc_info.value
        assert error.details["batch_id"] == "batch-1"
        assert error.details["operation"] == "perform_transaction"
        assert error.details["completed"] == "log_append"
        assert isinstance(error.__cause__, RuntimeError)

    async def test_append_failure_propagates_with_context(
        self, mocked_service, mock_batch_store, mock_transaction_log
    ):
        mock_transaction_log.append.side_effect = RuntimeError("log unavailable")

        with pytest.raises(RuntimeError, match="log unavailable") as exc_info:
            await mocked_service.perform_transaction("batch-1", -10, "alex")

        assert any(
            "perform_transaction" in note and "batch-1" in note
            for note in exc_info.value.__notes__
        )
        mock_batch_store.update.assert_not_awaited()

    async def test_batch_persist_failure_after_amend(
        self, mocked_service, mock_batch_store, mock_transaction_log
    ):
        mock_transaction_log.get_last.return_value = Transaction(
            id="t-1", batch_id="batch-1", quantity=-10, user_id="alex"
        )
        mock_transaction_log.amend_last.return_value = Transaction(
            id="t-1", batch_id="batch-1", quantity=-5, user_id="alex"
        )
        mock_batch_store.update.side_effect = RuntimeError("disk full")

        with pytest.raises(InconsistentStateError) as exc_info:
            await mocked_service.amend_last_transaction("batch-1", "t-1", -5, "alex")
        assert exc_info.value.details["completed"] == "log_amend"

    async def test_racing_append_makes_amend_stale(
        self, mocked_service, mock_batch_store, mock_transaction_log
    ):
        mock_transaction_log.get_last.return_value = Transaction(
            id="t-1", batch_id="batch-1", quantity=-10, user_id="alex"
        )
        mock_transaction_log.amend_last.side_effect = StaleAmendmentError("batch-1", "t-1", "t-2")

        with pytest.raises(StaleAmendmentError):
            await mocked_service.amend_last_transaction("batch-1", "t-1", -5, "alex")
        mock_batch_store.update.assert_not_awaited()

    async def test_initial_log_failure_on_create(
        self, mocked_service, mock_batch_store, mock_transaction_log
    ):
        mock_transaction_log.append.side_effect = RuntimeError("log unavailable")

        with pytest.raises(InconsistentStateError) as exc_info:
            await mocked_service.create_batch(
                1,
                datetime.now(UTC) + timedelta(days=10),
                StorageLocation(storage_site_id="s", storage_area_id="a"),
                34,
                50,
                {},
                False,
                "alex",
            )
        assert exc_info.value.details["completed"] == "batch_create"
        assert exc_info.value.details["batch_id"] == "batch-1"
        mock_batch_store.create.assert_awaited_once()

    async def test_batch_create_failure_writes_no_log(
        self, mocked_service, mock_batch_store, mock_transaction_log
    ):
        mock_batch_store.create.side_effect = RuntimeError("db down")
        with pytest.raises(RuntimeError):
            await mocked_service.create_batch(
                1,
                datetime.now(UTC) + timedelta(days=10),
                StorageLocation(storage_site_id="s", storage_area_id="a"),
                34,
                50,
                {},
                False,
                "alex",
            )
        mock_transaction_log.append.assert_not_awaited()


class TestDeadlines:
    async def test_times_out_before_writing(
        self, mocked_service, registry, mock_batch_store, mock_transaction_log
    ):
        async with registry.hold("batch-1"):
            with pytest.raises(OperationTimeoutError) as exc_info:
                await mocked_service.perform_transaction("batch-1", -1, "alex", timeout=0.01)

        assert exc_info.value.details["operation"] == "perform_transaction"
        mock_batch_store.get.assert_not_awaited()
        mock_transaction_log.append.assert_not_awaited()
        mock_batch_store.update.assert_not_awaited()

    async def test_default_timeout_from_constructor(self, mock_batch_store, mock_transaction_log, registry):
        service = InventoryService(
            mock_batch_store, mock_transaction_log, lock_registry=registry, lock_timeout=0.01
        )
        async with registry.hold("batch-1"):
            with pytest.raises(OperationTimeoutError):
                await service.update_batch_status("batch-1", True)
        mock_batch_store.update.assert_not_awaited()

    async def test_cancellation_mid_write_completes_both_writes(
        self, mocked_service, mock_batch_store, mock_transaction_log
    ):
        started = asyncio.Event()
        release = asyncio.Event()

        async def slow_append(transaction):
            started.set()
            await release.wait()
            return transaction

        mock_transaction_log.append.side_effect = slow_append

        task = asyncio.create_task(mocked_service.perform_transaction("batch-1", -1, "alex"))
        await started.wait()
        task.cancel()
        await asyncio.sleep(0)
        release.set()

        with pytest.raises(asyncio.CancelledError):
            await task
        mock_transaction_log.append.assert_awaited_once()
        mock_batch_store.update.assert_awaited_once()

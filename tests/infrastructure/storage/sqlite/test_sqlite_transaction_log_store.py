"""Tests for SQLite transaction log store."""

from datetime import UTC, datetime, timedelta

import pytest

from openmts.core.entities import MaterialBatch, StorageLocation, Transaction
from openmts.core.exceptions import StaleAmendmentError, TransactionNotFoundError
from openmts.infrastructure.storage.sqlite.batch_store import SQLiteMaterialBatchStore
from openmts.infrastructure.storage.sqlite.transaction_log_store import (
    SQLiteTransactionLogStore,
)


@pytest.fixture
async def batch_id(sqlite_db) -> str:
    batch = await SQLiteMaterialBatchStore().create(
        MaterialBatch(
            material_id=1,
            storage_location=StorageLocation(storage_site_id="s", storage_area_id="a"),
            batch_number=1,
            expiration_date=datetime.now(UTC) + timedelta(days=10),
            quantity=10,
        )
    )
    return batch.id


class TestSQLiteTransactionLogStore:
    async def test_append_and_read_in_insertion_order(self, batch_id):
        log = SQLiteTransactionLogStore()
        base = datetime(2025, 1, 1, tzinfo=UTC)
        # Timestamps deliberately out of order: insertion order wins
        entries = [
            Transaction(batch_id=batch_id, quantity=10, user_id="a", timestamp=base),
            Transaction(batch_id=batch_id, quantity=-2.5, user_id="b", timestamp=base - timedelta(hours=1)),
            Transaction(batch_id=batch_id, quantity=1.125, user_id="a", timestamp=base + timedelta(hours=1)),
        ]
        for entry in entries:
            await log.append(entry)

        stored = await log.get_all(batch_id)
        assert stored == entries
        assert await log.get_last(batch_id) == entries[-1]

    async def test_empty_log(self, batch_id):
        log = SQLiteTransactionLogStore()
        assert await log.get_all(batch_id) == []
        with pytest.raises(TransactionNotFoundError):
            await log.get_last(batch_id)

    async def test_amend_last(self, batch_id):
        log = SQLiteTransactionLogStore()
        first = await log.append(Transaction(batch_id=batch_id, quantity=10, user_id="a"))
        second = await log.append(Transaction(batch_id=batch_id, quantity=-3, user_id="a"))

        amended = await log.amend_last(batch_id, second.id, -4)

        assert amended.id == second.id
        assert amended.quantity == -4
        assert amended.user_id == "a"
        assert amended.timestamp == second.timestamp
        assert [t.quantity for t in await log.get_all(batch_id)] == [10, -4]
        assert (await log.get_all(batch_id))[0].id == first.id

    async def test_amend_non_tip_is_stale(self, batch_id):
        log = SQLiteTransactionLogStore()
        first = await log.append(Transaction(batch_id=batch_id, quantity=10, user_id="a"))
        second = await log.append(Transaction(batch_id=batch_id, quantity=-3, user_id="a"))

        with pytest.raises(StaleAmendmentError) as exc_info:
            await log.amend_last(batch_id, first.id, 99)

        assert exc_info.value.details["last_transaction_id"] == second.id
        assert [t.quantity for t in await log.get_all(batch_id)] == [10, -3]

    async def test_amend_empty_log(self, batch_id):
        with pytest.raises(TransactionNotFoundError):
            await SQLiteTransactionLogStore().amend_last(batch_id, "t", 1)

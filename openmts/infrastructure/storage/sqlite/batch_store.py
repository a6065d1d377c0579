"""SQLite implementation of material batch storage."""

import json
import uuid
from datetime import UTC, datetime

import aiosqlite

from openmts.config import get_logger
from openmts.core.entities.batch import MaterialBatch, StorageLocation
from openmts.core.exceptions import BatchNotFoundError
from openmts.core.interfaces.batch_store import IMaterialBatchStore
from openmts.infrastructure.storage.sqlite.connection import get_connection, get_transaction

logger = get_logger(__name__)


class SQLiteMaterialBatchStore(IMaterialBatchStore):
    """SQLite implementation of material batch storage."""

    async def create(self, batch: MaterialBatch) -> MaterialBatch:
        """Insert a new batch under a fresh UUID."""
        stored = batch.model_copy(update={"id": str(uuid.uuid4())})
        async with get_transaction() as conn:
            await conn.execute(
                """
                INSERT INTO material_batches (
                    id, material_id, material_name,
                    storage_site_id, storage_site_name,
                    storage_area_id, storage_area_name,
                    batch_number, expiration_date, quantity, custom_props,
                    is_locked, is_archived, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    stored.id,
                    stored.material_id,
                    stored.material_name,
                    stored.storage_location.storage_site_id,
                    stored.storage_location.storage_site_name,
                    stored.storage_location.storage_area_id,
                    stored.storage_location.storage_area_name,
                    stored.batch_number,
                    stored.expiration_date.isoformat(),
                    stored.quantity,
                    json.dumps(stored.custom_props),
                    int(stored.is_locked),
                    int(stored.is_archived),
                    stored.created_at.isoformat(),
                    stored.updated_at.isoformat(),
                ),
            )
        logger.info(
            "material_batch_created",
            batch_id=stored.id,
            material_id=stored.material_id,
        )
        return stored

    async def get(self, batch_id: str) -> MaterialBatch | None:
        """Get batch by ID."""
        async with get_connection() as conn:
            cursor = await conn.execute(
                "SELECT * FROM material_batches WHERE id = ?", (batch_id,)
            )
            row = await cursor.fetchone()
            if row is None:
                return None
            return self._row_to_batch(row)

    async def get_filtered(
        self, material_id: int | None = None, site_id: str | None = None
    ) -> list[MaterialBatch]:
        """List batches in creation order, optionally filtered by material and site."""
        clauses = []
        params: list[object] = []
        if material_id is not None:
            clauses.append("material_id = ?")
            params.append(material_id)
        if site_id is not None:
            clauses.append("storage_site_id = ?")
            params.append(site_id)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        async with get_connection() as conn:
            cursor = await conn.execute(
                f"SELECT * FROM material_batches {where} ORDER BY rowid",
                params,
            )
            rows = await cursor.fetchall()
            return [self._row_to_batch(row) for row in rows]

    async def update(self, batch: MaterialBatch) -> MaterialBatch:
        """Replace every column of an existing batch."""
        async with get_transaction() as conn:
            cursor = await conn.execute(
                """
                UPDATE material_batches SET
                    material_id = ?,
                    material_name = ?,
                    storage_site_id = ?,
                    storage_site_name = ?,
                    storage_area_id = ?,
                    storage_area_name = ?,
                    batch_number = ?,
                    expiration_date = ?,
                    quantity = ?,
                    custom_props = ?,
                    is_locked = ?,
                    is_archived = ?,
                    updated_at = ?
                WHERE id = ?
                """,
                (
                    batch.material_id,
                    batch.material_name,
                    batch.storage_location.storage_site_id,
                    batch.storage_location.storage_site_name,
                    batch.storage_location.storage_area_id,
                    batch.storage_location.storage_area_name,
                    batch.batch_number,
                    batch.expiration_date.isoformat(),
                    batch.quantity,
                    json.dumps(batch.custom_props),
                    int(batch.is_locked),
                    int(batch.is_archived),
                    batch.updated_at.isoformat(),
                    batch.id,
                ),
            )
            if cursor.rowcount == 0:
                raise BatchNotFoundError(batch.id)  # type: ignore[arg-type]
        logger.debug("material_batch_updated", batch_id=batch.id)
        return batch

    @staticmethod
    def _row_to_batch(row: aiosqlite.Row) -> MaterialBatch:
        """Convert a database row to a MaterialBatch entity."""
        now = datetime.now(UTC)
        return MaterialBatch(
            id=row["id"],
            material_id=row["material_id"],
            material_name=row["material_name"],
            storage_location=StorageLocation(
                storage_site_id=row["storage_site_id"],
                storage_site_name=row["storage_site_name"],
                storage_area_id=row["storage_area_id"],
                storage_area_name=row["storage_area_name"],
            ),
            batch_number=row["batch_number"],
            expiration_date=datetime.fromisoformat(row["expiration_date"]),
            quantity=float(row["quantity"]),
            custom_props=json.loads(row["custom_props"] or "{}"),
            is_locked=bool(row["is_locked"]),
            is_archived=bool(row["is_archived"]),
            created_at=datetime.fromisoformat(row["created_at"]) if row["created_at"] else now,
            updated_at=datetime.fromisoformat(row["updated_at"]) if row["updated_at"] else now,
        )

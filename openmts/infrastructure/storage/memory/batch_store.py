"""In-memory implementation of material batch storage."""

import asyncio
import uuid

from openmts.config import get_logger
from openmts.core.entities.batch import MaterialBatch
from openmts.core.exceptions import BatchNotFoundError
from openmts.core.interfaces.batch_store import IMaterialBatchStore

logger = get_logger(__name__)


class MemoryMaterialBatchStore(IMaterialBatchStore):
    """
    Dict-backed batch storage for a single process.

    Records are deep-copied on the way in and out, so callers can never
    mutate stored state without going through ``update``.
    """

    def __init__(self) -> None:
        self._batches: dict[str, MaterialBatch] = {}
        self._lock = asyncio.Lock()

    async def create(self, batch: MaterialBatch) -> MaterialBatch:
        async with self._lock:
            stored = batch.model_copy(deep=True, update={"id": str(uuid.uuid4())})
            self._batches[stored.id] = stored  # type: ignore[index]
        logger.info("material_batch_created", batch_id=stored.id, material_id=stored.material_id)
        return stored.model_copy(deep=True)

    async def get(self, batch_id: str) -> MaterialBatch | None:
        async with self._lock:
            batch = self._batches.get(batch_id)
            return batch.model_copy(deep=True) if batch is not None else None

    async def get_filtered(
        self, material_id: int | None = None, site_id: str | None = None
    ) -> list[MaterialBatch]:
        async with self._lock:
            return [
                batch.model_copy(deep=True)
                for batch in self._batches.values()
                if (material_id is None or batch.material_id == material_id)
                and (site_id is None or batch.storage_location.storage_site_id == site_id)
            ]

    async def update(self, batch: MaterialBatch) -> MaterialBatch:
        async with self._lock:
            if batch.id not in self._batches:
                raise BatchNotFoundError(batch.id)  # type: ignore[arg-type]
            self._batches[batch.id] = batch.model_copy(deep=True)  # type: ignore[index]
        logger.debug("material_batch_updated", batch_id=batch.id)
        return batch

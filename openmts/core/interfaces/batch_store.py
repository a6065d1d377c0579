"""Abstract interface for material batch storage."""

from abc import ABC, abstractmethod

from openmts.core.entities.batch import MaterialBatch


class IMaterialBatchStore(ABC):
    """Interface for material batch persistence. Holds no business rules."""

    @abstractmethod
    async def create(self, batch: MaterialBatch) -> MaterialBatch:
        """Persist a new batch and assign its ID."""
        pass

    @abstractmethod
    async def get(self, batch_id: str) -> MaterialBatch | None:
        """Get batch by ID."""
        pass

    @abstractmethod
    async def get_filtered(
        self, material_id: int | None = None, site_id: str | None = None
    ) -> list[MaterialBatch]:
        """List batches, optionally filtered by material and/or storage site."""
        pass

    @abstractmethod
    async def update(self, batch: MaterialBatch) -> MaterialBatch:
        """Replace the full batch record. Raises BatchNotFoundError if absent."""
        pass

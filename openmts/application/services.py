"""
Service factory functions for dependency injection.

Wires the configured storage backend into the core inventory service.
Callers (CLI, HTTP layer) should obtain the service from here.
"""

from openmts.config import get_logger, get_settings
from openmts.core.interfaces import IMaterialBatchStore, ITransactionLogStore
from openmts.core.services import InventoryService

logger = get_logger(__name__)

# Singleton service instance
_inventory_service: InventoryService | None = None


async def _default_stores() -> tuple[IMaterialBatchStore, ITransactionLogStore]:
    settings = get_settings()
    if settings.storage.backend == "memory":
        from openmts.infrastructure.storage.memory import (
            MemoryMaterialBatchStore,
            MemoryTransactionLogStore,
        )

        return MemoryMaterialBatchStore(), MemoryTransactionLogStore()

    # Lazy import infrastructure to avoid circular imports
    from openmts.infrastructure.storage.sqlite import (
        get_batch_store,
        get_transaction_log_store,
    )

    return await get_batch_store(), await get_transaction_log_store()


async def get_inventory_service(
    batch_store: IMaterialBatchStore | None = None,
    transaction_log: ITransactionLogStore | None = None,
) -> InventoryService:
    """
    Get or create the InventoryService instance.

    Stores that are not provided are built from ``settings.storage.backend``.
    Passing either store bypasses the singleton.

    Args:
        batch_store: Optional batch store override
        transaction_log: Optional transaction log store override

    Returns:
        Configured InventoryService
    """
    global _inventory_service

    overridden = batch_store is not None or transaction_log is not None
    if _inventory_service is not None and not overridden:
        return _inventory_service

    if batch_store is None or transaction_log is None:
        default_batches, default_log = await _default_stores()
        batch_store = batch_store or default_batches
        transaction_log = transaction_log or default_log

    settings = get_settings()
    service = InventoryService(
        batch_store=batch_store,
        transaction_log=transaction_log,
        lock_timeout=settings.inventory.lock_timeout,
        amend_enforces_non_negative=settings.inventory.amend_enforces_non_negative,
    )
    logger.debug("inventory_service_created", backend=settings.storage.backend)

    if not overridden:
        _inventory_service = service
    return service


def reset_services() -> None:
    """Reset singleton services (for testing)."""
    global _inventory_service
    _inventory_service = None

"""Pytest configuration and fixtures."""

from collections.abc import Generator
from datetime import UTC, datetime, timedelta

import pytest

from openmts.application.services import reset_services
from openmts.config import reset_settings
from openmts.core.entities import StorageLocation
from openmts.core.services import InventoryService
from openmts.infrastructure.storage.memory import (
    MemoryMaterialBatchStore,
    MemoryTransactionLogStore,
)


@pytest.fixture(autouse=True)
def clean_singletons() -> Generator[None, None, None]:
    """Start every test with fresh settings and services."""
    reset_settings()
    reset_services()
    yield
    reset_settings()
    reset_services()


@pytest.fixture
def location() -> StorageLocation:
    return StorageLocation(
        storage_site_id="site-keller",
        storage_site_name="Pontstr. Keller",
        storage_area_id="area-regal-1",
        storage_area_name="Regal links oben",
    )


@pytest.fixture
def other_location() -> StorageLocation:
    return StorageLocation(
        storage_site_id="site-melaten",
        storage_site_name="Melaten Raum 007",
        storage_area_id="area-regal-2",
        storage_area_name="Regal 2",
    )


@pytest.fixture
def expiration() -> datetime:
    return datetime.now(UTC) + timedelta(days=30)


@pytest.fixture
def batch_store() -> MemoryMaterialBatchStore:
    return MemoryMaterialBatchStore()


@pytest.fixture
def transaction_log() -> MemoryTransactionLogStore:
    return MemoryTransactionLogStore()


@pytest.fixture
def service(batch_store, transaction_log) -> InventoryService:
    return InventoryService(batch_store=batch_store, transaction_log=transaction_log)


@pytest.fixture
def create_batch(service, location, expiration):
    """Factory creating a batch through the service with sensible defaults."""

    async def _create(quantity: float = 100.0, user_id: str = "alex", **overrides):
        params = {
            "material_id": 1,
            "expiration_date": expiration,
            "storage_location": location,
            "batch_number": 34,
            "quantity": quantity,
            "custom_props": {},
            "is_locked": False,
            "user_id": user_id,
        }
        params.update(overrides)
        return await service.create_batch(**params)

    return _create

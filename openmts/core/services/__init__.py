"""
Core business logic services.

Layer-pure services that depend only on:
- openmts/core/entities/*
- openmts/core/interfaces/*
- openmts/core/exceptions.py

NO infrastructure imports. All dependencies injected via constructor.
"""

from openmts.core.services.batch_locks import BatchLockRegistry
from openmts.core.services.inventory_service import ConsistencyReport, InventoryService
from openmts.core.services.quantity import QUANTITY_DECIMALS, round_quantity, sum_quantities

__all__ = [
    # Inventory
    "InventoryService",
    "ConsistencyReport",
    # Concurrency
    "BatchLockRegistry",
    # Quantity policy
    "QUANTITY_DECIMALS",
    "round_quantity",
    "sum_quantities",
]

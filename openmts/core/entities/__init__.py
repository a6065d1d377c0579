"""Core domain entities."""

from openmts.core.entities.batch import MaterialBatch, StorageLocation
from openmts.core.entities.transaction import Transaction

__all__ = [
    "MaterialBatch",
    "StorageLocation",
    "Transaction",
]

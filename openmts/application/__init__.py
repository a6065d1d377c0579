"""Application layer: service wiring and data seeding."""

from openmts.application.seed import seed_sample_data
from openmts.application.services import get_inventory_service, reset_services

__all__ = [
    "get_inventory_service",
    "reset_services",
    "seed_sample_data",
]

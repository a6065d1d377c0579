"""Infrastructure layer implementations."""

from openmts.infrastructure import storage

__all__ = ["storage"]

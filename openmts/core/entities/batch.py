"""
Material batch domain entity.

A batch is a physical lot of one material at one storage location.
"""

from datetime import UTC, datetime

from pydantic import BaseModel, Field, field_validator


class StorageLocation(BaseModel):
    """Site and area a batch is stored in. Both are identified independently."""

    storage_site_id: str
    storage_site_name: str = ""
    storage_area_id: str
    storage_area_name: str = ""


class MaterialBatch(BaseModel):
    """
    A tracked quantity of one material at one storage location.

    ``quantity`` is kept in agreement with the batch's transaction log by the
    inventory service; stores persist whatever they are given.
    """

    id: str | None = None
    material_id: int
    material_name: str | None = None
    storage_location: StorageLocation
    batch_number: int
    expiration_date: datetime
    quantity: float = 0.0
    custom_props: dict[str, str] = Field(default_factory=dict)
    is_locked: bool = False
    is_archived: bool = False
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("expiration_date", "created_at", "updated_at")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        """Treat naive datetimes as UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v

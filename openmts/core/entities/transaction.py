"""Transaction log entity."""

import uuid
from datetime import UTC, datetime

from pydantic import BaseModel, Field, field_validator


class Transaction(BaseModel):
    """
    One quantity movement against a single batch.

    Positive quantities are check-ins, negative ones check-outs.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    batch_id: str  # back-reference to material_batches.id
    quantity: float
    user_id: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("timestamp")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v

    @property
    def is_check_out(self) -> bool:
        return self.quantity < 0

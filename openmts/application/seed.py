"""
Sample inventory data.

Creates a handful of batches of a few plastics across two storage sites so a
fresh installation has something to look at. Each batch gets its initial
check-in through the inventory service, so seeded data obeys the same rules
as real data.
"""

import random
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from openmts.config import get_logger
from openmts.core.entities.batch import MaterialBatch, StorageLocation
from openmts.core.services import InventoryService

logger = get_logger(__name__)

SEED_USER = "alex"

SAMPLE_MATERIALS: dict[int, str] = {
    1: "PP 505 Standard",
    2: "PP 505 ENHANCED",
    3: "PUR3 G3",
    4: "EPGlide7",
    5: "Spice Melange",
}

SAMPLE_LOCATIONS: dict[str, StorageLocation] = {
    "keller": StorageLocation(
        storage_site_id="2f02b4f2-fc8c-455f-b05f-869d6ab9408c",
        storage_site_name="Pontstr. Keller",
        storage_area_id="b3a1c6f0-3d0e-4a53-9d43-6f1f3b0c2a01",
        storage_area_name="Regal links oben",
    ),
    "melaten": StorageLocation(
        storage_site_id="825ff2e8-a057-4434-8279-60a9f4ddbbdf",
        storage_site_name="Melaten Raum 007",
        storage_area_id="5e7d2c41-8f0a-4b6e-a2d9-1c3e4f5a6b02",
        storage_area_name="Regal 1",
    ),
}


@dataclass(frozen=True)
class SampleBatch:
    material_id: int
    location: str
    batch_number: int


SAMPLE_BATCHES: tuple[SampleBatch, ...] = (
    SampleBatch(1, "keller", 34),
    SampleBatch(1, "keller", 35),
    SampleBatch(1, "melaten", 36),
    SampleBatch(2, "keller", 42),
    SampleBatch(3, "melaten", 1),
    SampleBatch(4, "melaten", 203),
    SampleBatch(5, "keller", 22),
    SampleBatch(5, "melaten", 9000),
)


async def seed_sample_data(
    service: InventoryService,
    rng: random.Random | None = None,
) -> list[MaterialBatch]:
    """
    Create the sample batches.

    Expiration dates fall 3 to 49 days out and starting quantities between
    35 and 499; pass a seeded ``rng`` for reproducible data.
    """
    rng = rng or random.Random()
    now = datetime.now(UTC)

    created = []
    for sample in SAMPLE_BATCHES:
        batch = await service.create_batch(
            material_id=sample.material_id,
            expiration_date=now + timedelta(days=rng.randint(3, 49)),
            storage_location=SAMPLE_LOCATIONS[sample.location],
            batch_number=sample.batch_number,
            quantity=float(rng.randint(35, 499)),
            custom_props={},
            is_locked=False,
            user_id=SEED_USER,
            material_name=SAMPLE_MATERIALS[sample.material_id],
        )
        created.append(batch)

    logger.info("sample_data_seeded", batches=len(created))
    return created

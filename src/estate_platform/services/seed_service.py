"""Inject randomly generated listings for demos and manual testing."""

import asyncio
import logging
import random
from typing import Optional

from estate_platform.domain.enums import PropertyStatus
from estate_platform.domain.schemas import PropertyCreate, PropertyRecord
from estate_platform.domain.session import AuthSession
from estate_platform.services.property_service import create_property
from estate_platform.services.session_manager import SessionManager

logger = logging.getLogger(__name__)

MAX_SEED_COUNT = 500

_STREETS = [
    "High Street", "Station Road", "Church Lane", "Mill Road", "Victoria Road",
    "Green Lane", "Park Avenue", "Queens Road", "Manor Way", "Kings Drive",
]
_CITIES = [
    "Bristol", "Leeds", "Manchester", "Norwich", "York",
    "Cambridge", "Oxford", "Brighton", "Bath", "Exeter",
]
_FEATURES = [
    "a south-facing garden", "an open-plan kitchen", "off-street parking",
    "a converted loft", "period features", "a private balcony",
    "views over the park", "a newly fitted bathroom", "a utility room",
]


def generate_property(rng: random.Random) -> PropertyCreate:
    """One plausible random listing."""
    bedrooms = rng.randint(1, 5)
    features = ", ".join(rng.sample(_FEATURES, 3))
    return PropertyCreate(
        status=rng.choice(list(PropertyStatus)),
        address_line1=f"{rng.randint(1, 250)} {rng.choice(_STREETS)}",
        address_line2=f"Flat {rng.randint(1, 40)}" if rng.random() < 0.3 else None,
        city=rng.choice(_CITIES),
        postcode=f"{rng.choice('ABCEHLMNS')}{rng.choice('ABCEHLMNS')}{rng.randint(1, 20)} "
        f"{rng.randint(1, 9)}{rng.choice('ABDEFGHJLNPQRSTUWXYZ')}{rng.choice('ABDEFGHJLNPQRSTUWXYZ')}",
        price=float(rng.randrange(100_000, 1_000_001, 1_000)),
        bedrooms=bedrooms,
        bathrooms=rng.randint(1, max(1, bedrooms)),
        description=f"A {bedrooms}-bedroom home with {features}.",
    )


async def seed_properties(
    manager: SessionManager,
    session: AuthSession,
    count: int,
    rng: Optional[random.Random] = None,
) -> list[PropertyRecord]:
    """Create *count* random listings concurrently through the data API."""
    if count < 1 or count > MAX_SEED_COUNT:
        raise ValueError(f"count must be between 1 and {MAX_SEED_COUNT}")
    rng = rng or random.Random()
    drafts = [generate_property(rng) for _ in range(count)]
    created = await asyncio.gather(*(create_property(manager, d, session) for d in drafts))
    logger.info("Seeded %d properties", len(created))
    return list(created)

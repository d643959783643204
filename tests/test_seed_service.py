"""Tests for random listing generation."""

import random

import pytest

from estate_platform.domain.errors import BackendEnvelopeError
from estate_platform.services.property_service import list_properties
from estate_platform.services.seed_service import MAX_SEED_COUNT, generate_property, seed_properties


class TestGenerateProperty:
    def test_same_seed_same_listing(self):
        assert generate_property(random.Random(7)) == generate_property(random.Random(7))

    def test_values_are_plausible(self):
        rng = random.Random(1)
        for _ in range(50):
            prop = generate_property(rng)
            assert 1 <= prop.bedrooms <= 5
            assert 1 <= prop.bathrooms <= prop.bedrooms
            assert 100_000 <= prop.price <= 1_000_000
            assert prop.description


class TestSeedProperties:
    async def test_creates_requested_count(self, manager, admin_session):
        created = await seed_properties(manager, admin_session, 5, rng=random.Random(3))
        assert len(created) == 5
        assert len({p.id for p in created}) == 5
        assert len(await list_properties(manager, admin_session)) == 5

    @pytest.mark.parametrize("count", [0, MAX_SEED_COUNT + 1])
    async def test_out_of_range(self, manager, admin_session, count):
        with pytest.raises(ValueError):
            await seed_properties(manager, admin_session, count)

    async def test_requires_admin(self, manager, user_session):
        with pytest.raises(BackendEnvelopeError):
            await seed_properties(manager, user_session, 1)

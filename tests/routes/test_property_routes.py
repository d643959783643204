"""HTTP tests for the public listing search and detail routes."""

import pytest

from estate_platform.domain.enums import PropertyStatus
from estate_platform.services.listing_saga import create_listing
from estate_platform.services.property_service import create_property


@pytest.fixture
async def catalogue(manager, admin_session, make_property_data):
    """Five listings spanning statuses, rooms and prices."""
    rows = [
        dict(city="Bath", price=150000, bedrooms=1, bathrooms=1, status=PropertyStatus.FOR_SALE),
        dict(city="Leeds", price=220000, bedrooms=2, bathrooms=1, status=PropertyStatus.FOR_SALE),
        dict(city="York", price=310000, bedrooms=3, bathrooms=2, status=PropertyStatus.SOLD),
        dict(city="Hull", price=90000, bedrooms=0, bathrooms=1, status=PropertyStatus.DRAFT),
        dict(city="Ely", price=650000, bedrooms=6, bathrooms=4, status=PropertyStatus.FOR_SALE),
    ]
    return [await create_property(manager, make_property_data(**r), admin_session) for r in rows]


class TestSearch:
    async def test_guest_sees_every_listing(self, client, catalogue):
        resp = await client.get("/api/properties")
        assert resp.status_code == 200
        body = resp.json()
        assert body["total_items"] == 5
        assert body["page"] == 1
        assert body["total_pages"] == 1
        assert [p["city"] for p in body["items"]] == ["Bath", "Leeds", "York", "Hull", "Ely"]

    async def test_status_filter_is_repeatable(self, client, catalogue):
        resp = await client.get("/api/properties", params=[("status", "sold"), ("status", "draft")])
        assert sorted(p["city"] for p in resp.json()["items"]) == ["Hull", "York"]

    async def test_bedroom_buckets(self, client, catalogue):
        resp = await client.get("/api/properties", params=[("bedrooms", ">3"), ("bedrooms", "1")])
        assert sorted(p["city"] for p in resp.json()["items"]) == ["Bath", "Ely"]

    async def test_price_range(self, client, catalogue):
        resp = await client.get("/api/properties", params={"min_price": 150000, "max_price": 310000})
        assert [p["city"] for p in resp.json()["items"]] == ["Bath", "Leeds", "York"]

    async def test_inverted_price_range_is_rejected(self, client):
        resp = await client.get("/api/properties", params={"min_price": 5, "max_price": 1})
        assert resp.status_code == 422

    async def test_unknown_status_is_rejected(self, client):
        resp = await client.get("/api/properties", params={"status": "let"})
        assert resp.status_code == 422

    async def test_paging(self, client, catalogue):
        resp = await client.get("/api/properties", params={"per_page": 2, "page": 3})
        body = resp.json()
        assert body["total_pages"] == 3
        assert body["page"] == 3
        assert [p["city"] for p in body["items"]] == ["Ely"]
        assert body["page_numbers"] == [1, 2, 3]

    async def test_page_out_of_range_is_clamped(self, client, catalogue):
        resp = await client.get("/api/properties", params={"per_page": 2, "page": 99})
        assert resp.json()["page"] == 3

    async def test_empty_catalogue(self, client):
        body = (await client.get("/api/properties")).json()
        assert body["items"] == []
        assert body["total_items"] == 0


class TestDetail:
    async def test_detail_includes_image_urls(
        self, client, manager, storage, admin_session, make_property_data, png_upload
    ):
        prop = await create_listing(manager, storage, admin_session, make_property_data(), [png_upload()])
        resp = await client.get(f"/api/properties/{prop.id}")
        assert resp.status_code == 200
        body = resp.json()
        assert body["images"] == prop.images
        assert body["image_urls"] == [f"/storage/{prop.images[0]}"]

    async def test_unknown_property(self, client):
        resp = await client.get("/api/properties/does-not-exist")
        assert resp.status_code == 404

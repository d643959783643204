"""Tests for the listing workflows and the Saga helper."""

from unittest.mock import AsyncMock, patch

import pytest

from estate_platform.domain.enums import PropertyStatus
from estate_platform.domain.errors import (
    BackendEnvelopeError,
    PropertyNotFoundError,
    StorageCleanupError,
)
from estate_platform.domain.schemas import PropertyUpdate
from estate_platform.services.listing_saga import Saga, create_listing, delete_listing, edit_listing
from estate_platform.services.property_service import create_property, get_property, list_properties
from estate_platform.services.storage_service import property_image_prefix


# ---------------------------------------------------------------------------
# Saga
# ---------------------------------------------------------------------------


class TestSaga:
    async def test_success_runs_no_compensation(self):
        undo = AsyncMock()
        async with Saga("ok") as saga:
            assert await saga.step("one", AsyncMock(return_value=1), undo) == 1
        undo.assert_not_called()

    async def test_failure_compensates_in_reverse_order(self):
        order = []

        async def undo_one(result):
            order.append(("one", result))

        async def undo_two(result):
            order.append(("two", result))

        with pytest.raises(RuntimeError, match="boom"):
            async with Saga("failing") as saga:
                await saga.step("one", AsyncMock(return_value="a"), undo_one)
                await saga.step("two", AsyncMock(return_value="b"), undo_two)
                await saga.step("three", AsyncMock(side_effect=RuntimeError("boom")), AsyncMock())

        assert order == [("two", "b"), ("one", "a")]

    async def test_failing_compensation_does_not_mask_error(self):
        later = AsyncMock()
        with pytest.raises(RuntimeError, match="original"):
            async with Saga("failing") as saga:
                await saga.step("one", AsyncMock(return_value=1), later)
                await saga.step("two", AsyncMock(return_value=2), AsyncMock(side_effect=OSError("undo failed")))
                raise RuntimeError("original")
        later.assert_awaited_once_with(1)


# ---------------------------------------------------------------------------
# create_listing
# ---------------------------------------------------------------------------


class TestCreateListing:
    async def test_draft_with_two_images_keeps_upload_order(
        self, manager, storage, admin_session, make_property_data, png_upload
    ):
        prop = await create_listing(
            manager,
            storage,
            admin_session,
            make_property_data(status=PropertyStatus.DRAFT),
            [png_upload(b"first"), png_upload(b"second")],
        )

        fetched = await get_property(manager, prop.id, admin_session)
        assert fetched.status == "draft"
        assert len(fetched.images) == 2
        assert (storage.root / fetched.images[0]).read_bytes().endswith(b"first")
        assert (storage.root / fetched.images[1]).read_bytes().endswith(b"second")
        assert sorted(await storage.list(property_image_prefix(prop.id))) == sorted(fetched.images)

    async def test_without_images(self, manager, storage, admin_session, make_property_data):
        prop = await create_listing(manager, storage, admin_session, make_property_data(), [])
        assert prop.images == []

    async def test_upload_failure_removes_the_property(
        self, manager, storage, admin_session, make_property_data, png_upload
    ):
        with patch(
            "estate_platform.services.listing_saga.upload_property_images",
            AsyncMock(side_effect=OSError("disk full")),
        ):
            with pytest.raises(OSError):
                await create_listing(manager, storage, admin_session, make_property_data(), [png_upload()])

        assert await list_properties(manager, admin_session) == []

    async def test_attach_failure_removes_images_and_property(
        self, manager, storage, admin_session, make_property_data, png_upload
    ):
        created_ids = []
        real_create = create_property

        async def recording_create(*args, **kwargs):
            prop = await real_create(*args, **kwargs)
            created_ids.append(prop.id)
            return prop

        with patch("estate_platform.services.listing_saga.create_property", side_effect=recording_create), patch(
            "estate_platform.services.listing_saga.update_property",
            AsyncMock(side_effect=BackendEnvelopeError([{"errorType": "DataStoreError"}])),
        ):
            with pytest.raises(BackendEnvelopeError):
                await create_listing(
                    manager, storage, admin_session, make_property_data(), [png_upload(), png_upload()]
                )

        assert len(created_ids) == 1
        assert await storage.list(property_image_prefix(created_ids[0])) == []
        assert await list_properties(manager, admin_session) == []

    async def test_leftover_cleanup_failure_is_logged_as_error(
        self, manager, storage, admin_session, make_property_data, png_upload, caplog
    ):
        with patch(
            "estate_platform.services.listing_saga.clean_property_images",
            AsyncMock(return_value=["property-images/p/stale.png"]),
        ):
            prop = await create_listing(manager, storage, admin_session, make_property_data(), [png_upload()])

        assert len((await get_property(manager, prop.id, admin_session)).images) == 1
        errors = [r for r in caplog.records if r.levelname == "ERROR"]
        assert len(errors) == 1
        assert "property-images/p/stale.png" in errors[0].getMessage()

    async def test_non_admin_cannot_create(self, manager, storage, user_session, make_property_data, png_upload):
        with pytest.raises(BackendEnvelopeError):
            await create_listing(manager, storage, user_session, make_property_data(), [png_upload()])


# ---------------------------------------------------------------------------
# edit_listing
# ---------------------------------------------------------------------------


@pytest.fixture
async def listing(manager, storage, admin_session, make_property_data, png_upload):
    return await create_listing(
        manager, storage, admin_session, make_property_data(), [png_upload(b"a"), png_upload(b"b")]
    )


class TestEditListing:
    async def test_fields_only(self, manager, storage, admin_session, listing):
        prop = await edit_listing(manager, storage, admin_session, listing.id, PropertyUpdate(price=199000))
        assert prop.price == 199000
        assert prop.images == listing.images

    async def test_reorder_add_and_drop_images(self, manager, storage, admin_session, listing, png_upload):
        first, second = listing.images
        prop = await edit_listing(
            manager, storage, admin_session, listing.id,
            images=[png_upload(b"new"), second],
        )

        assert len(prop.images) == 2
        assert prop.images[1] == second
        assert (storage.root / prop.images[0]).read_bytes().endswith(b"new")
        assert sorted(await storage.list(property_image_prefix(listing.id))) == sorted(prop.images)
        assert first not in await storage.list(property_image_prefix(listing.id))

    async def test_unknown_existing_image_is_rejected(self, manager, storage, admin_session, listing):
        with pytest.raises(ValueError):
            await edit_listing(
                manager, storage, admin_session, listing.id,
                images=["property-images/elsewhere/x.png"],
            )

    async def test_failed_update_removes_new_uploads(self, manager, storage, admin_session, listing, png_upload):
        with patch(
            "estate_platform.services.listing_saga.update_property",
            AsyncMock(side_effect=BackendEnvelopeError([{"errorType": "DataStoreError"}])),
        ):
            with pytest.raises(BackendEnvelopeError):
                await edit_listing(
                    manager, storage, admin_session, listing.id,
                    images=[*listing.images, png_upload(b"extra")],
                )

        assert sorted(await storage.list(property_image_prefix(listing.id))) == sorted(listing.images)
        assert (await get_property(manager, listing.id, admin_session)).images == listing.images

    async def test_dropped_image_that_cannot_be_removed_is_logged(
        self, manager, storage, admin_session, listing, caplog
    ):
        first, second = listing.images
        with patch.object(storage, "remove", AsyncMock(side_effect=OSError("busy"))):
            prop = await edit_listing(manager, storage, admin_session, listing.id, images=[second])

        assert prop.images == [second]
        errors = [r for r in caplog.records if r.levelname == "ERROR"]
        assert len(errors) == 1
        assert first in errors[0].getMessage()


# ---------------------------------------------------------------------------
# delete_listing
# ---------------------------------------------------------------------------


class TestDeleteListing:
    async def test_removes_images_then_property(self, manager, storage, admin_session, listing):
        # A stray object under the prefix is removed as well
        await storage.upload(f"{property_image_prefix(listing.id)}stray.png", b"x", admin_session)

        await delete_listing(manager, storage, admin_session, listing.id)

        assert await storage.list(property_image_prefix(listing.id)) == []
        with pytest.raises(PropertyNotFoundError):
            await get_property(manager, listing.id, admin_session)

    async def test_cleanup_failure_keeps_property(self, manager, storage, admin_session, listing):
        with patch.object(storage, "remove", AsyncMock(side_effect=OSError("busy"))):
            with pytest.raises(StorageCleanupError) as excinfo:
                await delete_listing(manager, storage, admin_session, listing.id)

        assert sorted(excinfo.value.failed_paths) == sorted(listing.images)
        assert (await get_property(manager, listing.id, admin_session)).id == listing.id

    async def test_missing_property(self, manager, storage, admin_session):
        with pytest.raises(PropertyNotFoundError):
            await delete_listing(manager, storage, admin_session, "missing")

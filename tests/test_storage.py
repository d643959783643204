"""Tests for local object storage and the image helpers built on it."""

from unittest.mock import AsyncMock, patch

import pytest

from estate_platform.domain.enums import StorageCategory
from estate_platform.domain.errors import (
    AuthenticationRequiredError,
    StorageAccessDeniedError,
    StorageCleanupError,
)
from estate_platform.infra.object_storage import split_path
from estate_platform.services.storage_service import (
    ImageUpload,
    clean_property_images,
    delete_images,
    delete_profile_picture,
    get_profile_picture,
    property_image_prefix,
    upload_profile_picture,
    upload_property_images,
)


class TestPaths:
    def test_split(self):
        category, scope, name = split_path("property-images/p1/a.png")
        assert category == StorageCategory.PROPERTY_IMAGES
        assert (scope, name) == ("p1", "a.png")

    def test_prefix_has_empty_name(self):
        assert split_path("profile-pictures/i1/")[2] == ""

    @pytest.mark.parametrize(
        "path",
        ["/property-images/p1/a.png", "property-images/../etc/passwd", "videos/p1/a.mp4", "property-images"],
    )
    def test_invalid_paths(self, path):
        with pytest.raises(ValueError):
            split_path(path)

    def test_url(self, storage):
        assert storage.get_url("property-images/p1/a.png") == "/storage/property-images/p1/a.png"


class TestAccessRules:
    async def test_admin_writes_property_images(self, storage, admin_session):
        path = await storage.upload("property-images/p1/a.png", b"img", admin_session)
        assert (storage.root / path).read_bytes() == b"img"
        assert await storage.list("property-images/p1/") == [path]

    async def test_non_admin_cannot_write_property_images(self, storage, user_session, guest_session):
        for session in (user_session, guest_session):
            with pytest.raises(StorageAccessDeniedError):
                await storage.upload("property-images/p1/a.png", b"img", session)

    async def test_owner_writes_own_profile_picture_only(self, storage, user_session, other_user_session):
        own = f"profile-pictures/{user_session.identity_id}/avatar.png"
        await storage.upload(own, b"me", user_session)
        with pytest.raises(StorageAccessDeniedError):
            await storage.upload(own, b"not me", other_user_session)
        with pytest.raises(StorageAccessDeniedError):
            await storage.remove(own, other_user_session)

    async def test_admin_may_remove_any_profile_picture(self, storage, user_session, admin_session):
        own = f"profile-pictures/{user_session.identity_id}/avatar.png"
        await storage.upload(own, b"me", user_session)
        await storage.remove(own, admin_session)
        assert await storage.list(f"profile-pictures/{user_session.identity_id}/") == []

    async def test_removing_missing_object_is_fine(self, storage, admin_session):
        await storage.remove("property-images/p1/missing.png", admin_session)

    async def test_list_of_unknown_prefix_is_empty(self, storage):
        assert await storage.list("property-images/nothing-here/") == []


class TestPropertyImages:
    async def test_upload_keeps_input_order(self, storage, admin_session, png_upload):
        uploads = [png_upload(bytes([i])) for i in range(5)]
        paths = await upload_property_images(storage, admin_session, "p1", uploads)

        assert len(paths) == 5
        assert all(p.startswith(property_image_prefix("p1")) and p.endswith(".png") for p in paths)
        for i, path in enumerate(paths):
            assert (storage.root / path).read_bytes().endswith(bytes([i]))

    async def test_extension_falls_back_to_filename_then_jpg(self, storage, admin_session):
        paths = await upload_property_images(
            storage,
            admin_session,
            "p1",
            [ImageUpload(b"a", filename="x.webp"), ImageUpload(b"b")],
        )
        assert paths[0].endswith(".webp")
        assert paths[1].endswith(".jpg")

    async def test_partial_failure_removes_successful_uploads(self, storage, admin_session, png_upload):
        original = storage.upload
        calls = 0

        async def flaky(path, data, session, content_type=None):
            nonlocal calls
            calls += 1
            if calls == 2:
                raise OSError("disk full")
            return await original(path, data, session, content_type=content_type)

        with patch.object(storage, "upload", side_effect=flaky):
            with pytest.raises(OSError):
                await upload_property_images(storage, admin_session, "p1", [png_upload() for _ in range(3)])

        assert await storage.list(property_image_prefix("p1")) == []

    async def test_delete_images_reports_failures(self, storage, admin_session, user_session):
        path = await storage.upload("property-images/p1/a.png", b"img", admin_session)
        failed = await delete_images(storage, user_session, [path])
        assert failed == [path]
        assert await delete_images(storage, admin_session, [path]) == []

    async def test_clean_keeps_listed_images(self, storage, admin_session, png_upload):
        keep, _ = await upload_property_images(storage, admin_session, "p1", [png_upload(), png_upload()])
        assert await clean_property_images(storage, admin_session, "p1", keep=[keep]) == []
        assert await storage.list(property_image_prefix("p1")) == [keep]


class TestProfilePictures:
    async def test_upload_replaces_previous_picture(self, storage, user_session):
        first = await upload_profile_picture(storage, user_session, ImageUpload(b"a", content_type="image/png"))
        second = await upload_profile_picture(storage, user_session, ImageUpload(b"b", content_type="image/jpeg"))
        assert first.endswith("avatar.png")
        assert second.endswith("avatar.jpg")
        assert await get_profile_picture(storage, user_session) == second
        assert await storage.list(f"profile-pictures/{user_session.identity_id}/") == [second]

    async def test_delete_profile_picture(self, storage, user_session):
        await upload_profile_picture(storage, user_session, ImageUpload(b"a", content_type="image/png"))
        assert await delete_profile_picture(storage, user_session) == 1
        assert await get_profile_picture(storage, user_session) is None
        assert await delete_profile_picture(storage, user_session) == 0

    async def test_guest_has_no_profile_picture(self, storage, guest_session):
        assert await get_profile_picture(storage, guest_session) is None
        with pytest.raises(AuthenticationRequiredError):
            await upload_profile_picture(storage, guest_session, ImageUpload(b"a"))

    async def test_delete_failure_raises_cleanup_error(self, storage, user_session):
        await upload_profile_picture(storage, user_session, ImageUpload(b"a", content_type="image/png"))
        with patch.object(storage, "remove", AsyncMock(side_effect=OSError("busy"))):
            with pytest.raises(StorageCleanupError) as excinfo:
                await delete_profile_picture(storage, user_session)
        assert len(excinfo.value.failed_paths) == 1

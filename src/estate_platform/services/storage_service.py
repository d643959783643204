"""Image helpers on top of object storage: listing photos and profile pictures."""

import asyncio
import logging
import mimetypes
import uuid
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Iterable, Optional

from estate_platform.domain.enums import StorageCategory
from estate_platform.domain.errors import AuthenticationRequiredError, StorageCleanupError
from estate_platform.domain.session import AuthSession
from estate_platform.infra.object_storage import LocalObjectStorage

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION = "jpg"


@dataclass
class ImageUpload:
    data: bytes
    content_type: Optional[str] = None
    filename: Optional[str] = None


def property_image_prefix(property_id: str) -> str:
    return f"{StorageCategory.PROPERTY_IMAGES.value}/{property_id}/"


def profile_picture_prefix(identity_id: str) -> str:
    return f"{StorageCategory.PROFILE_PICTURES.value}/{identity_id}/"


def _extension(upload: ImageUpload) -> str:
    if upload.content_type:
        guessed = mimetypes.guess_extension(upload.content_type.split(";")[0].strip())
        if guessed:
            return guessed.lstrip(".")
    if upload.filename:
        suffix = PurePosixPath(upload.filename).suffix.lstrip(".")
        if suffix:
            return suffix.lower()
    return DEFAULT_EXTENSION


def _content_type(upload: ImageUpload) -> Optional[str]:
    if upload.content_type:
        return upload.content_type
    if upload.filename:
        return mimetypes.guess_type(upload.filename)[0]
    return None


# ---------------------------------------------------------------------------
# Property images
# ---------------------------------------------------------------------------


async def delete_images(
    storage: LocalObjectStorage,
    session: AuthSession,
    paths: Iterable[str],
) -> list[str]:
    """Best-effort removal of *paths*. Returns the paths that could not be removed."""
    paths = list(paths)
    results = await asyncio.gather(
        *(storage.remove(path, session) for path in paths), return_exceptions=True
    )
    failed = []
    for path, result in zip(paths, results):
        if isinstance(result, Exception):
            logger.warning("Could not remove %s: %s", path, result)
            failed.append(path)
    return failed


async def upload_property_images(
    storage: LocalObjectStorage,
    session: AuthSession,
    property_id: str,
    uploads: list[ImageUpload],
) -> list[str]:
    """Upload *uploads* concurrently and return their paths in input order.

    If any upload fails, the ones that succeeded are removed (best-effort)
    and the first failure is raised.
    """
    prefix = property_image_prefix(property_id)
    results = await asyncio.gather(
        *(
            storage.upload(
                f"{prefix}{uuid.uuid4()}.{_extension(upload)}",
                upload.data,
                session,
                content_type=_content_type(upload),
            )
            for upload in uploads
        ),
        return_exceptions=True,
    )

    errors = [r for r in results if isinstance(r, BaseException)]
    if errors:
        uploaded = [r for r in results if isinstance(r, str)]
        await delete_images(storage, session, uploaded)
        raise errors[0]

    logger.info("Uploaded %d image(s) for property %s", len(results), property_id)
    return list(results)


async def clean_property_images(
    storage: LocalObjectStorage,
    session: AuthSession,
    property_id: str,
    keep: Iterable[str] = (),
) -> list[str]:
    """Remove every stored image of *property_id* not listed in *keep*.

    Returns the paths that could not be removed.
    """
    keep = set(keep)
    stored = await storage.list(property_image_prefix(property_id))
    return await delete_images(storage, session, [p for p in stored if p not in keep])


# ---------------------------------------------------------------------------
# Profile pictures
# ---------------------------------------------------------------------------


def _require_identity(session: AuthSession) -> str:
    if not session.is_authenticated:
        raise AuthenticationRequiredError()
    return session.identity_id


async def get_profile_picture(storage: LocalObjectStorage, session: AuthSession) -> Optional[str]:
    if not session.is_authenticated:
        return None
    stored = await storage.list(profile_picture_prefix(session.identity_id))
    return stored[0] if stored else None


async def upload_profile_picture(
    storage: LocalObjectStorage,
    session: AuthSession,
    upload: ImageUpload,
) -> str:
    """Replace the identity's profile picture. Returns the new path."""
    identity_id = _require_identity(session)
    prefix = profile_picture_prefix(identity_id)
    path = f"{prefix}avatar.{_extension(upload)}"

    await storage.upload(path, upload.data, session, content_type=_content_type(upload))
    stale = [p for p in await storage.list(prefix) if p != path]
    await delete_images(storage, session, stale)
    return path


async def delete_profile_picture(storage: LocalObjectStorage, session: AuthSession) -> int:
    """Remove everything under the identity's profile-picture prefix.

    Raises ``StorageCleanupError`` when anything is left behind.
    """
    identity_id = _require_identity(session)
    stored = await storage.list(profile_picture_prefix(identity_id))
    failed = await delete_images(storage, session, stored)
    if failed:
        raise StorageCleanupError(failed)
    return len(stored)

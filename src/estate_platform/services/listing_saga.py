"""Multi-step listing workflows that span the data API and object storage.

Neither backend offers a transaction covering both, so each workflow is a
``Saga``: completed steps register a compensation that is run, newest
first, when a later step fails.
"""

import functools
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar, Union

from estate_platform.domain.errors import StorageCleanupError
from estate_platform.domain.schemas import PropertyCreate, PropertyRecord, PropertyUpdate
from estate_platform.domain.session import AuthSession
from estate_platform.infra.object_storage import LocalObjectStorage
from estate_platform.services.property_service import (
    create_property,
    delete_property,
    get_property,
    update_payload,
    update_property,
)
from estate_platform.services.session_manager import SessionManager
from estate_platform.services.storage_service import (
    ImageUpload,
    clean_property_images,
    delete_images,
    upload_property_images,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

ImageRef = Union[str, ImageUpload]


class Saga:
    """Ordered steps with compensations, used as an async context manager.

    Leaving the block with an exception runs the registered compensations in
    reverse order. A failing compensation is logged and the remaining ones
    still run; the original exception always propagates.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._compensations: list[tuple[str, Callable[[], Awaitable[Any]]]] = []

    async def __aenter__(self) -> "Saga":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        if exc is not None:
            logger.warning("%s failed (%s); compensating %d step(s)", self.name, exc, len(self._compensations))
            await self.compensate()
        return False

    async def step(
        self,
        name: str,
        action: Callable[[], Awaitable[T]],
        compensate: Optional[Callable[[T], Awaitable[Any]]] = None,
    ) -> T:
        result = await action()
        if compensate is not None:
            self._compensations.append((name, functools.partial(compensate, result)))
        return result

    async def compensate(self) -> None:
        while self._compensations:
            name, undo = self._compensations.pop()
            try:
                await undo()
            except Exception as e:
                logger.warning("%s: compensation of '%s' failed: %s", self.name, name, e)


def _report_orphans(property_id: str, failed: list[str]) -> None:
    if failed:
        logger.error(
            "Property %s saved but %d unreferenced image(s) could not be removed: %s",
            property_id, len(failed), ", ".join(failed),
        )


async def create_listing(
    manager: SessionManager,
    storage: LocalObjectStorage,
    session: AuthSession,
    data: PropertyCreate,
    images: list[ImageUpload],
) -> PropertyRecord:
    """Create a property, upload its images and attach them in upload order."""
    async with Saga("Create listing") as saga:
        prop = await saga.step(
            "create property",
            lambda: create_property(manager, data, session),
            lambda created: delete_property(manager, created.id, session),
        )
        paths = await saga.step(
            "upload images",
            lambda: upload_property_images(storage, session, prop.id, images),
            lambda uploaded: delete_images(storage, session, uploaded),
        )
        if paths:
            prop = await saga.step(
                "attach images",
                lambda: update_property(manager, prop.id, {"images": paths}, session),
            )

    # Leftovers from earlier failed attempts under the same prefix
    _report_orphans(prop.id, await clean_property_images(storage, session, prop.id, keep=paths))
    return prop


async def edit_listing(
    manager: SessionManager,
    storage: LocalObjectStorage,
    session: AuthSession,
    property_id: str,
    data: Optional[PropertyUpdate] = None,
    images: Optional[list[ImageRef]] = None,
) -> PropertyRecord:
    """Update fields and, when *images* is given, replace the image list.

    *images* is the complete new ordering: strings refer to images the
    listing already has, ``ImageUpload`` entries are uploaded. Images no
    longer referenced are removed from storage after the update.
    """
    payload: dict[str, Any] = update_payload(data) if data is not None else {}

    if images is None:
        return await update_property(manager, property_id, payload, session)

    current = await get_property(manager, property_id, session)
    unknown = [ref for ref in images if isinstance(ref, str) and ref not in current.images]
    if unknown:
        raise ValueError(f"Images not attached to property {property_id}: {', '.join(unknown)}")

    new_uploads = [ref for ref in images if isinstance(ref, ImageUpload)]

    async with Saga("Edit listing") as saga:
        uploaded = await saga.step(
            "upload images",
            lambda: upload_property_images(storage, session, property_id, new_uploads),
            lambda paths: delete_images(storage, session, paths),
        )
        uploaded_iter = iter(uploaded)
        merged = [ref if isinstance(ref, str) else next(uploaded_iter) for ref in images]
        payload["images"] = merged
        prop = await saga.step(
            "update property",
            lambda: update_property(manager, property_id, payload, session),
        )

    _report_orphans(property_id, await clean_property_images(storage, session, property_id, keep=merged))
    return prop


async def delete_listing(
    manager: SessionManager,
    storage: LocalObjectStorage,
    session: AuthSession,
    property_id: str,
) -> PropertyRecord:
    """Delete every stored image of the listing, then the listing itself.

    The property is kept when any image cannot be removed.
    """
    await get_property(manager, property_id, session)

    failed = await clean_property_images(storage, session, property_id)
    if failed:
        raise StorageCleanupError(failed)
    return await delete_property(manager, property_id, session)

"""Property access functions over the data API.

Each function issues one data-API call (one per page when listing) through
the session-scoped client and unwraps the envelope. Any ``errors``, any
``extensions`` or a missing ``data`` payload raises ``BackendEnvelopeError``.
No retries.
"""

import logging
from typing import Any, Optional

from estate_platform.domain.errors import BackendEnvelopeError, PropertyNotFoundError
from estate_platform.domain.schemas import PropertyCreate, PropertyRecord, PropertyUpdate
from estate_platform.domain.session import AuthSession
from estate_platform.infra.data_api import Envelope
from estate_platform.services.session_manager import SessionManager

logger = logging.getLogger(__name__)

PROPERTY_LIST_LIMIT = 1000


MISSING_ERROR_TYPE = "ConditionalCheckFailed"


def unwrap_envelope(envelope: Envelope, operation: str) -> Any:
    if envelope.errors or envelope.extensions or envelope.data is None:
        logger.warning("%s failed: errors=%s extensions=%s", operation, envelope.errors, envelope.extensions)
        raise BackendEnvelopeError(envelope.errors, envelope.extensions, operation)
    return envelope.data


def _check_exists(envelope: Envelope, property_id: str) -> None:
    """Raise ``PropertyNotFoundError`` when a write hit a property that does not exist."""
    if envelope.errors and any(e.get("errorType") == MISSING_ERROR_TYPE for e in envelope.errors):
        raise PropertyNotFoundError(property_id)


def update_payload(data: PropertyUpdate) -> dict:
    """Fields explicitly set on *data*; only address_line2 may be cleared."""
    return {
        key: value
        for key, value in data.model_dump(mode="json", exclude_unset=True).items()
        if value is not None or key == "address_line2"
    }


async def list_properties(
    manager: SessionManager,
    session: Optional[AuthSession] = None,
    filter: Optional[dict] = None,
    limit: int = PROPERTY_LIST_LIMIT,
) -> list[PropertyRecord]:
    """Every property matching *filter*, fetched *limit* rows per request."""
    client = await manager.get_client(session)
    items: list[dict] = []
    next_token = None
    while True:
        envelope = await client.property.list(filter=filter, limit=limit, next_token=next_token)
        items.extend(unwrap_envelope(envelope, "List properties"))
        next_token = envelope.next_token
        if not next_token:
            break
    return [PropertyRecord.model_validate(item) for item in items]


async def get_property(
    manager: SessionManager,
    property_id: str,
    session: Optional[AuthSession] = None,
) -> PropertyRecord:
    client = await manager.get_client(session)
    envelope = await client.property.get(property_id)
    if envelope.data is None and not envelope.errors and not envelope.extensions:
        raise PropertyNotFoundError(property_id)
    return PropertyRecord.model_validate(unwrap_envelope(envelope, f"Get property {property_id}"))


async def create_property(
    manager: SessionManager,
    data: PropertyCreate,
    session: Optional[AuthSession] = None,
    images: Optional[list[str]] = None,
) -> PropertyRecord:
    client = await manager.get_client(session)
    payload = data.model_dump(mode="json")
    payload["images"] = list(images or [])
    created = unwrap_envelope(await client.property.create(payload), "Create property")
    logger.info("Created property %s", created["id"])
    return PropertyRecord.model_validate(created)


async def update_property(
    manager: SessionManager,
    property_id: str,
    data: PropertyUpdate | dict,
    session: Optional[AuthSession] = None,
) -> PropertyRecord:
    """Apply a partial update. A plain dict may carry ``images``."""
    client = await manager.get_client(session)
    if isinstance(data, PropertyUpdate):
        payload = update_payload(data)
    else:
        payload = dict(data)
    payload["id"] = property_id
    envelope = await client.property.update(payload)
    _check_exists(envelope, property_id)
    updated = unwrap_envelope(envelope, f"Update property {property_id}")
    return PropertyRecord.model_validate(updated)


async def delete_property(
    manager: SessionManager,
    property_id: str,
    session: Optional[AuthSession] = None,
) -> PropertyRecord:
    client = await manager.get_client(session)
    envelope = await client.property.delete(property_id)
    _check_exists(envelope, property_id)
    deleted = unwrap_envelope(envelope, f"Delete property {property_id}")
    logger.info("Deleted property %s", property_id)
    return PropertyRecord.model_validate(deleted)

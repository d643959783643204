"""Favourites: join rows between a user's ``UserRecord`` and properties.

Existence checks and writes are not atomic against the data API, so two
concurrent toggles for one (user, property) pair can still produce a
duplicate join row. ``remove_favorite`` deletes every match for that reason,
and ``list_favorites`` collapses duplicates.
"""

import asyncio
import logging
from typing import Optional

from estate_platform.domain.errors import AuthenticationRequiredError, BackendEnvelopeError
from estate_platform.domain.schemas import PropertyRecord
from estate_platform.domain.session import AuthSession
from estate_platform.services.property_service import (
    PROPERTY_LIST_LIMIT,
    get_property,
    unwrap_envelope,
)
from estate_platform.services.session_manager import SessionManager

logger = logging.getLogger(__name__)


async def _require_user_record(manager: SessionManager, session: AuthSession) -> str:
    if not session.is_authenticated:
        raise AuthenticationRequiredError()
    return await manager.resolve_user_record_id(session)


async def _find_joins(
    manager: SessionManager,
    session: AuthSession,
    user_id: str,
    property_id: Optional[str] = None,
) -> list[dict]:
    client = await manager.get_client(session)
    filter_ = {"user_id": {"eq": user_id}}
    if property_id is not None:
        filter_["property_id"] = {"eq": property_id}
    envelope = await client.favorite_property.list(filter=filter_, limit=PROPERTY_LIST_LIMIT)
    if envelope.next_token:
        raise BackendEnvelopeError(
            envelope.errors, envelope.extensions, "List favourites returned a partial page"
        )
    return unwrap_envelope(envelope, "List favourites")


async def list_favorites(
    manager: SessionManager,
    session: Optional[AuthSession] = None,
) -> list[PropertyRecord]:
    """Return the favourite properties of the session's user, oldest first.

    Guests get an empty list without a user-record lookup. Any favourite whose
    property cannot be fetched fails the whole call.
    """
    session = await manager.current_session(session)
    if not session.is_authenticated:
        return []

    user_id = await manager.resolve_user_record_id(session)
    joins = await _find_joins(manager, session, user_id)

    property_ids = list(dict.fromkeys(join["property_id"] for join in joins))
    return list(
        await asyncio.gather(*(get_property(manager, pid, session) for pid in property_ids))
    )


async def is_favorite(
    manager: SessionManager,
    property_id: str,
    session: Optional[AuthSession] = None,
) -> bool:
    session = await manager.current_session(session)
    if not session.is_authenticated:
        return False
    user_id = await manager.resolve_user_record_id(session)
    return bool(await _find_joins(manager, session, user_id, property_id))


async def add_favorite(
    manager: SessionManager,
    property_id: str,
    session: Optional[AuthSession] = None,
) -> dict:
    """Mark *property_id* as a favourite. Returns the (new or existing) join row."""
    session = await manager.current_session(session)
    user_id = await _require_user_record(manager, session)

    existing = await _find_joins(manager, session, user_id, property_id)
    if existing:
        return existing[0]

    client = await manager.get_client(session)
    created = unwrap_envelope(
        await client.favorite_property.create({"user_id": user_id, "property_id": property_id}),
        "Create favourite",
    )
    logger.info("User record %s favourited property %s", user_id, property_id)
    return created


async def remove_favorite(
    manager: SessionManager,
    property_id: str,
    session: Optional[AuthSession] = None,
) -> int:
    """Remove every favourite row for *property_id*. Returns how many were removed."""
    session = await manager.current_session(session)
    user_id = await _require_user_record(manager, session)

    matches = await _find_joins(manager, session, user_id, property_id)
    if not matches:
        return 0

    client = await manager.get_client(session)
    results = await asyncio.gather(*(client.favorite_property.delete(m["id"]) for m in matches))
    for envelope in results:
        unwrap_envelope(envelope, "Delete favourite")
    logger.info("User record %s unfavourited property %s", user_id, property_id)
    return len(matches)


async def delete_all_user_data(
    manager: SessionManager,
    session: Optional[AuthSession] = None,
) -> int:
    """Delete every ``UserRecord`` of the identity together with its favourites.

    Join rows are removed explicitly before their record; the first failing
    step raises. Returns the number of user records removed.
    """
    session = await manager.current_session(session)
    if not session.is_authenticated:
        raise AuthenticationRequiredError()

    client = await manager.get_client(session)
    records = unwrap_envelope(
        await client.user.list(filter={"owner": {"begins_with": session.user_sub}}, limit=PROPERTY_LIST_LIMIT),
        "List user records",
    )

    for record in records:
        for join in await _find_joins(manager, session, record["id"]):
            unwrap_envelope(await client.favorite_property.delete(join["id"]), "Delete favourite")
        unwrap_envelope(await client.user.delete(record["id"]), "Delete user record")

    manager.forget_user_record(session)
    logger.info("Deleted %d user record(s) for %s", len(records), session.user_sub)
    return len(records)

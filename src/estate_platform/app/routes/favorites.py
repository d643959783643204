"""Favourite routes for the signed-in user."""

import logging

from fastapi import APIRouter, Depends

from estate_platform.app.container import Services, get_services
from estate_platform.app.routes.auth import get_auth_session_dep
from estate_platform.app.routes.properties import to_response
from estate_platform.domain.schemas import PropertyResponse
from estate_platform.domain.session import AuthSession
from estate_platform.services.favorite_service import (
    add_favorite,
    is_favorite,
    list_favorites,
    remove_favorite,
)
from estate_platform.services.property_service import get_property

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/favorites", tags=["favorites"])


@router.get("", response_model=list[PropertyResponse])
async def my_favorites(
    session: AuthSession = Depends(get_auth_session_dep),
    services: Services = Depends(get_services),
):
    props = await list_favorites(services.sessions, session)
    return [to_response(services, p) for p in props]


@router.get("/{property_id}")
async def favorite_state(
    property_id: str,
    session: AuthSession = Depends(get_auth_session_dep),
    services: Services = Depends(get_services),
):
    return {
        "property_id": property_id,
        "favorite": await is_favorite(services.sessions, property_id, session),
    }


@router.put("/{property_id}")
async def favorite(
    property_id: str,
    session: AuthSession = Depends(get_auth_session_dep),
    services: Services = Depends(get_services),
):
    if session.is_authenticated:
        # 404 for unknown listings rather than a dangling favourite
        await get_property(services.sessions, property_id, session)
    await add_favorite(services.sessions, property_id, session)
    return {"property_id": property_id, "favorite": True}


@router.delete("/{property_id}")
async def unfavorite(
    property_id: str,
    session: AuthSession = Depends(get_auth_session_dep),
    services: Services = Depends(get_services),
):
    removed = await remove_favorite(services.sessions, property_id, session)
    return {"property_id": property_id, "favorite": False, "removed": removed}

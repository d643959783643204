"""Public listing routes: search with filters and paging, property detail."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import ValidationError

from estate_platform.app.container import Services, get_services
from estate_platform.app.errors import unprocessable
from estate_platform.app.routes.auth import get_auth_session_dep
from estate_platform.domain.enums import PropertyStatus, RoomBucket
from estate_platform.domain.schemas import (
    PropertyFilter,
    PropertyPage,
    PropertyRecord,
    PropertyResponse,
)
from estate_platform.domain.session import AuthSession
from estate_platform.services.property_filter import filter_properties, page_numbers, paginate
from estate_platform.services.property_service import get_property, list_properties

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/properties", tags=["properties"])


def filter_params(
    status: list[PropertyStatus] = Query(default=[]),
    bedrooms: list[RoomBucket] = Query(default=[]),
    bathrooms: list[RoomBucket] = Query(default=[]),
    min_price: Optional[float] = Query(default=None, ge=0),
    max_price: Optional[float] = Query(default=None, ge=0),
) -> PropertyFilter:
    """Dependency: search criteria from repeatable query parameters."""
    try:
        return PropertyFilter(
            statuses=status,
            bedrooms=bedrooms,
            bathrooms=bathrooms,
            min_price=min_price,
            max_price=max_price,
        )
    except ValidationError as e:
        raise unprocessable(e)


def to_response(services: Services, prop: PropertyRecord) -> PropertyResponse:
    return PropertyResponse(
        **prop.model_dump(),
        image_urls=[services.storage.get_url(path) for path in prop.images],
    )


async def search_page(
    services: Services,
    session: AuthSession,
    criteria: PropertyFilter,
    page: int,
    per_page: int,
) -> PropertyPage:
    """Load listings once, then filter and page them in memory."""
    props = await list_properties(
        services.sessions, session, limit=services.settings.property_list_limit
    )
    result = paginate(filter_properties(props, criteria), page, per_page)
    return PropertyPage(
        items=[to_response(services, p) for p in result.items],
        page=result.page,
        page_size=result.page_size,
        total_items=result.total_items,
        total_pages=result.total_pages,
        page_numbers=page_numbers(result.page, result.total_pages),
    )


@router.get("", response_model=PropertyPage)
async def search_properties(
    criteria: PropertyFilter = Depends(filter_params),
    page: int = Query(default=1),
    per_page: Optional[int] = Query(default=None, ge=1, le=200),
    session: AuthSession = Depends(get_auth_session_dep),
    services: Services = Depends(get_services),
):
    return await search_page(
        services, session, criteria, page, per_page or services.settings.search_page_size
    )


@router.get("/{property_id}", response_model=PropertyResponse)
async def property_detail(
    property_id: str,
    session: AuthSession = Depends(get_auth_session_dep),
    services: Services = Depends(get_services),
):
    prop = await get_property(services.sessions, property_id, session)
    return to_response(services, prop)

"""Admin dashboard routes: listing CRUD with image upload, test-data seeding."""

import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile, status
from pydantic import ValidationError

from estate_platform.app.container import Services, get_services
from estate_platform.app.errors import unprocessable
from estate_platform.app.routes.auth import require_admin
from estate_platform.app.routes.properties import filter_params, search_page, to_response
from estate_platform.domain.enums import PropertyStatus
from estate_platform.domain.schemas import (
    MessageResponse,
    PropertyCreate,
    PropertyFilter,
    PropertyPage,
    PropertyResponse,
    PropertyUpdate,
)
from estate_platform.domain.session import AuthSession
from estate_platform.services.listing_saga import create_listing, delete_listing, edit_listing
from estate_platform.services.seed_service import MAX_SEED_COUNT, seed_properties
from estate_platform.services.storage_service import ImageUpload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])

UPLOAD_REF_PREFIX = "upload:"


async def read_uploads(files: list[UploadFile]) -> list[ImageUpload]:
    return [
        ImageUpload(data=await f.read(), content_type=f.content_type, filename=f.filename)
        for f in files
    ]


def parse_image_order(raw: str, uploads: list[ImageUpload]) -> list[str | ImageUpload]:
    """Resolve the ``images`` form field into existing paths and new uploads.

    The field is a JSON list; ``"upload:<n>"`` refers to the n-th uploaded file.
    """
    try:
        refs = json.loads(raw)
    except json.JSONDecodeError:
        raise HTTPException(status_code=400, detail="images must be a JSON list")
    if not isinstance(refs, list) or not all(isinstance(r, str) for r in refs):
        raise HTTPException(status_code=400, detail="images must be a JSON list of strings")

    resolved: list[str | ImageUpload] = []
    used: set[int] = set()
    for ref in refs:
        if not ref.startswith(UPLOAD_REF_PREFIX):
            resolved.append(ref)
            continue
        try:
            index = int(ref.removeprefix(UPLOAD_REF_PREFIX))
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Invalid upload reference '{ref}'")
        if index < 0 or index >= len(uploads) or index in used:
            raise HTTPException(status_code=400, detail=f"Invalid upload reference '{ref}'")
        used.add(index)
        resolved.append(uploads[index])
    if len(used) != len(uploads):
        raise HTTPException(status_code=400, detail="Every uploaded file must be referenced in images")
    return resolved


@router.get("/properties", response_model=PropertyPage)
async def admin_properties(
    criteria: PropertyFilter = Depends(filter_params),
    page: int = Query(default=1),
    per_page: Optional[int] = Query(default=None, ge=1, le=200),
    session: AuthSession = Depends(require_admin),
    services: Services = Depends(get_services),
):
    return await search_page(
        services, session, criteria, page, per_page or services.settings.admin_page_size
    )


@router.post("/properties", response_model=PropertyResponse, status_code=status.HTTP_201_CREATED)
async def create_property_route(
    address_line1: str = Form(...),
    city: str = Form(...),
    postcode: str = Form(...),
    price: float = Form(...),
    bedrooms: int = Form(...),
    bathrooms: int = Form(...),
    status_: PropertyStatus = Form(default=PropertyStatus.DRAFT, alias="status"),
    address_line2: Optional[str] = Form(default=None),
    description: str = Form(default=""),
    images: list[UploadFile] = File(default=[]),
    session: AuthSession = Depends(require_admin),
    services: Services = Depends(get_services),
):
    try:
        data = PropertyCreate(
            status=status_,
            address_line1=address_line1,
            address_line2=address_line2 or None,
            city=city,
            postcode=postcode,
            price=price,
            bedrooms=bedrooms,
            bathrooms=bathrooms,
            description=description,
        )
    except ValidationError as e:
        raise unprocessable(e)

    prop = await create_listing(
        services.sessions, services.storage, session, data, await read_uploads(images)
    )
    logger.info("Admin %s created property %s", session.user_sub, prop.id)
    return to_response(services, prop)


@router.put("/properties/{property_id}", response_model=PropertyResponse)
async def update_property_route(
    request: Request,
    property_id: str,
    address_line1: Optional[str] = Form(default=None),
    city: Optional[str] = Form(default=None),
    postcode: Optional[str] = Form(default=None),
    price: Optional[float] = Form(default=None),
    bedrooms: Optional[int] = Form(default=None),
    bathrooms: Optional[int] = Form(default=None),
    status_: Optional[PropertyStatus] = Form(default=None, alias="status"),
    description: Optional[str] = Form(default=None),
    images: Optional[str] = Form(default=None),
    files: list[UploadFile] = File(default=[]),
    session: AuthSession = Depends(require_admin),
    services: Services = Depends(get_services),
):
    fields = {
        "status": status_,
        "address_line1": address_line1,
        "city": city,
        "postcode": postcode,
        "price": price,
        "bedrooms": bedrooms,
        "bathrooms": bathrooms,
        "description": description,
    }
    provided = {k: v for k, v in fields.items() if v is not None}
    # address_line2 is read from the raw form: an empty value clears it
    form = await request.form()
    if "address_line2" in form:
        provided["address_line2"] = form["address_line2"] or None
    try:
        data = PropertyUpdate(**provided)
    except ValidationError as e:
        raise unprocessable(e)

    uploads = await read_uploads(files)
    if images is None:
        if uploads:
            raise HTTPException(status_code=400, detail="Uploaded files must be referenced in images")
        ordered = None
    else:
        ordered = parse_image_order(images, uploads)

    try:
        prop = await edit_listing(
            services.sessions, services.storage, session, property_id, data, ordered
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return to_response(services, prop)


@router.delete("/properties/{property_id}", response_model=MessageResponse)
async def delete_property_route(
    property_id: str,
    session: AuthSession = Depends(require_admin),
    services: Services = Depends(get_services),
):
    await delete_listing(services.sessions, services.storage, session, property_id)
    logger.info("Admin %s deleted property %s", session.user_sub, property_id)
    return MessageResponse(message=f"Property {property_id} deleted")


@router.post("/seed", status_code=status.HTTP_201_CREATED)
async def seed(
    count: int = Query(default=100, ge=1, le=MAX_SEED_COUNT),
    session: AuthSession = Depends(require_admin),
    services: Services = Depends(get_services),
):
    created = await seed_properties(services.sessions, session, count)
    return {"created": len(created)}

"""Account routes: password change, profile picture, account deletion."""

import logging

from fastapi import APIRouter, Depends, File, UploadFile

from estate_platform.app.container import Services, get_services
from estate_platform.app.routes.auth import require_authenticated
from estate_platform.domain.schemas import MessageResponse, PasswordChange
from estate_platform.domain.session import AuthSession
from estate_platform.services.account_service import change_password, delete_account
from estate_platform.services.storage_service import (
    ImageUpload,
    delete_profile_picture,
    upload_profile_picture,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/account", tags=["account"])


@router.post("/password", response_model=MessageResponse)
async def update_password(
    data: PasswordChange,
    session: AuthSession = Depends(require_authenticated),
    services: Services = Depends(get_services),
):
    await change_password(services.auth, session, data.old_password, data.new_password)
    return MessageResponse(message="Password updated; please sign in again")


@router.put("/profile-picture")
async def put_profile_picture(
    file: UploadFile = File(...),
    session: AuthSession = Depends(require_authenticated),
    services: Services = Depends(get_services),
):
    upload = ImageUpload(data=await file.read(), content_type=file.content_type, filename=file.filename)
    path = await upload_profile_picture(services.storage, session, upload)
    return {"path": path, "url": services.storage.get_url(path)}


@router.delete("/profile-picture", response_model=MessageResponse)
async def remove_profile_picture(
    session: AuthSession = Depends(require_authenticated),
    services: Services = Depends(get_services),
):
    await delete_profile_picture(services.storage, session)
    return MessageResponse(message="Profile picture removed")


@router.delete("", response_model=MessageResponse)
async def remove_account(
    session: AuthSession = Depends(require_authenticated),
    services: Services = Depends(get_services),
):
    await delete_account(services.auth, services.sessions, services.storage, session)
    return MessageResponse(message="Account deleted")

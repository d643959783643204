"""Authentication routes: sign-up, confirmation, login, logout, password reset, me."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from estate_platform.app.container import Services, get_services
from estate_platform.domain.schemas import (
    ConfirmResetPassword,
    ConfirmSignUp,
    EmailOnly,
    MessageResponse,
    SessionResponse,
    TokenResponse,
    UserCreate,
    UserLogin,
)
from estate_platform.domain.session import AuthSession, get_groups, is_admin
from estate_platform.services.storage_service import get_profile_picture

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


async def get_auth_session_dep(
    request: Request, services: Services = Depends(get_services)
) -> AuthSession:
    """Dependency: session for the Bearer token, or the guest session without one."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header:
        return await services.auth.fetch_session()
    if not auth_header.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid token",
        )
    return await services.auth.fetch_session(auth_header.removeprefix("Bearer "))


async def require_authenticated(
    session: AuthSession = Depends(get_auth_session_dep),
) -> AuthSession:
    if not session.is_authenticated:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not authenticated",
        )
    return session


async def require_admin(session: AuthSession = Depends(require_authenticated)) -> AuthSession:
    if not is_admin(session):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions",
        )
    return session


async def _session_response(services: Services, session: AuthSession) -> SessionResponse:
    picture = await get_profile_picture(services.storage, session)
    return SessionResponse(
        identity_id=session.identity_id,
        authenticated=session.is_authenticated,
        user_sub=session.user_sub,
        username=session.username,
        groups=get_groups(session),
        profile_picture_url=services.storage.get_url(picture) if picture else None,
    )


@router.post("/signup", status_code=status.HTTP_201_CREATED)
async def signup(data: UserCreate, services: Services = Depends(get_services)):
    user_id = await services.auth.sign_up(data.email, data.password, data.name)
    return {"user_id": user_id, "message": "Confirmation code sent"}


@router.post("/confirm-signup", response_model=MessageResponse)
async def confirm_signup(data: ConfirmSignUp, services: Services = Depends(get_services)):
    await services.auth.confirm_sign_up(data.email, data.code)
    return MessageResponse(message="Account confirmed")


@router.post("/resend-code", response_model=MessageResponse)
async def resend_code(data: EmailOnly, services: Services = Depends(get_services)):
    await services.auth.resend_sign_up_code(data.email)
    return MessageResponse(message="Confirmation code sent")


@router.post("/login", response_model=TokenResponse)
async def login(data: UserLogin, services: Services = Depends(get_services)):
    session = await services.auth.sign_in(data.email, data.password)
    return TokenResponse(
        access_token=session.tokens.access_token,
        session=await _session_response(services, session),
    )


@router.post("/logout", response_model=MessageResponse)
async def logout(
    session: AuthSession = Depends(require_authenticated),
    services: Services = Depends(get_services),
):
    await services.auth.sign_out(session)
    return MessageResponse(message="Signed out")


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(data: EmailOnly, services: Services = Depends(get_services)):
    await services.auth.reset_password(data.email)
    return MessageResponse(message="Password reset code sent")


@router.post("/confirm-reset-password", response_model=MessageResponse)
async def confirm_reset_password(
    data: ConfirmResetPassword, services: Services = Depends(get_services)
):
    await services.auth.confirm_reset_password(data.email, data.code, data.new_password)
    return MessageResponse(message="Password has been reset")


@router.get("/me", response_model=SessionResponse)
async def me(
    session: AuthSession = Depends(get_auth_session_dep),
    services: Services = Depends(get_services),
):
    return await _session_response(services, session)

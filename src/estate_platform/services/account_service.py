"""Account self-service: password change and full account deletion."""

import asyncio
import logging

from estate_platform.domain.errors import AuthenticationRequiredError
from estate_platform.domain.session import AuthSession
from estate_platform.infra.object_storage import LocalObjectStorage
from estate_platform.services.auth_service import AuthService
from estate_platform.services.favorite_service import delete_all_user_data
from estate_platform.services.session_manager import SessionManager
from estate_platform.services.storage_service import delete_profile_picture

logger = logging.getLogger(__name__)


async def change_password(
    auth: AuthService,
    session: AuthSession,
    old_password: str,
    new_password: str,
) -> None:
    if not session.is_authenticated:
        raise AuthenticationRequiredError()
    await auth.update_password(session, old_password, new_password)


async def delete_account(
    auth: AuthService,
    manager: SessionManager,
    storage: LocalObjectStorage,
    session: AuthSession,
) -> None:
    """Remove profile picture and user data, then the identity itself.

    The identity is only deleted when both cleanups succeeded, so a failed
    deletion can be retried.
    """
    if not session.is_authenticated:
        raise AuthenticationRequiredError()

    await asyncio.gather(
        delete_profile_picture(storage, session),
        delete_all_user_data(manager, session),
    )
    await auth.delete_user(session)
    logger.info("Account %s deleted", session.user_sub)

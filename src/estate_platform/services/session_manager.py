"""Session-scoped data client cache and user-record resolution.

One ``SessionManager`` lives for the lifetime of the application. It keeps a
single ``SessionContext`` (session, client, user-record id); the context is
replaced wholesale whenever a different session object shows up, so the
three values can never disagree about which session they belong to.
"""

import asyncio
import logging
import weakref
from dataclasses import dataclass
from typing import Optional

from estate_platform.domain.enums import AuthMode
from estate_platform.domain.errors import BackendEnvelopeError, DataIntegrityError
from estate_platform.domain.session import AuthSession
from estate_platform.infra.data_api import DataApi, DataClient
from estate_platform.services.auth_service import AuthService

logger = logging.getLogger(__name__)


@dataclass
class SessionContext:
    session: AuthSession
    client: DataClient
    user_record_id: Optional[str] = None


class SessionManager:
    def __init__(self, data_api: DataApi, auth_service: AuthService) -> None:
        self._data_api = data_api
        self._auth = auth_service
        self._context: Optional[SessionContext] = None
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    @property
    def context(self) -> Optional[SessionContext]:
        return self._context

    def _context_for(self, session: AuthSession) -> SessionContext:
        context = self._context
        if context is not None and context.session is session:
            return context

        mode = AuthMode.USER_POOL if session.is_authenticated else AuthMode.IDENTITY_POOL
        context = SessionContext(session=session, client=self._data_api.client(mode, session))
        self._context = context
        logger.debug("Session context switched to %s (%s)", session.identity_id, mode.value)
        return context

    async def current_session(self, session: Optional[AuthSession] = None) -> AuthSession:
        if session is None:
            session = await self._auth.fetch_session()
        return session

    async def get_client(self, session: Optional[AuthSession] = None) -> DataClient:
        """Return the data client bound to *session* (or the current session)."""
        session = await self.current_session(session)
        return self._context_for(session).client

    def _lock_for(self, subject: str) -> asyncio.Lock:
        lock = self._locks.get(subject)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[subject] = lock
        return lock

    async def resolve_user_record_id(self, session: Optional[AuthSession] = None) -> Optional[str]:
        """Return the id of the session's ``UserRecord``, creating it on first use.

        Guests have no user record: ``None`` is returned and nothing is created.
        """
        session = await self.current_session(session)
        context = self._context_for(session)
        if context.user_record_id is not None:
            return context.user_record_id
        if not session.is_authenticated:
            return None

        subject = session.user_sub
        async with self._lock_for(subject):
            # Another caller may have resolved it while we waited
            context = self._context_for(session)
            if context.user_record_id is not None:
                return context.user_record_id

            client = context.client
            found = await client.user.list(filter={"owner": {"begins_with": subject}})
            if found.errors or found.extensions or found.data is None:
                raise BackendEnvelopeError(found.errors, found.extensions, "List user records")

            if len(found.data) == 0:
                created = await client.user.create({})
                if created.errors or created.extensions:
                    raise BackendEnvelopeError(created.errors, created.extensions, "Create user record")
                if not isinstance(created.data, dict) or not created.data.get("id"):
                    raise DataIntegrityError(f"Malformed user record create response: {created.data!r}")
                user_record_id = created.data["id"]
                logger.info("Created user record %s for %s", user_record_id, subject)
            elif len(found.data) == 1 and found.next_token is None:
                user_record_id = found.data[0]["id"]
            else:
                raise DataIntegrityError(
                    f"Expected at most one user record for {subject}, found {len(found.data)}"
                )

            if self._context is context:
                context.user_record_id = user_record_id
            return user_record_id

    def forget_user_record(self, session: AuthSession) -> None:
        """Drop the cached user-record id after the record was deleted."""
        if self._context is not None and self._context.session is session:
            self._context.user_record_id = None

    def close(self) -> None:
        self._context = None

"""Auth provider: identities, password hashing, JWT sessions and groups."""

import logging
import secrets
import uuid
from collections import OrderedDict
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from estate_platform.app.config import Settings
from estate_platform.domain.enums import ADMIN_GROUP
from estate_platform.domain.errors import (
    CodeMismatchError,
    InvalidCredentialsError,
    UserExistsError,
    UserNotConfirmedError,
    UserNotFoundError,
)
from estate_platform.domain.models import Identity
from estate_platform.domain.session import AuthSession, AuthTokens

logger = logging.getLogger(__name__)

CODE_LENGTH = 6


def hash_password(password: str, rounds: int = 12) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


def generate_code() -> str:
    return "".join(secrets.choice("0123456789") for _ in range(CODE_LENGTH))


class AuthService:
    """Local auth provider handing out JWT-backed ``AuthSession`` objects.

    ``fetch_session`` memoizes sessions per token (LRU) so that repeated
    requests with an unchanged token observe the same session object; the
    guest session is a single shared object.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], settings: Settings) -> None:
        self._session_factory = session_factory
        self._settings = settings
        self._guest = AuthSession(identity_id=f"guest-{uuid.uuid4()}")
        self._memo: OrderedDict[str, AuthSession] = OrderedDict()

    # ------------------------------------------------------------------
    # Token helpers
    # ------------------------------------------------------------------

    def create_access_token(self, identity: Identity) -> str:
        expire = datetime.now(timezone.utc) + timedelta(minutes=self._settings.jwt_expiration_minutes)
        payload = {
            "sub": identity.id,
            "email": identity.email,
            "groups": list(identity.groups or []),
            "ver": identity.token_version,
            "exp": expire,
        }
        return jwt.encode(payload, self._settings.jwt_secret_key, algorithm=self._settings.jwt_algorithm)

    def decode_token(self, token: str) -> dict | None:
        try:
            return jwt.decode(
                token, self._settings.jwt_secret_key, algorithms=[self._settings.jwt_algorithm]
            )
        except JWTError:
            return None

    def _memo_get(self, token: str) -> AuthSession | None:
        session = self._memo.get(token)
        if session is None:
            return None
        exp = session.tokens.claims.get("exp") if session.tokens else None
        if exp is not None and exp <= datetime.now(timezone.utc).timestamp():
            del self._memo[token]
            return None
        self._memo.move_to_end(token)
        return session

    def _memo_put(self, token: str, session: AuthSession) -> None:
        self._memo[token] = session
        self._memo.move_to_end(token)
        if len(self._memo) > self._settings.session_memo_size:
            self._memo.popitem(last=False)

    def _forget(self, user_sub: str) -> None:
        """Drop every memoized session of *user_sub*."""
        for token in [t for t, s in self._memo.items() if s.user_sub == user_sub]:
            del self._memo[token]

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def _get_by_email(self, db: AsyncSession, email: str) -> Identity | None:
        result = await db.execute(select(Identity).where(Identity.email == email.strip().lower()))
        return result.scalar_one_or_none()

    async def _require_by_email(self, db: AsyncSession, email: str) -> Identity:
        identity = await self._get_by_email(db, email)
        if identity is None:
            raise UserNotFoundError(f"No account for {email}")
        return identity

    async def _require_for_session(self, db: AsyncSession, session: AuthSession) -> Identity:
        if not session.user_sub:
            raise InvalidCredentialsError("Not signed in")
        identity = await db.get(Identity, session.user_sub)
        if identity is None:
            raise UserNotFoundError("Account no longer exists")
        return identity

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    @property
    def guest_session(self) -> AuthSession:
        return self._guest

    async def fetch_session(self, token: str | None = None) -> AuthSession:
        """Resolve *token* into a session; no token yields the guest session."""
        if not token:
            return self._guest

        session = self._memo_get(token)
        if session is not None:
            return session

        payload = self.decode_token(token)
        if not payload or "sub" not in payload:
            raise InvalidCredentialsError("Invalid or expired token")

        async with self._session_factory() as db:
            identity = await db.get(Identity, payload["sub"])
        if identity is None or identity.token_version != payload.get("ver"):
            raise InvalidCredentialsError("Token has been revoked")

        session = AuthSession(
            identity_id=identity.id,
            user_sub=identity.id,
            username=identity.email,
            tokens=AuthTokens(access_token=token, claims=payload),
        )
        self._memo_put(token, session)
        return session

    async def sign_in(self, email: str, password: str) -> AuthSession:
        async with self._session_factory() as db:
            identity = await self._get_by_email(db, email)
            if identity is None or not verify_password(password, identity.password_hash):
                raise InvalidCredentialsError("Incorrect username or password")
            if not identity.confirmed:
                raise UserNotConfirmedError("User is not confirmed")
            identity.last_login_at = datetime.now(timezone.utc).replace(tzinfo=None)
            await db.commit()
            token = self.create_access_token(identity)

        logger.info("Signed in %s", identity.id)
        return await self.fetch_session(token)

    async def sign_out(self, session: AuthSession) -> None:
        """Global sign-out: every token issued so far stops working."""
        async with self._session_factory() as db:
            identity = await self._require_for_session(db, session)
            identity.token_version += 1
            await db.commit()
        self._forget(session.user_sub)
        logger.info("Signed out %s", session.user_sub)

    # ------------------------------------------------------------------
    # Sign-up & confirmation
    # ------------------------------------------------------------------

    async def sign_up(self, email: str, password: str, name: str) -> str:
        """Register an unconfirmed identity and issue a confirmation code."""
        async with self._session_factory() as db:
            if await self._get_by_email(db, email):
                raise UserExistsError("An account with the given email already exists")
            identity = Identity(
                email=email.strip().lower(),
                name=name,
                password_hash=hash_password(password, self._settings.bcrypt_rounds),
                groups=[],
                confirmed=False,
                confirmation_code=generate_code(),
            )
            db.add(identity)
            await db.commit()
            await db.refresh(identity)

        # No mail transport; the code is delivered through the log
        logger.info("Confirmation code for %s: %s", identity.email, identity.confirmation_code)
        return identity.id

    async def confirm_sign_up(self, email: str, code: str) -> None:
        async with self._session_factory() as db:
            identity = await self._require_by_email(db, email)
            if identity.confirmed:
                return
            if not identity.confirmation_code or identity.confirmation_code != code:
                raise CodeMismatchError("Invalid verification code provided")
            identity.confirmed = True
            identity.confirmation_code = None
            await db.commit()
        logger.info("Confirmed sign-up for %s", identity.id)

    async def resend_sign_up_code(self, email: str) -> None:
        async with self._session_factory() as db:
            identity = await self._require_by_email(db, email)
            if identity.confirmed:
                return
            identity.confirmation_code = generate_code()
            await db.commit()
        logger.info("Confirmation code for %s: %s", identity.email, identity.confirmation_code)

    # ------------------------------------------------------------------
    # Passwords
    # ------------------------------------------------------------------

    async def update_password(self, session: AuthSession, old_password: str, new_password: str) -> None:
        async with self._session_factory() as db:
            identity = await self._require_for_session(db, session)
            if not verify_password(old_password, identity.password_hash):
                raise InvalidCredentialsError("Incorrect password")
            identity.password_hash = hash_password(new_password, self._settings.bcrypt_rounds)
            identity.token_version += 1
            await db.commit()
        self._forget(session.user_sub)
        logger.info("Password updated for %s", session.user_sub)

    async def reset_password(self, email: str) -> None:
        async with self._session_factory() as db:
            identity = await self._require_by_email(db, email)
            identity.reset_code = generate_code()
            await db.commit()
        logger.info("Password reset code for %s: %s", identity.email, identity.reset_code)

    async def confirm_reset_password(self, email: str, code: str, new_password: str) -> None:
        async with self._session_factory() as db:
            identity = await self._require_by_email(db, email)
            if not identity.reset_code or identity.reset_code != code:
                raise CodeMismatchError("Invalid verification code provided")
            identity.password_hash = hash_password(new_password, self._settings.bcrypt_rounds)
            identity.reset_code = None
            identity.confirmed = True
            identity.token_version += 1
            await db.commit()
        self._forget(identity.id)
        logger.info("Password reset for %s", identity.id)

    # ------------------------------------------------------------------
    # Account & groups
    # ------------------------------------------------------------------

    async def delete_user(self, session: AuthSession) -> None:
        async with self._session_factory() as db:
            identity = await self._require_for_session(db, session)
            await db.delete(identity)
            await db.commit()
        self._forget(session.user_sub)
        logger.info("Deleted identity %s", session.user_sub)

    async def add_user_to_group(self, email: str, group: str) -> None:
        """Add *email* to *group*. Takes effect on the next sign-in."""
        async with self._session_factory() as db:
            identity = await self._require_by_email(db, email)
            groups = list(identity.groups or [])
            if group not in groups:
                groups.append(group)
                identity.groups = groups
                await db.commit()

    async def ensure_admin(self, email: str, password: str, name: str = "Administrator") -> None:
        """Create (or promote) a confirmed admin identity."""
        async with self._session_factory() as db:
            identity = await self._get_by_email(db, email)
            if identity is None:
                identity = Identity(
                    email=email.strip().lower(),
                    name=name,
                    password_hash=hash_password(password, self._settings.bcrypt_rounds),
                    groups=[ADMIN_GROUP],
                    confirmed=True,
                )
                db.add(identity)
                logger.info("Created admin identity %s", email)
            elif ADMIN_GROUP not in (identity.groups or []):
                identity.groups = list(identity.groups or []) + [ADMIN_GROUP]
                logger.info("Promoted %s to admin", email)
            await db.commit()

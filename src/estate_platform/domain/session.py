"""Auth sessions as handed out by the auth provider."""

from dataclasses import dataclass, field
from typing import Any

from estate_platform.domain.enums import ADMIN_GROUP


@dataclass(eq=False)
class AuthTokens:
    access_token: str
    claims: dict[str, Any] = field(default_factory=dict)


@dataclass(eq=False)
class AuthSession:
    """An auth provider session.

    Sessions compare by identity: two sessions are "the same" only when they
    are the same object, which is what the session cache keys on.
    """

    identity_id: str
    user_sub: str | None = None
    username: str | None = None
    tokens: AuthTokens | None = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_sub)

    @property
    def owner(self) -> str | None:
        """Owner attribute stamped on owner-scoped records."""
        if not self.user_sub:
            return None
        return f"{self.user_sub}::{self.username or self.user_sub}"


def get_groups(session: AuthSession | None) -> list[str]:
    if session is None or session.tokens is None:
        return []
    return list(session.tokens.claims.get("groups") or [])


def is_admin(session: AuthSession | None) -> bool:
    return ADMIN_GROUP in get_groups(session)

"""Object storage on the local filesystem with path-based access rules.

Objects live under ``storage_root`` at ``<category>/<owner or property id>/<name>``
and are served read-only by the static mount at ``storage_url_prefix``.

Access rules:
- ``property-images/*``: readable by everyone, writable by the admin group.
- ``profile-pictures/<identity id>/*``: readable by everyone, writable by the
  identity owning ``<identity id>`` and by the admin group.
"""

import asyncio
import logging
from pathlib import Path, PurePosixPath
from typing import Optional

from estate_platform.domain.enums import StorageCategory
from estate_platform.domain.errors import StorageAccessDeniedError
from estate_platform.domain.session import AuthSession, is_admin

logger = logging.getLogger(__name__)

WRITE = "write"
DELETE = "delete"


def split_path(path: str) -> tuple[StorageCategory, str, str]:
    """Split ``<category>/<scope>/<rest>``; raise ``ValueError`` when malformed."""
    parts = PurePosixPath(path).parts
    if path.startswith("/") or ".." in parts or len(parts) < 2:
        raise ValueError(f"Invalid storage path '{path}'")
    try:
        category = StorageCategory(parts[0])
    except ValueError:
        raise ValueError(f"Unknown storage category in '{path}'") from None
    return category, parts[1], "/".join(parts[2:])


def _can_modify(session: AuthSession, category: StorageCategory, scope: str) -> bool:
    if is_admin(session):
        return True
    if category == StorageCategory.PROFILE_PICTURES:
        return session.is_authenticated and scope == session.identity_id
    return False


class LocalObjectStorage:
    def __init__(self, root: Path, url_prefix: str = "/storage") -> None:
        self._root = Path(root)
        self._url_prefix = url_prefix.rstrip("/")

    @property
    def root(self) -> Path:
        return self._root

    def _check(self, action: str, path: str, session: AuthSession) -> Path:
        category, scope, name = split_path(path)
        if not name:
            raise ValueError(f"Storage path '{path}' has no object name")
        if not _can_modify(session, category, scope):
            logger.warning("Denied %s of %s for %s", action, path, session.identity_id)
            raise StorageAccessDeniedError(action, path)
        return self._root / path

    async def upload(
        self,
        path: str,
        data: bytes,
        session: AuthSession,
        content_type: Optional[str] = None,
    ) -> str:
        """Store *data* at *path* (overwriting) and return the path."""
        target = self._check(WRITE, path, session)

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)

        await asyncio.to_thread(_write)
        logger.debug("Stored %s (%d bytes, %s)", path, len(data), content_type or "unknown type")
        return path

    async def remove(self, path: str, session: AuthSession) -> None:
        """Delete the object at *path*; a missing object is not an error."""
        target = self._check(DELETE, path, session)
        await asyncio.to_thread(target.unlink, missing_ok=True)
        logger.debug("Removed %s", path)

    async def list(self, prefix: str) -> list[str]:
        """Paths of every object under *prefix*, sorted. Readable by everyone."""
        split_path(prefix)
        base = self._root / prefix

        def _walk() -> list[str]:
            if not base.is_dir():
                return []
            return sorted(
                p.relative_to(self._root).as_posix() for p in base.rglob("*") if p.is_file()
            )

        return await asyncio.to_thread(_walk)

    def get_url(self, path: str) -> str:
        split_path(path)
        return f"{self._url_prefix}/{path}"

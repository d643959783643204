"""Application-wide service wiring, created in the lifespan and torn down with it."""

import logging
from dataclasses import dataclass
from pathlib import Path

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from estate_platform.app.config import Settings
from estate_platform.infra.data_api import DataApi
from estate_platform.infra.database import build_engine, build_session_factory, init_db
from estate_platform.infra.object_storage import LocalObjectStorage
from estate_platform.services.auth_service import AuthService
from estate_platform.services.session_manager import SessionManager

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]
    data_api: DataApi
    auth: AuthService
    sessions: SessionManager
    storage: LocalObjectStorage

    @classmethod
    def build(cls, settings: Settings) -> "Services":
        engine = build_engine(settings.database_url)
        session_factory = build_session_factory(engine)
        data_api = DataApi(session_factory)
        auth = AuthService(session_factory, settings)
        return cls(
            settings=settings,
            engine=engine,
            session_factory=session_factory,
            data_api=data_api,
            auth=auth,
            sessions=SessionManager(data_api, auth),
            storage=LocalObjectStorage(Path(settings.storage_root), settings.storage_url_prefix),
        )

    async def start(self) -> None:
        await init_db(self.engine)
        self.storage.root.mkdir(parents=True, exist_ok=True)
        if self.settings.admin_email and self.settings.admin_password:
            await self.auth.ensure_admin(self.settings.admin_email, self.settings.admin_password)

    async def close(self) -> None:
        self.sessions.close()
        await self.engine.dispose()
        logger.info("Services shut down")


def get_services(request: Request) -> Services:
    """Dependency: the running application's services."""
    return request.app.state.services

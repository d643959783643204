"""FastAPI application entry point for the Estate Platform API."""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from estate_platform.app.config import get_settings
from estate_platform.app.container import Services
from estate_platform.app.errors import register_exception_handlers
from estate_platform.domain.schemas import HealthResponse

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: wire services and initialize the database."""
    services = Services.build(get_settings())
    await services.start()
    app.state.services = services
    try:
        yield
    finally:
        await services.close()


settings = get_settings()

# Configure logging
logging.basicConfig(
    level=logging.INFO if settings.debug else logging.WARNING,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)

app = FastAPI(
    title="Estate Platform API",
    lifespan=lifespan,
    debug=settings.debug,
)

# CORS middleware; debug mode allows every origin
_cors_origins = settings.cors_origins_list
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=("*" not in _cors_origins),
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# ---------------------------------------------------------------------------
# Route includes
# ---------------------------------------------------------------------------
from estate_platform.app.routes.auth import router as auth_router
from estate_platform.app.routes.properties import router as properties_router
from estate_platform.app.routes.favorites import router as favorites_router
from estate_platform.app.routes.admin import router as admin_router
from estate_platform.app.routes.account import router as account_router

app.include_router(auth_router)
app.include_router(properties_router)
app.include_router(favorites_router)
app.include_router(admin_router)
app.include_router(account_router)

# Static file mount for stored objects (property images, profile pictures)
_storage_dir = Path(settings.storage_root)
_storage_dir.mkdir(parents=True, exist_ok=True)
app.mount(settings.storage_url_prefix, StaticFiles(directory=str(_storage_dir)), name="storage")


@app.get("/health", tags=["health"], response_model=HealthResponse)
async def health_check():
    """Return service health status."""
    return HealthResponse(status="ok", service="estate-platform")


def run() -> None:
    """Run the application with uvicorn (used by project.scripts entry point)."""
    uvicorn.run(
        "estate_platform.app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )


if __name__ == "__main__":
    run()

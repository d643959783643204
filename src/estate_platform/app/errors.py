"""Map domain exceptions onto HTTP responses."""

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from estate_platform.domain.errors import (
    AuthError,
    AuthenticationRequiredError,
    BackendEnvelopeError,
    DataIntegrityError,
    PropertyNotFoundError,
    StorageAccessDeniedError,
    StorageCleanupError,
)

logger = logging.getLogger(__name__)


def unprocessable(exc: ValidationError) -> HTTPException:
    """422 for a model validated by hand inside a route."""
    return HTTPException(
        status_code=422,
        detail=exc.errors(include_url=False, include_context=False, include_input=False),
    )


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AuthenticationRequiredError)
    async def _auth_required(request: Request, exc: AuthenticationRequiredError):
        return JSONResponse(status_code=401, content={"detail": str(exc)})

    @app.exception_handler(AuthError)
    async def _auth_error(request: Request, exc: AuthError):
        return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})

    @app.exception_handler(PropertyNotFoundError)
    async def _not_found(request: Request, exc: PropertyNotFoundError):
        return JSONResponse(status_code=404, content={"detail": f"Property {exc.property_id} not found"})

    @app.exception_handler(BackendEnvelopeError)
    async def _backend(request: Request, exc: BackendEnvelopeError):
        logger.error("Data backend error on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=502,
            content={"detail": exc.operation or "Data backend error", "errors": exc.errors},
        )

    @app.exception_handler(DataIntegrityError)
    async def _integrity(request: Request, exc: DataIntegrityError):
        logger.error("Data integrity error on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=500, content={"detail": str(exc)})

    @app.exception_handler(StorageAccessDeniedError)
    async def _storage_denied(request: Request, exc: StorageAccessDeniedError):
        return JSONResponse(status_code=403, content={"detail": str(exc)})

    @app.exception_handler(StorageCleanupError)
    async def _storage_cleanup(request: Request, exc: StorageCleanupError):
        logger.error("Storage cleanup failed: %s", exc.failed_paths)
        return JSONResponse(
            status_code=502,
            content={"detail": str(exc), "failed_paths": exc.failed_paths},
        )

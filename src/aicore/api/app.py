from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .. import __version__
from ..client import HostClient
from ..errors import AICoreError, ValidationError
from ..storage import StorageBackend
from .dependencies import initialise_storage, set_host_client, set_storage
from .routes import router

logger = logging.getLogger(__name__)


def _describe_validation_error(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        parts.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "; ".join(parts) or "Invalid request"


def create_app(
    storage: Optional[StorageBackend] = None,
    host_client: Optional[HostClient] = None,
) -> FastAPI:
    """Build the REST application.

    Without ``storage`` the SQLite backend configured by the environment is
    opened on startup and closed on shutdown; a given backend is owned by the
    caller and must already be connected.
    """
    set_storage(storage)
    set_host_client(host_client)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        owned = storage is None
        backend = initialise_storage()
        if owned:
            await backend.connect()
        try:
            yield
        finally:
            if owned:
                await backend.disconnect()
                set_storage(None)
                logger.info("Storage closed")

    app = FastAPI(
        title="AICore API",
        description="Chat dispatch, conversation threads and usage logs",
        version=__version__,
        lifespan=lifespan,
    )

    @app.exception_handler(AICoreError)
    async def handle_aicore_error(_: Request, exc: AICoreError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("Request failed: %s", exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
        error = ValidationError(_describe_validation_error(exc))
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=error.to_dict())

    app.include_router(router)
    return app

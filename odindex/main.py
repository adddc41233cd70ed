"""Application entrypoint for the OneDrive index gateway."""

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from odindex.api import router as api_router
from odindex.api.common import GatewayError
from odindex.core.config import get_settings
from odindex.core.db import engine
from odindex.core.logging import configure_logging
from odindex.models import Base
from odindex.services.graph import GraphAPIError
from odindex.services.oauth import OAuthError

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal server error."


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance."""
    settings = get_settings()
    configure_logging(settings)

    application = FastAPI(title="OneDrive Index Gateway", version=settings.version)

    _configure_exception_handlers(application)

    application.include_router(api_router)

    @application.on_event("startup")
    async def _on_startup() -> None:  # pragma: no cover - exercised via tests
        async with engine.begin() as connection:
            await connection.run_sync(Base.metadata.create_all)

    return application


def _configure_exception_handlers(application: FastAPI) -> None:
    application.add_exception_handler(GatewayError, _gateway_exception_handler)
    application.add_exception_handler(GraphAPIError, _graph_exception_handler)
    application.add_exception_handler(OAuthError, _oauth_exception_handler)
    application.add_exception_handler(HTTPException, _http_exception_handler)
    application.add_exception_handler(RequestValidationError, _validation_exception_handler)
    application.add_exception_handler(Exception, _unhandled_exception_handler)


async def _gateway_exception_handler(_: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, GatewayError)
    return _error_response(exc.error, exc.status_code, exc.headers)


async def _graph_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, GraphAPIError)
    logger.warning(
        "Upstream request failed",
        extra={"path": request.url.path, "status_code": exc.status_code},
    )
    error = exc.payload if exc.payload is not None else INTERNAL_ERROR_MESSAGE
    return _error_response(error, exc.status_code or 500)


async def _oauth_exception_handler(_: Request, exc: Exception) -> JSONResponse:
    logger.error("Unable to obtain an access token", exc_info=exc)
    return _error_response(INTERNAL_ERROR_MESSAGE, 500)


async def _http_exception_handler(_: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, HTTPException)
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return _error_response(message, exc.status_code, exc.headers)


async def _validation_exception_handler(_: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, RequestValidationError)
    logger.info("Validation error", extra={"errors": exc.errors()})
    return _error_response("Invalid request.", 400)


async def _unhandled_exception_handler(_: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled application error")
    return _error_response(INTERNAL_ERROR_MESSAGE, 500)


def _error_response(error: object, status_code: int, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error}, headers=headers)


app = create_app()

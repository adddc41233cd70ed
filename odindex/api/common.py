"""Shared helpers for the gateway routes."""
from __future__ import annotations

import re
from typing import Any

from fastapi import Request

from odindex.core.config import Settings
from odindex.services.oauth import OneDriveOAuthClient
from odindex.services.paths import clean_path, is_placeholder
from odindex.services.protected import AuthResult, ProtectedRouteAuthenticator

NO_CACHE = "no-cache"
CORS_ALLOW_METHODS = "GET, POST, PUT, DELETE, OPTIONS"
CORS_ALLOW_HEADERS = "Content-Type, Authorization"
PROTECTED_TOKEN_HEADER = "od-protected-token"

_ORDER_BY_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9_./]*( (asc|desc))?$", re.IGNORECASE)


class GatewayError(Exception):
    """An error response produced by a route: rendered as ``{"error": error}``."""

    def __init__(self, status_code: int, error: Any, headers: dict[str, str] | None = None):
        super().__init__(error if isinstance(error, str) else f"HTTP {status_code}")
        self.status_code = status_code
        self.error = error
        self.headers = headers


def require_clean_path(path: str) -> str:
    """Validate the ``path`` query parameter and return its normalised form."""

    if is_placeholder(path):
        raise GatewayError(400, "No path specified.")
    return clean_path(path)


def validate_sort(sort: str) -> str:
    if sort and not _ORDER_BY_PATTERN.match(sort):
        raise GatewayError(400, "Sort query invalid.")
    return sort


def cache_headers(settings: Settings) -> dict[str, str]:
    return {"Cache-Control": settings.cache_control_header}


def cors_headers(request: Request, settings: Settings) -> dict[str, str]:
    """CORS headers for raw content; the origin is echoed only when allowed."""

    headers = {
        "Access-Control-Allow-Methods": CORS_ALLOW_METHODS,
        "Access-Control-Allow-Headers": CORS_ALLOW_HEADERS,
    }
    origin = request.headers.get("origin", "")
    if origin in settings.cors_origins:
        headers["Access-Control-Allow-Origin"] = origin
    return headers


def redirect_cors_headers(settings: Settings) -> dict[str, str]:
    return {
        "Access-Control-Allow-Origin": settings.redirect_cors_origin,
        "Access-Control-Allow-Methods": CORS_ALLOW_METHODS,
        "Access-Control-Allow-Headers": CORS_ALLOW_HEADERS,
    }


async def require_access_token(oauth_client: OneDriveOAuthClient) -> str:
    """Return the drive access token; an unauthenticated drive is a 403."""

    access_token = await oauth_client.get_access_token()
    if not access_token:
        raise GatewayError(403, "No access token.")
    return access_token


async def authorize_path(
    authenticator: ProtectedRouteAuthenticator,
    path: str,
    access_token: str,
    supplied_token: str | None,
    headers: dict[str, str],
) -> AuthResult:
    """Run the protected route check for ``path``.

    Raises a ``GatewayError`` carrying ``headers`` when the check fails, and
    switches ``headers`` to ``no-cache`` when the route is protected.
    """

    result = await authenticator.check_auth_route(path, access_token, supplied_token)
    if not result.ok:
        raise GatewayError(result.code, result.message, headers)
    if result.protected:
        headers["Cache-Control"] = NO_CACHE
    return result

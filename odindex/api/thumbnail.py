"""Thumbnail redirects for drive items."""
from __future__ import annotations

import httpx
from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import RedirectResponse

from odindex.api.common import (
    GatewayError,
    authorize_path,
    cache_headers,
    require_access_token,
    require_clean_path,
)
from odindex.api.deps import get_authenticator, get_oauth_client, get_upstream_transport
from odindex.core.config import Settings, get_settings
from odindex.services.graph import GraphClient
from odindex.services.oauth import OneDriveOAuthClient
from odindex.services.paths import encode_path
from odindex.services.protected import ProtectedRouteAuthenticator

THUMBNAIL_SIZES: tuple[str, ...] = ("large", "medium", "small")

router = APIRouter(tags=["thumbnail"])


@router.get("/thumbnail")
async def get_thumbnail(
    path: str = Query(""),
    size: str = Query("medium"),
    odpt: str = Query(""),
    settings: Settings = Depends(get_settings),
    oauth_client: OneDriveOAuthClient = Depends(get_oauth_client),
    authenticator: ProtectedRouteAuthenticator = Depends(get_authenticator),
    transport: httpx.AsyncBaseTransport | None = Depends(get_upstream_transport),
) -> RedirectResponse:
    """Redirect to the thumbnail of the requested size."""

    if size not in THUMBNAIL_SIZES:
        raise GatewayError(status.HTTP_400_BAD_REQUEST, "Invalid size")
    cleaned = require_clean_path(path)
    access_token = await require_access_token(oauth_client)

    headers = cache_headers(settings)
    await authorize_path(authenticator, cleaned, access_token, odpt, headers)

    graph = GraphClient(settings, access_token, transport=transport)
    data = await graph.get_thumbnails(encode_path(cleaned, settings.base_directory))

    thumbnail_url = _thumbnail_url(data.get("value"), size)
    if not thumbnail_url:
        raise GatewayError(status.HTTP_400_BAD_REQUEST, "The item doesn't have a valid thumbnail.")
    return RedirectResponse(thumbnail_url, status_code=status.HTTP_302_FOUND, headers=headers)


def _thumbnail_url(thumbnail_sets: object, size: str) -> str | None:
    if not isinstance(thumbnail_sets, list) or not thumbnail_sets:
        return None
    first = thumbnail_sets[0]
    if not isinstance(first, dict):
        return None
    thumbnail = first.get(size)
    if not isinstance(thumbnail, dict):
        return None
    url = thumbnail.get("url")
    return url if isinstance(url, str) and url else None

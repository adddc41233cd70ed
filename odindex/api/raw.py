"""Raw file content: redirects to signed download URLs or proxies small files."""
from __future__ import annotations

import logging

import httpx
from fastapi import APIRouter, Depends, Header, Query, Request, status
from fastapi.responses import JSONResponse, RedirectResponse, Response, StreamingResponse
from starlette.background import BackgroundTask

from odindex.api.common import (
    NO_CACHE,
    GatewayError,
    authorize_path,
    cache_headers,
    cors_headers,
    redirect_cors_headers,
    require_access_token,
    require_clean_path,
)
from odindex.api.deps import get_authenticator, get_oauth_client, get_upstream_transport
from odindex.core.config import Settings, get_settings
from odindex.services.graph import DOWNLOAD_URL, GraphClient
from odindex.services.oauth import OneDriveOAuthClient
from odindex.services.paths import encode_path
from odindex.services.protected import ProtectedRouteAuthenticator

RAW_FIELDS = f"id,size,{DOWNLOAD_URL}"

# Connection-level headers that must not be copied from the upstream response.
HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailer",
        "transfer-encoding",
        "upgrade",
    }
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["raw"])


@router.options("/raw")
@router.options("/raw/", include_in_schema=False)
async def raw_preflight(request: Request, settings: Settings = Depends(get_settings)) -> JSONResponse:
    """Answer CORS preflight requests for raw content."""

    return JSONResponse({}, headers=cors_headers(request, settings))


@router.get("/raw")
@router.get("/raw/", include_in_schema=False)
async def get_raw(
    request: Request,
    path: str = Query("/"),
    odpt: str = Query(""),
    proxy: str = Query(""),
    od_protected_token: str | None = Header(default=None),
    settings: Settings = Depends(get_settings),
    oauth_client: OneDriveOAuthClient = Depends(get_oauth_client),
    authenticator: ProtectedRouteAuthenticator = Depends(get_authenticator),
    transport: httpx.AsyncBaseTransport | None = Depends(get_upstream_transport),
) -> Response:
    """Serve the content of a file, proxied when small enough, otherwise redirected."""

    cleaned = require_clean_path(path)
    access_token = await require_access_token(oauth_client)

    headers = cache_headers(settings)
    supplied_token = od_protected_token if od_protected_token is not None else odpt
    await authorize_path(authenticator, cleaned, access_token, supplied_token, headers)
    headers.update(cors_headers(request, settings))

    graph = GraphClient(settings, access_token, transport=transport)
    item = await graph.get_item(encode_path(cleaned, settings.base_directory), select=RAW_FIELDS)
    download_url = item.get(DOWNLOAD_URL)
    if not download_url:
        raise GatewayError(status.HTTP_404_NOT_FOUND, "No download URL found.")

    size = item.get("size")
    if proxy == "true" and isinstance(size, int) and size < settings.proxy_size_limit:
        return await _proxy_download(graph, download_url, headers)

    logger.debug("Redirecting to download URL", extra={"path": cleaned})
    redirect_headers = {"Cache-Control": headers["Cache-Control"], **redirect_cors_headers(settings)}
    return RedirectResponse(download_url, status_code=status.HTTP_302_FOUND, headers=redirect_headers)


async def redirect_to_download(
    request: Request,
    settings: Settings,
    graph: GraphClient,
    encoded_path: str,
    headers: dict[str, str],
) -> Response:
    """Redirect to the download URL of an item, bypassing any cache."""

    headers.update(cors_headers(request, settings))
    headers["Cache-Control"] = NO_CACHE

    # OneDrive international fails when only the download URL is selected
    item = await graph.get_item(encoded_path, select=f"id,{DOWNLOAD_URL}")
    download_url = item.get(DOWNLOAD_URL)
    if not download_url:
        raise GatewayError(status.HTTP_404_NOT_FOUND, "No download url found.")
    return RedirectResponse(download_url, status_code=status.HTTP_302_FOUND, headers=headers)


async def _proxy_download(
    graph: GraphClient, download_url: str, headers: dict[str, str]
) -> StreamingResponse:
    stream = await graph.open_download(download_url)
    skipped = HOP_BY_HOP_HEADERS | {key.lower() for key in headers}
    forwarded = {key: value for key, value in stream.headers.items() if key.lower() not in skipped}
    forwarded.update(headers)
    logger.debug("Proxying download", extra={"content_length": forwarded.get("content-length")})
    return StreamingResponse(
        stream.iter_bytes(),
        status_code=status.HTTP_200_OK,
        headers=forwarded,
        background=BackgroundTask(stream.aclose),
    )

"""Full text search scoped to the base directory."""
from __future__ import annotations

import httpx
from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from odindex.api.common import cache_headers, require_access_token
from odindex.api.deps import get_oauth_client, get_upstream_transport
from odindex.core.config import Settings, get_settings
from odindex.services.graph import GraphClient
from odindex.services.oauth import OneDriveOAuthClient
from odindex.services.paths import encode_path

router = APIRouter(tags=["search"])


@router.get("/search")
async def search(
    q: str = Query(""),
    settings: Settings = Depends(get_settings),
    oauth_client: OneDriveOAuthClient = Depends(get_oauth_client),
    transport: httpx.AsyncBaseTransport | None = Depends(get_upstream_transport),
) -> JSONResponse:
    """Search items under the base directory; an empty query matches nothing."""

    headers = cache_headers(settings)
    if not q:
        return JSONResponse([], headers=headers)

    access_token = await require_access_token(oauth_client)
    graph = GraphClient(settings, access_token, transport=transport)
    data = await graph.search(encode_path("/", settings.base_directory), q, top=settings.max_items)
    return JSONResponse(data.get("value", []), headers=headers)

"""Item metadata lookup by drive item ID."""
from __future__ import annotations

import httpx
from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from odindex.api.common import GatewayError, cache_headers, require_access_token
from odindex.api.deps import get_oauth_client, get_upstream_transport
from odindex.core.config import Settings, get_settings
from odindex.services.graph import GraphClient
from odindex.services.oauth import OneDriveOAuthClient

ITEM_ID_FIELDS = "id,name,parentReference"

router = APIRouter(tags=["item"])


@router.get("/item")
async def get_item(
    item_id: str = Query("", alias="id"),
    settings: Settings = Depends(get_settings),
    oauth_client: OneDriveOAuthClient = Depends(get_oauth_client),
    transport: httpx.AsyncBaseTransport | None = Depends(get_upstream_transport),
) -> JSONResponse:
    """Return the name and parent of a drive item."""

    if not item_id:
        raise GatewayError(status.HTTP_400_BAD_REQUEST, "Invalid driveItem ID.")
    access_token = await require_access_token(oauth_client)

    graph = GraphClient(settings, access_token, transport=transport)
    data = await graph.get_item_by_id(item_id, select=ITEM_ID_FIELDS)
    return JSONResponse(data, headers=cache_headers(settings))

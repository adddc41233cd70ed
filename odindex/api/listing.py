"""Folder listings, item identity and token submission."""
from __future__ import annotations

import httpx
from fastapi import APIRouter, Depends, Header, Query, Request, status
from fastapi.responses import JSONResponse, Response

from odindex.api.common import (
    GatewayError,
    authorize_path,
    cache_headers,
    require_access_token,
    require_clean_path,
    validate_sort,
)
from odindex.api.deps import (
    get_authenticator,
    get_oauth_client,
    get_token_store,
    get_upstream_transport,
)
from odindex.api.raw import redirect_to_download
from odindex.core.config import Settings, get_settings
from odindex.core.obfuscation import reveal_obfuscated_token
from odindex.schemas import TokenSubmission
from odindex.services.graph import NEXT_LINK, GraphClient, extract_skip_token
from odindex.services.oauth import OneDriveOAuthClient
from odindex.services.paths import encode_path
from odindex.services.protected import ProtectedRouteAuthenticator
from odindex.services.token_store import TokenStore

router = APIRouter(tags=["listing"])


@router.get("")
async def get_listing(
    request: Request,
    path: str = Query("/"),
    next_cursor: str = Query("", alias="next"),
    sort: str = Query(""),
    od_protected_token: str | None = Header(default=None),
    settings: Settings = Depends(get_settings),
    oauth_client: OneDriveOAuthClient = Depends(get_oauth_client),
    authenticator: ProtectedRouteAuthenticator = Depends(get_authenticator),
    transport: httpx.AsyncBaseTransport | None = Depends(get_upstream_transport),
) -> Response:
    """Return a folder listing page or a file's identity.

    With the ``raw`` flag the request is redirected to the file's download URL
    instead.
    """

    cleaned = require_clean_path(path)
    validate_sort(sort)
    access_token = await require_access_token(oauth_client)

    headers = cache_headers(settings)
    await authorize_path(authenticator, cleaned, access_token, od_protected_token, headers)

    graph = GraphClient(settings, access_token, transport=transport)
    encoded_path = encode_path(cleaned, settings.base_directory)

    if "raw" in request.query_params:
        return await redirect_to_download(request, settings, graph, encoded_path, headers)

    identity = await graph.get_item(encoded_path)
    if "folder" not in identity:
        return JSONResponse({"file": identity}, headers=headers)

    folder = await graph.list_children(
        encoded_path,
        top=settings.max_items,
        skip_token=next_cursor or None,
        order_by=sort or None,
    )
    body = {"folder": folder}
    next_page = extract_skip_token(folder.get(NEXT_LINK))
    if next_page:
        body["next"] = next_page
    return JSONResponse(body, headers=headers)


@router.post("")
async def submit_tokens(
    payload: TokenSubmission,
    settings: Settings = Depends(get_settings),
    store: TokenStore = Depends(get_token_store),
) -> dict[str, str]:
    """Persist a token pair obtained through the OAuth setup flow."""

    access_token = reveal_obfuscated_token(
        payload.obfuscated_access_token, settings.obfuscation_passphrase
    )
    refresh_token = reveal_obfuscated_token(
        payload.obfuscated_refresh_token, settings.obfuscation_passphrase
    )
    if access_token is None or refresh_token is None or payload.access_token_expiry is None:
        raise GatewayError(status.HTTP_400_BAD_REQUEST, "Invalid request body")

    await store.store_tokens(access_token, payload.access_token_expiry, refresh_token)
    return {"message": "OK"}

"""FastAPI dependencies wiring the gateway services together."""
from __future__ import annotations

import httpx
from fastapi import Depends

from odindex.core.config import Settings, get_settings
from odindex.core.db import AsyncSessionLocal
from odindex.services.oauth import OneDriveOAuthClient
from odindex.services.protected import ProtectedRouteAuthenticator
from odindex.services.token_store import TokenStore


def get_upstream_transport() -> httpx.AsyncBaseTransport | None:
    """Transport used for every upstream call; ``None`` means the network."""

    return None


def get_token_store() -> TokenStore:
    return TokenStore(AsyncSessionLocal)


def get_oauth_client(
    settings: Settings = Depends(get_settings),
    store: TokenStore = Depends(get_token_store),
    transport: httpx.AsyncBaseTransport | None = Depends(get_upstream_transport),
) -> OneDriveOAuthClient:
    return OneDriveOAuthClient(settings, store, transport=transport)


def get_authenticator(
    settings: Settings = Depends(get_settings),
    transport: httpx.AsyncBaseTransport | None = Depends(get_upstream_transport),
) -> ProtectedRouteAuthenticator:
    return ProtectedRouteAuthenticator(settings, transport=transport)


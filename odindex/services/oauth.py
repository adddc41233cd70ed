"""OneDrive OAuth helpers and access token lifecycle management."""
from __future__ import annotations

import logging
import time
from typing import Any, Callable
from urllib.parse import urlencode

import httpx

from odindex.core.config import Settings
from odindex.services.token_store import TokenPair, TokenStore

DEFAULT_EXPIRES_IN = 3600

logger = logging.getLogger(__name__)


class OAuthError(Exception):
    """Base error for OneDrive OAuth operations."""


class OAuthNotConfiguredError(OAuthError):
    """Raised when the OAuth client credentials are not configured."""


class OAuthTokenError(OAuthError):
    """Raised when the OAuth token endpoint cannot be reached or rejects a request."""

    def __init__(self, message: str, *, status_code: int | None = None, body: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class OneDriveOAuthClient:
    """Handle OAuth URL generation and the access token lifecycle."""

    def __init__(
        self,
        settings: Settings,
        store: TokenStore,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings
        self.store = store
        self._transport = transport
        self._clock = clock

    def _require_configured(self) -> None:
        if not (self.settings.client_id and self.settings.client_secret and self.settings.redirect_uri):
            raise OAuthNotConfiguredError("OneDrive OAuth credentials are not fully configured")

    def build_authorize_url(self) -> str:
        """Return the Microsoft identity platform consent URL."""

        self._require_configured()
        params = {
            "client_id": self.settings.client_id,
            "redirect_uri": self.settings.redirect_uri,
            "response_type": "code",
            "scope": self.settings.scope,
        }
        return f"{self.settings.authorize_api}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> TokenPair:
        """Exchange an authorization code for a token pair and persist it."""

        self._require_configured()
        payload = {
            "client_id": self.settings.client_id,
            "redirect_uri": self.settings.redirect_uri,
            "client_secret": self.settings.client_secret,
            "code": code,
            "grant_type": "authorization_code",
        }
        token_data = await self._request_token(payload)
        if not ("access_token" in token_data and "refresh_token" in token_data):
            raise OAuthTokenError("Token response is missing access_token or refresh_token")
        return await self._store_token(token_data)

    async def get_access_token(self) -> str:
        """Return a usable access token, refreshing it when necessary.

        An empty string means the drive is not authenticated: no refresh token
        is stored, or the token endpoint answered without a new pair.
        """

        tokens = await self.store.get_tokens()

        if tokens.has_valid_access_token(self._clock()):
            logger.debug("Using stored access token")
            return tokens.access_token or ""

        if not tokens.refresh_token:
            logger.info("No refresh token stored, the drive needs to be authenticated")
            return ""

        payload = {
            "client_id": self.settings.client_id,
            "redirect_uri": self.settings.redirect_uri,
            "client_secret": self.settings.client_secret,
            "refresh_token": tokens.refresh_token,
            "grant_type": "refresh_token",
        }
        token_data = await self._request_token(payload)

        if "access_token" in token_data and "refresh_token" in token_data:
            stored = await self._store_token(token_data)
            logger.info("Refreshed access token with stored refresh token")
            return stored.access_token or ""

        logger.warning("Token refresh response did not contain a token pair")
        return ""

    async def _store_token(self, token_data: dict[str, Any]) -> TokenPair:
        try:
            expires_in = int(token_data.get("expires_in", DEFAULT_EXPIRES_IN))
        except (TypeError, ValueError):
            expires_in = DEFAULT_EXPIRES_IN
        return await self.store.store_tokens(
            str(token_data["access_token"]),
            expires_in,
            str(token_data["refresh_token"]),
        )

    async def _request_token(self, payload: dict[str, str]) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(
                timeout=self.settings.upstream_timeout, transport=self._transport
            ) as client:
                response = await client.post(self.settings.auth_api, data=payload)
        except httpx.HTTPError as exc:
            logger.error("Failed to communicate with the OAuth token endpoint", exc_info=exc)
            raise OAuthTokenError("Unable to reach the OAuth token endpoint") from exc

        if response.status_code >= 400:
            logger.error(
                "OAuth token request failed",
                extra={"status_code": response.status_code, "body": response.text},
            )
            raise OAuthTokenError(
                "OAuth token request failed",
                status_code=response.status_code,
                body=response.text,
            )
        try:
            data = response.json()
        except ValueError:
            data = None
        return data if isinstance(data, dict) else {}

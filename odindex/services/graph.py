"""Thin async client for the Microsoft Graph drive API."""
from __future__ import annotations

import logging
import re
from collections.abc import AsyncIterator
from typing import Any
from urllib.parse import quote, unquote

import httpx

from odindex.core.config import Settings
from odindex.services.paths import item_suffix

DOWNLOAD_URL = "@microsoft.graph.downloadUrl"
NEXT_LINK = "@odata.nextLink"
ITEM_FIELDS = "name,size,id,lastModifiedDateTime,folder,file,video,image"
SEARCH_FIELDS = "id,name,file,folder,parentReference"

_SKIP_TOKEN_PATTERN = re.compile(r"&\$skiptoken=(.+)", re.IGNORECASE)

logger = logging.getLogger(__name__)


class GraphAPIError(Exception):
    """Raised when the Graph API (or a signed download URL) fails.

    ``status_code`` and ``payload`` mirror the upstream response when there was
    one; both are ``None`` for transport failures.
    """

    def __init__(self, message: str, *, status_code: int | None = None, payload: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


def extract_skip_token(next_link: str | None) -> str | None:
    """Return the continuation token embedded in an ``@odata.nextLink`` URL."""

    if not next_link:
        return None
    match = _SKIP_TOKEN_PATTERN.search(next_link)
    if match is None:
        return None
    return unquote(match.group(1))


def sanitise_query(query: str) -> str:
    """Make free text safe to embed in a Graph ``search(q='...')`` expression.

    Single quotes are doubled, angle brackets become HTML entities, ``?`` and
    ``/`` become spaces, and the result is percent-encoded.
    """

    sanitised = (
        query.replace("'", "''")
        .replace("<", " &lt; ")
        .replace(">", " &gt; ")
        .replace("?", " ")
        .replace("/", " ")
    )
    return quote(sanitised, safe="!*'()")


class DownloadStream:
    """An open streamed response for a signed download URL."""

    def __init__(self, client: httpx.AsyncClient, response: httpx.Response):
        self._client = client
        self.response = response

    @property
    def headers(self) -> httpx.Headers:
        return self.response.headers

    async def iter_bytes(self) -> AsyncIterator[bytes]:
        async for chunk in self.response.aiter_raw():
            yield chunk

    async def aclose(self) -> None:
        await self.response.aclose()
        await self._client.aclose()


class GraphClient:
    """Issue drive requests on behalf of the stored OneDrive account."""

    def __init__(
        self,
        settings: Settings,
        access_token: str,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings
        self._access_token = access_token
        self._transport = transport

    def item_url(self, encoded_path: str) -> str:
        return f"{self.settings.drive_api}/root{encoded_path}"

    async def get_item(self, encoded_path: str, *, select: str = ITEM_FIELDS) -> dict[str, Any]:
        return await self._get_json(self.item_url(encoded_path), params={"select": select})

    async def list_children(
        self,
        encoded_path: str,
        *,
        top: int,
        skip_token: str | None = None,
        order_by: str | None = None,
        select: str = ITEM_FIELDS,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {"select": select, "$top": top}
        if skip_token:
            params["$skipToken"] = skip_token
        if order_by:
            params["$orderby"] = order_by
        url = f"{self.item_url(encoded_path)}{item_suffix(encoded_path)}/children"
        return await self._get_json(url, params=params)

    async def get_item_by_id(self, item_id: str, *, select: str) -> dict[str, Any]:
        url = f"{self.settings.drive_api}/items/{quote(item_id, safe='!')}"
        return await self._get_json(url, params={"select": select})

    async def get_thumbnails(self, encoded_path: str) -> dict[str, Any]:
        url = f"{self.item_url(encoded_path)}{item_suffix(encoded_path)}/thumbnails"
        return await self._get_json(url)

    async def search(self, encoded_root: str, query: str, *, top: int) -> dict[str, Any]:
        url = (
            f"{self.item_url(encoded_root)}{item_suffix(encoded_root)}"
            f"/search(q='{sanitise_query(query)}')"
        )
        return await self._get_json(url, params={"select": SEARCH_FIELDS, "top": top})

    async def fetch_text(self, url: str) -> str:
        """Download the content of a signed URL as text."""

        response = await self._send("GET", url, authorized=False)
        return response.text

    async def open_download(self, url: str) -> DownloadStream:
        """Open a streamed download of a signed URL; the caller must close it."""

        client = self._client(follow_redirects=True)
        try:
            response = await client.send(client.build_request("GET", url), stream=True)
        except httpx.HTTPError as exc:
            await client.aclose()
            logger.error("Failed to open download stream", exc_info=exc)
            raise GraphAPIError("Failed to open download stream") from exc

        if response.status_code >= 400:
            await response.aread()
            await response.aclose()
            await client.aclose()
            raise GraphAPIError(
                "Download request failed",
                status_code=response.status_code,
                payload=_payload(response),
            )
        return DownloadStream(client, response)

    def _client(self, *, follow_redirects: bool = False) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.settings.upstream_timeout,
            transport=self._transport,
            follow_redirects=follow_redirects,
        )

    async def _get_json(self, url: str, *, params: dict[str, Any] | None = None) -> dict[str, Any]:
        response = await self._send("GET", url, params=params)
        data = response.json()
        return data if isinstance(data, dict) else {"value": data}

    async def _send(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        authorized: bool = True,
    ) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self._access_token}"} if authorized else None
        try:
            # Signed download URLs may bounce through a CDN redirect
            async with self._client(follow_redirects=not authorized) as client:
                response = await client.request(method, url, params=params, headers=headers)
        except httpx.HTTPError as exc:
            logger.error("Graph request failed", exc_info=exc)
            raise GraphAPIError("Failed to communicate with the Graph API") from exc

        if response.status_code >= 400:
            logger.warning(
                "Graph API error",
                extra={"status_code": response.status_code, "body": response.text},
            )
            raise GraphAPIError(
                "Graph API error",
                status_code=response.status_code,
                payload=_payload(response),
            )
        return response


def _payload(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text or None

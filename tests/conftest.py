from __future__ import annotations

import os
import posixpath
import re
import sys
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any
from urllib.parse import parse_qsl, quote, unquote

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import httpx  # noqa: E402
import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from odindex.core.config import get_settings  # noqa: E402
from odindex.core.obfuscation import DEFAULT_PASSPHRASE, obfuscate_token  # noqa: E402

TEST_DB_PATH = ROOT / "test.db"
if TEST_DB_PATH.exists():
    TEST_DB_PATH.unlink()
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{TEST_DB_PATH}"
os.environ["CLIENT_ID"] = "client-id"
os.environ["OBFUSCATION_PASSPHRASE"] = DEFAULT_PASSPHRASE
os.environ["OBFUSCATED_CLIENT_SECRET"] = obfuscate_token("client-secret")
os.environ["REDIRECT_URI"] = "http://localhost"
os.environ["MAX_ITEMS"] = "2"
os.environ["PROTECTED_ROUTES"] = "/Private,/private/nested,/Secret/"
get_settings.cache_clear()

GRAPH_HOST = "graph.microsoft.com"
GRAPH_PREFIX = "/v1.0/me/drive"
TOKEN_HOST = "login.microsoftonline.com"
DOWNLOAD_HOST = "download.example.com"
CDN_HOST = "cdn.example.com"
NOT_FOUND = {"error": {"code": "itemNotFound", "message": "The resource could not be found."}}

_SEARCH_PATTERN = re.compile(r"^search\(q='(.*)'\)$")


class _StreamedBody(httpx.AsyncByteStream):
    """A body that is read lazily, like a network response."""

    def __init__(self, data: bytes) -> None:
        self._data = data

    async def __aiter__(self) -> AsyncIterator[bytes]:
        yield self._data


class FakeOneDrive:
    """In-memory OneDrive answering Graph, token and download requests.

    Paths are matched case-insensitively, like OneDrive does.
    """

    def __init__(self) -> None:
        self.items: dict[str, dict[str, Any]] = {"/": {"id": "root", "name": "root", "folder": {}}}
        self.contents: dict[str, bytes] = {}
        self.thumbnails: dict[str, list[dict[str, Any]]] = {}
        self.failures: dict[str, tuple[int, Any]] = {}
        self.redirected: set[str] = set()
        self.unreachable: set[str] = set()
        self.requests: list[httpx.Request] = []
        self.token_requests: list[dict[str, str]] = []
        self.token_reply: tuple[int, Any] = (
            200,
            {
                "access_token": "refreshed-access-token",
                "refresh_token": "refreshed-refresh-token",
                "expires_in": 3600,
            },
        )
        self.transport = httpx.MockTransport(self.handle)

    def add_folder(self, path: str) -> dict[str, Any]:
        item = {"id": f"id{path}", "name": posixpath.basename(path), "folder": {"childCount": 0}}
        self.items[path.lower()] = item
        return item

    def add_file(
        self,
        path: str,
        content: bytes = b"content",
        *,
        size: int | None = None,
        download_url: bool = True,
        content_type: str = "text/plain",
    ) -> dict[str, Any]:
        item: dict[str, Any] = {
            "id": f"id{path}",
            "name": posixpath.basename(path),
            "size": len(content) if size is None else size,
            "file": {"mimeType": content_type},
        }
        if download_url:
            item["@microsoft.graph.downloadUrl"] = f"https://{DOWNLOAD_HOST}{quote(path)}"
        self.items[path.lower()] = item
        self.contents[path.lower()] = content
        return item

    def fail(self, path: str, status_code: int, payload: Any = None) -> None:
        self.failures[path.lower()] = (status_code, payload)

    def redirect_download(self, path: str) -> None:
        """Make the signed URL of ``path`` answer with a redirect to the CDN host."""
        self.redirected.add(path.lower())

    @property
    def graph_requests(self) -> list[httpx.Request]:
        return [request for request in self.requests if request.url.host == GRAPH_HOST]

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        host = request.url.host
        if host in self.unreachable:
            raise httpx.ConnectError("Connection refused", request=request)
        if host == TOKEN_HOST:
            self.token_requests.append(dict(parse_qsl(request.content.decode())))
            status_code, payload = self.token_reply
            return httpx.Response(status_code, json=payload)
        if host in (DOWNLOAD_HOST, CDN_HOST):
            key = unquote(request.url.path).lower()
            if host == DOWNLOAD_HOST and key in self.redirected:
                location = f"https://{CDN_HOST}{request.url.raw_path.decode()}"
                return httpx.Response(302, headers={"Location": location}, text="Found")
            if key not in self.contents:
                return httpx.Response(404, text="gone")
            content_type = self.items[key]["file"]["mimeType"]
            return httpx.Response(
                200,
                stream=_StreamedBody(self.contents[key]),
                headers={"Content-Type": content_type, "ETag": '"abc"'},
            )
        if host == GRAPH_HOST:
            return self._handle_graph(request)
        return httpx.Response(404)

    def _handle_graph(self, request: httpx.Request) -> httpx.Response:
        route = request.url.path[len(GRAPH_PREFIX):]
        if route.startswith("/items/"):
            item_id = route[len("/items/"):]
            for item in self.items.values():
                if item["id"] == item_id:
                    return httpx.Response(200, json=item)
            return httpx.Response(404, json=NOT_FOUND)

        if route.startswith("/root:"):
            rest = route[len("/root:"):]
            item_path, _, action = rest.partition(":/")
        else:
            item_path, action = "/", route[len("/root"):].lstrip("/")
        key = item_path.lower()

        if key in self.failures:
            status_code, payload = self.failures[key]
            return httpx.Response(status_code, json=payload)

        search = _SEARCH_PATTERN.match(action)
        if search:
            query = search.group(1).replace("''", "'").lower()
            matches = [item for path, item in self.items.items() if path != "/" and query in item["name"].lower()]
            return httpx.Response(200, json={"value": matches})

        if key not in self.items:
            return httpx.Response(404, json=NOT_FOUND)
        if action == "":
            return httpx.Response(200, json=self.items[key])
        if action == "children":
            return self._children(request, key)
        if action == "thumbnails":
            return httpx.Response(200, json={"value": self.thumbnails.get(key, [])})
        return httpx.Response(400, json={"error": {"code": "invalidRequest"}})

    def _children(self, request: httpx.Request, key: str) -> httpx.Response:
        children = [
            item for path, item in self.items.items() if path != "/" and posixpath.dirname(path) == key
        ]
        order_by = request.url.params.get("$orderby")
        if order_by:
            field, _, direction = order_by.partition(" ")
            children.sort(key=lambda item: item.get(field), reverse=direction == "desc")

        top = int(request.url.params["$top"])
        skip = int(request.url.params.get("$skipToken", "0"))
        body: dict[str, Any] = {"value": children[skip:skip + top]}
        if skip + top < len(children):
            body["@odata.nextLink"] = (
                f"https://{GRAPH_HOST}{GRAPH_PREFIX}/root/children?$top={top}&$skiptoken={skip + top}"
            )
        return httpx.Response(200, json=body)


@pytest.fixture()
def drive() -> FakeOneDrive:
    return FakeOneDrive()


@pytest.fixture()
async def database() -> AsyncIterator[None]:
    from odindex.core.db import engine
    from odindex.models import Base

    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.drop_all)
        await connection.run_sync(Base.metadata.create_all)
    yield


@pytest.fixture()
def token_store(database):
    from odindex.core.db import AsyncSessionLocal
    from odindex.services.token_store import TokenStore

    return TokenStore(AsyncSessionLocal)


@pytest.fixture()
async def authenticated(token_store) -> None:
    await token_store.store_tokens("access-token", 3600, "refresh-token")


@pytest.fixture()
async def client(drive: FakeOneDrive, database) -> AsyncIterator[AsyncClient]:
    from odindex.api.deps import get_upstream_transport
    from odindex.main import app

    app.dependency_overrides[get_upstream_transport] = lambda: drive.transport
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    return "asyncio"

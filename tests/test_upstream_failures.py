from __future__ import annotations

import pytest

from odindex.services.protected import hash_password

INTERNAL_ERROR = {"error": "Internal server error."}


@pytest.mark.anyio("asyncio")
@pytest.mark.parametrize(
    ("host", "url", "params", "headers"),
    [
        ("graph.microsoft.com", "/api", {"path": "/docs"}, {}),
        ("graph.microsoft.com", "/api/search", {"q": "notes"}, {}),
        ("graph.microsoft.com", "/api/raw", {"path": "/docs/notes.txt"}, {}),
        ("download.example.com", "/api/raw", {"path": "/docs/notes.txt", "proxy": "true"}, {}),
        ("download.example.com", "/api", {"path": "/private"}, {"od-protected-token": hash_password("hunter2")}),
    ],
)
async def test_unreachable_upstream_is_an_internal_error(
    client, drive, authenticated, host, url, params, headers
):
    drive.add_folder("/docs")
    drive.add_file("/docs/notes.txt", b"hello")
    drive.add_folder("/Private")
    drive.add_file("/Private/.password", b"hunter2")
    drive.unreachable.add(host)

    response = await client.get(url, params=params, headers=headers)

    assert response.status_code == 500
    assert response.json() == INTERNAL_ERROR


@pytest.mark.anyio("asyncio")
async def test_unreachable_token_endpoint_is_an_internal_error(client, drive, token_store):
    await token_store.store_tokens("expired", -10, "refresh-token")
    drive.unreachable.add("login.microsoftonline.com")

    response = await client.get("/api", params={"path": "/docs"})

    assert response.status_code == 500
    assert response.json() == INTERNAL_ERROR
    assert drive.graph_requests == []
    assert (await token_store.get_tokens()).refresh_token == "refresh-token"

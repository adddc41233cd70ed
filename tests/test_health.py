from fastapi.testclient import TestClient

from odindex.main import app

client = TestClient(app)


def test_health_check_returns_ok_status_and_version() -> None:
    response = client.get("/api/health")

    assert response.status_code == 200
    payload = response.json()
    assert payload["data"]["status"] == "ok"
    assert "version" in payload["data"]
    assert payload["data"]["version"]


def test_unknown_route_is_not_found() -> None:
    response = client.get("/api/unknown")

    assert response.status_code == 404

"""Tests for CORS headers and preflight handling."""

from fastapi.testclient import TestClient


class TestCors:
    """Every response allows any origin; OPTIONS is answered before routing."""

    def test_preflight_returns_empty_200(self, client: TestClient):
        response = client.options(
            "/messages",
            headers={"Origin": "http://example.com", "Access-Control-Request-Method": "POST"},
        )

        assert response.status_code == 200
        assert response.content == b""
        assert response.headers["access-control-allow-origin"] == "*"
        assert response.headers["access-control-allow-methods"] == "GET, POST, PUT, DELETE, OPTIONS"
        assert response.headers["access-control-allow-headers"] == "Content-Type"

    def test_preflight_for_unknown_path(self, client: TestClient):
        response = client.options("/does-not-exist")

        assert response.status_code == 200

    def test_regular_response_carries_headers(self, client: TestClient):
        response = client.get("/messages", headers={"Origin": "http://example.com"})

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"
        assert "X-Request-ID" in response.headers["access-control-expose-headers"]

    def test_error_response_carries_headers(self, client: TestClient):
        response = client.post("/messages", json={})

        assert response.status_code == 400
        assert response.headers["access-control-allow-origin"] == "*"

"""Tests for per-client rate limiting."""

from fastapi import FastAPI
from fastapi.testclient import TestClient

from api.middleware.rate_limit import build_limiter, install_rate_limiting


def _app(limit, enabled=True):
    app = FastAPI()

    @app.get("/ping")
    def ping():
        return {"ok": True}

    install_rate_limiting(app, build_limiter(limit, enabled=enabled))
    return app


def test_requests_over_limit_get_429():
    client = TestClient(_app("2/minute"))
    assert client.get("/ping").status_code == 200
    assert client.get("/ping").status_code == 200
    response = client.get("/ping")
    assert response.status_code == 429
    assert "Rate limit exceeded" in response.text


def test_disabled_limiter_lets_everything_through():
    client = TestClient(_app("1/minute", enabled=False))
    for _ in range(5):
        assert client.get("/ping").status_code == 200

"""Tests for the rate-limit and request-log middleware on a throwaway app."""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi import FastAPI, Request
from httpx import ASGITransport, AsyncClient

from config.settings import settings
from src.rp_gateway.middleware.rate_limit import RateLimitMiddleware
from src.rp_gateway.middleware.request_log import RequestLogMiddleware

_MODULE = "src.rp_gateway.middleware.rate_limit"


def _app() -> FastAPI:
    app = FastAPI()
    app.add_middleware(RateLimitMiddleware)
    app.add_middleware(RequestLogMiddleware)

    @app.get("/api/v1/ping")
    async def ping(request: Request) -> dict[str, str]:
        return {"request_id": request.state.request_id}

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app


def _counting_redis() -> AsyncMock:
    redis = AsyncMock()
    redis.incr.side_effect = iter(range(1, 100))
    return redis


@pytest.fixture
async def limited_client():
    with (
        patch.object(settings, "RATE_LIMIT_ENABLED", True),
        patch.object(settings, "RATE_LIMIT_PER_MINUTE", 2),
    ):
        transport = ASGITransport(app=_app())
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac


class TestRateLimit:
    async def test_blocks_after_limit(self, limited_client: AsyncClient) -> None:
        redis = _counting_redis()
        with patch(f"{_MODULE}.get_redis", AsyncMock(return_value=redis)):
            assert (await limited_client.get("/api/v1/ping")).status_code == 200
            assert (await limited_client.get("/api/v1/ping")).status_code == 200
            resp = await limited_client.get("/api/v1/ping")

        assert resp.status_code == 429
        assert resp.json()["code"] == 9001
        assert "Retry-After" in resp.headers
        # TTL is only set on the first hit of a window
        redis.expire.assert_awaited_once()

    async def test_exempt_paths_skip_redis(self, limited_client: AsyncClient) -> None:
        get_redis = AsyncMock()
        with patch(f"{_MODULE}.get_redis", get_redis):
            resp = await limited_client.get("/health")
        assert resp.status_code == 200
        get_redis.assert_not_awaited()

    async def test_redis_outage_fails_open(self, limited_client: AsyncClient) -> None:
        with patch(f"{_MODULE}.get_redis", AsyncMock(side_effect=ConnectionError("down"))):
            resp = await limited_client.get("/api/v1/ping")
        assert resp.status_code == 200

    async def test_disabled_by_setting(self) -> None:
        get_redis = AsyncMock()
        with (
            patch.object(settings, "RATE_LIMIT_ENABLED", False),
            patch(f"{_MODULE}.get_redis", get_redis),
        ):
            transport = ASGITransport(app=_app())
            async with AsyncClient(transport=transport, base_url="http://test") as ac:
                resp = await ac.get("/api/v1/ping")
        assert resp.status_code == 200
        get_redis.assert_not_awaited()


class TestRequestLog:
    async def test_request_id_assigned(self) -> None:
        with patch.object(settings, "RATE_LIMIT_ENABLED", False):
            transport = ASGITransport(app=_app())
            async with AsyncClient(transport=transport, base_url="http://test") as ac:
                resp = await ac.get("/api/v1/ping")
        assert resp.json()["request_id"].startswith("req_")

    async def test_incoming_request_id_is_kept(self) -> None:
        with patch.object(settings, "RATE_LIMIT_ENABLED", False):
            transport = ASGITransport(app=_app())
            async with AsyncClient(transport=transport, base_url="http://test") as ac:
                resp = await ac.get("/api/v1/ping", headers={"X-Request-ID": "req_client1"})
        assert resp.json()["request_id"] == "req_client1"
        assert resp.headers["X-Request-ID"] == "req_client1"

"""
Unit tests for the advisory Cache-Control wrapper and cached routes.
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from starlette.requests import Request
from starlette.responses import JSONResponse

from service_catalog.app.caching.cache_control import cache_control, cache_control_value
from service_catalog.app.caching.response_cache import ResponseCache
from service_catalog.app.caching.routing import cached_route


def make_request(method: str = "GET") -> Request:
    return Request({
        "type": "http",
        "method": method,
        "path": "/api/moods",
        "query_string": b"",
        "headers": [],
    })


class TestCacheControl:
    """Test cases for the cache_control wrapper."""

    @pytest.mark.parametrize("seconds,expected", [
        (600, "public, max-age=600, stale-while-revalidate=300"),
        (60, "public, max-age=60, stale-while-revalidate=30"),
        (61, "public, max-age=61, stale-while-revalidate=30"),
        (0, "public, max-age=0, stale-while-revalidate=0"),
        (-5, "public, max-age=0, stale-while-revalidate=0"),
    ])
    def test_header_value(self, seconds, expected):
        """max-age is clamped at zero and the stale window is halved."""
        assert cache_control_value(seconds) == expected

    @pytest.mark.asyncio
    async def test_sets_header_on_get(self):
        """GET responses get the advisory header."""
        async def handler(request):
            return JSONResponse([])

        response = await cache_control(600)(handler)(make_request())

        assert response.headers["Cache-Control"] == "public, max-age=600, stale-while-revalidate=300"

    @pytest.mark.asyncio
    async def test_skips_other_methods(self):
        """Mutations are never marked cacheable."""
        async def handler(request):
            return JSONResponse({}, status_code=201)

        response = await cache_control(600)(handler)(make_request("POST"))

        assert "Cache-Control" not in response.headers

    @pytest.mark.asyncio
    async def test_keeps_existing_header(self):
        """An inner no-store survives."""
        async def handler(request):
            return JSONResponse([], headers={"Cache-Control": "no-store"})

        response = await cache_control(600)(handler)(make_request())

        assert response.headers["Cache-Control"] == "no-store"


class TestCachedRoute:
    """Test cases for the cached route class."""

    @pytest.fixture
    def app_and_calls(self, clock):
        app = FastAPI()
        calls = []
        cache = ResponseCache(clock=clock)

        async def list_items():
            calls.append(1)
            return [{"name": "calm", "n": len(calls)}]

        app.router.add_api_route(
            "/items", list_items, methods=["GET"],
            route_class_override=cached_route(cache, ttl_seconds=300, max_age=600),
        )
        return app, calls

    def test_route_composes_both_wrappers(self, app_and_calls):
        """Cached GET routes carry X-Cache and the advisory header."""
        app, calls = app_and_calls
        client = TestClient(app)

        first = client.get("/items")
        second = client.get("/items")

        assert first.headers["x-cache"] == "MISS"
        assert second.headers["x-cache"] == "HIT"
        assert second.content == first.content
        assert second.headers["cache-control"] == "public, max-age=600, stale-while-revalidate=300"
        assert len(calls) == 1

    def test_bypass_keeps_no_store(self, app_and_calls):
        """The advisory header does not overwrite a bypass's no-store."""
        app, _ = app_and_calls
        client = TestClient(app)

        response = client.get("/items?__nocache=1")

        assert response.headers["x-cache"] == "BYPASS"
        assert response.headers["cache-control"] == "no-store"

"""
Read-through response cache for idempotent GET routes.
"""

import functools
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional

from starlette.requests import Request
from starlette.responses import Response

from shared.logging import get_logger
from shared.metrics import MetricsCollector


Handler = Callable[[Request], Awaitable[Response]]

HIT = "HIT"
MISS = "MISS"
BYPASS = "BYPASS"
BYPASS_AUTH = "BYPASS_AUTH"

BYPASS_QUERY_PARAMS = ("admin_nocache", "__nocache")


@dataclass
class CacheEntry:
    """A stored response."""

    status_code: int
    kind: str
    body: bytes
    content_type: Optional[str]
    expires_at: float

    def is_live(self, now: float) -> bool:
        return self.expires_at > now


class ResponseCache:
    """In-process TTL cache keyed by request path and query string.

    Entries are never evicted, only superseded by the next MISS after they
    expire. Concurrent MISSes for one key each run the handler and the last
    one to finish owns the entry. The cache is not shared between processes.
    """

    CACHE_HEADER = "X-Cache"
    # CDNs may rewrite X-Cache; this one is the app-level signal
    APP_CACHE_HEADER = "X-Vara-Cache"

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.clock = clock
        self.metrics = metrics
        self.logger = get_logger("catalog.response_cache")
        self._entries: Dict[str, CacheEntry] = {}

    @staticmethod
    def key_for(request: Request) -> str:
        """Cache key: path plus raw query string."""
        query = request.url.query
        return f"{request.url.path}?{query}" if query else request.url.path

    def get(self, key: str) -> Optional[CacheEntry]:
        """Return the live entry for ``key``, if any."""
        entry = self._entries.get(key)
        if entry is not None and entry.is_live(self.clock()):
            return entry
        return None

    def store(self, key: str, response: Response, ttl_seconds: float) -> Optional[CacheEntry]:
        """Store a rendered response. Streaming responses are skipped."""
        body = getattr(response, "body", None)
        if body is None:
            return None

        content_type = response.headers.get("content-type")
        entry = CacheEntry(
            status_code=response.status_code,
            kind="json" if content_type and "json" in content_type else "raw",
            body=bytes(body),
            content_type=content_type,
            expires_at=self.clock() + ttl_seconds,
        )
        self._entries[key] = entry
        return entry

    def stats(self) -> Dict[str, int]:
        """Entry counts for diagnostics."""
        now = self.clock()
        live = sum(1 for entry in self._entries.values() if entry.is_live(now))
        return {
            "entries": len(self._entries),
            "live_entries": live,
            "expired_entries": len(self._entries) - live,
        }

    def wrap(self, handler: Handler, ttl_seconds: float, route: Optional[str] = None) -> Handler:
        """Wrap a request handler with read-through caching."""

        @functools.wraps(handler)
        async def cached_handler(request: Request) -> Response:
            if request.method != "GET":
                return await handler(request)

            route_label = route or request.url.path

            try:
                bypass = self._bypass_reason(request)
                key = self.key_for(request)
                entry = None if bypass else self.get(key)
                cached = self._replay(entry) if entry is not None else None
            except Exception as e:
                self.logger.error("Response cache lookup failed", path=request.url.path, error=str(e))
                return await handler(request)

            if cached is not None:
                self._record(route_label, HIT)
                return cached

            response = await handler(request)

            try:
                if bypass:
                    self._mark(response, bypass)
                    if bypass == BYPASS:
                        response.headers["Cache-Control"] = "no-store"
                    self._record(route_label, bypass)
                elif self.store(key, response, ttl_seconds) is not None:
                    self._mark(response, MISS)
                    self._record(route_label, MISS)
            except Exception as e:
                self.logger.error("Response cache store failed", path=request.url.path, error=str(e))

            return response

        return cached_handler

    def _bypass_reason(self, request: Request) -> Optional[str]:
        if request.headers.get("authorization") or getattr(request.state, "user", None):
            return BYPASS_AUTH

        if any(param in request.query_params for param in BYPASS_QUERY_PARAMS):
            return BYPASS
        if request.headers.get("x-no-cache") == "1":
            return BYPASS

        return None

    def _replay(self, entry: CacheEntry) -> Response:
        headers = {"content-type": entry.content_type} if entry.content_type else None
        response = Response(content=entry.body, status_code=entry.status_code, headers=headers)
        self._mark(response, HIT)
        return response

    def _mark(self, response: Response, value: str):
        response.headers[self.CACHE_HEADER] = value
        response.headers[self.APP_CACHE_HEADER] = value

    def _record(self, route: str, result: str):
        if self.metrics:
            self.metrics.increment_counter("response_cache_total", route=route, result=result)

"""
FastAPI route class that applies the caching wrappers.
"""

from typing import Optional, Type

from fastapi.routing import APIRoute

from .cache_control import cache_control
from .response_cache import ResponseCache


def cached_route(
    cache: Optional[ResponseCache] = None,
    ttl_seconds: Optional[float] = None,
    max_age: Optional[int] = None,
) -> Type[APIRoute]:
    """Build an ``APIRoute`` subclass for a cacheable GET route.

    The advisory header wraps the read-through cache, so HIT responses get
    it too and a bypass's ``no-store`` is kept.
    """

    class CachedRoute(APIRoute):
        def get_route_handler(self):
            handler = super().get_route_handler()
            if cache is not None and ttl_seconds is not None:
                handler = cache.wrap(handler, ttl_seconds, route=self.path)
            if max_age is not None:
                handler = cache_control(max_age)(handler)
            return handler

    return CachedRoute

"""
Advisory Cache-Control header.
"""

import functools
from typing import Awaitable, Callable

from starlette.requests import Request
from starlette.responses import Response


Handler = Callable[[Request], Awaitable[Response]]


def cache_control_value(seconds: int) -> str:
    """Build ``public, max-age=N, stale-while-revalidate=N/2``."""
    max_age = max(0, int(seconds))
    return f"public, max-age={max_age}, stale-while-revalidate={max_age // 2}"


def cache_control(seconds: int) -> Callable[[Handler], Handler]:
    """Wrap a handler so GET responses carry a public Cache-Control hint.

    A Cache-Control header already set by the inner handler (``no-store`` on
    a cache bypass, for instance) is left alone. Only for routes whose
    responses are the same for every caller.
    """
    value = cache_control_value(seconds)

    def decorator(handler: Handler) -> Handler:
        @functools.wraps(handler)
        async def cache_control_handler(request: Request) -> Response:
            response = await handler(request)
            if request.method == "GET" and "cache-control" not in response.headers:
                response.headers["Cache-Control"] = value
            return response

        return cache_control_handler

    return decorator

"""
Catalog response caching.

Two handler wrappers are composed at route-registration time: a read-through
response cache kept in process memory, and an advisory Cache-Control header
for browsers and CDNs. Both apply to GET only.
"""

from .cache_control import cache_control, cache_control_value
from .response_cache import CacheEntry, ResponseCache
from .routing import cached_route

__all__ = [
    "CacheEntry",
    "ResponseCache",
    "cache_control",
    "cache_control_value",
    "cached_route",
]

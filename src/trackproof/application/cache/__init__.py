"""Caching layer - Cache implementations for reducing API calls."""

from trackproof.application.cache.base_cache import BaseCache, InMemoryCache
from trackproof.application.cache.platform_link_cache import PlatformLinkCache

__all__ = [
    "BaseCache",
    "InMemoryCache",
    "PlatformLinkCache",
]

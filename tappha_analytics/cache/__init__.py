"""
Result cache for TappHA Analytics.

- AnalysisCache: async get/set/TTL interface
- InMemoryCache: single-process backend
- RedisCache: shared backend over redis.asyncio
- CacheKeys / cached_compute: key namespaces and write-through helper
"""

from ..config.settings import RedisSettings
from .base import AnalysisCache, CacheKeys, cached_compute, param_hash
from .memory import InMemoryCache


def create_cache(settings: RedisSettings) -> AnalysisCache:
    """Build the configured cache backend."""
    if settings.enabled:
        from .redis_cache import RedisCache

        return RedisCache(settings)
    return InMemoryCache()


__all__ = [
    "AnalysisCache",
    "CacheKeys",
    "InMemoryCache",
    "cached_compute",
    "create_cache",
    "param_hash",
]

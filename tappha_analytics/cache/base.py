"""
Cache interface, key builders and the write-through helper.

The cache is a pure performance layer: values are whole-object overwrites
with a TTL, never mutated in place, and a failing backend degrades to a
cache miss instead of failing the analysis.
"""

import hashlib
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Iterable, Optional, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


class AnalysisCache(ABC):
    """Async key-value store with per-entry TTL."""

    def __init__(self) -> None:
        self.hits = 0
        self.misses = 0
        self.errors = 0

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Return the cached value or None on miss/expiry."""

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: int) -> None:
        """Store ``value`` under ``key`` for ``ttl`` seconds."""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove a key, returning whether it existed."""

    @abstractmethod
    async def delete_prefix(self, prefix: str) -> int:
        """Remove every key starting with ``prefix``; returns the count."""

    @abstractmethod
    async def ping(self) -> bool:
        """Backend health check."""

    async def close(self) -> None:
        """Release backend resources."""


def param_hash(*parts: Any) -> str:
    """Deterministic short hash of operation parameters."""
    payload = json.dumps(parts, sort_keys=True, default=str, separators=(",", ":"))
    return hashlib.sha256(payload.encode()).hexdigest()[:16]


class CacheKeys:
    """Namespaced key builders, one per operation kind."""

    @staticmethod
    def time_series(subject_id: str, start: Any, end: Any, granularity: str) -> str:
        return f"timeseries:{subject_id}:{param_hash(start, end, granularity)}"

    @staticmethod
    def statistical(subject_id: str, time_intervals: Iterable[str]) -> str:
        return f"statistical:{subject_id}:{param_hash(list(time_intervals))}"

    @staticmethod
    def frequency(subject_id: str, time_range: str, sampling_rate: float = 1.0) -> str:
        if sampling_rate == 1.0:
            return f"frequency:{subject_id}:{time_range}"
        return f"frequency:{subject_id}:{time_range}:{sampling_rate:g}"

    @staticmethod
    def correlation(subject_ids: Iterable[str], time_range: str) -> str:
        return f"correlation:{param_hash(list(subject_ids))}:{time_range}"

    @staticmethod
    def device_pattern(device_id: str, time_intervals: Iterable[str]) -> str:
        return f"pattern:device:{device_id}:{param_hash(list(time_intervals))}"

    @staticmethod
    def household_pattern(household_id: str, time_intervals: Iterable[str]) -> str:
        return f"pattern:household:{household_id}:{param_hash(list(time_intervals))}"

    @staticmethod
    def anomaly(device_id: str) -> str:
        return f"anomaly:{device_id}"

    @staticmethod
    def prediction(device_id: str) -> str:
        return f"prediction:{device_id}"

    @staticmethod
    def behavior(household_id: str) -> str:
        return f"behavior:{household_id}"

    @staticmethod
    def user_behavior(user_id: str) -> str:
        return f"user_behavior:{user_id}"

    @staticmethod
    def security(household_id: str) -> str:
        return f"security:{household_id}"

    @staticmethod
    def recommendation(user_id: str, context: str, *extra: Any) -> str:
        return f"recommendation:{user_id}:{param_hash(context, *extra)}"

    @staticmethod
    def ranking(recommendation_ids: Iterable[str], user_preferences: str) -> str:
        return f"ranking:{param_hash(list(recommendation_ids), user_preferences)}"

    @staticmethod
    def explanation(recommendation_id: str, user_id: str) -> str:
        return f"explanation:{recommendation_id}:{user_id}"

    @staticmethod
    def stats(user_id: str, time_range: str) -> str:
        return f"stats:{user_id}:{time_range}"


async def cached_compute(
    cache: AnalysisCache,
    key: str,
    ttl: int,
    compute: Callable[[], Awaitable[T]],
    should_cache: Callable[[T], bool] = lambda value: True,
) -> T:
    """
    Return the cached value for ``key`` or compute and write it through.

    Backend errors are logged and treated as a miss (on read) or a skipped
    write; they never fail the computation. ``should_cache`` lets callers
    keep degraded results out of the cache.
    """
    try:
        cached = await cache.get(key)
    except Exception as e:
        cache.errors += 1
        logger.warning(f"Cache read failed for {key}: {e}")
        cached = None

    if cached is not None:
        cache.hits += 1
        logger.debug(f"Cache hit for {key}")
        return cached

    cache.misses += 1
    value = await compute()

    if should_cache(value):
        try:
            await cache.set(key, value, ttl)
        except Exception as e:
            cache.errors += 1
            logger.warning(f"Cache write failed for {key}: {e}")

    return value

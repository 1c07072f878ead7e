"""In-process cache backend."""

import time
from typing import Any, Callable, Dict, Optional, Tuple

from .base import AnalysisCache


class InMemoryCache(AnalysisCache):
    """
    Dict-backed cache with TTL expiry.

    Expired entries are dropped when read and swept on every write, so keys
    that are written once and never read again do not accumulate. Every
    operation runs on the event loop thread, so get/set are atomic without
    further locking.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        super().__init__()
        self._clock = clock
        self._entries: Dict[str, Tuple[float, Any]] = {}

    async def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None

        expires_at, value = entry
        if self._clock() >= expires_at:
            self._entries.pop(key, None)
            return None
        return value

    async def set(self, key: str, value: Any, ttl: int) -> None:
        now = self._clock()
        self._sweep(now)
        self._entries[key] = (now + ttl, value)

    def _sweep(self, now: float) -> None:
        expired = [key for key, (expires_at, _) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]

    async def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    async def delete_prefix(self, prefix: str) -> int:
        keys = [key for key in self._entries if key.startswith(prefix)]
        for key in keys:
            del self._entries[key]
        return len(keys)

    async def ping(self) -> bool:
        return True

    def __len__(self) -> int:
        return len(self._entries)

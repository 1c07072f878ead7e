"""Redis cache backend using redis.asyncio."""

import logging
import pickle
from typing import Any, Optional

import redis.asyncio as redis
from redis.exceptions import ConnectionError, TimeoutError

from ..config.settings import RedisSettings
from ..exceptions import CacheError
from .base import AnalysisCache


class RedisCache(AnalysisCache):
    """
    Shared cache for several analytics workers.

    Values are pickled result objects stored with SETEX, so the TTL and the
    value are written in one command.
    """

    def __init__(
        self, settings: RedisSettings, client: Optional[redis.Redis] = None
    ) -> None:
        super().__init__()
        self.settings = settings
        self.key_prefix = settings.key_prefix
        self.logger = logging.getLogger(f"{__name__}.RedisCache")
        self._client = client or redis.Redis.from_url(
            settings.url,
            socket_timeout=settings.socket_timeout,
            socket_connect_timeout=settings.socket_timeout,
        )

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    async def get(self, key: str) -> Optional[Any]:
        try:
            raw = await self._client.get(self._key(key))
        except (ConnectionError, TimeoutError) as e:
            raise CacheError(f"Redis GET failed for {key}: {e}") from e

        if raw is None:
            return None
        return pickle.loads(raw)

    async def set(self, key: str, value: Any, ttl: int) -> None:
        try:
            await self._client.setex(self._key(key), ttl, pickle.dumps(value))
        except (ConnectionError, TimeoutError) as e:
            raise CacheError(f"Redis SETEX failed for {key}: {e}") from e

    async def delete(self, key: str) -> bool:
        try:
            return bool(await self._client.delete(self._key(key)))
        except (ConnectionError, TimeoutError) as e:
            raise CacheError(f"Redis DELETE failed for {key}: {e}") from e

    async def delete_prefix(self, prefix: str) -> int:
        deleted = 0
        try:
            async for key in self._client.scan_iter(match=f"{self._key(prefix)}*"):
                deleted += await self._client.delete(key)
        except (ConnectionError, TimeoutError) as e:
            raise CacheError(f"Redis prefix delete failed for {prefix}: {e}") from e
        return deleted

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except (ConnectionError, TimeoutError) as e:
            self.logger.warning(f"Redis ping failed: {e}")
            return False

    async def close(self) -> None:
        await self._client.aclose()
        self.logger.info(
            f"Redis cache closed. hits={self.hits}, misses={self.misses}, errors={self.errors}"
        )

"""Base class for the async analysis services."""

import asyncio
import functools
from abc import ABC, abstractmethod
from concurrent.futures import Executor
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional, TypeVar

from ..cache.base import AnalysisCache
from ..config.settings import AnalyticsSettings
from ..ingestion.source import TimeSeriesSource
from ..utils.logging import configure_module_logger

T = TypeVar("T")


class BaseAnalysisService(ABC):
    """
    Shared plumbing for analysis services.

    Services are async facades: they read the cache first, fetch data from
    the ingestion collaborator, run CPU-bound engines on the executor and
    turn any failure into a degraded result value.
    """

    def __init__(
        self,
        name: str,
        service_name: str,
        cache: AnalysisCache,
        source: TimeSeriesSource,
        settings: Optional[AnalyticsSettings] = None,
        executor: Optional[Executor] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.name = name
        self.service_name = service_name
        self.cache = cache
        self.source = source
        self.settings = settings or AnalyticsSettings()
        self.executor = executor
        self.clock = clock or datetime.now

        self.logger = configure_module_logger(
            f"{__name__}.{name}",
            service_name,
            self.settings.logging.timezone,
            self.settings.logging.level,
        )

    @property
    def ttl(self):
        return self.settings.cache_ttl

    async def _run_cpu(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run a synchronous engine call on the analysis executor."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            self.executor, functools.partial(func, *args, **kwargs)
        )

    async def _guarded(
        self,
        operation: str,
        compute: Callable[[], Awaitable[T]],
        fallback: Callable[[str], T],
    ) -> T:
        """
        Await ``compute`` under the configured timeout.

        Timeouts and errors are logged and converted with ``fallback`` into a
        degraded result; cancellation still propagates.
        """
        timeout = self.settings.analysis.operation_timeout_seconds
        try:
            if timeout is None:
                return await compute()
            return await asyncio.wait_for(compute(), timeout)
        except asyncio.TimeoutError:
            message = f"{operation} timed out after {timeout}s"
            self.logger.error(message)
            return fallback(message)
        except Exception as e:
            self.logger.error(f"{operation} failed: {e}", exc_info=True)
            return fallback(str(e))

    async def _health_report(self, label: str) -> str:
        problems = []
        try:
            if not await self.cache.ping():
                problems.append("cache unreachable")
        except Exception as e:
            problems.append(f"cache error: {e}")

        try:
            if not await self.source.health_check():
                problems.append("time-series source unreachable")
        except Exception as e:
            problems.append(f"time-series source error: {e}")

        if problems:
            self.logger.warning(f"{label} unhealthy: {', '.join(problems)}")
            return f"UNHEALTHY - {label}: {', '.join(problems)}"
        return f"HEALTHY - {label} operational"

    @abstractmethod
    async def get_health_status(self) -> str:
        """Return "HEALTHY - ..." or "UNHEALTHY - ..."."""

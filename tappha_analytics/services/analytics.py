"""
Composition root for TappHA Analytics.

Owns the process-wide resources (analysis thread pool, cache backend,
time-series source) and wires the services on top of them.

Usage:
    async with create_analytics_service() as analytics:
        stats = await analytics.time_series.perform_statistical_analysis("light.kitchen", ["7d"])
        response = await analytics.recommendations.generate_recommendations(request)
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Callable, Dict, Optional

from ..cache import AnalysisCache, create_cache
from ..config.settings import AnalyticsSettings
from ..ingestion.source import TimeSeriesSource
from ..recommendation.candidates import CandidateSuggestionProvider
from ..recommendation.ledger import RecommendationLedger
from .behavior_service import BehavioralModelingService
from .pattern_service import PatternAnalysisService
from .recommendation_service import RecommendationService
from .time_series_service import TimeSeriesAnalysisService


class AnalyticsService:
    """Analytics and recommendation engine wired around shared resources."""

    def __init__(
        self,
        settings: AnalyticsSettings,
        cache: AnalysisCache,
        source: TimeSeriesSource,
        provider: Optional[CandidateSuggestionProvider] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.settings = settings
        self.cache = cache
        self.source = source
        self.logger = logging.getLogger(f"{__name__}.AnalyticsService")
        self.executor = ThreadPoolExecutor(
            max_workers=settings.analysis.max_workers,
            thread_name_prefix="tappha-analysis",
        )
        self.ledger = RecommendationLedger()

        shared = dict(settings=settings, executor=self.executor, clock=clock)
        self.time_series = TimeSeriesAnalysisService(cache, source, **shared)
        self.patterns = PatternAnalysisService(cache, source, self.time_series, **shared)
        self.behavior = BehavioralModelingService(cache, source, self.patterns, **shared)
        self.recommendations = RecommendationService(
            cache,
            source,
            self.time_series,
            self.patterns,
            self.behavior,
            ledger=self.ledger,
            provider=provider,
            **shared,
        )
        self._closed = False

    async def get_health_status(self) -> Dict[str, str]:
        return {
            "time_series": await self.time_series.get_health_status(),
            "patterns": await self.patterns.get_health_status(),
            "behavior": await self.behavior.get_health_status(),
            "recommendations": await self.recommendations.get_health_status(),
        }

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.executor.shutdown(wait=False)
        await self.cache.close()
        await self.source.close()
        self.logger.info(
            f"Analytics service stopped. cache hits={self.cache.hits}, "
            f"misses={self.cache.misses}, errors={self.cache.errors}"
        )

    async def __aenter__(self) -> "AnalyticsService":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


def create_analytics_service(
    settings: Optional[AnalyticsSettings] = None,
    source: Optional[TimeSeriesSource] = None,
    cache: Optional[AnalysisCache] = None,
    provider: Optional[CandidateSuggestionProvider] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> AnalyticsService:
    """
    Build an AnalyticsService from settings.

    Without an explicit source the InfluxDB source is used; without an
    explicit cache the backend comes from the Redis settings.
    """
    settings = settings or AnalyticsSettings()
    if source is None:
        from ..ingestion.influx import InfluxTimeSeriesSource

        source = InfluxTimeSeriesSource(settings.influxdb)
    if cache is None:
        cache = create_cache(settings.redis)
    return AnalyticsService(settings, cache, source, provider=provider, clock=clock)

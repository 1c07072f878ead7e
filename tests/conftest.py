"""Pytest configuration and shared fixtures."""

from typing import AsyncGenerator, Dict, List

import pytest
import pytest_asyncio

from tappha_analytics.cache.memory import InMemoryCache
from tappha_analytics.config.settings import AnalyticsSettings
from tappha_analytics.ingestion.source import StaticTimeSeriesSource
from tappha_analytics.models.timeseries import TimeSeriesPoint
from tappha_analytics.services.analytics import (AnalyticsService,
                                                 create_analytics_service)
from tappha_analytics.services.behavior_service import \
    BehavioralModelingService
from tappha_analytics.services.pattern_service import PatternAnalysisService
from tappha_analytics.services.time_series_service import \
    TimeSeriesAnalysisService
from tests.helpers.synthetic_data import (NOW, daily_usage_points,
                                          points_from_values, stepped_values)


@pytest.fixture
def settings() -> AnalyticsSettings:
    """Default settings from the packaged configuration."""
    return AnalyticsSettings()


@pytest.fixture
def clock():
    """Frozen clock returning NOW."""
    return lambda: NOW


@pytest.fixture
def cache() -> InMemoryCache:
    return InMemoryCache()


@pytest.fixture
def device_series() -> Dict[str, List[TimeSeriesPoint]]:
    """One week of hourly samples for a few devices."""
    # Idle at night, busy in the evening
    kitchen = daily_usage_points(168, base=0.0, peak_hour=19, seed=1)
    return {
        "light.kitchen": kitchen,
        # Same signal scaled: perfectly correlated with the kitchen light
        "light.dining": [
            TimeSeriesPoint(timestamp=p.timestamp, value=p.value * 0.5) for p in kitchen
        ],
        "switch.tv": daily_usage_points(168, base=0.0, peak_hour=19, amplitude=60.0, seed=2),
        "sensor.fridge": points_from_values(stepped_values(168, spike_at=100)),
    }


@pytest.fixture
def source(device_series) -> StaticTimeSeriesSource:
    return StaticTimeSeriesSource(
        device_series,
        households={"home-1": ["light.kitchen", "light.dining", "switch.tv"]},
    )


@pytest.fixture
def time_series_service(cache, source, settings, clock) -> TimeSeriesAnalysisService:
    return TimeSeriesAnalysisService(cache, source, settings, clock=clock)


@pytest.fixture
def pattern_service(
    cache, source, settings, clock, time_series_service
) -> PatternAnalysisService:
    return PatternAnalysisService(cache, source, time_series_service, settings, clock=clock)


@pytest.fixture
def behavior_service(
    cache, source, settings, clock, pattern_service
) -> BehavioralModelingService:
    return BehavioralModelingService(cache, source, pattern_service, settings, clock=clock)


@pytest_asyncio.fixture
async def analytics(
    settings, cache, source, clock
) -> AsyncGenerator[AnalyticsService, None]:
    """Fully wired analytics service over the static source."""
    service = create_analytics_service(settings, source=source, cache=cache, clock=clock)
    yield service
    await service.close()

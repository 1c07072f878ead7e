"""
Time-series analysis service.

Async facade over the statistical, frequency and correlation engines.
Every operation reads the cache first, fetches aggregated samples from the
ingestion collaborator on a miss, runs the engine on the analysis executor
and writes successful results through with the operation's TTL.
"""

import asyncio
import time
from concurrent.futures import Executor
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence, Union

import numpy as np

from ..analysis.correlation import CorrelationAnalyzer
from ..analysis.frequency import FrequencyAnalyzer
from ..analysis.statistics import (StatisticalAnalyzer, cluster_values,
                                   detect_seasonality)
from ..cache.base import AnalysisCache, CacheKeys, cached_compute
from ..config.settings import AnalyticsSettings
from ..exceptions import DataSourceError
from ..ingestion.source import TimeSeriesSource
from ..models.analysis import (CorrelationAnalysisResult,
                               FrequencyAnalysisResult, SeasonalityInfo,
                               StatisticalAnalysisResult, TimeCluster)
from ..models.timeseries import Granularity, TimeSeriesData
from ..utils.time_ranges import resolve_range, widest_range
from .base import BaseAnalysisService

DEFAULT_TIME_RANGE = "7d"


def aggregate_metrics(values: Sequence[float]) -> Dict[str, float]:
    """Summary metrics stored alongside a fetched series."""
    if len(values) == 0:
        return {}
    array = np.asarray(values, dtype=float)
    return {
        "mean": float(array.mean()),
        "median": float(np.median(array)),
        "std_dev": float(array.std(ddof=1)) if len(array) > 1 else 0.0,
        "min": float(array.min()),
        "max": float(array.max()),
        "total": float(array.sum()),
    }


class TimeSeriesAnalysisService(BaseAnalysisService):
    """Statistical, frequency and correlation analysis of device series."""

    def __init__(
        self,
        cache: AnalysisCache,
        source: TimeSeriesSource,
        settings: Optional[AnalyticsSettings] = None,
        executor: Optional[Executor] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        super().__init__(
            "TimeSeriesAnalysisService", "STATS", cache, source, settings, executor, clock
        )
        self.statistical = StatisticalAnalyzer(self.settings.analysis)
        self.frequency = FrequencyAnalyzer(self.settings.analysis)
        self.correlation = CorrelationAnalyzer(self.settings.analysis)

    async def analyze_time_series_data(
        self,
        subject_id: str,
        start_time: datetime,
        end_time: datetime,
        granularity: Union[str, Granularity] = Granularity.ONE_HOUR,
    ) -> TimeSeriesData:
        """
        Fetch aggregated samples for one subject.

        A range whose start lies after its end yields an empty, successful
        series without querying the source.
        """
        granularity = Granularity.parse(granularity)

        if start_time > end_time:
            self.logger.warning(
                f"Empty time range for {subject_id}: {start_time} is after {end_time}"
            )
            return TimeSeriesData(
                subject_id=subject_id,
                start_time=start_time,
                end_time=end_time,
                granularity=granularity,
                analyzed_at=self.clock(),
            )

        async def compute() -> TimeSeriesData:
            started = time.perf_counter()
            points = await self.source.fetch_series(
                subject_id, start_time, end_time, granularity
            )
            data = TimeSeriesData(
                subject_id=subject_id,
                start_time=start_time,
                end_time=end_time,
                granularity=granularity,
                points=list(points),
                analyzed_at=self.clock(),
                data_source=type(self.source).__name__,
            )
            data.aggregated_metrics = aggregate_metrics(data.values())
            data.processing_time_ms = (time.perf_counter() - started) * 1000
            self.logger.info(
                f"Loaded {data.total_data_points} points for {subject_id} "
                f"({granularity.value})"
            )
            return data

        def failed(message: str) -> TimeSeriesData:
            return TimeSeriesData(
                subject_id=subject_id,
                start_time=start_time,
                end_time=end_time,
                granularity=granularity,
                analyzed_at=self.clock(),
                success=False,
                error_message=message,
            )

        return await cached_compute(
            self.cache,
            CacheKeys.time_series(
                subject_id, start_time.isoformat(), end_time.isoformat(), granularity.value
            ),
            self.ttl.time_series_seconds,
            lambda: self._guarded(f"Time-series query for {subject_id}", compute, failed),
            should_cache=lambda data: data.success,
        )

    async def load_values(
        self,
        subject_id: str,
        start_time: datetime,
        end_time: datetime,
        granularity: Union[str, Granularity] = Granularity.ONE_HOUR,
    ) -> List[float]:
        """Sample values for a range; raises DataSourceError if the query failed."""
        data = await self.analyze_time_series_data(subject_id, start_time, end_time, granularity)
        if not data.success:
            raise DataSourceError(data.error_message or f"No data for {subject_id}")
        return data.values()

    async def _values_for_range(self, subject_id: str, time_range: str) -> List[float]:
        resolved = resolve_range(time_range, self.clock())
        if resolved is None:
            self.logger.warning(f"Unrecognized time range '{time_range}' for {subject_id}")
            return []
        return await self.load_values(subject_id, *resolved)

    async def perform_statistical_analysis(
        self, subject_id: str, time_intervals: Optional[Sequence[str]] = None
    ) -> StatisticalAnalysisResult:
        """Descriptive statistics over the widest of the requested intervals."""
        intervals = list(time_intervals or [DEFAULT_TIME_RANGE])

        async def compute() -> StatisticalAnalysisResult:
            start, end = widest_range(intervals, self.clock(), DEFAULT_TIME_RANGE)
            values = await self.load_values(subject_id, start, end)
            result = await self._run_cpu(self.statistical.analyze, subject_id, values)
            result.analyzed_at = self.clock()
            self.logger.info(
                f"Statistical analysis for {subject_id}: {result.sample_size} samples, "
                f"confidence {result.confidence_score:.2f}"
            )
            return result

        def failed(message: str) -> StatisticalAnalysisResult:
            return StatisticalAnalysisResult(
                subject_id=subject_id,
                analyzed_at=self.clock(),
                success=False,
                error_message=message,
            )

        return await cached_compute(
            self.cache,
            CacheKeys.statistical(subject_id, intervals),
            self.ttl.statistical_seconds,
            lambda: self._guarded(f"Statistical analysis for {subject_id}", compute, failed),
            should_cache=lambda result: result.success,
        )

    async def perform_frequency_analysis(
        self,
        subject_id: str,
        time_range: str = DEFAULT_TIME_RANGE,
        sampling_rate: Optional[float] = None,
    ) -> FrequencyAnalysisResult:
        """FFT decomposition of the subject's series over ``time_range``."""
        rate = sampling_rate if sampling_rate is not None else self.settings.analysis.sampling_rate

        async def compute() -> FrequencyAnalysisResult:
            values = await self._values_for_range(subject_id, time_range)
            result = await self._run_cpu(self.frequency.analyze, subject_id, values, rate)
            result.analyzed_at = self.clock()
            self.logger.info(
                f"Frequency analysis for {subject_id}: fft_size={result.fft_size}, "
                f"{len(result.periodic_patterns)} periodic patterns"
            )
            return result

        def failed(message: str) -> FrequencyAnalysisResult:
            return FrequencyAnalysisResult(
                subject_id=subject_id,
                analyzed_at=self.clock(),
                success=False,
                error_message=message,
                sampling_rate=rate,
            )

        return await cached_compute(
            self.cache,
            CacheKeys.frequency(subject_id, time_range, rate),
            self.ttl.frequency_seconds,
            lambda: self._guarded(f"Frequency analysis for {subject_id}", compute, failed),
            should_cache=lambda result: result.success,
        )

    async def perform_correlation_analysis(
        self, subject_ids: Sequence[str], time_range: str = DEFAULT_TIME_RANGE
    ) -> CorrelationAnalysisResult:
        """Pairwise correlation of several subjects over the same range."""
        subject_ids = list(subject_ids)

        async def compute() -> CorrelationAnalysisResult:
            series = await asyncio.gather(
                *(self._values_for_range(subject, time_range) for subject in subject_ids)
            )
            result = await self._run_cpu(
                self.correlation.analyze, dict(zip(subject_ids, series)), time_range
            )
            result.analyzed_at = self.clock()
            if result.mismatched_subjects:
                self.logger.warning(
                    f"Length mismatch, correlations set to 0 for: {result.mismatched_subjects}"
                )
            self.logger.info(
                f"Correlation analysis over {len(subject_ids)} subjects: "
                f"{len(result.strong_correlations)} strong pairs"
            )
            return result

        def failed(message: str) -> CorrelationAnalysisResult:
            return CorrelationAnalysisResult(
                subject_ids=subject_ids,
                analyzed_at=self.clock(),
                success=False,
                error_message=message,
                time_range=time_range,
            )

        return await cached_compute(
            self.cache,
            CacheKeys.correlation(subject_ids, time_range),
            self.ttl.correlation_seconds,
            lambda: self._guarded("Correlation analysis", compute, failed),
            should_cache=lambda result: result.success,
        )

    async def detect_seasonality(
        self, subject_id: str, time_range: str = DEFAULT_TIME_RANGE
    ) -> SeasonalityInfo:
        """Seasonality heuristic for one subject; not cached."""

        async def compute() -> SeasonalityInfo:
            values = await self._values_for_range(subject_id, time_range)
            return await self._run_cpu(
                detect_seasonality,
                values,
                self.settings.analysis.seasonality_lag,
                self.settings.analysis.seasonality_threshold,
            )

        return await self._guarded(
            f"Seasonality detection for {subject_id}",
            compute,
            lambda message: SeasonalityInfo(),
        )

    async def perform_time_clustering(
        self,
        subject_id: str,
        time_range: str = DEFAULT_TIME_RANGE,
        num_clusters: Optional[int] = None,
    ) -> List[TimeCluster]:
        """K-means value buckets for one subject; not cached."""
        clusters = num_clusters or self.settings.analysis.default_clusters

        async def compute() -> List[TimeCluster]:
            values = await self._values_for_range(subject_id, time_range)
            return await self._run_cpu(cluster_values, values, clusters)

        return await self._guarded(
            f"Time clustering for {subject_id}", compute, lambda message: []
        )

    async def get_health_status(self) -> str:
        return await self._health_report("Time-series analysis service")

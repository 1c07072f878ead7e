"""
Pattern analysis service.

Device and household behavior patterns, anomaly detection and short-term
usage predictions. Every operation follows the same contract: look up the
cache, compute on a miss, write successful results through.
"""

import asyncio
import time
from concurrent.futures import Executor
from datetime import datetime
from typing import Callable, List, Optional, Sequence

import pandas as pd

from ..analysis.patterns import (combine_series, detect_anomalies,
                                 predict_next, summarize_behavior, to_series)
from ..cache.base import AnalysisCache, CacheKeys, cached_compute
from ..config.settings import AnalyticsSettings
from ..exceptions import DataSourceError
from ..ingestion.source import TimeSeriesSource
from ..models.patterns import PatternAnalysisResult
from ..utils.time_ranges import resolve_range, widest_range
from .base import BaseAnalysisService
from .time_series_service import TimeSeriesAnalysisService

DEFAULT_INTERVALS = ["1d", "7d", "30d"]
ANOMALY_WINDOW = "7d"
PREDICTION_WINDOW = "14d"


class PatternAnalysisService(BaseAnalysisService):
    """Behavioral patterns, anomalies and predictions per device or household."""

    def __init__(
        self,
        cache: AnalysisCache,
        source: TimeSeriesSource,
        time_series: TimeSeriesAnalysisService,
        settings: Optional[AnalyticsSettings] = None,
        executor: Optional[Executor] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        super().__init__(
            "PatternAnalysisService", "PATTERN", cache, source, settings, executor, clock
        )
        self.time_series = time_series

    async def load_series(
        self, subject_id: str, start: datetime, end: datetime
    ) -> pd.Series:
        data = await self.time_series.analyze_time_series_data(subject_id, start, end)
        if not data.success:
            raise DataSourceError(data.error_message or f"No data for {subject_id}")
        return to_series(data, self.settings.analysis.local_timezone)

    async def _series_for_range(self, subject_id: str, time_range: str) -> pd.Series:
        resolved = resolve_range(time_range, self.clock())
        if resolved is None:
            return pd.Series(dtype=float)
        return await self.load_series(subject_id, *resolved)

    def _failed(self, subject_id: str) -> Callable[[str], PatternAnalysisResult]:
        return lambda message: PatternAnalysisResult.failed(
            subject_id, message, analyzed_at=self.clock()
        )

    async def _summarize(
        self, subject_id: str, series: pd.Series, intervals: Sequence[str], started: float
    ) -> PatternAnalysisResult:
        interval_patterns, behavioral, confidence = await self._run_cpu(
            summarize_behavior, subject_id, series, intervals
        )
        return PatternAnalysisResult(
            subject_id=subject_id,
            analyzed_at=self.clock(),
            overall_confidence=confidence,
            time_interval_patterns=interval_patterns,
            behavioral_patterns=behavioral,
            model_used="hourly_profile_stl",
            processing_time_ms=(time.perf_counter() - started) * 1000,
        )

    async def analyze_device_patterns(
        self, device_id: str, time_intervals: Optional[Sequence[str]] = None
    ) -> PatternAnalysisResult:
        intervals = list(time_intervals or DEFAULT_INTERVALS)

        async def compute() -> PatternAnalysisResult:
            started = time.perf_counter()
            start, end = widest_range(intervals, self.clock())
            series = await self.load_series(device_id, start, end)
            result = await self._summarize(device_id, series, intervals, started)
            self.logger.info(
                f"Device patterns for {device_id}: {len(result.behavioral_patterns)} "
                f"patterns, confidence {result.overall_confidence:.2f}"
            )
            return result

        return await cached_compute(
            self.cache,
            CacheKeys.device_pattern(device_id, intervals),
            self.ttl.pattern_seconds,
            lambda: self._guarded(
                f"Device pattern analysis for {device_id}", compute, self._failed(device_id)
            ),
            should_cache=lambda result: result.success,
        )

    async def analyze_household_patterns(
        self, household_id: str, time_intervals: Optional[Sequence[str]] = None
    ) -> PatternAnalysisResult:
        """
        Patterns of the household's combined load.

        A household with no known devices yields a successful result with no
        patterns and zero confidence.
        """
        intervals = list(time_intervals or DEFAULT_INTERVALS)

        async def compute() -> PatternAnalysisResult:
            started = time.perf_counter()
            devices = await self.source.household_devices(household_id)
            if not devices:
                self.logger.info(f"No devices known for household {household_id}")
                return PatternAnalysisResult(
                    subject_id=household_id,
                    analyzed_at=self.clock(),
                    overall_confidence=0.0,
                    processing_time_ms=(time.perf_counter() - started) * 1000,
                )

            start, end = widest_range(intervals, self.clock())
            device_series = await asyncio.gather(
                *(self.load_series(device_id, start, end) for device_id in devices)
            )
            result = await self._summarize(
                household_id, combine_series(device_series), intervals, started
            )
            self.logger.info(
                f"Household patterns for {household_id} over {len(devices)} devices: "
                f"confidence {result.overall_confidence:.2f}"
            )
            return result

        return await cached_compute(
            self.cache,
            CacheKeys.household_pattern(household_id, intervals),
            self.ttl.pattern_seconds,
            lambda: self._guarded(
                f"Household pattern analysis for {household_id}",
                compute,
                self._failed(household_id),
            ),
            should_cache=lambda result: result.success,
        )

    async def detect_anomalies(self, device_id: str) -> PatternAnalysisResult:
        async def compute() -> PatternAnalysisResult:
            started = time.perf_counter()
            series = await self._series_for_range(device_id, ANOMALY_WINDOW)
            detected_at = self.clock()
            anomalies = await self._run_cpu(
                detect_anomalies,
                device_id,
                series,
                detected_at,
                self.settings.analysis.anomaly_z_threshold,
            )
            if anomalies:
                self.logger.warning(f"{len(anomalies)} anomalies detected for {device_id}")
            return PatternAnalysisResult(
                subject_id=device_id,
                analyzed_at=detected_at,
                overall_confidence=min(1.0, len(series) / 168),
                anomalies=anomalies,
                model_used="zscore_iqr_isolation_forest",
                processing_time_ms=(time.perf_counter() - started) * 1000,
            )

        return await cached_compute(
            self.cache,
            CacheKeys.anomaly(device_id),
            self.ttl.anomaly_seconds,
            lambda: self._guarded(
                f"Anomaly detection for {device_id}", compute, self._failed(device_id)
            ),
            should_cache=lambda result: result.success,
        )

    async def generate_predictions(self, device_id: str) -> PatternAnalysisResult:
        async def compute() -> PatternAnalysisResult:
            started = time.perf_counter()
            series = await self._series_for_range(device_id, PREDICTION_WINDOW)
            predictions, confidence = await self._run_cpu(
                predict_next,
                device_id,
                series,
                self.settings.analysis.prediction_horizon_hours,
            )
            self.logger.info(
                f"{len(predictions)} predictions for {device_id}, confidence {confidence:.2f}"
            )
            return PatternAnalysisResult(
                subject_id=device_id,
                analyzed_at=self.clock(),
                overall_confidence=confidence,
                predictions=predictions,
                model_used="hourly_profile_linear_trend",
                processing_time_ms=(time.perf_counter() - started) * 1000,
            )

        return await cached_compute(
            self.cache,
            CacheKeys.prediction(device_id),
            self.ttl.prediction_seconds,
            lambda: self._guarded(
                f"Prediction for {device_id}", compute, self._failed(device_id)
            ),
            should_cache=lambda result: result.success,
        )

    async def _clear(self, prefix: str, keys: List[str]) -> int:
        removed = 0
        try:
            removed += await self.cache.delete_prefix(prefix)
            for key in keys:
                removed += int(await self.cache.delete(key))
        except Exception as e:
            self.logger.error(f"Failed to clear cache entries under {prefix}: {e}")
        return removed

    async def clear_device_cache(self, device_id: str) -> int:
        """Drop cached patterns, anomalies and predictions for a device."""
        removed = await self._clear(
            f"pattern:device:{device_id}:",
            [CacheKeys.anomaly(device_id), CacheKeys.prediction(device_id)],
        )
        self.logger.info(f"Cleared {removed} cache entries for device {device_id}")
        return removed

    async def clear_household_cache(self, household_id: str) -> int:
        removed = await self._clear(
            f"pattern:household:{household_id}:",
            [CacheKeys.behavior(household_id), CacheKeys.security(household_id)],
        )
        self.logger.info(f"Cleared {removed} cache entries for household {household_id}")
        return removed

    async def get_health_status(self) -> str:
        return await self._health_report("Pattern analysis service")

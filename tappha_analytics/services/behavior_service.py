"""Behavioral modeling of households and users."""

import asyncio
import time
from concurrent.futures import Executor
from dataclasses import replace
from datetime import datetime
from typing import Callable, Dict, List, Optional

import numpy as np
import pandas as pd

from ..analysis.behavior import (device_usage_pattern, energy_patterns,
                                 household_routines, security_patterns)
from ..analysis.patterns import combine_series
from ..cache.base import AnalysisCache, CacheKeys, cached_compute
from ..config.settings import AnalyticsSettings
from ..exceptions import DataSourceError
from ..ingestion.source import TimeSeriesSource
from ..models.patterns import BehavioralModelResult
from ..utils.time_ranges import resolve_range
from .base import BaseAnalysisService
from .pattern_service import PatternAnalysisService

BEHAVIOR_WINDOW = "30d"


def build_household_model(
    household_id: str, device_series: Dict[str, pd.Series]
) -> BehavioralModelResult:
    """Device patterns, routines and energy patterns from per-device series."""
    device_patterns = [
        pattern
        for pattern in (
            device_usage_pattern(device_id, series)
            for device_id, series in device_series.items()
        )
        if pattern is not None
    ]
    routines = household_routines(device_patterns)
    energy = energy_patterns(household_id, combine_series(device_series.values()))

    confidence = (
        float(np.mean([p.confidence for p in device_patterns])) if device_patterns else 0.0
    )
    return BehavioralModelResult(
        household_id=household_id,
        overall_confidence=confidence,
        routines=routines,
        device_patterns=device_patterns,
        energy_patterns=energy,
    )


def build_user_model(user_id: str, device_series: Dict[str, pd.Series]) -> BehavioralModelResult:
    """The household model restricted to the devices one user operates."""
    return replace(
        build_household_model(user_id, device_series),
        household_id="",
        user_id=user_id,
        model_used="user_behavior_profile",
    )


class BehavioralModelingService(BaseAnalysisService):
    """Household and user routines, device usage, energy and security patterns."""

    def __init__(
        self,
        cache: AnalysisCache,
        source: TimeSeriesSource,
        patterns: PatternAnalysisService,
        settings: Optional[AnalyticsSettings] = None,
        executor: Optional[Executor] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        super().__init__(
            "BehavioralModelingService", "BEHAVIOR", cache, source, settings, executor, clock
        )
        self.patterns = patterns

    async def _device_series(self, device_ids: List[str]) -> Dict[str, pd.Series]:
        start, end = resolve_range(BEHAVIOR_WINDOW, self.clock())
        series = await asyncio.gather(
            *(self.patterns.load_series(device_id, start, end) for device_id in device_ids)
        )
        return dict(zip(device_ids, series))

    async def model_household_behavior(self, household_id: str) -> BehavioralModelResult:
        """
        Full behavioral model of a household.

        Unknown households produce a successful, empty model with zero
        confidence.
        """

        async def compute() -> BehavioralModelResult:
            started = time.perf_counter()
            devices = await self.source.household_devices(household_id)
            if not devices:
                self.logger.info(f"No devices known for household {household_id}")
                return BehavioralModelResult(household_id=household_id, modeled_at=self.clock())

            series = await self._device_series(devices)
            result = await self._run_cpu(build_household_model, household_id, series)
            result.modeled_at = self.clock()
            result.processing_time_ms = (time.perf_counter() - started) * 1000
            self.logger.info(
                f"Household {household_id}: {len(result.routines)} routines, "
                f"{len(result.device_patterns)} device patterns, "
                f"confidence {result.overall_confidence:.2f}"
            )
            return result

        def failed(message: str) -> BehavioralModelResult:
            result = BehavioralModelResult.failed(household_id, message)
            result.modeled_at = self.clock()
            return result

        return await cached_compute(
            self.cache,
            CacheKeys.behavior(household_id),
            self.ttl.behavior_seconds,
            lambda: self._guarded(
                f"Behavioral modeling for {household_id}", compute, failed
            ),
            should_cache=lambda result: result.success,
        )

    async def model_user_behavior(self, user_id: str) -> BehavioralModelResult:
        """
        Behavioral model over the devices a user operates.

        Users without devices produce a successful, empty model.
        """

        async def compute() -> BehavioralModelResult:
            started = time.perf_counter()
            devices = await self.source.user_devices(user_id)
            if not devices:
                self.logger.info(f"No devices known for user {user_id}")
                return BehavioralModelResult(
                    household_id="",
                    user_id=user_id,
                    modeled_at=self.clock(),
                    model_used="user_behavior_profile",
                )

            series = await self._device_series(devices)
            result = await self._run_cpu(build_user_model, user_id, series)
            result.modeled_at = self.clock()
            result.processing_time_ms = (time.perf_counter() - started) * 1000
            self.logger.info(
                f"User {user_id}: {len(result.device_patterns)} device patterns, "
                f"{len(result.routines)} routines"
            )
            return result

        def failed(message: str) -> BehavioralModelResult:
            return BehavioralModelResult.failed(
                "", message, user_id=user_id, modeled_at=self.clock()
            )

        return await cached_compute(
            self.cache,
            CacheKeys.user_behavior(user_id),
            self.ttl.behavior_seconds,
            lambda: self._guarded(f"Behavioral modeling for user {user_id}", compute, failed),
            should_cache=lambda result: result.success,
        )

    async def identify_routines(self, household_id: str) -> BehavioralModelResult:
        """Routines only, taken from the household model."""
        model = await self.model_household_behavior(household_id)
        if not model.success:
            return model
        return BehavioralModelResult(
            household_id=household_id,
            modeled_at=model.modeled_at,
            overall_confidence=model.overall_confidence,
            routines=list(model.routines),
            model_used="household_routines",
            processing_time_ms=model.processing_time_ms,
        )

    async def analyze_energy_patterns(self, household_id: str) -> BehavioralModelResult:
        """Energy patterns only, taken from the household model."""
        model = await self.model_household_behavior(household_id)
        if not model.success:
            return model
        return BehavioralModelResult(
            household_id=household_id,
            modeled_at=model.modeled_at,
            overall_confidence=model.overall_confidence if model.energy_patterns else 0.0,
            energy_patterns=list(model.energy_patterns),
            model_used="household_energy_profile",
            processing_time_ms=model.processing_time_ms,
        )

    async def analyze_security_patterns(self, household_id: str) -> BehavioralModelResult:
        """
        Security patterns of a household.

        Combines activity between 00:00 and 05:00 with the anomaly detector's
        findings for every device of the household.
        """

        async def compute() -> BehavioralModelResult:
            started = time.perf_counter()
            devices = await self.source.household_devices(household_id)
            if not devices:
                self.logger.info(f"No devices known for household {household_id}")
                return BehavioralModelResult(
                    household_id=household_id,
                    modeled_at=self.clock(),
                    model_used="household_security_profile",
                )

            series = await self._device_series(devices)
            detections = await asyncio.gather(
                *(self.patterns.detect_anomalies(device_id) for device_id in devices)
            )
            for detection in detections:
                if not detection.success:
                    raise DataSourceError(
                        detection.error_message
                        or f"Anomaly detection failed for {detection.subject_id}"
                    )

            patterns = await self._run_cpu(
                security_patterns,
                household_id,
                series,
                {d.subject_id: d.anomalies for d in detections},
            )
            risky = [p for p in patterns if p.risk_assessment != "low"]
            if risky:
                self.logger.warning(
                    f"Household {household_id}: {len(risky)} security findings above low risk"
                )
            return BehavioralModelResult(
                household_id=household_id,
                modeled_at=self.clock(),
                overall_confidence=float(np.mean([d.overall_confidence for d in detections])),
                security_patterns=patterns,
                model_used="household_security_profile",
                processing_time_ms=(time.perf_counter() - started) * 1000,
            )

        def failed(message: str) -> BehavioralModelResult:
            return BehavioralModelResult.failed(
                household_id, message, modeled_at=self.clock()
            )

        return await cached_compute(
            self.cache,
            CacheKeys.security(household_id),
            self.ttl.anomaly_seconds,
            lambda: self._guarded(
                f"Security analysis for {household_id}", compute, failed
            ),
            should_cache=lambda result: result.success,
        )

    async def get_health_status(self) -> str:
        return await self._health_report("Behavioral modeling service")

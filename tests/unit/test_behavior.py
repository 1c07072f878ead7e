"""Test household behavior profiling."""

from datetime import datetime

import numpy as np
import pandas as pd
import pytest

from tappha_analytics.analysis.behavior import (device_usage_pattern,
                                                energy_patterns,
                                                household_routines, risk_level,
                                                security_patterns, time_of_day,
                                                usage_frequency)
from tappha_analytics.models.patterns import AnomalyDetection
from tappha_analytics.services.behavior_service import (build_household_model,
                                                        build_user_model)


def evening_device(peak_hour: int = 19, days: int = 7, level: float = 100.0) -> pd.Series:
    index = pd.date_range("2024-01-01", periods=days * 24, freq="h")
    values = np.where(index.hour == peak_hour, level, 0.0)
    return pd.Series(values, index=index)


class TestLabels:
    @pytest.mark.parametrize(
        "hour, label",
        [(6, "morning"), (13, "afternoon"), (19, "evening"), (23, "night"), (2, "night")],
    )
    def test_time_of_day(self, hour: int, label: str) -> None:
        assert time_of_day(hour) == label

    @pytest.mark.parametrize(
        "fraction, label",
        [(0.9, "continuous"), (0.5, "frequent"), (0.2, "occasional"), (0.01, "rare")],
    )
    def test_usage_frequency(self, fraction: float, label: str) -> None:
        assert usage_frequency(fraction) == label


class TestDeviceUsagePattern:
    def test_evening_device(self) -> None:
        pattern = device_usage_pattern("light.kitchen", evening_device())

        assert pattern.preferred_time == "19:00"
        assert pattern.usage_frequency == "rare"
        assert pattern.usage_data["peak_hour"] == 19
        assert 0.0 < pattern.confidence <= 1.0

    def test_always_on_device(self) -> None:
        index = pd.date_range("2024-01-01", periods=48, freq="h")
        pattern = device_usage_pattern("sensor.fridge", pd.Series(50.0, index=index))
        assert pattern.usage_frequency == "continuous"

    def test_empty_series(self) -> None:
        assert device_usage_pattern("a", pd.Series(dtype=float)) is None


class TestRoutinesAndEnergy:
    def test_shared_peak_hour_becomes_routine(self) -> None:
        patterns = [
            device_usage_pattern("light.kitchen", evening_device(19)),
            device_usage_pattern("switch.tv", evening_device(19)),
            device_usage_pattern("coffee.maker", evening_device(7)),
        ]

        routines = household_routines(patterns)

        assert len(routines) == 1
        routine = routines[0]
        assert routine.time_of_day == "19:00"
        assert routine.involved_devices == ["light.kitchen", "switch.tv"]
        assert routine.routine_name == "Evening routine"

    def test_energy_patterns(self) -> None:
        index = pd.date_range("2024-01-01", periods=48, freq="h")
        load = pd.Series(np.where(index.hour == 20, 500.0, 100.0), index=index)

        patterns = {p.pattern_type: p for p in energy_patterns("home-1", load)}

        assert set(patterns) == {"base_load", "peak_load", "day_night_split"}
        assert patterns["peak_load"].time_of_day == "20:00"
        assert patterns["peak_load"].energy_impact == pytest.approx(500.0 / load.mean())
        assert patterns["base_load"].energy_data["base_load"] == pytest.approx(100.0)
        # 15 day hours at 100 plus the 500 peak, out of 23 x 100 + 500 per day
        assert patterns["day_night_split"].energy_impact == pytest.approx(2000.0 / 2800.0)

    def test_no_load(self) -> None:
        assert energy_patterns("home-1", pd.Series(dtype=float)) == []

    def test_household_model(self) -> None:
        model = build_household_model(
            "home-1",
            {"light.kitchen": evening_device(19), "switch.tv": evening_device(19)},
        )

        assert model.success
        assert len(model.device_patterns) == 2
        assert len(model.routines) == 1
        assert len(model.energy_patterns) == 3
        assert 0.0 < model.overall_confidence <= 1.0

    def test_user_model(self) -> None:
        model = build_user_model(
            "user-1",
            {"light.kitchen": evening_device(19), "switch.tv": evening_device(19)},
        )

        assert model.user_id == "user-1"
        assert model.household_id == ""
        assert model.model_used == "user_behavior_profile"
        assert len(model.routines) == 1


def make_anomaly(severity: float) -> AnomalyDetection:
    return AnomalyDetection(
        anomaly_id=f"a{severity}",
        anomaly_type="z_score",
        description="",
        severity=severity,
        detected_at=datetime(2024, 1, 8),
        value=1000.0,
    )


class TestSecurityPatterns:
    def test_night_activity_is_unusual(self) -> None:
        patterns = security_patterns("home-1", {"lock.front": evening_device(peak_hour=2)})

        assert len(patterns) == 1
        pattern = patterns[0]
        assert pattern.pattern_id == "lock.front_unusual_hours"
        assert pattern.pattern_type == "unusual_hour_activity"
        assert pattern.risk_assessment == "high"
        assert pattern.security_level == pytest.approx(0.0)
        assert pattern.security_devices == ["lock.front"]

    def test_small_night_share_is_low_risk(self) -> None:
        index = pd.date_range("2024-01-01", periods=7 * 24, freq="h")
        series = pd.Series(np.where(np.isin(index.hour, [2, 19, 20, 21]), 100.0, 0.0), index=index)

        patterns = security_patterns("home-1", {"light.hall": series})

        assert patterns[0].security_data["unusual_share"] == pytest.approx(0.25)
        assert patterns[0].risk_assessment == "low"

    def test_significant_anomalies(self) -> None:
        patterns = security_patterns(
            "home-1",
            {"sensor.fridge": pd.Series(dtype=float)},
            {"sensor.fridge": [make_anomaly(0.3), make_anomaly(0.9), make_anomaly(0.6)]},
        )

        assert len(patterns) == 1
        pattern = patterns[0]
        assert pattern.pattern_type == "anomalous_activity"
        assert pattern.security_data["anomaly_count"] == 2
        assert pattern.security_level == pytest.approx(0.1)
        assert pattern.risk_assessment == "high"

    def test_nothing_found_is_normal(self) -> None:
        patterns = security_patterns(
            "home-1",
            {"light.kitchen": evening_device(19), "switch.tv": evening_device(20)},
            {"light.kitchen": [make_anomaly(0.2)]},
        )

        assert len(patterns) == 1
        assert patterns[0].pattern_id == "home-1_normal_activity"
        assert patterns[0].security_level == 1.0
        assert patterns[0].security_devices == ["light.kitchen", "switch.tv"]

    def test_continuous_devices_not_checked(self) -> None:
        index = pd.date_range("2024-01-01", periods=48, freq="h")
        patterns = security_patterns("home-1", {"sensor.fridge": pd.Series(50.0, index=index)})

        assert [p.pattern_type for p in patterns] == ["normal_activity"]

    def test_no_data(self) -> None:
        assert security_patterns("home-1", {}) == []

    @pytest.mark.parametrize("score, level", [(0.9, "high"), (0.5, "medium"), (0.2, "low")])
    def test_risk_level(self, score: float, level: str) -> None:
        assert risk_level(score) == level

"""Test the pattern, anomaly and prediction engine."""

from datetime import datetime, timedelta, timezone

import numpy as np
import pandas as pd
import pytest

from tappha_analytics.analysis.patterns import (combine_series,
                                                daily_cycle_strength,
                                                detect_anomalies,
                                                hourly_profile,
                                                predict_next,
                                                samples_per_hour,
                                                summarize_behavior, to_series)
from tappha_analytics.models.timeseries import (Granularity, TimeSeriesData,
                                                TimeSeriesPoint)
from tests.helpers.synthetic_data import (NOW, daily_usage_points,
                                          daily_usage_values, stepped_values)


def hourly_series(values, start="2024-01-01 00:00") -> pd.Series:
    index = pd.date_range(start, periods=len(values), freq="h")
    return pd.Series(values, index=index, dtype=float)


class TestSeriesHelpers:
    def test_to_series_keeps_order_and_index(self) -> None:
        points = daily_usage_points(48)
        data = TimeSeriesData(
            subject_id="light.kitchen",
            start_time=points[0].timestamp,
            end_time=NOW,
            granularity=Granularity.ONE_HOUR,
            points=points,
        )

        series = to_series(data)

        assert len(series) == 48
        assert series.index[0] == pd.Timestamp(points[0].timestamp)
        assert series.iloc[-1] == pytest.approx(points[-1].value)

    def test_utc_timestamps_grouped_by_local_hour(self) -> None:
        start = datetime(2024, 1, 1, tzinfo=timezone.utc)
        points = [
            TimeSeriesPoint(timestamp=start + timedelta(hours=h), value=100.0 if h == 18 else 0.0)
            for h in range(24)
        ]
        data = TimeSeriesData(
            subject_id="light.kitchen",
            start_time=start,
            end_time=start + timedelta(days=1),
            granularity=Granularity.ONE_HOUR,
            points=points,
        )

        local = to_series(data, "Europe/Prague")

        # 18:00 UTC is 19:00 in Prague in winter
        assert local.index.tz is None
        assert int(hourly_profile(local).idxmax()) == 19
        assert int(hourly_profile(to_series(data)).idxmax()) == 18

    def test_combine_series_sums_aligned_values(self) -> None:
        a = hourly_series([1.0, 2.0, 3.0])
        b = hourly_series([10.0, 20.0], start="2024-01-01 01:00")

        combined = combine_series([a, b])

        assert combined.tolist() == [1.0, 12.0, 23.0]

    def test_samples_per_hour(self) -> None:
        index = pd.date_range("2024-01-01", periods=8, freq="15min")
        assert samples_per_hour(pd.Series(range(8), index=index)) == pytest.approx(4.0)
        assert samples_per_hour(pd.Series(dtype=float)) == 1.0


class TestSummarizeBehavior:
    @pytest.fixture
    def series(self) -> pd.Series:
        return hourly_series(daily_usage_values(336, peak_hour=19, start=datetime(2024, 1, 1)))

    def test_peak_hour_found(self, series) -> None:
        _, patterns, confidence = summarize_behavior("light.kitchen", series, ["1d", "7d"])

        peak = next(p for p in patterns if p.pattern_id == "light.kitchen_peak_hours")
        assert peak.time_of_day == "19:00"
        assert peak.pattern_details["peak_hour"] == 19
        assert 0.0 < confidence <= 1.0

    def test_daily_cycle_found(self, series) -> None:
        _, patterns, _ = summarize_behavior("light.kitchen", series)

        assert any(p.pattern_name == "Daily cycle" for p in patterns)
        assert daily_cycle_strength(series) > 0.8

    def test_interval_patterns(self, series) -> None:
        intervals, _, _ = summarize_behavior("light.kitchen", series, ["1d", "7d", "bogus"])

        assert set(intervals) == {"1d", "7d"}
        assert intervals["1d"].pattern_data["sample_count"] == 24
        assert intervals["1d"].confidence == pytest.approx(1.0)
        assert intervals["7d"].pattern_data["sample_count"] == 168

    def test_weekend_usage_detected(self) -> None:
        index = pd.date_range("2024-01-01", periods=14 * 24, freq="h")
        values = np.where(index.dayofweek >= 5, 200.0, 100.0)
        series = pd.Series(values, index=index)

        _, patterns, _ = summarize_behavior("switch.tv", series)

        weekly = next(p for p in patterns if p.pattern_id == "switch.tv_weekday_weekend")
        assert weekly.day_of_week == "weekends"
        assert weekly.pattern_details["relative_difference"] == pytest.approx(0.5)

    def test_empty_series(self) -> None:
        assert summarize_behavior("a", pd.Series(dtype=float), ["1d"]) == ({}, [], 0.0)


class TestDetectAnomalies:
    def test_spike_flagged_once(self) -> None:
        detected_at = datetime(2024, 1, 5, 12, 0)
        series = hourly_series(stepped_values(72, spike_at=50))

        anomalies = detect_anomalies("sensor.fridge", series, detected_at)

        assert len(anomalies) == 1
        anomaly = anomalies[0]
        assert anomaly.value == 1000.0
        assert anomaly.anomaly_type == "z_score"
        assert 0.0 < anomaly.severity <= 1.0
        assert anomaly.detected_at == detected_at
        assert anomaly.anomaly_data["timestamp"] == series.index[50].isoformat()

    def test_long_series_runs_isolation_forest(self) -> None:
        series = hourly_series(stepped_values(200, spike_at=120))

        anomalies = detect_anomalies("sensor.fridge", series)

        assert anomalies[0].value == 1000.0
        assert anomalies[0].severity == pytest.approx(1.0)
        severities = [a.severity for a in anomalies]
        assert severities == sorted(severities, reverse=True)
        timestamps = [a.anomaly_data["timestamp"] for a in anomalies]
        assert len(timestamps) == len(set(timestamps))

    def test_constant_series_has_no_anomalies(self) -> None:
        assert detect_anomalies("a", hourly_series([5.0] * 50)) == []

    def test_too_short(self) -> None:
        assert detect_anomalies("a", hourly_series([1.0, 100.0])) == []


class TestPredictNext:
    def test_trend_with_daily_profile(self) -> None:
        hours = np.arange(168)
        values = 10 + 0.1 * hours + 5 * np.sin(2 * np.pi * hours / 24)
        series = hourly_series(values)

        predictions, confidence = predict_next("climate.living", series, horizon_hours=6)

        assert len(predictions) == 6
        assert confidence > 0.9
        for offset, prediction in enumerate(predictions, start=1):
            position = 167 + offset
            expected = 10 + 0.1 * position + 5 * np.sin(2 * np.pi * position / 24)
            assert prediction.predicted_time == (series.index[-1] + pd.Timedelta(hours=offset))
            assert prediction.predicted_value == pytest.approx(expected, abs=1.5)
            assert prediction.confidence == confidence

    def test_constant_series_is_fully_confident(self) -> None:
        predictions, confidence = predict_next("a", hourly_series([3.0] * 48), horizon_hours=2)
        assert confidence == pytest.approx(1.0)
        assert [p.predicted_value for p in predictions] == pytest.approx([3.0, 3.0])

    def test_too_short(self) -> None:
        assert predict_next("a", hourly_series([1.0])) == ([], 0.0)

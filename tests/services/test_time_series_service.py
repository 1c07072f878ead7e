"""Test the time-series analysis service."""

import asyncio
from datetime import timedelta

import numpy as np
import pytest

from tappha_analytics.ingestion.source import StaticTimeSeriesSource
from tappha_analytics.services.time_series_service import (
    TimeSeriesAnalysisService, aggregate_metrics)
from tests.helpers.synthetic_data import NOW


class FailingSource(StaticTimeSeriesSource):
    """Source whose queries always fail."""

    async def fetch_series(self, subject_id, start, end, granularity):
        self.fetch_calls += 1
        raise ConnectionError("InfluxDB unreachable")

    async def health_check(self) -> bool:
        return False


class SlowSource(StaticTimeSeriesSource):
    async def fetch_series(self, subject_id, start, end, granularity):
        await asyncio.sleep(1.0)
        return await super().fetch_series(subject_id, start, end, granularity)


def test_aggregate_metrics() -> None:
    metrics = aggregate_metrics([1.0, 2.0, 3.0])
    assert metrics["mean"] == pytest.approx(2.0)
    assert metrics["total"] == pytest.approx(6.0)
    assert metrics["std_dev"] == pytest.approx(1.0)
    assert aggregate_metrics([]) == {}


class TestTimeSeriesQuery:
    @pytest.mark.asyncio
    async def test_fetches_range(self, time_series_service, source) -> None:
        data = await time_series_service.analyze_time_series_data(
            "light.kitchen", NOW - timedelta(days=7), NOW, "1h"
        )

        assert data.success
        assert data.total_data_points == 168
        assert data.data_source == "StaticTimeSeriesSource"
        assert data.aggregated_metrics["mean"] == pytest.approx(np.mean(data.values()))
        assert source.fetch_calls == 1

    @pytest.mark.asyncio
    async def test_coarser_granularity_buckets_points(self, time_series_service) -> None:
        data = await time_series_service.analyze_time_series_data(
            "light.kitchen", NOW - timedelta(days=7), NOW, "1d"
        )
        assert data.total_data_points == 7

    @pytest.mark.asyncio
    async def test_inverted_range_is_empty_without_query(
        self, time_series_service, source
    ) -> None:
        data = await time_series_service.analyze_time_series_data(
            "light.kitchen", NOW, NOW - timedelta(days=1)
        )

        assert data.success
        assert data.points == []
        assert source.fetch_calls == 0


class TestStatisticalAnalysis:
    @pytest.mark.asyncio
    async def test_result_and_cache(self, time_series_service, source, device_series) -> None:
        expected = [p.value for p in device_series["light.kitchen"]]

        first = await time_series_service.perform_statistical_analysis("light.kitchen", ["7d"])
        second = await time_series_service.perform_statistical_analysis("light.kitchen", ["7d"])

        assert first.success
        assert first.sample_size == 168
        assert first.mean == pytest.approx(np.mean(expected))
        assert first.standard_deviation == pytest.approx(np.std(expected, ddof=1))
        assert first.confidence_score == pytest.approx(1.0)
        assert first.analyzed_at == NOW
        assert second is first
        assert source.fetch_calls == 1

    @pytest.mark.asyncio
    async def test_widest_interval_is_used(self, time_series_service) -> None:
        result = await time_series_service.perform_statistical_analysis(
            "light.kitchen", ["1d", "bogus"]
        )
        assert result.sample_size == 24

    @pytest.mark.asyncio
    async def test_source_failure_degrades_and_is_not_cached(self, cache, settings, clock) -> None:
        source = FailingSource()
        service = TimeSeriesAnalysisService(cache, source, settings, clock=clock)

        first = await service.perform_statistical_analysis("light.kitchen")
        second = await service.perform_statistical_analysis("light.kitchen")

        assert first.success is False
        assert "InfluxDB unreachable" in first.error_message
        assert second.success is False
        assert source.fetch_calls == 2
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_timeout_degrades(self, cache, settings, clock, device_series) -> None:
        settings.analysis.operation_timeout_seconds = 0.05
        service = TimeSeriesAnalysisService(
            cache, SlowSource(device_series), settings, clock=clock
        )

        result = await service.perform_statistical_analysis("light.kitchen")

        assert result.success is False
        assert "timed out" in result.error_message


class TestFrequencyAnalysis:
    @pytest.mark.asyncio
    async def test_week_of_hourly_samples(self, time_series_service) -> None:
        result = await time_series_service.perform_frequency_analysis("light.kitchen", "7d")

        assert result.success
        assert result.fft_size == 256
        assert result.sampling_rate == 1.0
        assert len(result.dominant_frequencies) == 5

    @pytest.mark.asyncio
    async def test_malformed_range_gives_empty_success(self, time_series_service, source) -> None:
        result = await time_series_service.perform_frequency_analysis("light.kitchen", "soon")

        assert result.success
        assert result.fft_size == 0
        assert result.frequency_components == []
        assert source.fetch_calls == 0


class TestCorrelationAnalysis:
    @pytest.mark.asyncio
    async def test_scaled_copy_is_strongly_correlated(self, time_series_service) -> None:
        result = await time_series_service.perform_correlation_analysis(
            ["light.kitchen", "light.dining", "sensor.fridge"], "7d"
        )

        assert result.success
        assert result.coefficient("light.kitchen", "light.dining") == pytest.approx(1.0)
        strong = [(p.subject_a, p.subject_b) for p in result.strong_correlations]
        assert ("light.kitchen", "light.dining") in strong
        assert result.time_range == "7d"

    @pytest.mark.asyncio
    async def test_cached(self, time_series_service, source) -> None:
        ids = ["light.kitchen", "light.dining"]
        first = await time_series_service.perform_correlation_analysis(ids)
        calls = source.fetch_calls
        second = await time_series_service.perform_correlation_analysis(ids)

        assert second is first
        assert source.fetch_calls == calls


class TestSeasonalityAndClustering:
    @pytest.mark.asyncio
    async def test_daily_seasonality(self, time_series_service) -> None:
        info = await time_series_service.detect_seasonality("light.kitchen")

        assert info.has_seasonality
        assert info.seasonality_type == "daily"

    @pytest.mark.asyncio
    async def test_seasonality_failure_gives_default(self, cache, settings, clock) -> None:
        service = TimeSeriesAnalysisService(cache, FailingSource(), settings, clock=clock)
        info = await service.detect_seasonality("light.kitchen")
        assert info.has_seasonality is False

    @pytest.mark.asyncio
    async def test_time_clustering(self, time_series_service) -> None:
        clusters = await time_series_service.perform_time_clustering("light.kitchen")

        assert [c.cluster_id for c in clusters] == [0, 1, 2]
        assert sum(c.cluster_size for c in clusters) == 168
        centroids = [c.centroid_value for c in clusters]
        assert centroids == sorted(centroids)

    @pytest.mark.asyncio
    async def test_clustering_failure_gives_empty_list(self, cache, settings, clock) -> None:
        service = TimeSeriesAnalysisService(cache, FailingSource(), settings, clock=clock)
        assert await service.perform_time_clustering("light.kitchen") == []


class TestConcurrencyAndHealth:
    @pytest.mark.asyncio
    async def test_concurrent_operations(self, time_series_service) -> None:
        tasks = [
            asyncio.create_task(
                time_series_service.perform_statistical_analysis(subject, ["7d"])
            )
            for subject in ("light.kitchen", "light.dining", "switch.tv")
        ]
        results = await asyncio.gather(*tasks)

        assert [r.subject_id for r in results] == ["light.kitchen", "light.dining", "switch.tv"]
        assert all(r.success for r in results)

    @pytest.mark.asyncio
    async def test_healthy(self, time_series_service) -> None:
        status = await time_series_service.get_health_status()
        assert status.startswith("HEALTHY")

    @pytest.mark.asyncio
    async def test_unhealthy_source(self, cache, settings, clock) -> None:
        service = TimeSeriesAnalysisService(cache, FailingSource(), settings, clock=clock)
        status = await service.get_health_status()
        assert status.startswith("UNHEALTHY")
        assert "time-series source unreachable" in status

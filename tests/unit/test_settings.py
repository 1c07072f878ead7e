"""Test configuration loading and validation."""

import json

import pytest
from pydantic import ValidationError

from tappha_analytics.config.settings import (AnalysisSettings,
                                              AnalyticsSettings,
                                              CacheTTLSettings,
                                              InfluxDBSettings,
                                              LoggingSettings,
                                              RecommendationSettings,
                                              RedisSettings)
from tappha_analytics.exceptions import ConfigurationError


class TestCacheTTLSettings:
    def test_defaults_match_operation_table(self) -> None:
        ttl = CacheTTLSettings()
        assert ttl.time_series_seconds == 3600
        assert ttl.statistical_seconds == 86400
        assert ttl.frequency_seconds == 43200
        assert ttl.correlation_seconds == 21600
        assert ttl.pattern_seconds == 86400
        assert ttl.anomaly_seconds == 3600
        assert ttl.prediction_seconds == 1800
        assert ttl.recommendation_seconds == 1800
        assert ttl.ranking_seconds == 900
        assert ttl.explanation_seconds == 3600
        assert ttl.stats_seconds == 86400

    def test_non_positive_ttl_rejected(self) -> None:
        with pytest.raises(ValidationError):
            CacheTTLSettings(ranking_seconds=0)

    def test_anomaly_ttl_cannot_exceed_pattern_ttl(self) -> None:
        with pytest.raises(ValidationError):
            CacheTTLSettings(pattern_seconds=600, anomaly_seconds=3600, prediction_seconds=300)


class TestAnalysisSettings:
    def test_defaults(self) -> None:
        settings = AnalysisSettings()
        assert settings.moving_average_windows == [5, 10, 20]
        assert settings.seasonality_lag == 24
        assert settings.strong_correlation == 0.7
        assert settings.weak_correlation == 0.3
        assert settings.operation_timeout_seconds is None

    def test_correlation_thresholds_must_be_ordered(self) -> None:
        with pytest.raises(ValidationError):
            AnalysisSettings(weak_correlation=0.8, strong_correlation=0.7)

    def test_windows_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            AnalysisSettings(moving_average_windows=[5, 0])

    def test_timeout_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            AnalysisSettings(operation_timeout_seconds=0)


class TestOtherSettings:
    def test_accuracy_thresholds_ordered(self) -> None:
        with pytest.raises(ValidationError):
            RecommendationSettings(high_accuracy_threshold=0.5, medium_accuracy_threshold=0.6)

    def test_invalid_log_level(self) -> None:
        with pytest.raises(ValidationError):
            LoggingSettings(level="CHATTY")

    def test_redis_url_scheme_checked_when_enabled(self) -> None:
        with pytest.raises(ValidationError):
            RedisSettings(enabled=True, url="http://localhost:6379")

    def test_influxdb_environment_override(self, monkeypatch) -> None:
        monkeypatch.setenv("INFLUXDB_URL", "http://influx.local:8086")
        monkeypatch.setenv("INFLUXDB_TOKEN", "secret-token")

        settings = InfluxDBSettings()

        assert settings.url == "http://influx.local:8086"
        assert settings.token.get_secret_value() == "secret-token"
        assert "secret-token" not in repr(settings)


class TestAnalyticsSettings:
    def test_packaged_configuration_loads(self) -> None:
        settings = AnalyticsSettings()
        assert settings.cache_ttl.prediction_seconds == 1800
        assert settings.recommendation.default_max_recommendations == 5

    def test_json_configuration_overrides_defaults(self, tmp_path) -> None:
        config_file = tmp_path / "analytics_config.json"
        config_file.write_text(
            json.dumps({"analysis": {"default_clusters": 4, "max_workers": 2}})
        )

        settings = AnalyticsSettings(config_path=str(config_file))

        assert settings.analysis.default_clusters == 4
        assert settings.analysis.max_workers == 2
        assert settings.cache_ttl.statistical_seconds == 86400

    def test_explicit_missing_file_raises(self, tmp_path) -> None:
        with pytest.raises(ConfigurationError, match="not found"):
            AnalyticsSettings(config_path=str(tmp_path / "missing.json"))

    def test_malformed_json_raises(self, tmp_path) -> None:
        config_file = tmp_path / "analytics_config.json"
        config_file.write_text("{not json")

        with pytest.raises(ConfigurationError, match="not valid JSON"):
            AnalyticsSettings(config_path=str(config_file))

    def test_unknown_local_timezone_rejected(self) -> None:
        with pytest.raises(ValidationError):
            AnalysisSettings(local_timezone="Mars/Olympus")

    def test_keyword_arguments_take_precedence(self) -> None:
        settings = AnalyticsSettings(analysis=AnalysisSettings(default_clusters=7))
        assert settings.analysis.default_clusters == 7

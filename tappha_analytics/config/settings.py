"""
Configuration settings for TappHA Analytics.

This module provides a tiered configuration system that combines an optional
JSON analysis configuration with environment variable overrides for secrets
and deployment-specific settings.

Architecture:
- analytics_config.json: Non-sensitive tuning (thresholds, windows, TTLs)
- Environment variables: Secrets, server URLs, and deployment overrides
- Pydantic validation: Type safety and automatic validation for all settings

Usage:
    settings = AnalyticsSettings()  # Loads JSON (if present) + environment
    flux_url = settings.influxdb.url
    ttl = settings.cache_ttl.statistical_seconds
"""

import json
import os
import zoneinfo
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator
from pydantic.types import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..exceptions import ConfigurationError


class InfluxDBSettings(BaseSettings):
    """
    InfluxDB time-series database configuration.

    Raw device events live in InfluxDB; the analytics core only issues
    range + aggregation queries against it.
    """

    url: str = Field(default="http://localhost:8086", description="InfluxDB server URL")
    token: SecretStr = Field(
        default=SecretStr(""), description="Authentication token for InfluxDB access"
    )
    org: str = Field(default="tappha", description="InfluxDB organization name")
    bucket: str = Field(
        default="home_assistant", description="Bucket holding device event data"
    )
    measurement: str = Field(
        default="device_state", description="Measurement holding numeric device values"
    )
    timeout_ms: int = Field(default=30000, description="Query timeout in milliseconds")

    model_config = SettingsConfigDict(
        env_file=".env", env_prefix="INFLUXDB_", extra="ignore"
    )


class RedisSettings(BaseSettings):
    """Redis cache connection configuration."""

    enabled: bool = Field(default=False, description="Use Redis instead of in-memory cache")
    url: str = Field(default="redis://localhost:6379/0", description="Redis connection URL")
    key_prefix: str = Field(default="tappha:", description="Prefix for every cache key")
    socket_timeout: float = Field(default=5.0, description="Socket timeout in seconds")

    model_config = SettingsConfigDict(
        env_file=".env", env_prefix="REDIS_", extra="ignore"
    )

    @model_validator(mode="after")
    def validate_redis_parameters(self):
        """Validate Redis connection parameters."""
        if self.enabled and not self.url.startswith(("redis://", "rediss://", "unix://")):
            raise ValueError(f"Redis URL ({self.url}) must use redis://, rediss:// or unix://.")

        if self.socket_timeout <= 0:
            raise ValueError(
                f"Redis socket timeout ({self.socket_timeout}s) must be positive."
            )

        return self


class CacheTTLSettings(BaseModel):
    """Time-to-live per cached operation kind, in seconds."""

    time_series_seconds: int = 60 * 60
    statistical_seconds: int = 24 * 60 * 60
    frequency_seconds: int = 12 * 60 * 60
    correlation_seconds: int = 6 * 60 * 60
    pattern_seconds: int = 24 * 60 * 60
    anomaly_seconds: int = 60 * 60
    prediction_seconds: int = 30 * 60
    recommendation_seconds: int = 30 * 60
    ranking_seconds: int = 15 * 60
    explanation_seconds: int = 60 * 60
    stats_seconds: int = 24 * 60 * 60
    behavior_seconds: int = 24 * 60 * 60

    @model_validator(mode="after")
    def validate_ttls(self):
        """Every TTL must be positive."""
        for name, value in self.model_dump().items():
            if value <= 0:
                raise ValueError(f"Cache TTL '{name}' ({value}s) must be positive.")

        # Time-sensitive results must not outlive the patterns they refine
        if self.anomaly_seconds > self.pattern_seconds:
            raise ValueError(
                f"Anomaly TTL ({self.anomaly_seconds}s) cannot exceed "
                f"pattern TTL ({self.pattern_seconds}s)."
            )
        if self.prediction_seconds > self.pattern_seconds:
            raise ValueError(
                f"Prediction TTL ({self.prediction_seconds}s) cannot exceed "
                f"pattern TTL ({self.pattern_seconds}s)."
            )

        return self


class AnalysisSettings(BaseModel):
    """Tuning for the statistical, frequency, correlation and pattern engines."""

    moving_average_windows: List[int] = Field(default_factory=lambda: [5, 10, 20])
    seasonality_lag: int = Field(default=24, description="Lag in samples (one day hourly)")
    seasonality_threshold: float = 0.3
    default_clusters: int = 3
    strong_correlation: float = 0.7
    weak_correlation: float = 0.3
    cluster_correlation: float = 0.6
    dominant_frequency_count: int = 5
    frequency_tolerance: float = 0.001
    sampling_rate: float = Field(default=1.0, description="Samples per hour")
    anomaly_z_threshold: float = 3.0
    prediction_horizon_hours: int = 6
    max_workers: int = Field(default=4, description="Analysis thread pool size")
    operation_timeout_seconds: Optional[float] = Field(
        default=None, description="Per-operation timeout, None waits indefinitely"
    )
    local_timezone: str = Field(
        default="Europe/Prague", description="Timezone used to group samples by hour of day"
    )

    @model_validator(mode="after")
    def validate_analysis_parameters(self):
        """Validate engine thresholds and sizes."""
        if not self.moving_average_windows or any(w < 1 for w in self.moving_average_windows):
            raise ValueError(
                f"Moving average windows {self.moving_average_windows} must be positive."
            )

        if self.seasonality_lag < 1:
            raise ValueError(f"Seasonality lag ({self.seasonality_lag}) must be positive.")

        if not (0.0 <= self.weak_correlation < self.strong_correlation <= 1.0):
            raise ValueError(
                f"Correlation thresholds must satisfy 0 <= weak ({self.weak_correlation}) "
                f"< strong ({self.strong_correlation}) <= 1."
            )

        if not (0.0 < self.cluster_correlation <= 1.0):
            raise ValueError(
                f"Cluster correlation ({self.cluster_correlation}) must be in (0, 1]."
            )

        if self.default_clusters < 1:
            raise ValueError(f"Default clusters ({self.default_clusters}) must be positive.")

        if self.sampling_rate <= 0:
            raise ValueError(f"Sampling rate ({self.sampling_rate}) must be positive.")

        if not (1 <= self.prediction_horizon_hours <= 168):
            raise ValueError(
                f"Prediction horizon ({self.prediction_horizon_hours}h) must be between 1 and 168 hours."
            )

        if self.max_workers < 1:
            raise ValueError(f"Max workers ({self.max_workers}) must be at least 1.")

        if self.operation_timeout_seconds is not None and self.operation_timeout_seconds <= 0:
            raise ValueError(
                f"Operation timeout ({self.operation_timeout_seconds}s) must be positive."
            )

        try:
            zoneinfo.ZoneInfo(self.local_timezone)
        except (zoneinfo.ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown local timezone '{self.local_timezone}'.")

        return self


class RecommendationSettings(BaseModel):
    """Recommendation engine configuration."""

    default_max_recommendations: int = 5
    high_accuracy_threshold: float = 0.8
    medium_accuracy_threshold: float = 0.6
    external_trust_cap: float = Field(
        default=0.5, description="Max weight of an external draft's own confidence"
    )

    @model_validator(mode="after")
    def validate_recommendation_parameters(self):
        """Validate recommendation thresholds."""
        if self.default_max_recommendations < 1:
            raise ValueError(
                f"Default max recommendations ({self.default_max_recommendations}) must be positive."
            )

        if not (0.0 < self.medium_accuracy_threshold < self.high_accuracy_threshold <= 1.0):
            raise ValueError(
                f"Accuracy thresholds must satisfy 0 < medium ({self.medium_accuracy_threshold}) "
                f"< high ({self.high_accuracy_threshold}) <= 1."
            )

        if not (0.0 <= self.external_trust_cap <= 1.0):
            raise ValueError(
                f"External trust cap ({self.external_trust_cap}) must be between 0.0 and 1.0."
            )

        return self


class LoggingSettings(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    timezone: str = "Europe/Prague"

    @model_validator(mode="after")
    def validate_level(self):
        """Validate log level name."""
        if self.level.upper() not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level '{self.level}'.")
        return self


class AnalysisConfig(BaseModel):
    """Non-secret configuration loaded from JSON."""

    cache_ttl: CacheTTLSettings = Field(default_factory=CacheTTLSettings)
    analysis: AnalysisSettings = Field(default_factory=AnalysisSettings)
    recommendation: RecommendationSettings = Field(default_factory=RecommendationSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


class AnalyticsSettings(BaseSettings):
    """
    Main TappHA Analytics configuration container.

    Configuration Loading Order:
    1. Load analytics_config.json (if present) for tuning settings
    2. Override with environment variables for secrets/deployment settings
    3. Apply validation to ensure consistency

    Usage:
        settings = AnalyticsSettings()
        token = settings.influxdb.token.get_secret_value()
        windows = settings.analysis.moving_average_windows
    """

    influxdb: InfluxDBSettings = Field(default_factory=InfluxDBSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)

    cache_ttl: CacheTTLSettings = Field(default_factory=CacheTTLSettings)
    analysis: AnalysisSettings = Field(default_factory=AnalysisSettings)
    recommendation: RecommendationSettings = Field(default_factory=RecommendationSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="TAPPHA_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    def __init__(self, config_path: Optional[str] = None, **kwargs):
        """
        Initialize settings with JSON configuration and environment overrides.

        Args:
            config_path: Optional path to analytics_config.json. Defaults to
                the TAPPHA_CONFIG_PATH environment variable, then to the file
                next to this module. A missing default file is not an error.
            **kwargs: Additional keyword arguments passed to BaseSettings
        """
        explicit = config_path is not None or "TAPPHA_CONFIG_PATH" in os.environ
        if config_path is None:
            config_path = os.getenv(
                "TAPPHA_CONFIG_PATH", str(Path(__file__).parent / "analytics_config.json")
            )

        merged_config = {}
        if Path(config_path).exists():
            with open(config_path, "r") as f:
                try:
                    raw_config = json.load(f)
                except json.JSONDecodeError as e:
                    raise ConfigurationError(
                        f"Analytics configuration file {config_path} is not valid JSON: {e}"
                    ) from e
            json_config = AnalysisConfig(**raw_config)
            merged_config = {
                "cache_ttl": json_config.cache_ttl,
                "analysis": json_config.analysis,
                "recommendation": json_config.recommendation,
                "logging": json_config.logging,
            }
        elif explicit:
            raise ConfigurationError(f"Analytics configuration file not found: {config_path}")

        merged_config.update(kwargs)
        super().__init__(**merged_config)

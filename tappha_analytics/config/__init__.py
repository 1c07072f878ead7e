"""Configuration for TappHA Analytics."""

from .settings import AnalyticsSettings

__all__ = ["AnalyticsSettings"]

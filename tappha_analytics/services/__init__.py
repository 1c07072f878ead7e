"""
Async analysis services.

- TimeSeriesAnalysisService: statistics, FFT, correlation, seasonality, clustering
- PatternAnalysisService: device/household patterns, anomalies, predictions
- BehavioralModelingService: household routines and energy patterns
- RecommendationService: ranked, explained recommendations and feedback
- AnalyticsService: composition root owning executor, cache and source
"""

from .analytics import AnalyticsService, create_analytics_service
from .behavior_service import BehavioralModelingService
from .pattern_service import PatternAnalysisService
from .recommendation_service import RecommendationService
from .time_series_service import TimeSeriesAnalysisService

__all__ = [
    "AnalyticsService",
    "BehavioralModelingService",
    "PatternAnalysisService",
    "RecommendationService",
    "TimeSeriesAnalysisService",
    "create_analytics_service",
]

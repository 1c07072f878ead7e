"""
TappHA Analytics data model.

- Time-series points and query results
- Statistical, frequency and correlation results
- Pattern, anomaly, prediction and behavioral results
- Recommendation requests, responses, feedback and accuracy
"""

from .analysis import (CorrelationAnalysisResult, CorrelationCluster,
                       DataPoint, DeviceCorrelation, DominantFrequency,
                       FrequencyAnalysisResult, FrequencyComponent,
                       MovingAverage, PeriodicPattern, SeasonalityInfo,
                       StatisticalAnalysisResult, TimeCluster)
from .patterns import (AnomalyDetection, BehavioralModelResult,
                       BehavioralPattern, DeviceUsagePattern, EnergyPattern,
                       HouseholdRoutine, PatternAnalysisResult,
                       PredictionInsight, SecurityPattern,
                       TimeIntervalPattern)
from .recommendation import (AccuracyMetric, ApprovalStatus,
                             CandidateSuggestion, Recommendation,
                             RecommendationAccuracy, RecommendationCategory,
                             RecommendationFeedback, RecommendationRequest,
                             RecommendationResponse, RecommendationStats)
from .timeseries import Granularity, TimeSeriesData, TimeSeriesPoint

__all__ = [
    "AccuracyMetric",
    "AnomalyDetection",
    "ApprovalStatus",
    "BehavioralModelResult",
    "BehavioralPattern",
    "CandidateSuggestion",
    "CorrelationAnalysisResult",
    "CorrelationCluster",
    "DataPoint",
    "DeviceCorrelation",
    "DeviceUsagePattern",
    "DominantFrequency",
    "EnergyPattern",
    "FrequencyAnalysisResult",
    "FrequencyComponent",
    "Granularity",
    "HouseholdRoutine",
    "MovingAverage",
    "PatternAnalysisResult",
    "PeriodicPattern",
    "PredictionInsight",
    "Recommendation",
    "RecommendationAccuracy",
    "RecommendationCategory",
    "RecommendationFeedback",
    "RecommendationRequest",
    "RecommendationResponse",
    "RecommendationStats",
    "SeasonalityInfo",
    "SecurityPattern",
    "StatisticalAnalysisResult",
    "TimeCluster",
    "TimeIntervalPattern",
    "TimeSeriesData",
    "TimeSeriesPoint",
]

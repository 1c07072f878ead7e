"""
Analysis engines for TappHA Analytics.

Pure, synchronous computations:
- statistics: descriptive stats, moving averages, seasonality, k-means buckets
- frequency: FFT decomposition and periodic cycles
- correlation: Pearson matrix, strong/weak pairs, clusters
- patterns: behavior summaries, anomalies, predictions
"""

from .correlation import CorrelationAnalyzer
from .frequency import FrequencyAnalyzer
from .statistics import StatisticalAnalyzer

__all__ = ["CorrelationAnalyzer", "FrequencyAnalyzer", "StatisticalAnalyzer"]

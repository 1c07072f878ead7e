"""
Statistical engine.

Descriptive statistics, moving averages, a lag-based seasonality heuristic
and k-means value clustering over an ordered numeric sample. All functions
are pure and synchronous; services run them on the analysis thread pool.
"""

import logging
import time
from typing import List, Optional, Sequence

import numpy as np
from sklearn.cluster import KMeans

from ..config.settings import AnalysisSettings
from ..models.analysis import (DataPoint, MovingAverage, SeasonalityInfo,
                               StatisticalAnalysisResult, TimeCluster)

# One week of hourly samples gives full confidence
FULL_CONFIDENCE_SAMPLES = 168


def moving_average(samples: Sequence[float], window_size: int) -> Optional[MovingAverage]:
    """
    Trailing moving average over ``window_size`` samples.

    The value at index i (i >= window_size - 1) is the mean of
    samples[i - window_size + 1 .. i]. Returns None when the window does not
    fit into the sample.
    """
    values = np.asarray(samples, dtype=float)
    if window_size < 1 or len(values) < window_size:
        return None

    kernel = np.ones(window_size) / window_size
    averaged = np.convolve(values, kernel, mode="valid")
    points = [
        DataPoint(index=window_size - 1 + offset, value=float(value))
        for offset, value in enumerate(averaged)
    ]

    return MovingAverage(
        window_size=window_size,
        values=points,
        average_value=float(averaged.mean()),
        trend_direction=trend_direction(averaged),
    )


def trend_direction(values: Sequence[float]) -> str:
    """Compare the mean of the second half against the first half."""
    values = np.asarray(values, dtype=float)
    half = len(values) // 2
    if half == 0:
        return "flat"

    first, second = values[:half].mean(), values[half:].mean()
    if second > first:
        return "up"
    if second < first:
        return "down"
    return "flat"


def autocorrelation(samples: Sequence[float], lag: int) -> float:
    """
    Normalized autocorrelation at ``lag``.

    sum((x_i - m)(x_{i+lag} - m)) / ((n - lag) * population variance).
    Needs at least two full lags of data and a non-constant signal.
    """
    values = np.asarray(samples, dtype=float)
    n = len(values)
    if lag < 1 or n < 2 * lag:
        return 0.0

    variance = values.var()
    if variance == 0:
        return 0.0

    centered = values - values.mean()
    covariance = np.dot(centered[: n - lag], centered[lag:]) / (n - lag)
    return float(covariance / variance)


def detect_seasonality(
    samples: Sequence[float], lag: int = 24, threshold: float = 0.3
) -> SeasonalityInfo:
    """Daily seasonality heuristic from the autocorrelation at ``lag``."""
    r = autocorrelation(samples, lag)
    has_seasonality = r > threshold
    return SeasonalityInfo(
        has_seasonality=has_seasonality,
        seasonality_type="daily" if has_seasonality else "none",
        seasonality_strength=abs(r),
        seasonality_period=lag,
        autocorrelation=r,
    )


def _cluster_label(rank: int, count: int) -> str:
    if count == 1:
        return "uniform usage"
    if rank == 0:
        return "low usage"
    if rank == count - 1:
        return "high usage"
    if count == 3:
        return "medium usage"
    return f"medium usage {rank}"


def cluster_values(samples: Sequence[float], num_clusters: int) -> List[TimeCluster]:
    """
    Bucket sample values with k-means.

    k is capped at the number of distinct values; clusters are returned in
    ascending centroid order with ids 0..k-1.
    """
    values = np.asarray(samples, dtype=float)
    if len(values) == 0 or num_clusters < 1:
        return []

    k = min(num_clusters, len(np.unique(values)))
    kmeans = KMeans(n_clusters=k, random_state=42, n_init=10)
    labels = kmeans.fit_predict(values.reshape(-1, 1))
    centroids = kmeans.cluster_centers_.ravel()

    clusters = []
    for rank, label in enumerate(np.argsort(centroids)):
        members = np.flatnonzero(labels == label)
        clusters.append(
            TimeCluster(
                cluster_id=rank,
                cluster_label=_cluster_label(rank, k),
                centroid_value=float(centroids[label]),
                cluster_points=[
                    DataPoint(index=int(i), value=float(values[i])) for i in members
                ],
                cluster_size=len(members),
                cluster_density=len(members) / len(values),
            )
        )
    return clusters


class StatisticalAnalyzer:
    """Compute the full statistical summary for one subject."""

    def __init__(self, settings: Optional[AnalysisSettings] = None):
        self.settings = settings or AnalysisSettings()
        self.logger = logging.getLogger(f"{__name__}.StatisticalAnalyzer")

    def analyze(
        self,
        subject_id: str,
        samples: Sequence[float],
        num_clusters: Optional[int] = None,
    ) -> StatisticalAnalysisResult:
        start = time.perf_counter()
        values = np.asarray(samples, dtype=float)
        n = len(values)

        if n == 0:
            self.logger.debug(f"No samples for {subject_id}, returning empty summary")
            return StatisticalAnalysisResult(
                subject_id=subject_id,
                processing_time_ms=(time.perf_counter() - start) * 1000,
            )

        std = float(values.std(ddof=1)) if n > 1 else 0.0
        moving_averages = [
            average
            for average in (
                moving_average(values, window)
                for window in self.settings.moving_average_windows
            )
            if average is not None
        ]

        result = StatisticalAnalysisResult(
            subject_id=subject_id,
            sample_size=n,
            mean=float(values.mean()),
            median=float(np.median(values)),
            standard_deviation=std,
            variance=std**2,
            min_value=float(values.min()),
            max_value=float(values.max()),
            range=float(values.max() - values.min()),
            moving_averages=moving_averages,
            seasonality_info=detect_seasonality(
                values, self.settings.seasonality_lag, self.settings.seasonality_threshold
            ),
            time_clusters=cluster_values(
                values, num_clusters or self.settings.default_clusters
            ),
            confidence_score=min(1.0, n / FULL_CONFIDENCE_SAMPLES),
        )
        result.processing_time_ms = (time.perf_counter() - start) * 1000

        self.logger.debug(
            f"Statistics for {subject_id}: n={n}, mean={result.mean:.3f}, "
            f"std={result.standard_deviation:.3f}"
        )
        return result

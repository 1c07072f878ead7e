"""
Pattern, anomaly and prediction engine.

Functions here work on a pandas Series of values indexed by timestamp:

1. summarize_behavior: hour-of-day profile, weekday/weekend split, STL daily
   cycle and per-interval summaries
2. detect_anomalies: z-score and IQR rules, plus IsolationForest on long series
3. predict_next: hour-of-day profile on top of a linear trend
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy import stats
from sklearn.ensemble import IsolationForest
from sklearn.linear_model import LinearRegression
from statsmodels.tsa.seasonal import STL

from ..models.patterns import (AnomalyDetection, BehavioralPattern,
                               PredictionInsight, TimeIntervalPattern)
from ..models.timeseries import TimeSeriesData
from ..utils.time_ranges import parse_time_range

logger = logging.getLogger(__name__)

ISOLATION_FOREST_MIN_SAMPLES = 100
STL_SEASONAL_STRENGTH_THRESHOLD = 0.3


def to_series(data: TimeSeriesData, timezone: Optional[str] = None) -> pd.Series:
    """
    Values of a query result as a timestamp-indexed Series.

    Timezone-aware timestamps (InfluxDB returns UTC) are converted to
    ``timezone`` wall-clock time so hour-of-day grouping uses local hours.
    Naive timestamps are taken as local already.
    """
    if not data.points:
        return pd.Series(dtype=float)
    index = pd.DatetimeIndex(data.timestamps())
    if timezone and index.tz is not None:
        index = index.tz_convert(timezone).tz_localize(None)
    return pd.Series(
        data.values(),
        index=index,
        name=data.subject_id,
        dtype=float,
    ).sort_index()


def combine_series(series: Iterable[pd.Series]) -> pd.Series:
    """Sum several device series into one household load, aligned on time."""
    frames = [s for s in series if not s.empty]
    if not frames:
        return pd.Series(dtype=float)
    return pd.concat(frames, axis=1).sum(axis=1, min_count=1).dropna().sort_index()


def samples_per_hour(series: pd.Series) -> float:
    """Sampling rate inferred from the median spacing (defaults to hourly)."""
    if len(series) < 2:
        return 1.0
    spacing = pd.Series(series.index).diff().dropna().median()
    if pd.isna(spacing) or spacing <= pd.Timedelta(0):
        return 1.0
    return pd.Timedelta(hours=1) / spacing


def hourly_profile(series: pd.Series) -> pd.Series:
    """Mean value per hour of day."""
    return series.groupby(series.index.hour).mean()


def _coverage(n: int, expected: float) -> float:
    return float(min(1.0, n / expected)) if expected > 0 else 0.0


def _peak_pattern(subject_id: str, profile: pd.Series) -> Optional[BehavioralPattern]:
    peak_value = profile.max()
    if len(profile) < 2 or peak_value <= 0:
        return None

    peak_hour, quiet_hour = int(profile.idxmax()), int(profile.idxmin())
    spread = (peak_value - profile.min()) / peak_value
    return BehavioralPattern(
        pattern_id=f"{subject_id}_peak_hours",
        pattern_name="Peak usage hours",
        description=(
            f"Usage peaks around {peak_hour:02d}:00 and is lowest around "
            f"{quiet_hour:02d}:00"
        ),
        confidence=float(min(1.0, spread)),
        time_of_day=f"{peak_hour:02d}:00",
        pattern_details={
            "peak_hour": peak_hour,
            "quiet_hour": quiet_hour,
            "peak_value": float(peak_value),
            "quiet_value": float(profile.min()),
            "hourly_profile": {int(h): float(v) for h, v in profile.items()},
        },
    )


def _weekday_pattern(subject_id: str, series: pd.Series) -> Optional[BehavioralPattern]:
    is_weekend = series.index.dayofweek >= 5
    weekday, weekend = series[~is_weekend], series[is_weekend]
    if weekday.empty or weekend.empty:
        return None

    weekday_mean, weekend_mean = float(weekday.mean()), float(weekend.mean())
    baseline = max(abs(weekday_mean), abs(weekend_mean))
    if baseline == 0:
        return None

    difference = (weekend_mean - weekday_mean) / baseline
    busier = "weekends" if difference > 0 else "weekdays"
    return BehavioralPattern(
        pattern_id=f"{subject_id}_weekday_weekend",
        pattern_name="Weekday vs weekend usage",
        description=f"Usage is {abs(difference):.0%} higher on {busier}",
        confidence=float(min(1.0, abs(difference))),
        day_of_week=busier,
        pattern_details={
            "weekday_mean": weekday_mean,
            "weekend_mean": weekend_mean,
            "relative_difference": float(difference),
        },
    )


def daily_cycle_strength(series: pd.Series) -> Optional[float]:
    """
    Seasonal strength of the daily cycle from an STL decomposition.

    1 - var(resid) / var(seasonal + resid); None when the series is shorter
    than two days or the decomposition fails.
    """
    period = int(round(24 * samples_per_hour(series)))
    if period < 2 or len(series) < 2 * period + 1:
        return None

    try:
        regular = series.resample(pd.Timedelta(hours=1) / samples_per_hour(series)).mean()
        regular = regular.interpolate(limit_direction="both")
        result = STL(regular.to_numpy(), period=period).fit()
    except Exception as e:
        logger.warning(f"STL decomposition failed: {e}")
        return None

    detrended_var = np.var(result.seasonal + result.resid)
    if detrended_var == 0:
        return 0.0
    return float(max(0.0, 1 - np.var(result.resid) / detrended_var))


def _daily_cycle_pattern(subject_id: str, series: pd.Series) -> Optional[BehavioralPattern]:
    strength = daily_cycle_strength(series)
    if strength is None or strength <= STL_SEASONAL_STRENGTH_THRESHOLD:
        return None
    return BehavioralPattern(
        pattern_id=f"{subject_id}_daily_cycle",
        pattern_name="Daily cycle",
        description=f"Usage repeats every day (seasonal strength {strength:.2f})",
        confidence=strength,
        pattern_details={"seasonal_strength": strength, "period_hours": 24},
    )


def summarize_interval(series: pd.Series, interval: str) -> Optional[TimeIntervalPattern]:
    """Summary of the trailing ``interval`` of the series."""
    delta = parse_time_range(interval)
    if delta is None or series.empty:
        return None

    window = series[series.index > series.index.max() - delta]
    expected = delta / timedelta(hours=1) * samples_per_hour(series)
    profile = hourly_profile(window)
    peak_hour = int(profile.idxmax()) if not profile.empty else None

    return TimeIntervalPattern(
        interval=interval,
        confidence=_coverage(len(window), expected),
        pattern_description=(
            f"{len(window)} samples, mean {window.mean():.2f}"
            + (f", peak around {peak_hour:02d}:00" if peak_hour is not None else "")
        ),
        pattern_data={
            "sample_count": int(len(window)),
            "mean": float(window.mean()),
            "max": float(window.max()),
            "min": float(window.min()),
            "total": float(window.sum()),
            "peak_hour": peak_hour,
        },
    )


def summarize_behavior(
    subject_id: str, series: pd.Series, intervals: Sequence[str] = ()
) -> Tuple[Dict[str, TimeIntervalPattern], List[BehavioralPattern], float]:
    """
    Behavioral summary of one subject.

    Returns per-interval patterns, behavioral patterns and an overall
    confidence that grows with data coverage (one week is full coverage).
    """
    if series.empty:
        return {}, [], 0.0

    interval_patterns = {}
    for interval in intervals:
        pattern = summarize_interval(series, interval)
        if pattern is not None:
            interval_patterns[interval] = pattern

    behavioral = [
        pattern
        for pattern in (
            _peak_pattern(subject_id, hourly_profile(series)),
            _weekday_pattern(subject_id, series),
            _daily_cycle_pattern(subject_id, series),
        )
        if pattern is not None
    ]

    coverage = _coverage(len(series), 168 * samples_per_hour(series))
    if behavioral:
        confidence = coverage * float(np.mean([p.confidence for p in behavioral]))
    else:
        confidence = coverage * 0.5
    return interval_patterns, behavioral, confidence


def detect_anomalies(
    subject_id: str,
    series: pd.Series,
    detected_at: Optional[datetime] = None,
    z_threshold: float = 3.0,
) -> List[AnomalyDetection]:
    """
    Flag outliers with the z-score and IQR rules.

    Each sample is reported once, by the first rule that flags it. Series of
    at least 100 samples also run an IsolationForest over value and
    hour-of-day features. Results are ordered by severity, highest first.
    """
    detected_at = detected_at or datetime.now()
    if len(series) < 3:
        return []

    values = series.to_numpy(dtype=float)
    anomalies: List[AnomalyDetection] = []
    flagged = set()

    def add(position: int, anomaly_type: str, severity: float, description: str, **data):
        flagged.add(position)
        timestamp = series.index[position]
        anomalies.append(
            AnomalyDetection(
                anomaly_id=f"{subject_id}_{anomaly_type}_{timestamp:%Y%m%d%H%M}",
                anomaly_type=anomaly_type,
                description=description,
                severity=float(min(1.0, max(0.0, severity))),
                detected_at=detected_at,
                value=float(values[position]),
                anomaly_data={"timestamp": timestamp.isoformat(), **data},
            )
        )

    if np.ptp(values) > 0:
        z_scores = stats.zscore(values)
        for position in np.flatnonzero(np.abs(z_scores) > z_threshold):
            z = float(z_scores[position])
            add(
                int(position),
                "z_score",
                abs(z) / 6,
                f"Value {values[position]:.2f} is {abs(z):.1f} standard deviations from the mean",
                z_score=z,
            )

    q1, q3 = np.percentile(values, [25, 75])
    iqr = q3 - q1
    if iqr > 0:
        lower, upper = q1 - 1.5 * iqr, q3 + 1.5 * iqr
        for position in np.flatnonzero((values < lower) | (values > upper)):
            if position in flagged:
                continue
            value = values[position]
            distance = (lower - value) if value < lower else (value - upper)
            add(
                int(position),
                "iqr",
                0.3 + distance / (3 * iqr),
                f"Value {value:.2f} is outside the interquartile range [{lower:.2f}, {upper:.2f}]",
                lower_bound=float(lower),
                upper_bound=float(upper),
            )

    if len(values) >= ISOLATION_FOREST_MIN_SAMPLES:
        try:
            hours = series.index.hour.to_numpy()
            features = np.column_stack(
                [
                    values,
                    np.sin(2 * np.pi * hours / 24),
                    np.cos(2 * np.pi * hours / 24),
                ]
            )
            iso_forest = IsolationForest(
                contamination=0.05, random_state=42, n_estimators=100
            )
            labels = iso_forest.fit_predict(features)
            scores = iso_forest.decision_function(features)
            for position in np.flatnonzero(labels == -1):
                if position in flagged:
                    continue
                add(
                    int(position),
                    "isolation_forest",
                    0.2 + abs(float(scores[position])),
                    f"Value {values[position]:.2f} is unusual for {series.index[position]:%H:00}",
                    isolation_score=float(scores[position]),
                )
        except Exception as e:
            logger.warning(f"ML anomaly detection failed for {subject_id}: {e}")

    anomalies.sort(key=lambda a: a.severity, reverse=True)
    return anomalies


def predict_next(
    subject_id: str, series: pd.Series, horizon_hours: int = 6
) -> Tuple[List[PredictionInsight], float]:
    """
    Forecast the next ``horizon_hours`` hourly values.

    Linear trend over sample position plus the hour-of-day mean of the
    detrended residual. Confidence is 1 - residual_std / mean_abs, clamped.
    """
    if len(series) < 2:
        return [], 0.0

    values = series.to_numpy(dtype=float)
    positions = np.arange(len(values)).reshape(-1, 1)
    trend = LinearRegression().fit(positions, values)
    detrended = pd.Series(values - trend.predict(positions), index=series.index)
    profile = hourly_profile(detrended)

    fitted = trend.predict(positions) + profile.reindex(series.index.hour).to_numpy()
    residual_std = float(np.std(values - fitted))
    mean_abs = float(np.mean(np.abs(values)))
    if mean_abs == 0:
        confidence = 1.0 if residual_std == 0 else 0.0
    else:
        confidence = float(min(1.0, max(0.0, 1 - residual_std / mean_abs)))

    rate = samples_per_hour(series)
    last_time = series.index[-1]
    predictions = []
    for hour in range(1, horizon_hours + 1):
        predicted_time = last_time + pd.Timedelta(hours=hour)
        position = len(values) - 1 + hour * rate
        predicted_value = float(
            trend.predict([[position]])[0] + profile.get(predicted_time.hour, 0.0)
        )
        predictions.append(
            PredictionInsight(
                prediction_id=f"{subject_id}_usage_{hour}h",
                prediction_type="usage_forecast",
                description=f"Expected usage {predicted_value:.2f} at {predicted_time:%Y-%m-%d %H:00}",
                confidence=confidence,
                predicted_time=predicted_time.to_pydatetime(),
                predicted_value=predicted_value,
                prediction_data={
                    "horizon_hours": hour,
                    "trend_slope_per_sample": float(trend.coef_[0]),
                    "hour_offset": float(profile.get(predicted_time.hour, 0.0)),
                },
            )
        )
    return predictions, confidence

"""
Synthetic device series for tests.

Every generator is deterministic: noise comes from a seeded numpy
Generator, so the same arguments always give the same points.
"""

from datetime import datetime, timedelta
from typing import List, Optional, Sequence

import numpy as np

from tappha_analytics.models.timeseries import TimeSeriesPoint

# Fixed "now" used by service tests
NOW = datetime(2024, 1, 15, 0, 0)


def points_from_values(
    values: Sequence[float],
    start: Optional[datetime] = None,
    step: timedelta = timedelta(hours=1),
) -> List[TimeSeriesPoint]:
    """
    Wrap values as hourly points.

    Without ``start`` the series ends one step before ``NOW``.
    """
    if start is None:
        start = NOW - step * len(values)
    return [
        TimeSeriesPoint(timestamp=start + i * step, value=float(value))
        for i, value in enumerate(values)
    ]


def daily_usage_values(
    hours: int = 168,
    base: float = 100.0,
    amplitude: float = 80.0,
    peak_hour: int = 19,
    noise: float = 2.0,
    seed: int = 42,
    start: Optional[datetime] = None,
) -> np.ndarray:
    """
    Hourly usage with one evening peak per day.

    value = base + amplitude * max(0, cos(2*pi*(hour - peak_hour) / 24)) + noise
    """
    if start is None:
        start = NOW - timedelta(hours=hours)
    rng = np.random.default_rng(seed)
    hour_of_day = (start.hour + np.arange(hours)) % 24
    shape = np.maximum(0.0, np.cos(2 * np.pi * (hour_of_day - peak_hour) / 24))
    return base + amplitude * shape + rng.normal(0.0, noise, hours)


def daily_usage_points(hours: int = 168, **kwargs) -> List[TimeSeriesPoint]:
    return points_from_values(daily_usage_values(hours, **kwargs))


def sinusoid(
    size: int, bins: Sequence[int], amplitudes: Optional[Sequence[float]] = None
) -> np.ndarray:
    """Zero-mean sum of sinusoids placed exactly on FFT bins of ``size``."""
    n = np.arange(size)
    amplitudes = amplitudes or [1.0] * len(bins)
    signal = np.zeros(size)
    for k, amplitude in zip(bins, amplitudes):
        signal += amplitude * np.sin(2 * np.pi * k * n / size)
    return signal


def stepped_values(count: int, spike_at: Optional[int] = None, spike: float = 1000.0) -> List[float]:
    """Values cycling 100..104 with an optional single spike."""
    values = [100.0 + (i % 5) for i in range(count)]
    if spike_at is not None:
        values[spike_at] = spike
    return values

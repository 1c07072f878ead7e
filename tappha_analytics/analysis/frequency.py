"""
Frequency engine.

Zero-padded FFT decomposition of a signal, its dominant components and the
daily/weekly/monthly cycles it contains. Frequencies are in cycles per hour
for the default sampling rate of one sample per hour.
"""

import logging
import math
import time
from typing import List, Optional, Sequence

import numpy as np

from ..config.settings import AnalysisSettings
from ..models.analysis import (DominantFrequency, FrequencyAnalysisResult,
                               FrequencyComponent, PeriodicPattern)

# (pattern type, period in hours)
KNOWN_CYCLES = [
    ("daily", 24.0),
    ("weekly", 168.0),
    ("monthly", 720.0),
]


def next_power_of_two(n: int) -> int:
    """Smallest power of two >= n, with a minimum of 2."""
    size = 2
    while size < n:
        size *= 2
    return size


def period_label(frequency: float) -> str:
    if frequency == 0:
        return "∞"
    return f"{1.0 / frequency:.2f}h"


def interpret_frequency(frequency: float) -> str:
    if frequency < 0.01:
        return "very low frequency pattern"
    if frequency < 0.1:
        return "low frequency pattern"
    if frequency < 0.5:
        return "medium frequency pattern"
    return "high frequency pattern"


def frequency_components(
    samples: Sequence[float], sampling_rate: float = 1.0
) -> List[FrequencyComponent]:
    """FFT bins k in [0, N/2) of the zero-padded signal."""
    values = np.asarray(samples, dtype=float)
    if len(values) == 0:
        return []

    size = next_power_of_two(len(values))
    spectrum = np.fft.fft(values, n=size)
    components = []
    for k in range(size // 2):
        frequency = k * sampling_rate / size
        amplitude = float(np.abs(spectrum[k]))
        components.append(
            FrequencyComponent(
                frequency=frequency,
                amplitude=amplitude,
                phase=float(np.angle(spectrum[k])),
                power=amplitude**2,
                period=period_label(frequency),
            )
        )
    return components


def dominant_frequencies(
    components: Sequence[FrequencyComponent], count: int = 5
) -> List[DominantFrequency]:
    """Top ``count`` components by power; ties keep bin order."""
    total_power = sum(component.power for component in components)
    ranked = sorted(components, key=lambda c: c.power, reverse=True)[:count]
    return [
        DominantFrequency(
            frequency=component.frequency,
            amplitude=component.amplitude,
            period=component.period,
            significance=component.power / total_power if total_power > 0 else 0.0,
            interpretation=interpret_frequency(component.frequency),
        )
        for component in ranked
    ]


def periodic_patterns(
    components: Sequence[FrequencyComponent], tolerance: float = 0.001
) -> List[PeriodicPattern]:
    """Match known cycles to the closest bin within ``tolerance``."""
    total_power = sum(component.power for component in components)
    patterns = []
    for pattern_type, period_hours in KNOWN_CYCLES:
        target = 1.0 / period_hours
        candidates = [c for c in components if abs(c.frequency - target) <= tolerance]
        if not candidates:
            continue

        closest = min(candidates, key=lambda c: abs(c.frequency - target))
        strength = closest.power / total_power if total_power > 0 else 0.0
        patterns.append(
            PeriodicPattern(
                pattern_type=pattern_type,
                period_hours=period_hours,
                frequency=closest.frequency,
                strength=strength,
                description=(
                    f"{pattern_type.capitalize()} cycle carries "
                    f"{strength:.1%} of the signal power"
                ),
            )
        )
    return patterns


class FrequencyAnalyzer:
    """Run the FFT decomposition for one subject."""

    def __init__(self, settings: Optional[AnalysisSettings] = None):
        self.settings = settings or AnalysisSettings()
        self.logger = logging.getLogger(f"{__name__}.FrequencyAnalyzer")

    def analyze(
        self,
        subject_id: str,
        samples: Sequence[float],
        sampling_rate: Optional[float] = None,
    ) -> FrequencyAnalysisResult:
        start = time.perf_counter()
        rate = sampling_rate if sampling_rate is not None else self.settings.sampling_rate

        if len(samples) == 0:
            return FrequencyAnalysisResult(
                subject_id=subject_id,
                sampling_rate=rate,
                processing_time_ms=(time.perf_counter() - start) * 1000,
            )

        components = frequency_components(samples, rate)
        dominant = dominant_frequencies(components, self.settings.dominant_frequency_count)
        patterns = periodic_patterns(components, self.settings.frequency_tolerance)

        # Confidence reflects how concentrated the spectrum is in its top bins
        concentration = sum(d.significance for d in dominant)
        coverage = min(1.0, len(samples) / 168)
        confidence = 0.0 if math.isnan(concentration) else concentration * coverage

        self.logger.debug(
            f"FFT for {subject_id}: size={next_power_of_two(len(samples))}, "
            f"dominant={[round(d.frequency, 4) for d in dominant]}"
        )

        return FrequencyAnalysisResult(
            subject_id=subject_id,
            frequency_components=components,
            dominant_frequencies=dominant,
            periodic_patterns=patterns,
            fft_size=next_power_of_two(len(samples)),
            sampling_rate=rate,
            processing_time_ms=(time.perf_counter() - start) * 1000,
            confidence_score=min(1.0, confidence),
        )

"""
Result records for the statistical, frequency and correlation engines.

All results are derived data: they are recomputed on demand and cached, and
carry ``success``/``error_message`` so failures travel as values.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


def _now() -> datetime:
    return datetime.now()


@dataclass
class DataPoint:
    """Sample position and value inside a derived series."""

    index: int
    value: float


@dataclass
class MovingAverage:
    """Moving average over a fixed window with its trend direction."""

    window_size: int
    values: List[DataPoint] = field(default_factory=list)
    average_value: float = 0.0
    trend_direction: str = "flat"  # "up", "down" or "flat"


@dataclass
class SeasonalityInfo:
    """Single-lag autocorrelation seasonality heuristic."""

    has_seasonality: bool = False
    seasonality_type: str = "none"
    seasonality_strength: float = 0.0
    seasonality_period: int = 24
    autocorrelation: float = 0.0


@dataclass
class TimeCluster:
    """Value bucket found by k-means over the samples."""

    cluster_id: int
    cluster_label: str
    centroid_value: float
    cluster_points: List[DataPoint] = field(default_factory=list)
    cluster_size: int = 0
    cluster_density: float = 0.0


@dataclass
class StatisticalAnalysisResult:
    """Descriptive statistics, moving averages, seasonality and clusters."""

    subject_id: str
    analyzed_at: datetime = field(default_factory=_now)
    success: bool = True
    error_message: Optional[str] = None
    sample_size: int = 0
    mean: float = 0.0
    median: float = 0.0
    standard_deviation: float = 0.0
    variance: float = 0.0
    min_value: float = 0.0
    max_value: float = 0.0
    range: float = 0.0
    moving_averages: List[MovingAverage] = field(default_factory=list)
    seasonality_info: SeasonalityInfo = field(default_factory=SeasonalityInfo)
    time_clusters: List[TimeCluster] = field(default_factory=list)
    analysis_type: str = "STATISTICAL_ANALYSIS"
    model_used: str = "numpy_descriptive"
    processing_time_ms: float = 0.0
    confidence_score: float = 0.0

    def moving_average(self, window_size: int) -> Optional[MovingAverage]:
        """Moving average for a window, None when it was omitted."""
        for average in self.moving_averages:
            if average.window_size == window_size:
                return average
        return None

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        result["analyzed_at"] = self.analyzed_at.isoformat()
        return result


@dataclass
class FrequencyComponent:
    """One FFT bin of the non-redundant half of the spectrum."""

    frequency: float
    amplitude: float
    phase: float
    power: float
    period: str


@dataclass
class DominantFrequency:
    frequency: float
    amplitude: float
    period: str
    significance: float
    interpretation: str


@dataclass
class PeriodicPattern:
    """Named cycle (daily/weekly/monthly) matched to an FFT bin."""

    pattern_type: str
    period_hours: float
    frequency: float
    strength: float
    description: str


@dataclass
class FrequencyAnalysisResult:
    """
    FFT decomposition of a subject's signal.

    ``fft_size`` and ``sampling_rate`` are part of the result: two results are
    only comparable when both match.
    """

    subject_id: str
    analyzed_at: datetime = field(default_factory=_now)
    success: bool = True
    error_message: Optional[str] = None
    frequency_components: List[FrequencyComponent] = field(default_factory=list)
    dominant_frequencies: List[DominantFrequency] = field(default_factory=list)
    periodic_patterns: List[PeriodicPattern] = field(default_factory=list)
    fft_size: int = 0
    sampling_rate: float = 1.0
    analysis_type: str = "FREQUENCY_ANALYSIS"
    model_used: str = "Fast_Fourier_Transform"
    processing_time_ms: float = 0.0
    confidence_score: float = 0.0

    def is_comparable(self, other: "FrequencyAnalysisResult") -> bool:
        return self.fft_size == other.fft_size and self.sampling_rate == other.sampling_rate

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        result["analyzed_at"] = self.analyzed_at.isoformat()
        return result


@dataclass
class DeviceCorrelation:
    """Classified correlation between two subjects."""

    subject_a: str
    subject_b: str
    coefficient: float
    p_value: float
    strength: str  # "strong" or "weak"
    direction: str  # "positive" or "negative"
    interpretation: str
    confidence: float


@dataclass
class CorrelationCluster:
    """Group of subjects whose signals move together."""

    subjects: List[str]
    average_correlation: float
    description: str
    pattern_type: str = "cluster"


@dataclass
class CorrelationAnalysisResult:
    """Pairwise Pearson correlation over several subjects."""

    subject_ids: List[str]
    analyzed_at: datetime = field(default_factory=_now)
    success: bool = True
    error_message: Optional[str] = None
    correlation_matrix: Dict[str, Dict[str, float]] = field(default_factory=dict)
    strong_correlations: List[DeviceCorrelation] = field(default_factory=list)
    weak_correlations: List[DeviceCorrelation] = field(default_factory=list)
    correlation_clusters: List[CorrelationCluster] = field(default_factory=list)
    mismatched_subjects: List[str] = field(default_factory=list)
    time_range: Optional[str] = None
    analysis_type: str = "CORRELATION_ANALYSIS"
    model_used: str = "Pearson_Correlation"
    processing_time_ms: float = 0.0
    confidence_score: float = 0.0

    @property
    def total_subjects(self) -> int:
        return len(self.subject_ids)

    def coefficient(self, subject_a: str, subject_b: str) -> float:
        return self.correlation_matrix.get(subject_a, {}).get(subject_b, 0.0)

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        result["analyzed_at"] = self.analyzed_at.isoformat()
        result["total_subjects"] = self.total_subjects
        return result

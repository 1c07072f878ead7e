"""
Pattern, anomaly, prediction and behavioral-model result records.

Invariant shared by both result types: ``overall_confidence`` lies in
[0, 1], and a failed result (``success=False``) carries an error message and
no detail entries. Use the ``failed`` constructors to build one.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


def _clamp(value: float) -> float:
    return float(min(1.0, max(0.0, value)))


@dataclass
class TimeIntervalPattern:
    interval: str  # "1d", "7d", "30d", ...
    confidence: float
    pattern_description: str
    pattern_data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class BehavioralPattern:
    pattern_id: str
    pattern_name: str
    description: str
    confidence: float
    time_of_day: Optional[str] = None
    day_of_week: Optional[str] = None
    pattern_details: Dict[str, Any] = field(default_factory=dict)


@dataclass
class PredictionInsight:
    prediction_id: str
    prediction_type: str
    description: str
    confidence: float
    predicted_time: datetime
    predicted_value: float
    prediction_data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class AnomalyDetection:
    anomaly_id: str
    anomaly_type: str  # "z_score", "iqr", "isolation_forest"
    description: str
    severity: float
    detected_at: datetime
    value: float
    anomaly_data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class PatternAnalysisResult:
    """Pattern, anomaly or prediction summary for one subject."""

    subject_id: str
    analyzed_at: datetime = field(default_factory=datetime.now)
    overall_confidence: float = 0.0
    time_interval_patterns: Dict[str, TimeIntervalPattern] = field(default_factory=dict)
    behavioral_patterns: List[BehavioralPattern] = field(default_factory=list)
    anomalies: List[AnomalyDetection] = field(default_factory=list)
    predictions: List[PredictionInsight] = field(default_factory=list)
    model_used: str = "statistical_patterns"
    processing_time_ms: float = 0.0
    privacy_level: str = "LOCAL_ONLY"
    success: bool = True
    error_message: Optional[str] = None

    def __post_init__(self):
        self.overall_confidence = _clamp(self.overall_confidence)

    @classmethod
    def failed(cls, subject_id: str, error_message: str, **kwargs) -> "PatternAnalysisResult":
        """Build a degraded result with no details."""
        return cls(
            subject_id=subject_id,
            success=False,
            error_message=error_message,
            overall_confidence=0.0,
            **kwargs,
        )

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        result["analyzed_at"] = self.analyzed_at.isoformat()
        for prediction in result["predictions"]:
            prediction["predicted_time"] = prediction["predicted_time"].isoformat()
        for anomaly in result["anomalies"]:
            anomaly["detected_at"] = anomaly["detected_at"].isoformat()
        return result


@dataclass
class HouseholdRoutine:
    routine_id: str
    routine_name: str
    description: str
    confidence: float
    time_of_day: str
    day_of_week: Optional[str] = None
    involved_devices: List[str] = field(default_factory=list)
    routine_details: Dict[str, Any] = field(default_factory=dict)


@dataclass
class DeviceUsagePattern:
    device_id: str
    pattern_type: str
    description: str
    confidence: float
    usage_frequency: str  # "continuous", "frequent", "occasional", "rare"
    preferred_time: Optional[str] = None
    usage_data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class EnergyPattern:
    pattern_id: str
    pattern_type: str  # "base_load", "peak_load", "day_night_split"
    description: str
    energy_impact: float
    time_of_day: Optional[str] = None
    energy_data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class SecurityPattern:
    pattern_id: str
    pattern_type: str  # "unusual_hour_activity", "anomalous_activity", "normal_activity"
    description: str
    security_level: float  # 1.0 = nothing suspicious
    risk_assessment: str  # "low", "medium", "high"
    security_devices: List[str] = field(default_factory=list)
    security_data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class BehavioralModelResult:
    """Routines, device usage, energy and security patterns of a household or user."""

    household_id: str
    user_id: Optional[str] = None
    modeled_at: datetime = field(default_factory=datetime.now)
    overall_confidence: float = 0.0
    routines: List[HouseholdRoutine] = field(default_factory=list)
    device_patterns: List[DeviceUsagePattern] = field(default_factory=list)
    energy_patterns: List[EnergyPattern] = field(default_factory=list)
    security_patterns: List[SecurityPattern] = field(default_factory=list)
    model_used: str = "household_behavior_profile"
    processing_time_ms: float = 0.0
    privacy_level: str = "LOCAL_ONLY"
    success: bool = True
    error_message: Optional[str] = None

    def __post_init__(self):
        self.overall_confidence = _clamp(self.overall_confidence)

    @classmethod
    def failed(
        cls, household_id: str, error_message: str, **kwargs
    ) -> "BehavioralModelResult":
        return cls(
            household_id=household_id,
            success=False,
            error_message=error_message,
            overall_confidence=0.0,
            **kwargs,
        )

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        result["modeled_at"] = self.modeled_at.isoformat()
        return result

"""
Recommendation request/response records and the approval state machine.

A recommendation is created ``pending`` by the engine. Only the external
approval collaborator moves it further:

    pending -> approved | rejected
    approved -> implemented
    implemented -> rolled_back
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class ApprovalStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    IMPLEMENTED = "implemented"
    ROLLED_BACK = "rolled_back"

    def can_transition_to(self, target: "ApprovalStatus") -> bool:
        return target in _TRANSITIONS[self]


_TRANSITIONS = {
    ApprovalStatus.PENDING: {ApprovalStatus.APPROVED, ApprovalStatus.REJECTED},
    ApprovalStatus.APPROVED: {ApprovalStatus.IMPLEMENTED},
    ApprovalStatus.REJECTED: set(),
    ApprovalStatus.IMPLEMENTED: {ApprovalStatus.ROLLED_BACK},
    ApprovalStatus.ROLLED_BACK: set(),
}


class RecommendationCategory(Enum):
    AUTOMATION = "automation"
    OPTIMIZATION = "optimization"
    SAFETY = "safety"
    ENERGY = "energy"


@dataclass
class RecommendationRequest:
    """Request for context-aware automation suggestions."""

    user_id: str
    context: str = ""
    household_id: Optional[str] = None
    user_preferences: str = ""
    privacy_level: str = "LOCAL_ONLY"
    device_ids: List[str] = field(default_factory=list)
    recommendation_type: Optional[str] = None
    max_recommendations: Optional[int] = None
    time_range: str = "7d"
    request_time: datetime = field(default_factory=datetime.now)


@dataclass
class CandidateSuggestion:
    """
    Draft suggestion before ranking.

    ``confidence`` is whatever the producer claimed; the engine re-validates
    it before it becomes a recommendation's confidence.
    """

    title: str
    description: str
    category: str
    confidence: float
    affected_subjects: List[str] = field(default_factory=list)
    source: str = "external"
    trigger: str = ""
    estimated_impact: str = "Medium"
    time_to_implement: str = "15 minutes"
    evidence: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Recommendation:
    recommendation_id: str
    title: str
    description: str
    category: str
    confidence_score: float
    explanation: str = ""
    affected_subjects: List[str] = field(default_factory=list)
    estimated_impact: str = "Medium"
    time_to_implement: str = "15 minutes"
    requires_approval: bool = True
    approval_status: ApprovalStatus = ApprovalStatus.PENDING
    created_at: datetime = field(default_factory=datetime.now)
    source: str = "analysis"
    trigger: str = ""
    evidence: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        result["approval_status"] = self.approval_status.value
        result["created_at"] = self.created_at.isoformat()
        return result


@dataclass
class RecommendationStats:
    user_id: str
    time_range: str
    total_recommendations: int = 0
    approved_recommendations: int = 0
    rejected_recommendations: int = 0
    pending_recommendations: int = 0
    implemented_recommendations: int = 0
    average_confidence: float = 0.0
    average_rating: float = 0.0
    approval_rate: float = 0.0
    implementation_rate: float = 0.0
    category_breakdown: Dict[str, int] = field(default_factory=dict)
    last_updated: datetime = field(default_factory=datetime.now)


@dataclass
class RecommendationResponse:
    request_id: str
    user_id: str
    generated_at: datetime = field(default_factory=datetime.now)
    success: bool = True
    error_message: Optional[str] = None
    recommendations: List[Recommendation] = field(default_factory=list)
    stats: Optional[RecommendationStats] = None
    model_used: str = "analysis_ranked_v1"
    overall_confidence: float = 0.0
    processing_time_ms: float = 0.0
    privacy_level: str = "LOCAL_ONLY"
    requires_approval: bool = True


@dataclass
class RecommendationFeedback:
    recommendation_id: str
    user_id: str
    feedback_type: str  # "approval", "rejection", "implementation", "rating"
    rating: Optional[float] = None  # 1.0 to 5.0
    comment: str = ""
    was_implemented: bool = False
    feedback_id: Optional[str] = None
    feedback_time: datetime = field(default_factory=datetime.now)


@dataclass
class AccuracyMetric:
    metric_name: str
    metric_value: float
    metric_description: str
    threshold: float
    is_passing: bool


@dataclass
class RecommendationAccuracy:
    recommendation_id: str
    user_id: str = "system"
    validated_at: datetime = field(default_factory=datetime.now)
    success: bool = True
    error_message: Optional[str] = None
    accuracy_score: float = 0.0
    confidence_score: float = 0.0
    accuracy_level: str = "low"
    accuracy_metrics: List[AccuracyMetric] = field(default_factory=list)
    validation_method: str = "feedback_history"
    validation_time_ms: float = 0.0

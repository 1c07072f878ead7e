"""
Candidate suggestions for the recommendation engine.

Drafts come from two places: the ``AnalysisCandidateBuilder``, which reads
analysis outputs, and an optional external ``CandidateSuggestionProvider``
(for example a language-model collaborator). External confidence is never
trusted as-is; ``revalidate_confidence`` bounds it.
"""

from typing import Dict, List, Optional, Protocol

from ..models.analysis import CorrelationAnalysisResult
from ..models.patterns import BehavioralModelResult, PatternAnalysisResult
from ..models.recommendation import (CandidateSuggestion,
                                     RecommendationCategory,
                                     RecommendationRequest)

ANALYSIS_SOURCE = "analysis"

# Thresholds on energy pattern impact that trigger an energy suggestion
HIGH_BASE_LOAD_SHARE = 0.5
HIGH_PEAK_RATIO = 2.0
MIN_PATTERN_CONFIDENCE = 0.3


class CandidateSuggestionProvider(Protocol):
    """External producer of draft suggestions."""

    async def generate(self, request: RecommendationRequest) -> List[CandidateSuggestion]:
        ...


def _clamp(value: float) -> float:
    return float(min(1.0, max(0.0, value)))


def revalidate_confidence(candidate: CandidateSuggestion, trust_cap: float = 0.5) -> float:
    """
    Confidence a draft may carry into ranking.

    Analysis drafts keep their clamped confidence. External drafts weigh
    their own claim by at most ``trust_cap`` and fill the rest from an
    ``evidence_score`` in their evidence; without evidence only the capped
    claim remains.
    """
    claimed = _clamp(candidate.confidence)
    if candidate.source == ANALYSIS_SOURCE:
        return claimed

    evidence_score = candidate.evidence.get("evidence_score")
    if evidence_score is None:
        return _clamp(trust_cap * claimed)
    return _clamp(trust_cap * claimed + (1 - trust_cap) * _clamp(float(evidence_score)))


class AnalysisCandidateBuilder:
    """Derive draft suggestions from correlation, pattern and behavior results."""

    def build(
        self,
        correlation: Optional[CorrelationAnalysisResult] = None,
        device_patterns: Optional[Dict[str, PatternAnalysisResult]] = None,
        anomalies: Optional[Dict[str, PatternAnalysisResult]] = None,
        behavior: Optional[BehavioralModelResult] = None,
    ) -> List[CandidateSuggestion]:
        candidates: List[CandidateSuggestion] = []
        if correlation is not None and correlation.success:
            candidates.extend(self._from_correlation(correlation))
        for result in (device_patterns or {}).values():
            if result.success:
                candidates.extend(self._from_patterns(result))
        for result in (anomalies or {}).values():
            if result.success:
                candidates.extend(self._from_anomalies(result))
        if behavior is not None and behavior.success:
            candidates.extend(self._from_behavior(behavior))
        return candidates

    def _from_correlation(self, result: CorrelationAnalysisResult) -> List[CandidateSuggestion]:
        candidates = []
        for pair in result.strong_correlations:
            if pair.direction != "positive":
                continue
            candidates.append(
                CandidateSuggestion(
                    title=f"Group {pair.subject_a} and {pair.subject_b}",
                    description=(
                        f"{pair.subject_a} and {pair.subject_b} are used together; "
                        "control them with a single automation"
                    ),
                    category=RecommendationCategory.AUTOMATION.value,
                    confidence=abs(pair.coefficient) * pair.confidence,
                    affected_subjects=[pair.subject_a, pair.subject_b],
                    source=ANALYSIS_SOURCE,
                    trigger=f"correlation r={pair.coefficient:.2f}",
                    estimated_impact="Medium",
                    evidence={
                        "correlation": pair.coefficient,
                        "p_value": pair.p_value,
                        "evidence_score": abs(pair.coefficient),
                    },
                )
            )
        return candidates

    def _from_patterns(self, result: PatternAnalysisResult) -> List[CandidateSuggestion]:
        candidates = []
        for pattern in result.behavioral_patterns:
            if pattern.time_of_day is None or pattern.confidence < MIN_PATTERN_CONFIDENCE:
                continue
            candidates.append(
                CandidateSuggestion(
                    title=f"Schedule {result.subject_id} around {pattern.time_of_day}",
                    description=(
                        f"{pattern.description}. A time-based automation can prepare "
                        f"{result.subject_id} before {pattern.time_of_day}"
                    ),
                    category=RecommendationCategory.AUTOMATION.value,
                    confidence=pattern.confidence * max(result.overall_confidence, 0.5),
                    affected_subjects=[result.subject_id],
                    source=ANALYSIS_SOURCE,
                    trigger=f"pattern {pattern.pattern_id}",
                    estimated_impact="Low",
                    time_to_implement="5 minutes",
                    evidence={"pattern_id": pattern.pattern_id, **pattern.pattern_details},
                )
            )
        return candidates

    def _from_anomalies(self, result: PatternAnalysisResult) -> List[CandidateSuggestion]:
        if not result.anomalies:
            return []
        worst = max(result.anomalies, key=lambda a: a.severity)
        return [
            CandidateSuggestion(
                title=f"Alert on unusual {result.subject_id} usage",
                description=(
                    f"{len(result.anomalies)} unusual readings were found for "
                    f"{result.subject_id}; {worst.description.lower()}"
                ),
                category=RecommendationCategory.SAFETY.value,
                confidence=worst.severity,
                affected_subjects=[result.subject_id],
                source=ANALYSIS_SOURCE,
                trigger=f"anomaly {worst.anomaly_id}",
                estimated_impact="High" if worst.severity > 0.7 else "Medium",
                evidence={
                    "anomaly_count": len(result.anomalies),
                    "max_severity": worst.severity,
                    "anomaly_type": worst.anomaly_type,
                },
            )
        ]

    def _from_behavior(self, result: BehavioralModelResult) -> List[CandidateSuggestion]:
        candidates = []
        devices = [p.device_id for p in result.device_patterns]
        for pattern in result.energy_patterns:
            if pattern.pattern_type == "base_load" and pattern.energy_impact > HIGH_BASE_LOAD_SHARE:
                candidates.append(
                    CandidateSuggestion(
                        title="Reduce standby consumption",
                        description=(
                            f"{pattern.description}. Switching idle devices off at night "
                            "lowers the base load"
                        ),
                        category=RecommendationCategory.ENERGY.value,
                        confidence=_clamp(
                            _clamp(pattern.energy_impact) * result.overall_confidence + 0.3
                        ),
                        affected_subjects=devices,
                        source=ANALYSIS_SOURCE,
                        trigger=f"energy pattern {pattern.pattern_id}",
                        estimated_impact="Medium",
                        time_to_implement="30 minutes",
                        evidence=dict(pattern.energy_data),
                    )
                )
            elif pattern.pattern_type == "peak_load" and pattern.energy_impact > HIGH_PEAK_RATIO:
                candidates.append(
                    CandidateSuggestion(
                        title=f"Shift load away from {pattern.time_of_day}",
                        description=(
                            f"{pattern.description}. Moving flexible devices to off-peak "
                            "hours flattens the load curve"
                        ),
                        category=RecommendationCategory.OPTIMIZATION.value,
                        confidence=_clamp(
                            (pattern.energy_impact - 1) / 4 + result.overall_confidence * 0.5
                        ),
                        affected_subjects=devices,
                        source=ANALYSIS_SOURCE,
                        trigger=f"energy pattern {pattern.pattern_id}",
                        estimated_impact="High",
                        time_to_implement="30 minutes",
                        evidence=dict(pattern.energy_data),
                    )
                )

        for routine in result.routines:
            candidates.append(
                CandidateSuggestion(
                    title=f"Automate the {routine.routine_name.lower()}",
                    description=routine.description,
                    category=RecommendationCategory.AUTOMATION.value,
                    confidence=routine.confidence,
                    affected_subjects=list(routine.involved_devices),
                    source=ANALYSIS_SOURCE,
                    trigger=f"routine {routine.routine_id}",
                    evidence=dict(routine.routine_details),
                )
            )
        return candidates

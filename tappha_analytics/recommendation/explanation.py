"""Human-readable explanations for recommendations."""

from ..models.recommendation import Recommendation

_CONFIDENCE_WORDS = [
    (0.8, "high"),
    (0.6, "moderate"),
    (0.0, "low"),
]


def confidence_word(confidence: float) -> str:
    for threshold, word in _CONFIDENCE_WORDS:
        if confidence >= threshold:
            return word
    return "low"


def build_explanation(recommendation: Recommendation) -> str:
    """Explain what triggered a recommendation and what it affects."""
    parts = [f"Suggested because of {recommendation.trigger or 'observed usage'}"]

    if recommendation.affected_subjects:
        parts.append(f"affecting {', '.join(recommendation.affected_subjects)}")

    parts.append(
        f"with {confidence_word(recommendation.confidence_score)} confidence "
        f"({recommendation.confidence_score:.0%})"
    )
    sentence = " ".join(parts) + "."

    if recommendation.source != "analysis":
        sentence += " The idea came from an external suggestion and was re-checked against the data."

    details = []
    if "correlation" in recommendation.evidence:
        details.append(f"correlation {recommendation.evidence['correlation']:.2f}")
    if "anomaly_count" in recommendation.evidence:
        details.append(f"{recommendation.evidence['anomaly_count']} unusual readings")
    if "peak_hour" in recommendation.evidence:
        details.append(f"peak around {recommendation.evidence['peak_hour']:02d}:00")
    if details:
        sentence += f" Evidence: {', '.join(details)}."

    return sentence


def unknown_explanation(recommendation_id: str) -> str:
    return f"Recommendation {recommendation_id} is unknown; no explanation is available."

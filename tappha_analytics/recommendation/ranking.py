"""Ordering of recommendations."""

from typing import List, Sequence, Set, Tuple

from ..models.recommendation import Recommendation


def parse_preferences(user_preferences: str) -> Set[str]:
    """Comma-separated preferred categories, lowercased."""
    return {
        part.strip().lower() for part in (user_preferences or "").split(",") if part.strip()
    }


def rank(
    recommendations: Sequence[Recommendation], user_preferences: str = ""
) -> List[Recommendation]:
    """
    Sort by confidence, highest first.

    Preferred categories only break ties between equal confidences; the
    result is always in descending confidence order. Python's sort is
    stable, so fully equal keys keep their input order.
    """
    preferred = parse_preferences(user_preferences)

    def sort_key(recommendation: Recommendation) -> Tuple[float, bool]:
        return (
            recommendation.confidence_score,
            recommendation.category.lower() in preferred,
        )

    return sorted(recommendations, key=sort_key, reverse=True)

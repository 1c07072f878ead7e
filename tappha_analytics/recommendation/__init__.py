"""
Recommendation building blocks.

- candidates: draft suggestions from analysis results and external providers
- ranking: stable confidence ordering with preference bonus
- explanation: human-readable reasons
- ledger: issued recommendations, approval decisions and feedback
"""

from .candidates import (AnalysisCandidateBuilder, CandidateSuggestionProvider,
                         revalidate_confidence)
from .ledger import RecommendationLedger
from .ranking import rank

__all__ = [
    "AnalysisCandidateBuilder",
    "CandidateSuggestionProvider",
    "RecommendationLedger",
    "rank",
    "revalidate_confidence",
]

"""
In-process record of issued recommendations, decisions and feedback.

Shared by concurrent service calls, so every mutation happens under an
``asyncio.Lock``. Stored recommendations are private copies that are only
ever replaced whole, so objects already handed out (cached responses,
caller lists) never change status behind the caller's back.
"""

import asyncio
import logging
import uuid
from collections import Counter, defaultdict
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from ..exceptions import AnalyticsError, InvalidTransitionError
from ..models.recommendation import (ApprovalStatus, Recommendation,
                                     RecommendationFeedback,
                                     RecommendationStats)

APPROVED_STATES = {
    ApprovalStatus.APPROVED,
    ApprovalStatus.IMPLEMENTED,
    ApprovalStatus.ROLLED_BACK,
}
IMPLEMENTED_STATES = {ApprovalStatus.IMPLEMENTED, ApprovalStatus.ROLLED_BACK}


class RecommendationLedger:
    """Recommendations by id and user, with their feedback history."""

    def __init__(self) -> None:
        self.logger = logging.getLogger(f"{__name__}.RecommendationLedger")
        self._lock = asyncio.Lock()
        self._recommendations: Dict[str, Recommendation] = {}
        self._owners: Dict[str, str] = {}
        self._by_user: Dict[str, List[str]] = defaultdict(list)
        self._feedback: Dict[str, List[RecommendationFeedback]] = defaultdict(list)

    def __len__(self) -> int:
        return len(self._recommendations)

    async def record(self, user_id: str, recommendations: Sequence[Recommendation]) -> None:
        async with self._lock:
            for recommendation in recommendations:
                if recommendation.recommendation_id not in self._recommendations:
                    self._by_user[user_id].append(recommendation.recommendation_id)
                self._recommendations[recommendation.recommendation_id] = replace(recommendation)
                self._owners[recommendation.recommendation_id] = user_id

    def get(self, recommendation_id: str) -> Optional[Recommendation]:
        return self._recommendations.get(recommendation_id)

    def owner(self, recommendation_id: str) -> Optional[str]:
        return self._owners.get(recommendation_id)

    def feedback_for(self, recommendation_id: str) -> List[RecommendationFeedback]:
        return list(self._feedback.get(recommendation_id, []))

    async def record_decision(
        self, recommendation_id: str, status: ApprovalStatus
    ) -> Recommendation:
        """
        Apply an approval decision from the approval workflow.

        Raises InvalidTransitionError when the state machine forbids the move.
        """
        async with self._lock:
            recommendation = self._recommendations.get(recommendation_id)
            if recommendation is None:
                raise AnalyticsError(f"Unknown recommendation {recommendation_id}")

            current = recommendation.approval_status
            if not current.can_transition_to(status):
                raise InvalidTransitionError(recommendation_id, current.value, status.value)

            updated = replace(recommendation, approval_status=status)
            self._recommendations[recommendation_id] = updated
            self.logger.info(
                f"Recommendation {recommendation_id}: {current.value} -> {status.value}"
            )
            return updated

    async def add_feedback(self, feedback: RecommendationFeedback) -> RecommendationFeedback:
        async with self._lock:
            if feedback.recommendation_id not in self._recommendations:
                raise AnalyticsError(f"Unknown recommendation {feedback.recommendation_id}")
            if feedback.feedback_id is None:
                feedback.feedback_id = str(uuid.uuid4())
            self._feedback[feedback.recommendation_id].append(feedback)
            return feedback

    def _outcome(self, recommendation: Recommendation) -> str:
        """approved / rejected / pending, with implementation tracked separately."""
        if recommendation.approval_status in APPROVED_STATES:
            return "approved"
        if recommendation.approval_status == ApprovalStatus.REJECTED:
            return "rejected"

        for feedback in reversed(self._feedback.get(recommendation.recommendation_id, [])):
            if feedback.feedback_type in ("approval", "implementation"):
                return "approved"
            if feedback.feedback_type == "rejection":
                return "rejected"
        return "pending"

    def _implemented(self, recommendation: Recommendation) -> bool:
        if recommendation.approval_status in IMPLEMENTED_STATES:
            return True
        return any(
            f.was_implemented or f.feedback_type == "implementation"
            for f in self._feedback.get(recommendation.recommendation_id, [])
        )

    def stats(
        self, user_id: str, since: Optional[datetime] = None, time_range: str = ""
    ) -> RecommendationStats:
        """Aggregate statistics over a user's recommendations created after ``since``."""
        recommendations = [
            self._recommendations[rid]
            for rid in self._by_user.get(user_id, [])
            if since is None or self._recommendations[rid].created_at >= since
        ]
        outcomes = Counter(self._outcome(r) for r in recommendations)
        implemented = sum(1 for r in recommendations if self._implemented(r))
        ratings = [
            f.rating
            for r in recommendations
            for f in self._feedback.get(r.recommendation_id, [])
            if f.rating is not None
        ]

        total = len(recommendations)
        decided = outcomes["approved"] + outcomes["rejected"]
        return RecommendationStats(
            user_id=user_id,
            time_range=time_range,
            total_recommendations=total,
            approved_recommendations=outcomes["approved"],
            rejected_recommendations=outcomes["rejected"],
            pending_recommendations=outcomes["pending"],
            implemented_recommendations=implemented,
            average_confidence=(
                sum(r.confidence_score for r in recommendations) / total if total else 0.0
            ),
            average_rating=sum(ratings) / len(ratings) if ratings else 0.0,
            approval_rate=outcomes["approved"] / decided if decided else 0.0,
            implementation_rate=(
                implemented / outcomes["approved"] if outcomes["approved"] else 0.0
            ),
            category_breakdown=dict(Counter(r.category for r in recommendations)),
        )

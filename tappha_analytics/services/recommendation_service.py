"""
Recommendation service.

Turns analysis results and external drafts into ranked, explained,
approval-gated recommendations, and tracks feedback on them.

Recommendations are always created ``pending``; only the approval workflow
moves them on through ``RecommendationLedger.record_decision``.
"""

import asyncio
import time
import uuid
from concurrent.futures import Executor
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence

from ..cache.base import AnalysisCache, CacheKeys, cached_compute
from ..config.settings import AnalyticsSettings
from ..exceptions import AnalyticsError
from ..ingestion.source import TimeSeriesSource
from ..models.analysis import CorrelationAnalysisResult
from ..models.patterns import BehavioralModelResult, PatternAnalysisResult
from ..models.recommendation import (AccuracyMetric, CandidateSuggestion,
                                     Recommendation, RecommendationAccuracy,
                                     RecommendationCategory,
                                     RecommendationFeedback,
                                     RecommendationRequest,
                                     RecommendationResponse,
                                     RecommendationStats)
from ..recommendation.candidates import (AnalysisCandidateBuilder,
                                         CandidateSuggestionProvider,
                                         revalidate_confidence)
from ..recommendation.explanation import build_explanation, unknown_explanation
from ..recommendation.ledger import RecommendationLedger
from ..recommendation.ranking import rank
from ..utils.time_ranges import resolve_range
from .base import BaseAnalysisService
from .behavior_service import BehavioralModelingService
from .pattern_service import PatternAnalysisService
from .time_series_service import TimeSeriesAnalysisService

FEEDBACK_TYPES = {"approval", "rejection", "implementation", "rating"}
MAX_CATEGORY_WEIGHT = 2.0
# Feedback count at which observed outcomes fully replace the original confidence
FULL_FEEDBACK_COUNT = 5


class RecommendationService(BaseAnalysisService):
    """Generate, rank, explain and evaluate automation recommendations."""

    def __init__(
        self,
        cache: AnalysisCache,
        source: TimeSeriesSource,
        time_series: TimeSeriesAnalysisService,
        patterns: PatternAnalysisService,
        behavior: BehavioralModelingService,
        ledger: Optional[RecommendationLedger] = None,
        provider: Optional[CandidateSuggestionProvider] = None,
        settings: Optional[AnalyticsSettings] = None,
        executor: Optional[Executor] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        super().__init__(
            "RecommendationService", "RECOMMEND", cache, source, settings, executor, clock
        )
        self.time_series = time_series
        self.patterns = patterns
        self.behavior = behavior
        self.ledger = ledger if ledger is not None else RecommendationLedger()
        self.provider = provider
        self.builder = AnalysisCandidateBuilder()
        self.category_weights: Dict[str, float] = {
            category.value: 1.0 for category in RecommendationCategory
        }

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def generate_recommendations(
        self, request: RecommendationRequest
    ) -> RecommendationResponse:
        """
        Generate up to ``max_recommendations`` ranked recommendations.

        Analysis-derived drafts and external drafts are merged, re-validated,
        filtered by ``recommendation_type``, ranked and truncated. Every
        returned recommendation is pending and carries an explanation.
        """
        max_count = (
            request.max_recommendations
            if request.max_recommendations is not None
            else self.settings.recommendation.default_max_recommendations
        )
        request_id = str(uuid.uuid4())

        async def compute() -> RecommendationResponse:
            started = time.perf_counter()
            candidates = await self._analysis_candidates(request)
            candidates.extend(await self._external_candidates(request))

            recommendations = [self._to_recommendation(c) for c in candidates]
            if request.recommendation_type:
                wanted = request.recommendation_type.lower()
                recommendations = [r for r in recommendations if r.category == wanted]

            ranked = rank(recommendations, request.user_preferences)[: max(0, max_count)]
            for recommendation in ranked:
                recommendation.explanation = build_explanation(recommendation)

            await self.ledger.record(request.user_id, ranked)
            await self._invalidate_stats(request.user_id)

            overall = (
                sum(r.confidence_score for r in ranked) / len(ranked) if ranked else 0.0
            )
            self.logger.info(
                f"Generated {len(ranked)} of {len(candidates)} candidate recommendations "
                f"for {request.user_id}"
            )
            return RecommendationResponse(
                request_id=request_id,
                user_id=request.user_id,
                generated_at=self.clock(),
                recommendations=ranked,
                stats=self._stats(request.user_id, request.time_range),
                overall_confidence=overall,
                processing_time_ms=(time.perf_counter() - started) * 1000,
                privacy_level=request.privacy_level,
            )

        def failed(message: str) -> RecommendationResponse:
            return RecommendationResponse(
                request_id=request_id,
                user_id=request.user_id,
                generated_at=self.clock(),
                success=False,
                error_message=message,
                privacy_level=request.privacy_level,
            )

        key = CacheKeys.recommendation(
            request.user_id,
            request.context,
            request.household_id,
            sorted(request.device_ids),
            request.recommendation_type,
            max_count,
            request.time_range,
            request.user_preferences,
        )
        return await cached_compute(
            self.cache,
            key,
            self.ttl.recommendation_seconds,
            lambda: self._guarded(
                f"Recommendation generation for {request.user_id}", compute, failed
            ),
            should_cache=lambda response: response.success,
        )

    async def _analysis_candidates(
        self, request: RecommendationRequest
    ) -> List[CandidateSuggestion]:
        device_ids = list(request.device_ids)
        if not device_ids and request.household_id:
            device_ids = await self.source.household_devices(request.household_id)
        if not device_ids:
            self.logger.info(f"No devices to analyze for {request.user_id}")
            return []

        correlation: Optional[CorrelationAnalysisResult] = None
        if len(device_ids) >= 2:
            correlation = await self.time_series.perform_correlation_analysis(
                device_ids, request.time_range
            )

        device_patterns: List[PatternAnalysisResult] = await asyncio.gather(
            *(self.patterns.analyze_device_patterns(d) for d in device_ids)
        )
        anomalies: List[PatternAnalysisResult] = await asyncio.gather(
            *(self.patterns.detect_anomalies(d) for d in device_ids)
        )

        behavior: Optional[BehavioralModelResult] = None
        if request.household_id:
            behavior = await self.behavior.model_household_behavior(request.household_id)

        return self.builder.build(
            correlation=correlation,
            device_patterns=dict(zip(device_ids, device_patterns)),
            anomalies=dict(zip(device_ids, anomalies)),
            behavior=behavior,
        )

    async def _external_candidates(
        self, request: RecommendationRequest
    ) -> List[CandidateSuggestion]:
        if self.provider is None:
            return []
        try:
            candidates = list(await self.provider.generate(request))
        except Exception as e:
            self.logger.error(f"External suggestion provider failed: {e}", exc_info=True)
            return []
        for candidate in candidates:
            if candidate.source == "analysis":
                candidate.source = "external"
        return candidates

    def _to_recommendation(self, candidate: CandidateSuggestion) -> Recommendation:
        category = candidate.category.lower()
        confidence = revalidate_confidence(
            candidate, self.settings.recommendation.external_trust_cap
        )
        weighted = min(1.0, max(0.0, confidence * self.category_weights.get(category, 1.0)))
        return Recommendation(
            recommendation_id=str(uuid.uuid4()),
            title=candidate.title,
            description=candidate.description,
            category=category,
            confidence_score=weighted,
            affected_subjects=list(candidate.affected_subjects),
            estimated_impact=candidate.estimated_impact,
            time_to_implement=candidate.time_to_implement,
            created_at=self.clock(),
            source=candidate.source,
            trigger=candidate.trigger,
            evidence=dict(candidate.evidence),
        )

    # ------------------------------------------------------------------
    # Ranking and explanation
    # ------------------------------------------------------------------

    async def rank_recommendations(
        self, recommendations: Sequence[Recommendation], user_preferences: str = ""
    ) -> List[Recommendation]:
        """Stable confidence ranking; cached by ids and preferences."""
        recommendations = list(recommendations)

        async def compute() -> List[Recommendation]:
            return rank(recommendations, user_preferences)

        return await cached_compute(
            self.cache,
            CacheKeys.ranking([r.recommendation_id for r in recommendations], user_preferences),
            self.ttl.ranking_seconds,
            lambda: self._guarded(
                "Recommendation ranking", compute, lambda message: recommendations
            ),
        )

    async def generate_explanation(self, recommendation_id: str, user_id: str) -> str:
        async def compute() -> str:
            recommendation = self.ledger.get(recommendation_id)
            if recommendation is None:
                self.logger.warning(f"Explanation requested for unknown {recommendation_id}")
                return unknown_explanation(recommendation_id)
            return recommendation.explanation or build_explanation(recommendation)

        return await cached_compute(
            self.cache,
            CacheKeys.explanation(recommendation_id, user_id),
            self.ttl.explanation_seconds,
            lambda: self._guarded(
                f"Explanation for {recommendation_id}",
                compute,
                lambda message: unknown_explanation(recommendation_id),
            ),
            should_cache=lambda text: self.ledger.get(recommendation_id) is not None,
        )

    # ------------------------------------------------------------------
    # Feedback, accuracy and statistics
    # ------------------------------------------------------------------

    async def process_feedback(self, feedback: RecommendationFeedback) -> bool:
        """
        Record user feedback.

        Feedback only updates aggregate statistics; a recommendation's
        stored confidence never changes. Any failure yields False.
        """

        async def compute() -> bool:
            if feedback.feedback_type not in FEEDBACK_TYPES:
                self.logger.warning(f"Unsupported feedback type '{feedback.feedback_type}'")
                return False
            if feedback.rating is not None and not (1.0 <= feedback.rating <= 5.0):
                self.logger.warning(f"Rating {feedback.rating} outside 1-5 ignored")
                return False

            try:
                await self.ledger.add_feedback(feedback)
            except AnalyticsError as e:
                self.logger.warning(f"Feedback rejected: {e}")
                return False

            owner = self.ledger.owner(feedback.recommendation_id)
            await self._invalidate_stats(feedback.user_id)
            if owner and owner != feedback.user_id:
                await self._invalidate_stats(owner)

            self.logger.info(
                f"Recorded {feedback.feedback_type} feedback for {feedback.recommendation_id}"
            )
            return True

        return await self._guarded(
            f"Feedback for {feedback.recommendation_id}", compute, lambda message: False
        )

    async def validate_accuracy(self, recommendation_id: str) -> RecommendationAccuracy:
        """
        Accuracy of a recommendation from its feedback history.

        Approvals and implementations count as 1, rejections as 0 and ratings
        scale to [0, 1]. With fewer than five feedback entries the observed
        score is blended with the original confidence.
        """

        async def compute() -> RecommendationAccuracy:
            return self._accuracy(recommendation_id)

        def failed(message: str) -> RecommendationAccuracy:
            return RecommendationAccuracy(
                recommendation_id=recommendation_id,
                validated_at=self.clock(),
                success=False,
                error_message=message,
            )

        return await self._guarded(
            f"Accuracy validation for {recommendation_id}", compute, failed
        )

    def _accuracy(self, recommendation_id: str) -> RecommendationAccuracy:
        started = time.perf_counter()
        recommendation = self.ledger.get(recommendation_id)
        if recommendation is None:
            return RecommendationAccuracy(
                recommendation_id=recommendation_id,
                validated_at=self.clock(),
                success=False,
                error_message=f"Unknown recommendation {recommendation_id}",
            )

        outcomes = []
        for feedback in self.ledger.feedback_for(recommendation_id):
            if feedback.feedback_type in ("approval", "implementation"):
                outcomes.append(1.0)
            elif feedback.feedback_type == "rejection":
                outcomes.append(0.0)
            if feedback.rating is not None:
                outcomes.append((feedback.rating - 1.0) / 4.0)

        confidence = recommendation.confidence_score
        observed = sum(outcomes) / len(outcomes) if outcomes else confidence
        weight = min(1.0, len(outcomes) / FULL_FEEDBACK_COUNT)
        accuracy = weight * observed + (1 - weight) * confidence

        thresholds = self.settings.recommendation
        if accuracy >= thresholds.high_accuracy_threshold:
            level = "high"
        elif accuracy >= thresholds.medium_accuracy_threshold:
            level = "medium"
        else:
            level = "low"

        calibration = 1.0 - abs(observed - confidence)
        metrics = [
            AccuracyMetric(
                metric_name="feedback_score",
                metric_value=observed,
                metric_description="Mean outcome of user feedback",
                threshold=thresholds.medium_accuracy_threshold,
                is_passing=observed >= thresholds.medium_accuracy_threshold,
            ),
            AccuracyMetric(
                metric_name="feedback_count",
                metric_value=float(len(outcomes)),
                metric_description="Feedback signals available",
                threshold=float(FULL_FEEDBACK_COUNT),
                is_passing=len(outcomes) >= FULL_FEEDBACK_COUNT,
            ),
            AccuracyMetric(
                metric_name="confidence_calibration",
                metric_value=calibration,
                metric_description="Agreement between predicted confidence and outcomes",
                threshold=thresholds.medium_accuracy_threshold,
                is_passing=calibration >= thresholds.medium_accuracy_threshold,
            ),
        ]

        return RecommendationAccuracy(
            recommendation_id=recommendation_id,
            user_id=self.ledger.owner(recommendation_id) or "system",
            validated_at=self.clock(),
            accuracy_score=accuracy,
            confidence_score=confidence,
            accuracy_level=level,
            accuracy_metrics=metrics,
            validation_time_ms=(time.perf_counter() - started) * 1000,
        )

    def _stats(self, user_id: str, time_range: str) -> RecommendationStats:
        resolved = resolve_range(time_range, self.clock())
        since = resolved[0] if resolved else None
        return self.ledger.stats(user_id, since, time_range)

    async def get_recommendation_stats(
        self, user_id: str, time_range: str = "30d"
    ) -> RecommendationStats:
        async def compute() -> RecommendationStats:
            return self._stats(user_id, time_range)

        return await cached_compute(
            self.cache,
            CacheKeys.stats(user_id, time_range),
            self.ttl.stats_seconds,
            lambda: self._guarded(
                f"Recommendation stats for {user_id}",
                compute,
                lambda message: RecommendationStats(user_id=user_id, time_range=time_range),
            ),
        )

    async def _invalidate_stats(self, user_id: str) -> None:
        try:
            await self.cache.delete_prefix(f"stats:{user_id}:")
        except Exception as e:
            self.logger.warning(f"Failed to invalidate stats cache for {user_id}: {e}")

    # ------------------------------------------------------------------
    # Model
    # ------------------------------------------------------------------

    async def update_recommendation_model(self, weights: Dict[str, float]) -> bool:
        """
        Set per-category weights used by future generations.

        Weights must name known categories and lie in [0, 2]; invalid input
        leaves the model unchanged.
        """
        known = {category.value for category in RecommendationCategory}
        for category, weight in weights.items():
            if category not in known:
                self.logger.warning(f"Unknown recommendation category '{category}'")
                return False
            if not (0.0 <= weight <= MAX_CATEGORY_WEIGHT):
                self.logger.warning(
                    f"Weight {weight} for '{category}' outside [0, {MAX_CATEGORY_WEIGHT}]"
                )
                return False

        self.category_weights.update({c: float(w) for c, w in weights.items()})
        try:
            await self.cache.delete_prefix("recommendation:")
        except Exception as e:
            self.logger.warning(f"Failed to invalidate cached recommendations: {e}")

        self.logger.info(f"Recommendation model updated: {self.category_weights}")
        return True

    async def get_health_status(self) -> str:
        return await self._health_report("Recommendation service")

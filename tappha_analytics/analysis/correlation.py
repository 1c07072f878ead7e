"""
Correlation engine.

Pairwise Pearson correlation over named sequences, strong/weak pair
classification and greedy grouping of co-moving subjects.
"""

import logging
import time
from collections import Counter
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
from scipy import stats

from ..config.settings import AnalysisSettings
from ..models.analysis import (CorrelationAnalysisResult, CorrelationCluster,
                               DeviceCorrelation)


def pearson(a: Sequence[float], b: Sequence[float]) -> Tuple[float, float]:
    """
    Pearson coefficient and two-sided p-value.

    Mismatched lengths, fewer than two samples or a constant sequence give
    (0.0, 1.0) instead of an error.
    """
    x = np.asarray(a, dtype=float)
    y = np.asarray(b, dtype=float)
    if len(x) != len(y) or len(x) < 2:
        return 0.0, 1.0
    if np.ptp(x) == 0 or np.ptp(y) == 0:
        return 0.0, 1.0

    r, p_value = stats.pearsonr(x, y)
    if np.isnan(r):
        return 0.0, 1.0
    # Rounding can push identical sequences slightly past 1
    return float(np.clip(r, -1.0, 1.0)), float(p_value)


def _interpret(strength: str, direction: str, a: str, b: str) -> str:
    if strength == "strong":
        verb = "rise together" if direction == "positive" else "move in opposite directions"
        return f"{a} and {b} {verb}"
    return f"{a} and {b} behave independently"


class CorrelationAnalyzer:
    """Build the correlation matrix and its derived summaries."""

    def __init__(self, settings: Optional[AnalysisSettings] = None):
        self.settings = settings or AnalysisSettings()
        self.logger = logging.getLogger(f"{__name__}.CorrelationAnalyzer")

    def analyze(
        self,
        series: Dict[str, Sequence[float]],
        time_range: Optional[str] = None,
    ) -> CorrelationAnalysisResult:
        start = time.perf_counter()
        subject_ids = list(series.keys())
        result = CorrelationAnalysisResult(subject_ids=subject_ids, time_range=time_range)

        if not subject_ids:
            result.processing_time_ms = (time.perf_counter() - start) * 1000
            return result

        lengths = {subject: len(series[subject]) for subject in subject_ids}
        common_length = Counter(lengths.values()).most_common(1)[0][0]
        result.mismatched_subjects = [s for s in subject_ids if lengths[s] != common_length]

        matrix: Dict[str, Dict[str, float]] = {s: {} for s in subject_ids}
        p_values: Dict[Tuple[str, str], float] = {}
        valid_pairs = 0
        for i, a in enumerate(subject_ids):
            matrix[a][a] = 1.0
            for b in subject_ids[i + 1 :]:
                r, p_value = pearson(series[a], series[b])
                matrix[a][b] = matrix[b][a] = r
                p_values[(a, b)] = p_value
                if lengths[a] == lengths[b] and lengths[a] >= 2:
                    valid_pairs += 1

        result.correlation_matrix = matrix
        result.strong_correlations, result.weak_correlations = self._classify(
            subject_ids, matrix, p_values
        )
        result.correlation_clusters = self._cluster(subject_ids, matrix)

        total_pairs = len(subject_ids) * (len(subject_ids) - 1) // 2
        result.confidence_score = valid_pairs / total_pairs if total_pairs else 0.0
        result.processing_time_ms = (time.perf_counter() - start) * 1000

        self.logger.debug(
            f"Correlation over {len(subject_ids)} subjects: "
            f"{len(result.strong_correlations)} strong, "
            f"{len(result.correlation_clusters)} clusters"
        )
        return result

    def _classify(
        self,
        subject_ids: List[str],
        matrix: Dict[str, Dict[str, float]],
        p_values: Dict[Tuple[str, str], float],
    ) -> Tuple[List[DeviceCorrelation], List[DeviceCorrelation]]:
        strong, weak = [], []
        for i, a in enumerate(subject_ids):
            for b in subject_ids[i + 1 :]:
                r = matrix[a][b]
                direction = "positive" if r >= 0 else "negative"
                if abs(r) > self.settings.strong_correlation:
                    strength, confidence, bucket = "strong", 0.95, strong
                elif abs(r) < self.settings.weak_correlation:
                    strength, confidence, bucket = "weak", 0.6, weak
                else:
                    continue

                bucket.append(
                    DeviceCorrelation(
                        subject_a=a,
                        subject_b=b,
                        coefficient=r,
                        p_value=p_values[(a, b)],
                        strength=strength,
                        direction=direction,
                        interpretation=_interpret(strength, direction, a, b),
                        confidence=confidence,
                    )
                )
        return strong, weak

    def _cluster(
        self, subject_ids: List[str], matrix: Dict[str, Dict[str, float]]
    ) -> List[CorrelationCluster]:
        """Greedy single pass: each unvisited seed absorbs its close peers."""
        visited = set()
        clusters = []
        for seed in subject_ids:
            if seed in visited:
                continue
            visited.add(seed)

            members = [seed]
            for other in subject_ids:
                if other in visited:
                    continue
                if abs(matrix[seed][other]) > self.settings.cluster_correlation:
                    members.append(other)
                    visited.add(other)

            if len(members) < 2:
                continue

            pairs = [
                matrix[a][b]
                for i, a in enumerate(members)
                for b in members[i + 1 :]
            ]
            average = float(np.mean(pairs))
            clusters.append(
                CorrelationCluster(
                    subjects=members,
                    average_correlation=average,
                    description=(
                        f"{len(members)} subjects with average correlation {average:.2f}"
                    ),
                )
            )
        return clusters

"""Test the correlation engine."""

import pytest

from tappha_analytics.analysis.correlation import CorrelationAnalyzer, pearson
from tappha_analytics.config.settings import AnalysisSettings


@pytest.fixture
def analyzer() -> CorrelationAnalyzer:
    return CorrelationAnalyzer(AnalysisSettings())


class TestPearson:
    def test_identical_sequences(self) -> None:
        r, p_value = pearson([1, 2, 3, 4, 5], [1, 2, 3, 4, 5])
        assert r == pytest.approx(1.0)
        assert 0.0 <= p_value <= 1.0

    def test_mismatched_lengths_give_zero(self) -> None:
        assert pearson([1, 2, 3], [1, 2]) == (0.0, 1.0)

    def test_empty_and_single_samples_give_zero(self) -> None:
        assert pearson([], []) == (0.0, 1.0)
        assert pearson([1.0], [2.0]) == (0.0, 1.0)

    def test_constant_sequence_gives_zero(self) -> None:
        assert pearson([3, 3, 3, 3], [1, 2, 3, 4]) == (0.0, 1.0)


class TestCorrelationAnalyzer:
    def test_identical_sequences_are_strong_positive(self, analyzer) -> None:
        result = analyzer.analyze({"a": [1, 2, 3, 4, 5], "b": [1, 2, 3, 4, 5]})

        assert result.coefficient("a", "b") == pytest.approx(1.0)
        assert len(result.strong_correlations) == 1
        pair = result.strong_correlations[0]
        assert (pair.subject_a, pair.subject_b) == ("a", "b")
        assert pair.strength == "strong"
        assert pair.direction == "positive"
        assert pair.confidence == 0.95

    def test_matrix_is_symmetric_with_unit_diagonal(self, analyzer) -> None:
        result = analyzer.analyze(
            {
                "a": [1, 2, 3, 4, 5, 6],
                "b": [2, 1, 4, 3, 6, 5],
                "c": [6, 5, 4, 3, 2, 1],
            }
        )

        for x in ("a", "b", "c"):
            assert result.correlation_matrix[x][x] == 1.0
            for y in ("a", "b", "c"):
                assert result.correlation_matrix[x][y] == result.correlation_matrix[y][x]

    def test_negative_correlation(self, analyzer) -> None:
        result = analyzer.analyze({"a": [1, 2, 3, 4], "b": [4, 3, 2, 1]})

        pair = result.strong_correlations[0]
        assert pair.coefficient == pytest.approx(-1.0)
        assert pair.direction == "negative"

    def test_uncorrelated_pair_is_weak(self, analyzer) -> None:
        result = analyzer.analyze({"a": [1, 2, 3, 4], "c": [2, 1, 1, 2]})

        assert result.strong_correlations == []
        assert len(result.weak_correlations) == 1
        assert result.weak_correlations[0].confidence == 0.6
        assert result.weak_correlations[0].coefficient == pytest.approx(0.0, abs=1e-12)

    def test_mismatched_subject_is_reported(self, analyzer) -> None:
        result = analyzer.analyze({"a": [1, 2, 3, 4], "b": [1, 2, 3, 4], "short": [1, 2]})

        assert result.mismatched_subjects == ["short"]
        assert result.coefficient("a", "short") == 0.0
        assert result.coefficient("a", "b") == pytest.approx(1.0)

    def test_greedy_clusters(self, analyzer) -> None:
        result = analyzer.analyze(
            {"a": [1, 2, 3, 4], "b": [2, 4, 6, 8], "c": [2, 1, 1, 2]}
        )

        assert len(result.correlation_clusters) == 1
        cluster = result.correlation_clusters[0]
        assert cluster.subjects == ["a", "b"]
        assert cluster.average_correlation == pytest.approx(1.0)

    def test_pairs_are_listed_once(self, analyzer) -> None:
        result = analyzer.analyze({"a": [1, 2, 3], "b": [1, 2, 3], "c": [1, 2, 3]})

        pairs = [(p.subject_a, p.subject_b) for p in result.strong_correlations]
        assert pairs == [("a", "b"), ("a", "c"), ("b", "c")]
        assert result.correlation_clusters[0].subjects == ["a", "b", "c"]

    def test_empty_input(self, analyzer) -> None:
        result = analyzer.analyze({})

        assert result.success
        assert result.total_subjects == 0
        assert result.correlation_matrix == {}
        assert result.confidence_score == 0.0

"""Test the FFT frequency engine."""

import pytest

from tappha_analytics.analysis.frequency import (FrequencyAnalyzer,
                                                 frequency_components,
                                                 interpret_frequency,
                                                 next_power_of_two,
                                                 period_label)
from tests.helpers.synthetic_data import sinusoid


class TestHelpers:
    @pytest.mark.parametrize(
        "n, expected", [(0, 2), (1, 2), (2, 2), (3, 4), (100, 128), (256, 256), (257, 512)]
    )
    def test_next_power_of_two(self, n: int, expected: int) -> None:
        assert next_power_of_two(n) == expected

    def test_period_label(self) -> None:
        assert period_label(0.0) == "∞"
        assert period_label(0.125) == "8.00h"
        assert period_label(1 / 24) == "24.00h"

    @pytest.mark.parametrize(
        "frequency, label",
        [
            (0.005, "very low frequency pattern"),
            (0.05, "low frequency pattern"),
            (0.3, "medium frequency pattern"),
            (0.5, "high frequency pattern"),
        ],
    )
    def test_interpretation_buckets(self, frequency: float, label: str) -> None:
        assert interpret_frequency(frequency) == label


class TestFrequencyAnalyzer:
    @pytest.fixture
    def analyzer(self) -> FrequencyAnalyzer:
        return FrequencyAnalyzer()

    def test_known_sinusoids_are_dominant(self, analyzer) -> None:
        signal = sinusoid(256, bins=[8, 32], amplitudes=[1.0, 0.5])
        result = analyzer.analyze("sensor.power", signal)

        assert result.success
        assert result.fft_size == 256
        assert len(result.frequency_components) == 128
        assert len(result.dominant_frequencies) == 5

        top_two = [d.frequency for d in result.dominant_frequencies[:2]]
        assert top_two == pytest.approx([8 / 256, 32 / 256])
        assert result.dominant_frequencies[0].period == "32.00h"
        assert sum(d.significance for d in result.dominant_frequencies) == pytest.approx(1.0)

    def test_bins_cover_half_spectrum(self) -> None:
        components = frequency_components([1.0, 0.0, -1.0, 0.0])
        assert [c.frequency for c in components] == pytest.approx([0.0, 0.25])
        assert components[0].period == "∞"
        assert components[1].power == pytest.approx(components[1].amplitude ** 2)

    def test_input_is_zero_padded(self, analyzer) -> None:
        result = analyzer.analyze("a", [1.0] * 100)
        assert result.fft_size == 128
        assert len(result.frequency_components) == 64

    def test_sampling_rate_scales_frequencies(self, analyzer) -> None:
        signal = sinusoid(256, bins=[8])
        result = analyzer.analyze("a", signal, sampling_rate=4.0)

        assert result.sampling_rate == 4.0
        assert result.dominant_frequencies[0].frequency == pytest.approx(8 * 4.0 / 256)

    def test_daily_cycle_detected(self, analyzer) -> None:
        # Bin 43 of 1024 is 0.04199 cycles/hour, within 0.001 of 1/24
        signal = sinusoid(1024, bins=[43])
        result = analyzer.analyze("a", signal)

        daily = [p for p in result.periodic_patterns if p.pattern_type == "daily"]
        assert len(daily) == 1
        assert daily[0].frequency == pytest.approx(43 / 1024)
        assert daily[0].strength > 0.9
        assert daily[0].period_hours == 24.0

    def test_empty_input(self, analyzer) -> None:
        result = analyzer.analyze("a", [])

        assert result.success
        assert result.fft_size == 0
        assert result.frequency_components == []
        assert result.dominant_frequencies == []
        assert result.periodic_patterns == []

    def test_zero_signal_has_zero_significance(self, analyzer) -> None:
        result = analyzer.analyze("a", [0.0] * 8)
        assert all(d.significance == 0.0 for d in result.dominant_frequencies)

    def test_results_comparable_only_with_same_size_and_rate(self, analyzer) -> None:
        a = analyzer.analyze("a", [1.0] * 100)
        b = analyzer.analyze("b", [2.0] * 128)
        c = analyzer.analyze("c", [2.0] * 300)
        d = analyzer.analyze("d", [2.0] * 100, sampling_rate=2.0)

        assert a.is_comparable(b)
        assert not a.is_comparable(c)
        assert not a.is_comparable(d)

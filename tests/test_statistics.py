"""
Tests for SOPR statistics helpers.
"""

import pytest

from sopr_tracker.models.core import ProfitStatus, TrendDirection
from sopr_tracker.utils.statistics import (
    SoprHistory,
    classify_sopr,
    compute_trend,
    linear_regression,
    mean,
)


class TestMean:
    """Test cases for mean."""

    def test_mean_of_values(self):
        assert mean([1.2, 0.8, 1.5]) == pytest.approx(1.1666666, rel=1e-6)

    def test_mean_of_empty_is_none(self):
        assert mean([]) is None


class TestLinearRegression:
    """Test cases for the least-squares fit."""

    def test_exact_line(self):
        """Test a perfect line is recovered."""
        fit = linear_regression([0, 1, 2, 3], [1, 3, 5, 7])
        assert fit.slope == pytest.approx(2.0)
        assert fit.intercept == pytest.approx(1.0)

    def test_noisy_points(self):
        """Test the fit minimises squared error on noisy data."""
        fit = linear_regression([0, 1, 2], [1.0, 2.0, 2.0])
        assert fit.slope == pytest.approx(0.5)
        assert fit.intercept == pytest.approx(7 / 6)

    def test_length_mismatch(self):
        with pytest.raises(ValueError, match="equal length"):
            linear_regression([0, 1], [1.0])

    def test_too_few_points(self):
        with pytest.raises(ValueError, match="At least two"):
            linear_regression([0], [1.0])

    def test_identical_x_values(self):
        with pytest.raises(ValueError, match="identical"):
            linear_regression([2, 2, 2], [1.0, 2.0, 3.0])


class TestComputeTrend:
    """Test cases for trend estimation."""

    def test_rising_trend(self):
        trend = compute_trend([0.9, 1.0, 1.1, 1.2, 1.3])
        assert trend.direction == TrendDirection.UP
        assert trend.strength == pytest.approx(0.1)
        assert trend.strength == abs(trend.slope)

    def test_falling_trend(self):
        trend = compute_trend([1.4, 1.2, 1.0])
        assert trend.direction == TrendDirection.DOWN
        assert trend.slope == pytest.approx(-0.2)
        assert trend.strength == pytest.approx(0.2)

    def test_flat_trend(self):
        trend = compute_trend([1.05, 1.05, 1.05, 1.05])
        assert trend.direction == TrendDirection.FLAT
        assert trend.strength == 0.0

    def test_single_sample_has_no_trend(self):
        trend = compute_trend([1.2])
        assert trend.direction == TrendDirection.NO_DATA
        assert trend.strength == 0.0
        assert trend.samples == [1.2]

    def test_empty_has_no_trend(self):
        assert compute_trend([]).direction == TrendDirection.NO_DATA

    def test_uses_only_last_window(self):
        """Test older samples outside the window are ignored."""
        # Falling overall, rising over the last five
        samples = [5.0, 4.0, 3.0, 2.0, 1.0, 1.1, 1.2, 1.3, 1.4]
        trend = compute_trend(samples, window=5)
        assert trend.samples == [1.0, 1.1, 1.2, 1.3, 1.4]
        assert trend.direction == TrendDirection.UP

    def test_min_samples_threshold(self):
        trend = compute_trend([1.0, 1.1, 1.2], window=5, min_samples=4)
        assert trend.direction == TrendDirection.NO_DATA


class TestClassifySopr:
    """Test cases for break-even classification."""

    @pytest.mark.parametrize("value,expected", [
        (1.25, ProfitStatus.IN_PROFIT),
        (0.75, ProfitStatus.AT_LOSS),
        (1.0, ProfitStatus.BREAK_EVEN),
        (None, ProfitStatus.UNDEFINED),
    ])
    def test_classification(self, value, expected):
        assert classify_sopr(value) == expected

    def test_custom_break_even(self):
        assert classify_sopr(1.05, break_even=1.1) == ProfitStatus.AT_LOSS


class TestSoprHistory:
    """Test cases for the rolling SOPR history."""

    def test_empty_history(self):
        history = SoprHistory()
        assert len(history) == 0
        assert history.average is None
        assert history.values == []

    def test_bounded_eviction(self):
        """Test the fifteenth value evicts the first."""
        history = SoprHistory(max_size=14)
        for value in range(1, 16):
            history.record(float(value))

        assert len(history) == 14
        assert history.values[0] == 2.0
        assert history.values[-1] == 15.0
        assert history.average == pytest.approx(sum(range(2, 16)) / 14)

    def test_recent(self):
        history = SoprHistory()
        for value in (1.0, 2.0, 3.0):
            history.record(value)
        assert history.recent(2) == [2.0, 3.0]
        assert history.recent(0) == []
        assert history.recent(10) == [1.0, 2.0, 3.0]

    def test_clear(self):
        history = SoprHistory()
        history.record(1.1)
        history.clear()
        assert len(history) == 0

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            SoprHistory(max_size=0)

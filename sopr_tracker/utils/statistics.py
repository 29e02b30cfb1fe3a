"""
Statistics helpers for SOPR aggregation: means, least-squares trend fitting,
and the bounded rolling history of computed SOPR values.
"""

import logging
import math
from collections import deque
from dataclasses import dataclass
from typing import Deque, List, Optional, Sequence

from sopr_tracker.models.core import ProfitStatus, Trend, TrendDirection

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_SIZE = 14
DEFAULT_TREND_WINDOW = 5
DEFAULT_MIN_TREND_SAMPLES = 2
FLAT_SLOPE_TOLERANCE = 1e-12


@dataclass(frozen=True)
class RegressionResult:
    """Ordinary least-squares fit y = slope * x + intercept."""
    slope: float
    intercept: float


def mean(values: Sequence[float]) -> Optional[float]:
    """Arithmetic mean, or None for an empty sequence."""
    if not values:
        return None
    return sum(values) / len(values)


def linear_regression(xs: Sequence[float], ys: Sequence[float]) -> RegressionResult:
    """
    Closed-form ordinary least-squares fit.

    Args:
        xs: Independent values
        ys: Dependent values, same length as xs

    Returns:
        RegressionResult with slope and intercept

    Raises:
        ValueError: If the inputs differ in length, hold fewer than two
            points, or all x values are identical
    """
    if len(xs) != len(ys):
        raise ValueError(f"xs and ys must have equal length ({len(xs)} != {len(ys)})")
    if len(xs) < 2:
        raise ValueError("At least two points are required for a regression")

    mean_x = sum(xs) / len(xs)
    mean_y = sum(ys) / len(ys)

    ss_xx = sum((x - mean_x) ** 2 for x in xs)
    if ss_xx == 0:
        raise ValueError("Regression is undefined when all x values are identical")

    ss_xy = sum((x - mean_x) * (y - mean_y) for x, y in zip(xs, ys))
    slope = ss_xy / ss_xx
    intercept = mean_y - slope * mean_x
    return RegressionResult(slope=slope, intercept=intercept)


def compute_trend(
    samples: Sequence[float],
    window: int = DEFAULT_TREND_WINDOW,
    min_samples: int = DEFAULT_MIN_TREND_SAMPLES
) -> Trend:
    """
    Fit a trend line over the last ``window`` samples against their index.

    Fewer than ``min_samples`` samples yields a NO_DATA trend.
    """
    recent = list(samples)[-window:] if window > 0 else []
    if len(recent) < max(min_samples, 2):
        return Trend.no_data(recent)

    fit = linear_regression(list(range(len(recent))), recent)

    if math.isclose(fit.slope, 0.0, abs_tol=FLAT_SLOPE_TOLERANCE):
        direction = TrendDirection.FLAT
        strength = 0.0
    elif fit.slope > 0:
        direction = TrendDirection.UP
        strength = abs(fit.slope)
    else:
        direction = TrendDirection.DOWN
        strength = abs(fit.slope)

    return Trend(
        direction=direction,
        strength=strength,
        samples=recent,
        slope=fit.slope,
        intercept=fit.intercept
    )


def classify_sopr(value: Optional[float], break_even: float = 1.0) -> ProfitStatus:
    """Label a SOPR value relative to the break-even ratio."""
    if value is None:
        return ProfitStatus.UNDEFINED
    if math.isclose(value, break_even, rel_tol=0.0, abs_tol=1e-9):
        return ProfitStatus.BREAK_EVEN
    if value > break_even:
        return ProfitStatus.IN_PROFIT
    return ProfitStatus.AT_LOSS


class SoprHistory:
    """
    Bounded rolling buffer of computed SOPR values.

    Owned by the caller's session and passed into each computation; the
    oldest value is evicted once ``max_size`` is reached. Not thread-safe:
    all mutation is expected to happen on one event loop.
    """

    def __init__(self, max_size: int = DEFAULT_HISTORY_SIZE):
        if max_size <= 0:
            raise ValueError(f"max_size must be positive, got {max_size}")
        self.max_size = max_size
        self._values: Deque[float] = deque(maxlen=max_size)

    def __len__(self) -> int:
        return len(self._values)

    def record(self, value: float) -> None:
        """Append a computed SOPR value, evicting the oldest when full."""
        if len(self._values) == self.max_size:
            logger.debug(f"SOPR history full, evicting {self._values[0]:.4f}")
        self._values.append(value)

    @property
    def values(self) -> List[float]:
        return list(self._values)

    @property
    def average(self) -> Optional[float]:
        return mean(self._values)

    def recent(self, count: int) -> List[float]:
        if count <= 0:
            return []
        return list(self._values)[-count:]

    def clear(self) -> None:
        self._values.clear()

"""
Core data models for the SOPR tracker system.
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class TradeDirection(Enum):
    """Direction of a holder transaction."""
    BUY = "buy"
    SELL = "sell"
    UNKNOWN = "unknown"


class TrendDirection(Enum):
    """Direction of the fitted SOPR trend line."""
    UP = "up"
    DOWN = "down"
    FLAT = "flat"
    NO_DATA = "no_data"


class ProfitStatus(Enum):
    """Classification of a SOPR value against break-even."""
    IN_PROFIT = "in profit"
    AT_LOSS = "at a loss"
    BREAK_EVEN = "break-even"
    UNDEFINED = "undefined"


class HolderSkipReason(Enum):
    """Why a holder was excluded from SOPR aggregation."""
    FETCH_FAILED = "fetch_failed"
    NO_TRANSACTIONS = "no_transactions"
    NO_BUY = "no_buy"
    NO_SELL = "no_sell"
    SELL_BEFORE_BUY = "sell_before_buy"
    NO_PRICE_MATCH = "no_price_match"
    INVALID_PRICE = "invalid_price"
    CANCELLED = "cancelled"


@dataclass
class RateLimitState:
    """Quota bookkeeping for the current rate window."""
    max_requests: int
    window_seconds: float
    count: int = 0
    window_start: float = 0.0

    def __post_init__(self):
        if self.max_requests <= 0:
            raise ValueError(f"max_requests must be positive, got {self.max_requests}")
        if self.window_seconds <= 0:
            raise ValueError(f"window_seconds must be positive, got {self.window_seconds}")

    def window_expired(self, now: float) -> bool:
        return now - self.window_start >= self.window_seconds

    def reset(self, now: float) -> None:
        self.count = 0
        self.window_start = now

    @property
    def quota_exhausted(self) -> bool:
        return self.count >= self.max_requests

    def seconds_until_reset(self, now: float) -> float:
        return max(0.0, self.window_start + self.window_seconds - now)


@dataclass(frozen=True)
class HolderTransaction:
    """A single buy/sell event for one holder of a token."""
    timestamp: datetime
    direction: TradeDirection
    price_usd: Optional[float]
    amount: float


@dataclass
class TransactionPage:
    """One page of a holder's trade history and the cursor of the next one."""
    transactions: List[HolderTransaction] = field(default_factory=list)
    next_cursor: Optional[str] = None

    @property
    def has_more(self) -> bool:
        return self.next_cursor is not None


@dataclass(frozen=True)
class PricePoint:
    """Token price at a point in time."""
    timestamp: datetime
    price_usd: float


@dataclass
class PriceHistory:
    """
    Time-ordered price points for a token.

    An empty history with ``found=False`` is how the price source reports
    a token it does not know about.
    """
    token_address: str
    points: List[PricePoint] = field(default_factory=list)
    found: bool = True

    def __post_init__(self):
        self.points = sorted(self.points, key=lambda p: p.timestamp)

    @classmethod
    def not_found(cls, token_address: str) -> "PriceHistory":
        return cls(token_address=token_address, points=[], found=False)

    @property
    def is_empty(self) -> bool:
        return not self.points

    def price_at(self, timestamp: datetime, tolerance_seconds: float) -> Optional[float]:
        """
        Look up the price closest to ``timestamp``.

        Args:
            timestamp: Event time to resolve
            tolerance_seconds: Maximum allowed distance to the nearest point

        Returns:
            Nearest price, or None if no point lies within the tolerance
        """
        if not self.points:
            return None

        # Points are sorted, so a bisection finds the two neighbours
        lo, hi = 0, len(self.points)
        while lo < hi:
            mid = (lo + hi) // 2
            if self.points[mid].timestamp < timestamp:
                lo = mid + 1
            else:
                hi = mid

        candidates = [self.points[i] for i in (lo - 1, lo) if 0 <= i < len(self.points)]
        nearest = min(candidates, key=lambda p: abs((p.timestamp - timestamp).total_seconds()))

        if abs((nearest.timestamp - timestamp).total_seconds()) > tolerance_seconds:
            return None
        return nearest.price_usd


@dataclass(frozen=True)
class Holder:
    """An address currently holding the token."""
    address: str
    balance: float


@dataclass
class TokenInfo:
    """Current market context for a token, as reported by the price source."""
    address: str
    symbol: str
    name: str
    price_usd: Optional[float] = None
    pair_address: Optional[str] = None
    dex_id: Optional[str] = None
    liquidity_usd: Optional[float] = None
    url: Optional[str] = None


@dataclass(frozen=True)
class HolderOutcome:
    """Per-holder result: either a SOPR ratio or the reason it was skipped."""
    holder_address: str
    ratio: Optional[float] = None
    skip_reason: Optional[HolderSkipReason] = None
    detail: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        return self.ratio is not None

    @classmethod
    def success(cls, holder_address: str, ratio: float) -> "HolderOutcome":
        return cls(holder_address=holder_address, ratio=ratio)

    @classmethod
    def skipped(
        cls,
        holder_address: str,
        reason: HolderSkipReason,
        detail: Optional[str] = None
    ) -> "HolderOutcome":
        return cls(holder_address=holder_address, skip_reason=reason, detail=detail)


@dataclass
class Trend:
    """Least-squares trend over the most recent SOPR samples."""
    direction: TrendDirection
    strength: float
    samples: List[float]
    slope: float = 0.0
    intercept: float = 0.0

    @classmethod
    def no_data(cls, samples: Optional[List[float]] = None) -> "Trend":
        return cls(direction=TrendDirection.NO_DATA, strength=0.0, samples=list(samples or []))


@dataclass
class SoprResult:
    """Outcome of one SOPR computation."""
    token_address: str
    current_sopr: Optional[float]
    average_sopr: Optional[float]
    trend: Trend
    status: ProfitStatus
    holder_count: int
    valid_pair_count: int
    outcomes: List[HolderOutcome] = field(default_factory=list)
    computed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        if self.valid_pair_count > self.holder_count:
            raise ValueError(
                f"valid_pair_count ({self.valid_pair_count}) cannot exceed "
                f"holder_count ({self.holder_count})"
            )

    @property
    def is_defined(self) -> bool:
        return self.current_sopr is not None

    def skip_summary(self) -> Dict[str, int]:
        """Count excluded holders by skip reason."""
        counts = Counter(
            outcome.skip_reason.value
            for outcome in self.outcomes
            if outcome.skip_reason is not None
        )
        return dict(counts)

    def to_dict(self) -> Dict[str, Any]:
        """Convert result to a JSON-serializable dictionary."""
        return {
            "token_address": self.token_address,
            "current_sopr": self.current_sopr,
            "average_sopr": self.average_sopr,
            "status": self.status.value,
            "trend": {
                "direction": self.trend.direction.value,
                "strength": self.trend.strength,
                "slope": self.trend.slope,
                "samples": list(self.trend.samples),
            },
            "holder_count": self.holder_count,
            "valid_pair_count": self.valid_pair_count,
            "skipped": self.skip_summary(),
            "computed_at": self.computed_at.isoformat(),
        }


@dataclass
class TokenReport:
    """Everything a single search produces for the display layer."""
    token: TokenInfo
    sopr: SoprResult

    def to_dict(self) -> Dict[str, Any]:
        return {
            "token": {
                "address": self.token.address,
                "symbol": self.token.symbol,
                "name": self.token.name,
                "price_usd": self.token.price_usd,
                "pair_address": self.token.pair_address,
                "dex_id": self.token.dex_id,
                "liquidity_usd": self.token.liquidity_usd,
                "url": self.token.url,
            },
            "sopr": self.sopr.to_dict(),
        }

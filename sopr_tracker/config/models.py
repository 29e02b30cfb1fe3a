"""
Configuration data models and validation.
"""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class APIConfig:
    """Data provider endpoints and transport settings."""
    dexscreener_url: str = "https://api.dexscreener.com/latest/dex/tokens"
    geckoterminal_url: str = "https://api.geckoterminal.com/api/v2"
    data_api_url: str = "https://data.solanatracker.io"
    data_api_key: Optional[str] = None
    network: str = "solana"
    timeout: int = 30


@dataclass
class RateLimitConfig:
    """Request queue quota configuration."""
    max_requests: int = 10
    window_seconds: float = 1.0
    inter_request_delay: float = 0.1
    request_timeout: Optional[float] = 30.0


@dataclass
class AnalysisConfig:
    """SOPR computation parameters."""
    history_size: int = 14
    trend_window: int = 5
    min_trend_samples: int = 2
    price_match_tolerance: int = 3600  # seconds
    max_holders: int = 100
    break_even: float = 1.0
    use_event_price_fallback: bool = False
    ohlcv_timeframe: str = "1h"
    ohlcv_limit: int = 1000
    max_trade_pages: int = 5


@dataclass
class LoggingConfig:
    """Logging output configuration."""
    level: str = "INFO"
    file: Optional[str] = None
    structured: bool = False


@dataclass
class TrackerConfig:
    """Main SOPR tracker configuration container."""
    api: APIConfig = field(default_factory=APIConfig)
    rate_limiting: RateLimitConfig = field(default_factory=RateLimitConfig)
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def validate(self) -> List[str]:
        """
        Validate configuration settings.

        Returns:
            List of validation errors, empty if valid
        """
        errors = []

        if self.rate_limiting.max_requests <= 0:
            errors.append("Rate limit max_requests must be positive")

        if self.rate_limiting.window_seconds <= 0:
            errors.append("Rate limit window_seconds must be positive")

        if self.rate_limiting.inter_request_delay < 0:
            errors.append("Inter-request delay must be non-negative")

        if self.analysis.history_size <= 0:
            errors.append("SOPR history size must be positive")

        if self.analysis.trend_window < 2:
            errors.append("Trend window must cover at least two samples")

        if self.analysis.min_trend_samples < 2:
            errors.append("Trend needs at least two samples")

        if self.analysis.max_trade_pages <= 0:
            errors.append("Max trade pages must be positive")

        if self.analysis.break_even <= 0:
            errors.append("Break-even ratio must be positive")

        return errors

"""
Enhanced configuration validation using Pydantic.
"""

import logging
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class NetworkEnum(str, Enum):
    """Supported blockchain networks."""
    SOLANA = "solana"


class OHLCVTimeframeEnum(str, Enum):
    """GeckoTerminal OHLCV timeframes."""
    ONE_MINUTE = "1m"
    FIVE_MINUTES = "5m"
    FIFTEEN_MINUTES = "15m"
    ONE_HOUR = "1h"
    FOUR_HOURS = "4h"
    TWELVE_HOURS = "12h"
    ONE_DAY = "1d"


class APIConfigValidator(BaseModel):
    """Pydantic model for API configuration validation."""
    dexscreener_url: str = Field(
        default="https://api.dexscreener.com/latest/dex/tokens",
        description="DexScreener token lookup endpoint"
    )
    geckoterminal_url: str = Field(
        default="https://api.geckoterminal.com/api/v2",
        description="GeckoTerminal API base URL"
    )
    data_api_url: str = Field(
        default="https://data.solanatracker.io",
        description="Holder and trade history API base URL"
    )
    data_api_key: Optional[str] = Field(default=None, description="API key for the data API")
    network: NetworkEnum = Field(default=NetworkEnum.SOLANA, description="Blockchain network")
    timeout: int = Field(default=30, ge=1, le=300, description="HTTP timeout in seconds")

    @field_validator('dexscreener_url', 'geckoterminal_url', 'data_api_url')
    @classmethod
    def validate_url(cls, v):
        """Validate endpoint URL format."""
        if not v.startswith(('http://', 'https://')):
            raise ValueError(f"URL must start with http:// or https://: {v}")
        return v.rstrip('/')


class RateLimitConfigValidator(BaseModel):
    """Pydantic model for request queue configuration validation."""
    max_requests: int = Field(default=10, ge=1, le=10000, description="Requests allowed per window")
    window_seconds: float = Field(default=1.0, gt=0, le=3600, description="Rate window length in seconds")
    inter_request_delay: float = Field(default=0.1, ge=0, le=60, description="Pause between dispatches")
    request_timeout: Optional[float] = Field(default=30.0, gt=0, description="Per-request timeout in seconds")


class AnalysisConfigValidator(BaseModel):
    """Pydantic model for SOPR analysis configuration validation."""
    history_size: int = Field(default=14, ge=1, le=1000, description="Rolling SOPR history length")
    trend_window: int = Field(default=5, ge=2, le=1000, description="Samples used for the trend fit")
    min_trend_samples: int = Field(default=2, ge=2, description="Samples required for a trend signal")
    price_match_tolerance: int = Field(
        default=3600,
        ge=0,
        le=7 * 24 * 3600,
        description="Maximum distance in seconds between an event and its price point"
    )
    max_holders: int = Field(default=100, ge=1, le=10000, description="Holders analysed per search")
    break_even: float = Field(default=1.0, gt=0, description="SOPR break-even ratio")
    use_event_price_fallback: bool = Field(
        default=False,
        description="Use a transaction's own USD price when no price point matches"
    )
    ohlcv_timeframe: OHLCVTimeframeEnum = Field(default=OHLCVTimeframeEnum.ONE_HOUR, description="Price history timeframe")
    ohlcv_limit: int = Field(default=1000, ge=1, le=1000, description="Price history candles to fetch")
    max_trade_pages: int = Field(default=5, ge=1, le=100, description="Trade history pages fetched per holder")

    @model_validator(mode='after')
    def validate_trend_samples(self):
        """Ensure the trend can ever produce a signal."""
        if self.min_trend_samples > self.trend_window:
            raise ValueError(
                f"min_trend_samples ({self.min_trend_samples}) cannot exceed "
                f"trend_window ({self.trend_window})"
            )
        return self


class LoggingConfigValidator(BaseModel):
    """Pydantic model for logging configuration validation."""
    level: str = Field(default="INFO", description="Root log level")
    file: Optional[str] = Field(default=None, description="Optional rotating log file")
    structured: bool = Field(default=False, description="Emit JSON log lines")

    @field_validator('level')
    @classmethod
    def validate_level(cls, v):
        """Validate log level name."""
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {v}")
        return level


class TrackerConfigValidator(BaseModel):
    """Main configuration validator using Pydantic."""
    api: APIConfigValidator = Field(default_factory=APIConfigValidator)
    rate_limiting: RateLimitConfigValidator = Field(default_factory=RateLimitConfigValidator)
    analysis: AnalysisConfigValidator = Field(default_factory=AnalysisConfigValidator)
    logging: LoggingConfigValidator = Field(default_factory=LoggingConfigValidator)

    model_config = {
        "validate_assignment": True,
        "extra": "forbid"
    }

    def to_tracker_config(self) -> 'TrackerConfig':
        """Convert to the dataclass TrackerConfig used throughout the package."""
        from sopr_tracker.config.models import (
            TrackerConfig, APIConfig, RateLimitConfig, AnalysisConfig, LoggingConfig
        )

        return TrackerConfig(
            api=APIConfig(
                dexscreener_url=self.api.dexscreener_url,
                geckoterminal_url=self.api.geckoterminal_url,
                data_api_url=self.api.data_api_url,
                data_api_key=self.api.data_api_key,
                network=self.api.network.value,
                timeout=self.api.timeout
            ),
            rate_limiting=RateLimitConfig(
                max_requests=self.rate_limiting.max_requests,
                window_seconds=self.rate_limiting.window_seconds,
                inter_request_delay=self.rate_limiting.inter_request_delay,
                request_timeout=self.rate_limiting.request_timeout
            ),
            analysis=AnalysisConfig(
                history_size=self.analysis.history_size,
                trend_window=self.analysis.trend_window,
                min_trend_samples=self.analysis.min_trend_samples,
                price_match_tolerance=self.analysis.price_match_tolerance,
                max_holders=self.analysis.max_holders,
                break_even=self.analysis.break_even,
                use_event_price_fallback=self.analysis.use_event_price_fallback,
                ohlcv_timeframe=self.analysis.ohlcv_timeframe.value,
                ohlcv_limit=self.analysis.ohlcv_limit,
                max_trade_pages=self.analysis.max_trade_pages
            ),
            logging=LoggingConfig(
                level=self.logging.level,
                file=self.logging.file,
                structured=self.logging.structured
            )
        )


def validate_config_dict(config_data: Dict[str, Any]) -> TrackerConfigValidator:
    """
    Validate configuration dictionary using Pydantic.

    Args:
        config_data: Configuration dictionary

    Returns:
        Validated configuration object

    Raises:
        ValueError: If validation fails
    """
    try:
        return TrackerConfigValidator(**config_data)
    except Exception as e:
        raise ValueError(f"Configuration validation failed: {e}")


def get_env_var_mappings() -> Dict[str, str]:
    """
    Get mapping of environment variables to configuration paths.

    Returns:
        Dictionary mapping environment variable names to config paths
    """
    return {
        # API configuration
        'SOPR_DEXSCREENER_URL': 'api.dexscreener_url',
        'SOPR_GECKOTERMINAL_URL': 'api.geckoterminal_url',
        'SOPR_DATA_API_URL': 'api.data_api_url',
        'SOPR_DATA_API_KEY': 'api.data_api_key',
        'SOPR_NETWORK': 'api.network',
        'SOPR_API_TIMEOUT': 'api.timeout',

        # Rate limiting configuration
        'SOPR_RATE_LIMIT_MAX_REQUESTS': 'rate_limiting.max_requests',
        'SOPR_RATE_LIMIT_WINDOW': 'rate_limiting.window_seconds',
        'SOPR_RATE_LIMIT_DELAY': 'rate_limiting.inter_request_delay',
        'SOPR_REQUEST_TIMEOUT': 'rate_limiting.request_timeout',

        # Analysis configuration
        'SOPR_HISTORY_SIZE': 'analysis.history_size',
        'SOPR_TREND_WINDOW': 'analysis.trend_window',
        'SOPR_PRICE_TOLERANCE': 'analysis.price_match_tolerance',
        'SOPR_MAX_HOLDERS': 'analysis.max_holders',
        'SOPR_MAX_TRADE_PAGES': 'analysis.max_trade_pages',
        'SOPR_EVENT_PRICE_FALLBACK': 'analysis.use_event_price_fallback',

        # Logging configuration
        'SOPR_LOG_LEVEL': 'logging.level',
        'SOPR_LOG_FILE': 'logging.file',
        'SOPR_LOG_STRUCTURED': 'logging.structured',
    }

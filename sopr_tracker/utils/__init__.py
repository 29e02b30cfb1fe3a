"""
Utility modules for the SOPR tracker.
"""

from .errors import (
    AnalysisCancelledError,
    InvalidAddressError,
    ProviderError,
    RequestQueueClosedError,
    SoprTrackerError,
    TokenNotFoundError,
    UpstreamUnavailableError,
)
from .request_queue import RateLimitedRequestQueue
from .statistics import SoprHistory, compute_trend, linear_regression, mean

__all__ = [
    "AnalysisCancelledError",
    "InvalidAddressError",
    "ProviderError",
    "RequestQueueClosedError",
    "SoprTrackerError",
    "TokenNotFoundError",
    "UpstreamUnavailableError",
    "RateLimitedRequestQueue",
    "SoprHistory",
    "compute_trend",
    "linear_regression",
    "mean",
]

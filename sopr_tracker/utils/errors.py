"""
Exception types raised by the SOPR tracker.

Per-holder data gaps are not exceptions: they are reported as
``HolderOutcome`` skip reasons and never propagate.
"""

from typing import Optional


class SoprTrackerError(Exception):
    """Base class for all SOPR tracker errors."""
    pass


class InvalidAddressError(SoprTrackerError):
    """Raised when a token address is malformed."""

    def __init__(self, address: str):
        self.address = address
        super().__init__(f"Invalid Solana address format: {address!r}")


class TokenNotFoundError(SoprTrackerError):
    """Raised when the price source has no market for the token."""

    def __init__(self, address: str, source: str = "DexScreener"):
        self.address = address
        self.source = source
        super().__init__(f"Token not found on {source}: {address}")


class UpstreamUnavailableError(SoprTrackerError):
    """Raised when a fetch the whole computation depends on fails."""

    def __init__(self, resource: str, address: str, reason: Optional[BaseException] = None):
        self.resource = resource
        self.address = address
        message = f"Could not fetch {resource} for {address}"
        if reason is not None:
            message += f": {reason}"
        super().__init__(message)


class AnalysisCancelledError(SoprTrackerError):
    """Raised when a SOPR computation is cancelled before completion."""
    pass


class RequestQueueClosedError(SoprTrackerError):
    """Raised for requests submitted to, or still pending in, a closed queue."""
    pass


class ProviderError(SoprTrackerError):
    """Raised when a data provider answers with an error status."""

    def __init__(self, provider: str, status: int, url: str, message: str = ""):
        self.provider = provider
        self.status = status
        self.url = url
        text = f"{provider} returned HTTP {status} for {url}"
        if message:
            text += f": {message[:120]}"
        super().__init__(text)

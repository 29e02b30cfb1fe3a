"""
Token search pipeline: address validation, token lookup and SOPR analysis
sharing one request queue and one rolling SOPR history per session.
"""

import asyncio
import logging
import re
from typing import Optional

from sopr_tracker.analysis.sopr_engine import ProgressCallback, SoprAnalyzer
from sopr_tracker.clients.base import BaseDataClient
from sopr_tracker.clients.factory import create_data_client
from sopr_tracker.config.models import TrackerConfig
from sopr_tracker.models.core import TokenReport
from sopr_tracker.utils.errors import (
    InvalidAddressError,
    TokenNotFoundError,
    UpstreamUnavailableError,
)
from sopr_tracker.utils.request_queue import RateLimitedRequestQueue
from sopr_tracker.utils.statistics import SoprHistory
from sopr_tracker.utils.structured_logging import with_correlation_id

logger = logging.getLogger(__name__)

SOLANA_ADDRESS_PATTERN = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")


def is_valid_solana_address(address: str) -> bool:
    """Check that an address is 32-44 base58 characters."""
    return isinstance(address, str) and bool(SOLANA_ADDRESS_PATTERN.match(address))


class SoprTracker:
    """
    One analysis session.

    The session owns the request queue every provider call goes through and
    the SOPR history that accumulates across searches, so repeated searches
    build up the rolling average and trend.
    """

    def __init__(self, config: Optional[TrackerConfig] = None, client: Optional[BaseDataClient] = None):
        """
        Initialize the tracker.

        Args:
            config: Tracker configuration (defaults when omitted)
            client: Data client; a live client is created from config when omitted
        """
        self.config = config or TrackerConfig()
        self.client = client or create_data_client(self.config)

        rate_config = self.config.rate_limiting
        self.queue = RateLimitedRequestQueue(
            max_requests=rate_config.max_requests,
            window_seconds=rate_config.window_seconds,
            inter_request_delay=rate_config.inter_request_delay,
            default_timeout=rate_config.request_timeout
        )
        self.history = SoprHistory(max_size=self.config.analysis.history_size)
        self.analyzer = SoprAnalyzer(self.client, self.queue, self.config.analysis)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    @with_correlation_id()
    async def search(
        self,
        address: str,
        progress_callback: Optional[ProgressCallback] = None,
        cancel_event: Optional[asyncio.Event] = None
    ) -> TokenReport:
        """
        Look a token up and compute its SOPR.

        Args:
            address: Token mint address
            progress_callback: Called with (processed, total) per holder
            cancel_event: Cancels the search when set

        Returns:
            TokenReport with token info and SOPR result

        Raises:
            InvalidAddressError: Address is malformed (no request is made)
            TokenNotFoundError: Price source has no pairs for the token
            UpstreamUnavailableError: A required fetch failed
            AnalysisCancelledError: The search was cancelled
        """
        address = address.strip() if isinstance(address, str) else address
        if not is_valid_solana_address(address):
            raise InvalidAddressError(address)

        logger.info(f"Searching token {address}")

        try:
            token_info = await self.queue.submit(
                self.client.get_token_info, address, label="token_info"
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Token lookup failed for {address}: {e}")
            raise UpstreamUnavailableError("token info", address, e) from e

        if token_info is None:
            raise TokenNotFoundError(address)

        sopr = await self.analyzer.compute_sopr(
            address,
            self.history,
            progress_callback=progress_callback,
            cancel_event=cancel_event
        )
        return TokenReport(token=token_info, sopr=sopr)

    def reset_history(self) -> None:
        """Forget accumulated SOPR values, e.g. when switching tokens."""
        self.history.clear()

    async def close(self) -> None:
        """Close the request queue and the data client."""
        await self.queue.close()
        await self.client.close()

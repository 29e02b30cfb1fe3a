"""
Tests for the token search pipeline.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from sopr_tracker.clients.mock_client import MockDataClient
from sopr_tracker.models.core import ProfitStatus, TrendDirection
from sopr_tracker.tracker import SoprTracker, is_valid_solana_address
from sopr_tracker.utils.errors import (
    AnalysisCancelledError,
    InvalidAddressError,
    TokenNotFoundError,
    UpstreamUnavailableError,
)
from sopr_tracker.utils.structured_logging import correlation_id

from conftest import EXPECTED_SOPR, TOKEN_ADDRESS


class TestAddressValidation:
    """Test cases for Solana address validation."""

    @pytest.mark.parametrize("address", [
        TOKEN_ADDRESS,
        "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v",
        "1" * 32,
    ])
    def test_valid_addresses(self, address):
        assert is_valid_solana_address(address)

    @pytest.mark.parametrize("address", [
        "",
        "abc",
        "1" * 45,
        "0" * 40,
        "O" * 40,
        "I" * 40,
        "l" * 40,
        "So1111111111111111111111111111111111111111-",
        None,
    ])
    def test_invalid_addresses(self, address):
        assert not is_valid_solana_address(address)


class TestSoprTracker:
    """Test cases for SoprTracker.search."""

    @pytest.mark.asyncio
    async def test_search_returns_report(self, tracker_config, mock_client):
        async with SoprTracker(tracker_config, mock_client) as tracker:
            report = await tracker.search(TOKEN_ADDRESS)

        assert report.token.symbol == "SOL"
        assert report.token.pair_address == "58oQChx4yWmvKdwLLZzBi4ChoCc2fqCUWBkwMihLYQo2"
        assert report.sopr.current_sopr == pytest.approx(EXPECTED_SOPR)
        assert report.sopr.status == ProfitStatus.IN_PROFIT
        assert tracker.queue.is_closed

    @pytest.mark.asyncio
    async def test_invalid_address_makes_no_request(self, tracker_config, mock_client):
        """Test malformed input is rejected before any network activity."""
        async with SoprTracker(tracker_config, mock_client) as tracker:
            with pytest.raises(InvalidAddressError, match="Invalid Solana address"):
                await tracker.search("not-a-real-address")

            assert mock_client.calls == []
            assert tracker.queue.metrics.submitted == 0

    @pytest.mark.asyncio
    async def test_address_whitespace_is_stripped(self, tracker_config, mock_client):
        async with SoprTracker(tracker_config, mock_client) as tracker:
            report = await tracker.search(f"  {TOKEN_ADDRESS}\n")

        assert report.token.address == TOKEN_ADDRESS

    @pytest.mark.asyncio
    async def test_token_without_pairs(self, tracker_config):
        """Test a token unknown to the price source is reported as not found."""
        client = MockDataClient({TOKEN_ADDRESS: {"dexscreener": {"pairs": []}}})

        async with SoprTracker(tracker_config, client) as tracker:
            with pytest.raises(TokenNotFoundError):
                await tracker.search(TOKEN_ADDRESS)

        assert len(tracker.history) == 0

    @pytest.mark.asyncio
    async def test_token_lookup_failure(self, tracker_config, token_fixture):
        client = MockDataClient(
            {TOKEN_ADDRESS: token_fixture},
            failures={"token_info": ConnectionError("connection reset")}
        )

        async with SoprTracker(tracker_config, client) as tracker:
            with pytest.raises(UpstreamUnavailableError, match="token info"):
                await tracker.search(TOKEN_ADDRESS)

    @pytest.mark.asyncio
    async def test_session_history_accumulates(self, tracker_config, mock_client):
        """Test repeated searches share one rolling history."""
        async with SoprTracker(tracker_config, mock_client) as tracker:
            first = await tracker.search(TOKEN_ADDRESS)
            second = await tracker.search(TOKEN_ADDRESS)

            assert first.sopr.trend.direction == TrendDirection.NO_DATA
            assert second.sopr.trend.direction == TrendDirection.FLAT
            assert len(tracker.history) == 2

            tracker.reset_history()
            assert len(tracker.history) == 0

    @pytest.mark.asyncio
    async def test_history_size_from_config(self, tracker_config, mock_client):
        tracker_config.analysis.history_size = 3
        async with SoprTracker(tracker_config, mock_client) as tracker:
            for _ in range(5):
                await tracker.search(TOKEN_ADDRESS)
            assert len(tracker.history) == 3

    @pytest.mark.asyncio
    async def test_cancelled_search(self, tracker_config, mock_client):
        cancel_event = asyncio.Event()
        cancel_event.set()

        async with SoprTracker(tracker_config, mock_client) as tracker:
            with pytest.raises(AnalysisCancelledError):
                await tracker.search(TOKEN_ADDRESS, cancel_event=cancel_event)
            assert len(tracker.history) == 0

    @pytest.mark.asyncio
    async def test_search_runs_under_correlation_id(self, tracker_config, mock_client):
        """Test each search gets its own correlation id."""
        seen = []
        original = mock_client.get_token_info

        async def recording_get_token_info(address):
            seen.append(correlation_id.get())
            return await original(address)

        mock_client.get_token_info = recording_get_token_info

        async with SoprTracker(tracker_config, mock_client) as tracker:
            await tracker.search(TOKEN_ADDRESS)
            await tracker.search(TOKEN_ADDRESS)

        assert len(seen) == 2
        assert all(seen)
        assert seen[0] != seen[1]
        assert correlation_id.get() is None

    @pytest.mark.asyncio
    async def test_close_closes_client(self, tracker_config, mock_client):
        mock_client.close = AsyncMock()
        tracker = SoprTracker(tracker_config, mock_client)
        await tracker.close()
        mock_client.close.assert_awaited_once()

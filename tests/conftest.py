"""
Pytest configuration and shared fixtures.
"""

import logging

import pytest

from sopr_tracker.clients.mock_client import MockDataClient
from sopr_tracker.config.models import AnalysisConfig, RateLimitConfig, TrackerConfig
from sopr_tracker.utils.request_queue import RateLimitedRequestQueue

TOKEN_ADDRESS = "So11111111111111111111111111111111111111112"

HOLDER_PROFIT = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"
HOLDER_LOSS = "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM"
HOLDER_BUY_ONLY = "5Q544fKrFoe6tsEbD7S8EmxGTJYAKtTVhAW5Q5pge4j1"
HOLDER_SELL_FIRST = "HN7cABqLq46Es1jh92dQQisAq662SmxELLLsHHe4YWrH"

# Hourly candles starting 2023-11-14T22:13:20Z
BASE_TS = 1700000000
HOUR = 3600


def hour_ms(index: int) -> int:
    """Epoch milliseconds of the candle at ``index``."""
    return (BASE_TS + index * HOUR) * 1000


def make_token_fixture():
    """
    Raw provider payloads for one token.

    Close prices per hour: 1.0, 1.1, 1.2, 1.5, 0.9, 1.3. The profit holder
    buys at 1.0 and sells at 1.5, the loss holder buys at 1.1 and sells at
    0.9, so SOPR = (1.5 + 0.9 / 1.1) / 2.
    """
    closes = [1.0, 1.1, 1.2, 1.5, 0.9, 1.3]
    return {
        "dexscreener": {
            "pairs": [
                {
                    "dexId": "raydium",
                    "url": "https://dexscreener.com/solana/pair",
                    "pairAddress": "58oQChx4yWmvKdwLLZzBi4ChoCc2fqCUWBkwMihLYQo2",
                    "baseToken": {"address": TOKEN_ADDRESS, "name": "Wrapped SOL", "symbol": "SOL"},
                    "priceUsd": "1.3",
                    "liquidity": {"usd": 12500000.5},
                }
            ]
        },
        "ohlcv": [
            [BASE_TS + i * HOUR, close, close, close, close, 1000]
            for i, close in enumerate(closes)
        ],
        "holders": {
            "accounts": [
                {"wallet": HOLDER_PROFIT, "amount": 5200.5},
                {"wallet": HOLDER_LOSS, "amount": 3100},
                {"wallet": HOLDER_BUY_ONLY, "amount": 870.25},
                {"wallet": HOLDER_SELL_FIRST, "amount": 120},
            ]
        },
        "trades": {
            HOLDER_PROFIT: {"trades": [
                {"time": hour_ms(0), "type": "buy", "priceUsd": 1.0, "amount": 6000},
                {"time": hour_ms(3), "type": "sell", "priceUsd": 1.5, "amount": 799.5},
            ]},
            HOLDER_LOSS: {"trades": [
                {"time": hour_ms(1), "type": "buy", "priceUsd": 1.1, "amount": 4000},
                {"time": hour_ms(4), "type": "sell", "priceUsd": 0.9, "amount": 900},
            ]},
            HOLDER_BUY_ONLY: {"trades": [
                {"time": hour_ms(2), "type": "buy", "priceUsd": 1.2, "amount": 870.25},
            ]},
            HOLDER_SELL_FIRST: {"trades": [
                {"time": hour_ms(1), "type": "sell", "priceUsd": 1.1, "amount": 50},
                {"time": hour_ms(3), "type": "buy", "priceUsd": 1.5, "amount": 170},
            ]},
        },
    }


EXPECTED_SOPR = (1.5 / 1.0 + 0.9 / 1.1) / 2


@pytest.fixture
def token_fixture():
    """Raw payloads for TOKEN_ADDRESS."""
    return make_token_fixture()


@pytest.fixture
def mock_client(token_fixture):
    """Mock data client serving TOKEN_ADDRESS."""
    return MockDataClient({TOKEN_ADDRESS: token_fixture})


@pytest.fixture
def analysis_config():
    """Default analysis configuration."""
    return AnalysisConfig()


@pytest.fixture
def tracker_config():
    """Tracker configuration with a quota that never throttles tests."""
    return TrackerConfig(
        rate_limiting=RateLimitConfig(
            max_requests=1000,
            window_seconds=1.0,
            inter_request_delay=0.0,
            request_timeout=5.0
        )
    )


@pytest.fixture
def fast_queue():
    """Request queue with a generous quota and no inter-request delay."""
    return RateLimitedRequestQueue(max_requests=1000, window_seconds=1.0, inter_request_delay=0.0)


@pytest.fixture
def root_logger_state():
    """Restore root logger handlers and level after a test reconfigures them."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)

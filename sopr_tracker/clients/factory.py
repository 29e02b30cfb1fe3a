"""
Factory for creating data provider clients.
"""

from ..config.models import TrackerConfig
from .base import BaseDataClient
from .mock_client import MockDataClient
from .solana_client import SolanaDataClient


def create_data_client(
    config: TrackerConfig,
    use_mock: bool = False,
    fixtures_path: str = "fixtures"
) -> BaseDataClient:
    """
    Create a data client.

    Args:
        config: Tracker configuration
        use_mock: Whether to use the fixture-backed mock client
        fixtures_path: Directory of JSON fixtures for the mock client

    Returns:
        Configured data client instance
    """
    if use_mock:
        return MockDataClient.from_directory(fixtures_path)
    return SolanaDataClient(config.api, config.analysis)

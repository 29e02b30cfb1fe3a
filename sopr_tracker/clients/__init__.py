"""
Data provider clients for SOPR analysis.
"""

from .base import BaseDataClient
from .mock_client import MockDataClient
from .solana_client import SolanaDataClient
from .factory import create_data_client

__all__ = [
    "BaseDataClient",
    "MockDataClient",
    "SolanaDataClient",
    "create_data_client"
]

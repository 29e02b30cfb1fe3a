"""
Mock data client backed by JSON fixtures.

Each fixture holds raw provider payloads for one token so the same
normalization path as the live client is exercised:

    {
        "dexscreener": {"pairs": [...]},
        "ohlcv": [[timestamp, open, high, low, close, volume], ...],
        "holders": {"accounts": [...]},
        "trades": {"<holder address>": {"trades": [...]}}
    }
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ..models.core import Holder, HolderTransaction, PriceHistory, TokenInfo
from ..utils.data_normalizer import DataTypeNormalizer
from .base import BaseDataClient

logger = logging.getLogger(__name__)


class MockDataClient(BaseDataClient):
    """
    In-memory client for tests and offline runs.

    Failures can be injected per resource: keys "token_info",
    "price_history" and "holders", or a holder address for that holder's
    transaction fetch.
    """

    def __init__(
        self,
        fixtures: Optional[Dict[str, Dict[str, Any]]] = None,
        failures: Optional[Dict[str, Exception]] = None
    ):
        """
        Initialize mock client.

        Args:
            fixtures: Raw payloads keyed by token address
            failures: Exceptions to raise, keyed by resource or holder address
        """
        self.fixtures = fixtures or {}
        self.failures = failures or {}
        self.calls: List[Tuple[str, ...]] = []

    @classmethod
    def from_directory(cls, fixtures_path: str = "fixtures") -> "MockDataClient":
        """Load every ``<token address>.json`` file in a directory."""
        fixtures = {}
        path = Path(fixtures_path)
        if not path.is_dir():
            logger.warning(f"Fixture directory not found: {fixtures_path}")
            return cls(fixtures)

        for fixture_file in sorted(path.glob("*.json")):
            try:
                with open(fixture_file, 'r', encoding='utf-8') as f:
                    fixtures[fixture_file.stem] = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(f"Failed to load fixture {fixture_file}: {e}")

        logger.debug(f"Loaded {len(fixtures)} token fixtures from {fixtures_path}")
        return cls(fixtures)

    def _raise_if_failing(self, key: str) -> None:
        if key in self.failures:
            raise self.failures[key]

    async def get_token_info(self, token_address: str) -> Optional[TokenInfo]:
        self.calls.append(("token_info", token_address))
        self._raise_if_failing("token_info")
        fixture = self.fixtures.get(token_address, {})
        return DataTypeNormalizer.to_token_info(token_address, fixture.get("dexscreener"))

    async def get_price_history(self, token_address: str) -> PriceHistory:
        self.calls.append(("price_history", token_address))
        self._raise_if_failing("price_history")
        fixture = self.fixtures.get(token_address)
        if not fixture or "ohlcv" not in fixture:
            return PriceHistory.not_found(token_address)
        points = DataTypeNormalizer.to_price_points(fixture["ohlcv"])
        return PriceHistory(token_address=token_address, points=points)

    async def get_holders(self, token_address: str) -> List[Holder]:
        self.calls.append(("holders", token_address))
        self._raise_if_failing("holders")
        fixture = self.fixtures.get(token_address, {})
        return DataTypeNormalizer.to_holders(fixture.get("holders"))

    async def get_holder_transactions(
        self,
        token_address: str,
        holder_address: str
    ) -> List[HolderTransaction]:
        self.calls.append(("transactions", token_address, holder_address))
        self._raise_if_failing(holder_address)
        fixture = self.fixtures.get(token_address, {})
        trades = (fixture.get("trades") or {}).get(holder_address)
        return DataTypeNormalizer.to_holder_transactions(trades)

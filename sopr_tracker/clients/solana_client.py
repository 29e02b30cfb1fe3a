"""
HTTP data client for Solana tokens.

Combines three providers:
- DexScreener for current token price and market context
- GeckoTerminal for price history (pool lookup over REST, OHLCV via the
  geckoterminal-py SDK)
- Solana Tracker data API for holders and per-wallet trade history

Rate limiting is not done here: callers route every method through the
shared RateLimitedRequestQueue.
"""

import logging
from typing import Any, Dict, List, Optional

import aiohttp
from geckoterminal_py import GeckoTerminalAsyncClient

from ..config.models import APIConfig, AnalysisConfig
from ..models.core import Holder, HolderTransaction, PriceHistory, TokenInfo, TransactionPage
from ..utils.data_normalizer import DataTypeNormalizer
from ..utils.errors import ProviderError
from .base import BaseDataClient

logger = logging.getLogger(__name__)


class SolanaDataClient(BaseDataClient):
    """
    Async client for Solana token data.

    Must be used as an async context manager (or closed explicitly) so the
    underlying aiohttp session is released.
    """

    def __init__(self, api_config: APIConfig, analysis_config: Optional[AnalysisConfig] = None):
        """
        Initialize the client with configuration.

        Args:
            api_config: Provider endpoints and transport settings
            analysis_config: Price history timeframe and depth
        """
        self.api_config = api_config
        self.analysis_config = analysis_config or AnalysisConfig()
        self._sdk_client = GeckoTerminalAsyncClient()
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        self._ensure_session()
        return self

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.api_config.timeout)
            )
        return self._session

    def _data_api_headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_config.data_api_key:
            headers["x-api-key"] = self.api_config.data_api_key
        return headers

    async def _get_json(
        self,
        provider: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> Optional[Any]:
        """
        GET a JSON document.

        Returns:
            Decoded JSON, or None when the provider answers 404

        Raises:
            ProviderError: For any other non-success status
        """
        session = self._ensure_session()
        async with session.get(url, params=params, headers=headers) as response:
            if response.status == 404:
                logger.debug(f"{provider} has no data at {url}")
                return None
            if response.status >= 400:
                text = await response.text()
                raise ProviderError(provider, response.status, url, text)
            return await response.json(content_type=None)

    async def get_token_info(self, token_address: str) -> Optional[TokenInfo]:
        """Get current market context from DexScreener."""
        url = f"{self.api_config.dexscreener_url}/{token_address}"
        data = await self._get_json("DexScreener", url)
        return DataTypeNormalizer.to_token_info(token_address, data)

    async def _get_top_pool_address(self, token_address: str) -> Optional[str]:
        url = (
            f"{self.api_config.geckoterminal_url}/networks/{self.api_config.network}"
            f"/tokens/{token_address}/pools"
        )
        data = await self._get_json("GeckoTerminal", url, params={"page": 1})
        pools = DataTypeNormalizer.normalize_response_data(data)
        for pool in pools:
            address = (pool.get("attributes") or {}).get("address")
            if address:
                return address
        return None

    async def get_price_history(self, token_address: str) -> PriceHistory:
        """Get close prices of the token's top pool from GeckoTerminal."""
        pool_address = await self._get_top_pool_address(token_address)
        if pool_address is None:
            logger.info(f"No GeckoTerminal pool found for {token_address}")
            return PriceHistory.not_found(token_address)

        response = await self._sdk_client.get_ohlcv(
            self.api_config.network,
            pool_address,
            self.analysis_config.ohlcv_timeframe,
            limit=self.analysis_config.ohlcv_limit,
            currency="usd",
            token="base"
        )
        points = DataTypeNormalizer.to_price_points(response)
        logger.debug(f"Fetched {len(points)} price points for {token_address} from pool {pool_address}")
        return PriceHistory(token_address=token_address, points=points)

    async def get_holders(self, token_address: str) -> List[Holder]:
        """Get current holders from the Solana Tracker data API."""
        url = f"{self.api_config.data_api_url}/tokens/{token_address}/holders"
        data = await self._get_json("SolanaTracker", url, headers=self._data_api_headers())
        return DataTypeNormalizer.to_holders(data)

    async def get_holder_transactions_page(
        self,
        token_address: str,
        holder_address: str,
        cursor: Optional[str] = None
    ) -> TransactionPage:
        """
        Get one page of a wallet's trades in the token from the Solana Tracker data API.

        Pages run newest first; pass the returned ``next_cursor`` to go back
        in time.
        """
        url = f"{self.api_config.data_api_url}/trades/{token_address}/by-wallet/{holder_address}"
        params = {"cursor": cursor} if cursor is not None else None
        data = await self._get_json("SolanaTracker", url, params=params, headers=self._data_api_headers())
        return TransactionPage(
            transactions=DataTypeNormalizer.to_holder_transactions(data),
            next_cursor=DataTypeNormalizer.next_cursor(data)
        )

    async def get_holder_transactions(
        self,
        token_address: str,
        holder_address: str
    ) -> List[HolderTransaction]:
        """
        Get a wallet's trades in the token, following pages up to ``max_trade_pages``.

        A wallet with more history than that loses its oldest trades.
        """
        transactions: List[HolderTransaction] = []
        cursor = None
        for _ in range(self.analysis_config.max_trade_pages):
            page = await self.get_holder_transactions_page(token_address, holder_address, cursor)
            transactions.extend(page.transactions)
            if not page.has_more:
                return transactions
            cursor = page.next_cursor

        logger.info(
            f"Trade history of {holder_address} truncated at "
            f"{self.analysis_config.max_trade_pages} pages"
        )
        return transactions

"""
Abstract data provider contract consumed by the SOPR engine.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from sopr_tracker.models.core import (
    Holder,
    HolderTransaction,
    PriceHistory,
    TokenInfo,
    TransactionPage,
)


class BaseDataClient(ABC):
    """Abstract base class for on-chain data clients."""

    @abstractmethod
    async def get_token_info(self, token_address: str) -> Optional[TokenInfo]:
        """Get current market context for a token, or None if unknown."""
        pass

    @abstractmethod
    async def get_price_history(self, token_address: str) -> PriceHistory:
        """Get historical prices; unknown tokens yield PriceHistory.not_found()."""
        pass

    @abstractmethod
    async def get_holders(self, token_address: str) -> List[Holder]:
        """Get current holders; an empty list is a valid answer."""
        pass

    @abstractmethod
    async def get_holder_transactions(
        self,
        token_address: str,
        holder_address: str
    ) -> List[HolderTransaction]:
        """Get one holder's buy/sell history for the token."""
        pass

    async def get_holder_transactions_page(
        self,
        token_address: str,
        holder_address: str,
        cursor: Optional[str] = None
    ) -> TransactionPage:
        """
        Get one page of a holder's trade history.

        Providers without pagination return everything as a single page.
        """
        transactions = await self.get_holder_transactions(token_address, holder_address)
        return TransactionPage(transactions=transactions)

    async def close(self) -> None:
        """Release transport resources."""
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

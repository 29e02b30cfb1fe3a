"""
SOPR (Spent Output Profit Ratio) analytics engine.

For every current holder of a token the engine pairs the holder's first buy
with its last sell, prices both from the token's price history and takes
sell price / buy price. The mean over all holders with a valid pair is the
token's current SOPR, which feeds a caller-owned rolling history used for the
average and the trend.
"""

import asyncio
import logging
from typing import Callable, List, Optional, Tuple

from sopr_tracker.clients.base import BaseDataClient
from sopr_tracker.config.models import AnalysisConfig
from sopr_tracker.models.core import (
    Holder,
    HolderOutcome,
    HolderSkipReason,
    HolderTransaction,
    PriceHistory,
    SoprResult,
    TradeDirection,
)
from sopr_tracker.utils.errors import AnalysisCancelledError, UpstreamUnavailableError
from sopr_tracker.utils.request_queue import RateLimitedRequestQueue
from sopr_tracker.utils.statistics import SoprHistory, classify_sopr, compute_trend, mean

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class SoprAnalyzer:
    """
    Compute SOPR for a token from its holders' buy/sell history.

    All provider calls go through the shared request queue. Per-holder
    failures exclude that holder only; failing to get the price history or
    the holder list aborts the computation.
    """

    def __init__(
        self,
        client: BaseDataClient,
        queue: RateLimitedRequestQueue,
        config: Optional[AnalysisConfig] = None
    ):
        """
        Initialize the analyzer.

        Args:
            client: Data provider client
            queue: Rate-limited queue every provider call is submitted to
            config: Analysis parameters
        """
        self.client = client
        self.queue = queue
        self.config = config or AnalysisConfig()

    async def compute_sopr(
        self,
        token_address: str,
        history: SoprHistory,
        progress_callback: Optional[ProgressCallback] = None,
        cancel_event: Optional[asyncio.Event] = None
    ) -> SoprResult:
        """
        Compute SOPR for a token.

        Args:
            token_address: Token mint address
            history: Rolling SOPR history owned by the caller's session
            progress_callback: Called with (processed, total) after each holder
            cancel_event: When set, the computation stops and raises

        Returns:
            SoprResult for this computation

        Raises:
            UpstreamUnavailableError: Price history or holder list fetch failed
            AnalysisCancelledError: cancel_event was set before completion
        """
        self._check_cancelled(cancel_event)

        price_history, holders = await self._fetch_market_data(token_address)
        if not price_history.found:
            logger.warning(f"No price history available for {token_address}; holders cannot be priced")

        selected = self._select_holders(holders)
        logger.info(
            f"Analysing {len(selected)} holders of {token_address} "
            f"({len(price_history.points)} price points)"
        )

        outcomes = await self._process_holders(
            token_address, selected, price_history, progress_callback, cancel_event
        )
        self._check_cancelled(cancel_event)

        ratios = [outcome.ratio for outcome in outcomes if outcome.is_valid]
        current_sopr = mean(ratios)

        # Only a completed computation with a defined value enters the history
        if current_sopr is not None:
            history.record(current_sopr)
        else:
            logger.info(f"SOPR undefined for {token_address}: no holder had a valid buy/sell pair")

        trend = compute_trend(
            history.values,
            window=self.config.trend_window,
            min_samples=self.config.min_trend_samples
        )

        result = SoprResult(
            token_address=token_address,
            current_sopr=current_sopr,
            average_sopr=history.average,
            trend=trend,
            status=classify_sopr(current_sopr, self.config.break_even),
            holder_count=len(selected),
            valid_pair_count=len(ratios),
            outcomes=outcomes
        )

        logger.info(
            f"SOPR for {token_address}: current={_fmt(result.current_sopr)} "
            f"average={_fmt(result.average_sopr)} trend={trend.direction.value} "
            f"valid_pairs={result.valid_pair_count}/{result.holder_count}"
        )
        return result

    def evaluate_holder(
        self,
        holder_address: str,
        transactions: List[HolderTransaction],
        price_history: PriceHistory
    ) -> HolderOutcome:
        """
        Derive one holder's SOPR ratio from its transactions.

        The first buy and the last sell are paired; both must resolve to a
        price for the holder to count.
        """
        if not transactions:
            return HolderOutcome.skipped(holder_address, HolderSkipReason.NO_TRANSACTIONS)

        ordered = sorted(transactions, key=lambda t: t.timestamp)

        buy = next((t for t in ordered if t.direction is TradeDirection.BUY), None)
        if buy is None:
            return HolderOutcome.skipped(holder_address, HolderSkipReason.NO_BUY)

        sell = next((t for t in reversed(ordered) if t.direction is TradeDirection.SELL), None)
        if sell is None:
            return HolderOutcome.skipped(holder_address, HolderSkipReason.NO_SELL)

        if sell.timestamp < buy.timestamp:
            return HolderOutcome.skipped(
                holder_address,
                HolderSkipReason.SELL_BEFORE_BUY,
                f"last sell {sell.timestamp.isoformat()} precedes first buy {buy.timestamp.isoformat()}"
            )

        buy_price = self._resolve_price(buy, price_history)
        sell_price = self._resolve_price(sell, price_history)
        if buy_price is None or sell_price is None:
            missing = "buy" if buy_price is None else "sell"
            return HolderOutcome.skipped(
                holder_address,
                HolderSkipReason.NO_PRICE_MATCH,
                f"no price within {self.config.price_match_tolerance}s of {missing}"
            )

        if buy_price <= 0 or sell_price < 0:
            return HolderOutcome.skipped(
                holder_address,
                HolderSkipReason.INVALID_PRICE,
                f"buy={buy_price} sell={sell_price}"
            )

        return HolderOutcome.success(holder_address, sell_price / buy_price)

    def _resolve_price(self, transaction: HolderTransaction, price_history: PriceHistory) -> Optional[float]:
        price = price_history.price_at(transaction.timestamp, self.config.price_match_tolerance)
        if price is None and self.config.use_event_price_fallback:
            return transaction.price_usd
        return price

    async def _fetch_market_data(self, token_address: str) -> Tuple[PriceHistory, List[Holder]]:
        """Fetch price history and holders; either failing aborts the computation."""
        price_result, holders_result = await asyncio.gather(
            self.queue.submit(
                self.client.get_price_history, token_address, label="price_history"
            ),
            self.queue.submit(
                self.client.get_holders, token_address, label="holders"
            ),
            return_exceptions=True
        )

        for resource, outcome in (("price history", price_result), ("holder list", holders_result)):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, Exception):
                logger.error(f"Failed to fetch {resource} for {token_address}: {outcome}")
                raise UpstreamUnavailableError(resource, token_address, outcome) from outcome

        return price_result, holders_result

    def _select_holders(self, holders: List[Holder]) -> List[Holder]:
        """Deduplicate holders and keep the largest ``max_holders`` balances."""
        unique = {}
        for holder in holders:
            if holder.address not in unique or holder.balance > unique[holder.address].balance:
                unique[holder.address] = holder

        ranked = sorted(unique.values(), key=lambda h: h.balance, reverse=True)
        if len(ranked) > self.config.max_holders:
            logger.info(f"Limiting analysis to the top {self.config.max_holders} of {len(ranked)} holders")
        return ranked[:self.config.max_holders]

    async def _process_holders(
        self,
        token_address: str,
        holders: List[Holder],
        price_history: PriceHistory,
        progress_callback: Optional[ProgressCallback],
        cancel_event: Optional[asyncio.Event]
    ) -> List[HolderOutcome]:
        """Evaluate all holders concurrently; the queue bounds real concurrency."""
        if not holders:
            return []

        total = len(holders)
        processed = 0

        async def process(holder: Holder) -> HolderOutcome:
            nonlocal processed
            outcome = await self._process_holder(token_address, holder, price_history, cancel_event)
            processed += 1
            self._report_progress(progress_callback, processed, total)
            return outcome

        holder_task = asyncio.ensure_future(asyncio.gather(*(process(h) for h in holders)))
        if cancel_event is None:
            return list(await holder_task)

        cancel_waiter = asyncio.ensure_future(cancel_event.wait())
        try:
            await asyncio.wait({holder_task, cancel_waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            holder_task.cancel()
            raise
        finally:
            cancel_waiter.cancel()

        if cancel_event.is_set():
            holder_task.cancel()
            await asyncio.gather(holder_task, return_exceptions=True)
            logger.info(f"SOPR computation for {token_address} cancelled after {processed}/{total} holders")
            raise AnalysisCancelledError(f"SOPR computation for {token_address} was cancelled")

        return list(holder_task.result())

    async def _process_holder(
        self,
        token_address: str,
        holder: Holder,
        price_history: PriceHistory,
        cancel_event: Optional[asyncio.Event]
    ) -> HolderOutcome:
        if cancel_event is not None and cancel_event.is_set():
            return HolderOutcome.skipped(holder.address, HolderSkipReason.CANCELLED)

        try:
            transactions = await self._fetch_transactions(token_address, holder.address, cancel_event)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Excluding holder {holder.address}: transaction fetch failed: {e}")
            return HolderOutcome.skipped(holder.address, HolderSkipReason.FETCH_FAILED, str(e))

        outcome = self.evaluate_holder(holder.address, transactions, price_history)
        if not outcome.is_valid:
            logger.debug(f"Holder {holder.address} excluded: {outcome.skip_reason.value}")
        return outcome

    async def _fetch_transactions(
        self,
        token_address: str,
        holder_address: str,
        cancel_event: Optional[asyncio.Event]
    ) -> List[HolderTransaction]:
        """Fetch trade history page by page, one queue submission per page."""
        transactions: List[HolderTransaction] = []
        cursor = None
        for page_number in range(1, self.config.max_trade_pages + 1):
            page = await self.queue.submit(
                self.client.get_holder_transactions_page,
                token_address,
                holder_address,
                cursor,
                label=f"transactions:{holder_address[:8]}#{page_number}"
            )
            transactions.extend(page.transactions)
            if not page.has_more:
                return transactions
            if cancel_event is not None and cancel_event.is_set():
                return transactions
            cursor = page.next_cursor

        logger.debug(
            f"Trade history of {holder_address} truncated at {self.config.max_trade_pages} pages; "
            f"its earliest buy may be missing"
        )
        return transactions

    def _report_progress(self, callback: Optional[ProgressCallback], processed: int, total: int) -> None:
        if callback is None:
            return
        try:
            callback(processed, total)
        except Exception as e:
            logger.warning(f"Progress callback failed: {e}")

    def _check_cancelled(self, cancel_event: Optional[asyncio.Event]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise AnalysisCancelledError("SOPR computation was cancelled")


def _fmt(value: Optional[float]) -> str:
    return "n/a" if value is None else f"{value:.4f}"

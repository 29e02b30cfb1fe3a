"""
Data type normalization for raw provider responses.

Providers disagree on field names, timestamp units and container shapes
(DataFrames from the GeckoTerminal SDK, JSON:API dicts, bare lists). This
module turns them into the core data models.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pandas as pd

from sopr_tracker.models.core import (
    Holder, HolderTransaction, PricePoint, TokenInfo, TradeDirection
)

logger = logging.getLogger(__name__)

BUY_KEYWORDS = ("buy", "receive", "mint", "purchase")
SELL_KEYWORDS = ("sell", "send")

TIMESTAMP_KEYS = ("time", "timestamp", "ts", "blockTime", "block_timestamp")
DIRECTION_KEYS = ("type", "side", "direction")
PRICE_KEYS = ("priceUsd", "price_usd", "price")
AMOUNT_KEYS = ("amount", "tokenAmount", "token_amount", "uiAmount")
HOLDER_ADDRESS_KEYS = ("wallet", "owner", "address", "holder")
BALANCE_KEYS = ("amount", "balance", "uiAmount")

# Seconds-based epochs stay below this until the year 33658
MILLISECOND_THRESHOLD = 1e12


def _first_present(record: Dict[str, Any], keys) -> Any:
    for key in keys:
        value = record.get(key)
        if value is not None and value != "":
            return value
    return None


class DataTypeNormalizer:
    """
    Utility class for normalizing provider payloads.

    Handles DataFrame/list/dict response shapes and converts individual
    records into HolderTransaction, Holder, PricePoint and TokenInfo models.
    """

    @staticmethod
    def normalize_response_data(data: Any, key: Optional[str] = None) -> List[Dict]:
        """
        Convert API response data to a consistent List[Dict] format.

        Args:
            data: API response data (DataFrame, List, Dict, or None)
            key: Field holding the records when the response is a dict

        Returns:
            List[Dict] representation of the data

        Raises:
            ValueError: If data type cannot be normalized
        """
        if data is None:
            return []

        if isinstance(data, pd.DataFrame):
            logger.debug(f"Converting DataFrame with {len(data)} rows to list of dicts")
            return data.to_dict('records')

        if isinstance(data, list):
            return data

        if isinstance(data, dict):
            if key and key in data:
                return DataTypeNormalizer.normalize_response_data(data[key])
            if 'data' in data:
                return DataTypeNormalizer.normalize_response_data(data['data'])
            return [data]

        raise ValueError(f"Unsupported data type: {type(data)}")

    @staticmethod
    def safe_float(value: Any) -> Optional[float]:
        """Convert a value to float, returning None when impossible."""
        if value is None:
            return None
        try:
            result = float(value)
        except (TypeError, ValueError):
            return None
        if pd.isna(result):
            return None
        return result

    @staticmethod
    def parse_timestamp(value: Any) -> Optional[datetime]:
        """
        Parse a provider timestamp into an aware UTC datetime.

        Accepts epoch seconds or milliseconds (int, float or numeric string),
        ISO-8601 strings and datetime / pandas Timestamp objects.
        """
        if value is None or value is pd.NaT:
            return None

        if isinstance(value, pd.Timestamp):
            if pd.isna(value):
                return None
            value = value.to_pydatetime()

        if isinstance(value, datetime):
            if value.tzinfo is None:
                return value.replace(tzinfo=timezone.utc)
            return value.astimezone(timezone.utc)

        numeric = DataTypeNormalizer.safe_float(value)
        if numeric is not None:
            if numeric > MILLISECOND_THRESHOLD:
                numeric /= 1000.0
            try:
                return datetime.fromtimestamp(numeric, tz=timezone.utc)
            except (OverflowError, OSError, ValueError):
                return None

        if isinstance(value, str):
            try:
                parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
            except ValueError:
                return None
            return DataTypeNormalizer.parse_timestamp(parsed)

        return None

    @staticmethod
    def parse_direction(value: Any) -> TradeDirection:
        """Map a provider's trade type label to a TradeDirection."""
        if isinstance(value, TradeDirection):
            return value
        label = str(value or "").lower()
        if any(keyword in label for keyword in BUY_KEYWORDS):
            return TradeDirection.BUY
        if any(keyword in label for keyword in SELL_KEYWORDS):
            return TradeDirection.SELL
        return TradeDirection.UNKNOWN

    @staticmethod
    def to_holder_transaction(record: Dict[str, Any]) -> Optional[HolderTransaction]:
        """Build a HolderTransaction from a raw trade record, or None if unusable."""
        if not isinstance(record, dict):
            return None

        timestamp = DataTypeNormalizer.parse_timestamp(_first_present(record, TIMESTAMP_KEYS))
        if timestamp is None:
            return None

        price = DataTypeNormalizer.safe_float(_first_present(record, PRICE_KEYS))
        amount = DataTypeNormalizer.safe_float(_first_present(record, AMOUNT_KEYS))

        return HolderTransaction(
            timestamp=timestamp,
            direction=DataTypeNormalizer.parse_direction(_first_present(record, DIRECTION_KEYS)),
            price_usd=price,
            amount=amount if amount is not None else 0.0
        )

    @staticmethod
    def to_holder_transactions(response: Any) -> List[HolderTransaction]:
        """Convert a trade history response into transactions, dropping bad rows."""
        records = DataTypeNormalizer.normalize_response_data(response, key="trades")
        transactions = []
        for record in records:
            transaction = DataTypeNormalizer.to_holder_transaction(record)
            if transaction is None:
                logger.debug(f"Skipping unparseable trade record: {record}")
                continue
            transactions.append(transaction)
        return transactions

    @staticmethod
    def next_cursor(response: Any) -> Optional[str]:
        """Cursor of the next trade page, or None on the last page."""
        if not isinstance(response, dict) or not response.get("hasNextPage"):
            return None
        cursor = response.get("nextCursor")
        if cursor is None or cursor == "":
            return None
        return str(cursor)

    @staticmethod
    def to_holder(record: Dict[str, Any]) -> Optional[Holder]:
        """Build a Holder from a raw holder record, or None if unusable."""
        if not isinstance(record, dict):
            return None

        address = _first_present(record, HOLDER_ADDRESS_KEYS)
        if not address:
            return None

        balance = DataTypeNormalizer.safe_float(_first_present(record, BALANCE_KEYS))
        return Holder(address=str(address), balance=balance if balance is not None else 0.0)

    @staticmethod
    def to_holders(response: Any) -> List[Holder]:
        """Convert a holder list response, keeping only nonzero balances."""
        records = DataTypeNormalizer.normalize_response_data(response, key="accounts")
        holders = []
        for record in records:
            holder = DataTypeNormalizer.to_holder(record)
            if holder is None or holder.balance <= 0:
                continue
            holders.append(holder)
        return holders

    @staticmethod
    def to_price_points(response: Any) -> List[PricePoint]:
        """
        Convert an OHLCV response into close-price points.

        Handles the SDK's DataFrame (``timestamp``/``close`` columns), the raw
        JSON:API dict (``data.attributes.ohlcv_list``) and bare
        ``[timestamp, open, high, low, close, volume]`` lists.
        """
        if response is None:
            return []

        rows: List[Any]
        if isinstance(response, pd.DataFrame):
            if response.empty:
                return []
            missing = [col for col in ('timestamp', 'close') if col not in response.columns]
            if missing:
                logger.error(f"Missing required columns in OHLCV DataFrame: {missing}")
                return []
            rows = [(row['timestamp'], row['close']) for _, row in response.iterrows()]
        elif isinstance(response, dict):
            attributes = (response.get('data') or {}).get('attributes') or {}
            ohlcv_list = attributes.get('ohlcv_list') or []
            rows = [(entry[0], entry[4]) for entry in ohlcv_list
                    if isinstance(entry, (list, tuple)) and len(entry) >= 5]
        elif isinstance(response, list):
            rows = []
            for entry in response:
                if isinstance(entry, dict):
                    rows.append((_first_present(entry, TIMESTAMP_KEYS),
                                 _first_present(entry, ('close', 'price', 'priceUsd', 'value'))))
                elif isinstance(entry, (list, tuple)) and len(entry) >= 5:
                    rows.append((entry[0], entry[4]))
                elif isinstance(entry, (list, tuple)) and len(entry) == 2:
                    rows.append((entry[0], entry[1]))
        else:
            logger.error(f"Unsupported OHLCV response type: {type(response)}")
            return []

        points = []
        for raw_timestamp, raw_price in rows:
            timestamp = DataTypeNormalizer.parse_timestamp(raw_timestamp)
            price = DataTypeNormalizer.safe_float(raw_price)
            if timestamp is None or price is None:
                continue
            points.append(PricePoint(timestamp=timestamp, price_usd=price))
        return points

    @staticmethod
    def to_token_info(address: str, response: Any) -> Optional[TokenInfo]:
        """
        Build TokenInfo from a DexScreener token response.

        Returns None when the response lists no trading pairs.
        """
        if not isinstance(response, dict):
            return None

        pairs = response.get('pairs') or []
        if not pairs:
            return None

        # DexScreener orders pairs by relevance; the first is the main market
        pair = pairs[0]
        base_token = pair.get('baseToken') or {}
        liquidity = pair.get('liquidity') or {}

        return TokenInfo(
            address=address,
            symbol=base_token.get('symbol') or "?",
            name=base_token.get('name') or "Unknown",
            price_usd=DataTypeNormalizer.safe_float(pair.get('priceUsd')),
            pair_address=pair.get('pairAddress'),
            dex_id=pair.get('dexId'),
            liquidity_usd=DataTypeNormalizer.safe_float(liquidity.get('usd')),
            url=pair.get('url')
        )

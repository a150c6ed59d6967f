"""
Tradekit - ccxt Structure Adapters.

============================================================
PURPOSE
============================================================
Map ccxt's unified structures (ticker, balance, order dicts)
onto the tradekit data model.

Adapters that can reject their input return a Result carrying
TRADEKIT_ERROR / CONVERSION_ERROR; they never raise.

============================================================
"""

import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .errors import conversion_error
from .result import Err, Ok, Result
from .types import (
    Balance,
    CurrencyBalance,
    Order,
    OrderSide,
    OrderStatus,
    OrderType,
    Ticker,
)


DAY_MS = 86_400_000

# ccxt ticker fields a quote cannot do without
REQUIRED_TICKER_FIELDS = (
    "symbol",
    "last",
    "close",
    "change",
    "percentage",
    "high",
    "low",
    "baseVolume",
    "quoteVolume",
    "open",
)

# Top-level keys of a ccxt balance that are not currencies
BALANCE_META_KEYS = {"info", "timestamp", "datetime", "free", "used", "total", "debt"}

CCXT_ORDER_STATUS = {
    "open": OrderStatus.NEW,
    "closed": OrderStatus.FILLED,
    "canceled": OrderStatus.CANCELED,
}


def now_ms() -> int:
    return int(time.time() * 1000)


def ms_to_datetime(timestamp_ms: float) -> datetime:
    """Epoch milliseconds to an aware UTC datetime."""
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)


def _parse_iso(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


# ============================================================
# TICKER
# ============================================================

def ccxt_ticker_adapter(ticker: Dict[str, Any]) -> Result:
    """
    Convert a ccxt ticker into a Ticker.

    A field counts as missing only when it is None, so a genuine
    zero change is accepted.

    Args:
        ticker: ccxt ticker structure

    Returns:
        Ok(Ticker), or Err(CONVERSION_ERROR) when data is missing
    """
    missing = [name for name in REQUIRED_TICKER_FIELDS if ticker.get(name) is None]
    if missing:
        return Err(conversion_error("Missing ticker data"))

    timestamp = ticker.get("timestamp")
    if timestamp is None:
        timestamp = now_ms()
    timestamp = int(timestamp)

    return Ok(Ticker(
        symbol=ticker["symbol"],
        timestamp=timestamp,
        datetime=_parse_iso(ticker.get("datetime")) or ms_to_datetime(timestamp),
        last=float(ticker["last"]),
        close=float(ticker["close"]),
        abs_change=float(ticker["change"]),
        perc_change=float(ticker["percentage"]),
        high=float(ticker["high"]),
        low=float(ticker["low"]),
        volume=float(ticker["baseVolume"]),
        base_volume=float(ticker["baseVolume"]),
        quote_volume=float(ticker["quoteVolume"]),
        open=float(ticker["open"]),
        open_time=ms_to_datetime(timestamp - DAY_MS),
        info=ticker.get("info") or {},
    ))


# ============================================================
# BALANCE
# ============================================================

def ccxt_balance_adapter(balances: Dict[str, Any]) -> Balance:
    """
    Convert a ccxt balance into a Balance.

    Entries without any of free/used/total are skipped; missing
    amounts default to 0.
    """
    currencies: Dict[str, CurrencyBalance] = {}

    for code, entry in balances.items():
        if code in BALANCE_META_KEYS or not isinstance(entry, dict):
            continue
        if all(entry.get(name) is None for name in ("free", "used", "total")):
            continue
        currencies[code] = CurrencyBalance(
            free=float(entry.get("free") or 0),
            used=float(entry.get("used") or 0),
            total=float(entry.get("total") or 0),
        )

    timestamp = now_ms()
    return Balance(
        currencies=currencies,
        timestamp=timestamp,
        datetime=ms_to_datetime(timestamp),
    )


# ============================================================
# ORDER
# ============================================================

def ccxt_order_adapter(order: Dict[str, Any]) -> Result:
    """
    Convert a ccxt order into an Order.

    Args:
        order: ccxt order structure

    Returns:
        Ok(Order), or Err(CONVERSION_ERROR) for an unknown
        status, type or side
    """
    status = CCXT_ORDER_STATUS.get(order.get("status"))
    if status is None:
        return Err(conversion_error("Unknown order status"))

    try:
        order_type = OrderType(order.get("type"))
    except ValueError:
        return Err(conversion_error("Unknown order type"))

    try:
        side = OrderSide(order.get("side"))
    except ValueError:
        return Err(conversion_error("Unknown order side"))

    timestamp = order.get("timestamp")
    if timestamp is not None:
        timestamp = int(timestamp)

    return Ok(Order(
        order_id=str(order.get("id")),
        symbol=order.get("symbol"),
        price=order.get("price"),
        quantity=order.get("amount"),
        order_type=order_type,
        side=side,
        status=status,
        timestamp=timestamp,
        datetime=_parse_iso(order.get("datetime")),
        client_order_id=order.get("clientOrderId"),
    ))

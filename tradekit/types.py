"""
Tradekit - Types.

============================================================
PURPOSE
============================================================
Unified data model shared by every venue.

All venue-native payloads (ccxt structures, push-socket
messages) are converted into these types before they reach
the caller.

============================================================
"""

from datetime import datetime
from typing import Optional, Dict, Any
from dataclasses import dataclass, field
from enum import Enum


# ============================================================
# ORDER TYPES
# ============================================================

class OrderSide(Enum):
    """Order side."""

    BUY = "buy"
    SELL = "sell"


class OrderType(Enum):
    """Order type."""

    MARKET = "market"
    LIMIT = "limit"
    STOP = "stop"
    STOP_LIMIT = "stop-limit"


class OrderStatus(Enum):
    """
    Unified order status.

    Terminal once FILLED or CANCELED.
    """

    NEW = "new"
    """Accepted by the venue, not yet filled."""

    FILLED = "filled"
    """Fully executed."""

    CANCELED = "canceled"
    """Canceled before completion."""

    @property
    def is_terminal(self) -> bool:
        return self in (OrderStatus.FILLED, OrderStatus.CANCELED)


# ============================================================
# ORDER
# ============================================================

@dataclass
class Order:
    """Unified order record."""

    order_id: str
    """Venue-assigned order ID."""

    symbol: str
    """Unified symbol, e.g. BTC/USDT:USDT."""

    price: Optional[float]
    """Average or limit price (may be None for unfilled market orders)."""

    quantity: Optional[float]
    """Ordered amount in base currency."""

    order_type: OrderType
    side: OrderSide
    status: OrderStatus

    timestamp: Optional[int]
    """Creation time in epoch milliseconds."""

    datetime: Optional[datetime]

    client_order_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "order_id": self.order_id,
            "symbol": self.symbol,
            "price": self.price,
            "quantity": self.quantity,
            "order_type": self.order_type.value,
            "side": self.side.value,
            "status": self.status.value,
            "timestamp": self.timestamp,
            "datetime": self.datetime.isoformat() if self.datetime else None,
            "client_order_id": self.client_order_id,
        }


# ============================================================
# TICKER
# ============================================================

@dataclass
class Ticker:
    """
    Unified 24h ticker.

    Produced both by REST quotes and by streaming normalizers.
    """

    symbol: str
    """Symbol as requested by the caller."""

    timestamp: int
    """Epoch milliseconds of the update."""

    datetime: datetime

    last: float
    close: float

    abs_change: float
    """Absolute change over the window (last - open)."""

    perc_change: float
    """Percent change over the window."""

    high: float
    low: float
    volume: float
    base_volume: float
    quote_volume: float
    open: float

    open_time: datetime
    """Start of the rolling 24h window."""

    info: Dict[str, Any] = field(default_factory=dict)
    """Raw venue payload."""


# ============================================================
# BALANCE
# ============================================================

@dataclass
class CurrencyBalance:
    """Balance of a single currency."""

    free: float = 0.0
    used: float = 0.0
    total: float = 0.0


@dataclass
class Balance:
    """Account balance across currencies."""

    currencies: Dict[str, CurrencyBalance]
    timestamp: int
    datetime: datetime

    def filtered(self, currencies) -> "Balance":
        """
        Restrict to the given currencies.

        Currencies absent from this balance are silently omitted.
        """
        wanted = set(currencies)
        return Balance(
            currencies={
                code: value
                for code, value in self.currencies.items()
                if code in wanted
            },
            timestamp=self.timestamp,
            datetime=self.datetime,
        )

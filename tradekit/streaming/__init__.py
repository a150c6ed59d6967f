"""
Tradekit - Streaming Package.

AVAILABLE STREAMS:
- BinanceTickerStream: 24hr ticker, complete messages
- BybitTickerStream: snapshot + delta
- BitgetTickerStream: snapshot + delta
"""

from .socket import ConnectionState, PushSocket, SocketHandler
from .base import SnapshotDeltaTickerStream, TickerStream
from .binance import BinanceSocket, BinanceTickerStream
from .bybit import BybitSocket, BybitTickerStream
from .bitget import BitgetSocket, BitgetTickerStream


__all__ = [
    "ConnectionState",
    "PushSocket",
    "SocketHandler",
    "TickerStream",
    "SnapshotDeltaTickerStream",
    "BinanceSocket",
    "BinanceTickerStream",
    "BybitSocket",
    "BybitTickerStream",
    "BitgetSocket",
    "BitgetTickerStream",
]

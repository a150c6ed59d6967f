"""
Tradekit - Ticker Streams.

============================================================
PURPOSE
============================================================
Turn venue push messages into unified Ticker updates.

- TickerStream: callbacks, symbol mapping, lifecycle
- SnapshotDeltaTickerStream: rebuilds full quotes from venues
  that push a snapshot followed by partial deltas

============================================================
SNAPSHOT / DELTA
============================================================
Per symbol:
- snapshot: replace state, emit
- delta:    merge into state and emit, only if a snapshot
            was seen; otherwise ignored
Only symbols touched by a message are emitted.

============================================================
"""

import inspect
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterable, List, Optional

from ..config import StreamConfig
from ..errors import WebSocketError
from ..types import Ticker
from .socket import PushSocket, SocketHandler


logger = logging.getLogger(__name__)


TickerCallback = Callable[[Ticker], Any]
ErrorCallback = Callable[[WebSocketError], Any]
EventCallback = Callable[[], Any]


def to_float(value: Any) -> float:
    """Venue numeric field (often a string) to float; missing is 0."""
    if value is None or value == "":
        return 0.0
    return float(value)


async def invoke(callback: Optional[Callable], *args: Any) -> None:
    """Call a sync or async callback; its failures are logged."""
    if callback is None:
        return
    try:
        result = callback(*args)
        if inspect.isawaitable(result):
            await result
    except Exception as e:
        logger.error(f"Callback error in {getattr(callback, '__name__', callback)}: {e}", exc_info=True)


# ============================================================
# TICKER STREAM
# ============================================================

class TickerStream(SocketHandler, ABC):
    """
    Ticker subscription on one venue.

    Emitted tickers carry the symbol exactly as requested. After
    close() no further event is processed.
    """

    exchange_id: str = ""

    def __init__(
        self,
        symbols: Iterable[str],
        on_update: TickerCallback,
        on_subscription: Optional[EventCallback] = None,
        on_close: Optional[EventCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        sandbox: bool = False,
        socket: Optional[PushSocket] = None,
        config: Optional[StreamConfig] = None,
    ):
        """
        Initialize stream.

        Args:
            symbols: Unified symbols, e.g. ["BTC/USDT:USDT"]
            on_update: Receives each Ticker
            on_subscription: Called when the subscription is live
            on_close: Called once when the stream ends
            on_error: Receives WebSocketError values
            sandbox: Use the venue's test environment
            socket: Pre-built socket (tests)
            config: Socket behavior
        """
        self._symbols = list(symbols)
        self._on_update = on_update
        self._on_subscription = on_subscription
        self._on_close = on_close
        self._on_error = on_error
        self._sandbox = sandbox

        self._symbol_map: Dict[str, str] = {
            self.wire_symbol(symbol): symbol for symbol in self._symbols
        }

        if socket is None:
            socket = self.create_socket(config or StreamConfig())
        socket.bind(self)
        self._socket = socket

        self._closed = False

    # --------------------------------------------------------
    # VENUE HOOKS
    # --------------------------------------------------------

    @abstractmethod
    def wire_symbol(self, symbol: str) -> str:
        """Unified symbol to the venue's instrument id."""
        pass

    @abstractmethod
    def topics(self) -> List[str]:
        """Subscription topics for the requested symbols."""
        pass

    @abstractmethod
    def create_socket(self, config: StreamConfig) -> PushSocket:
        pass

    @abstractmethod
    def parse_error(self, raw: Any) -> WebSocketError:
        """Venue socket-error parser."""
        pass

    @abstractmethod
    async def process_message(self, data: Any) -> None:
        """Handle one decoded venue message."""
        pass

    # --------------------------------------------------------
    # LIFECYCLE
    # --------------------------------------------------------

    @property
    def symbols(self) -> List[str]:
        return list(self._symbols)

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def socket(self) -> PushSocket:
        return self._socket

    def requested_symbol(self, wire_symbol: str) -> str:
        return self._symbol_map.get(wire_symbol, wire_symbol)

    async def start(self) -> "TickerStream":
        """Connect and subscribe."""
        await self._socket.subscribe(self.topics())
        await self._socket.connect()
        return self

    async def close(self) -> None:
        """Stop processing, tear down the socket and fire on_close once."""
        if self._closed:
            return
        self._closed = True
        await self._socket.disconnect()
        logger.info(f"[{self.exchange_id}] Ticker stream closed ({', '.join(self._symbols)})")
        await invoke(self._on_close)

    async def __aenter__(self) -> "TickerStream":
        return await self.start()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # --------------------------------------------------------
    # SOCKET EVENTS
    # --------------------------------------------------------

    async def handle_open(self) -> None:
        if self._closed:
            return
        logger.info(f"[{self.exchange_id}] Subscribed to tickers: {', '.join(self._symbols)}")
        await invoke(self._on_subscription)

    async def handle_close(self) -> None:
        """Socket ended for good."""
        if self._closed:
            return
        self._closed = True
        logger.warning(f"[{self.exchange_id}] Ticker stream ended by the socket")
        await invoke(self._on_close)

    async def handle_error(self, raw: Any) -> None:
        if self._closed:
            return
        await self.emit_error(raw)

    async def handle_message(self, data: Any) -> None:
        if self._closed:
            return
        try:
            await self.process_message(data)
        except Exception as e:
            logger.warning(
                f"[{self.exchange_id}] Malformed message skipped: {type(e).__name__}: {e}"
            )

    # --------------------------------------------------------
    # EMISSION
    # --------------------------------------------------------

    async def emit(self, ticker: Ticker) -> None:
        await invoke(self._on_update, ticker)

    async def emit_error(self, raw: Any) -> None:
        error = self.parse_error(raw)
        logger.error(f"[{self.exchange_id}] Stream error: {error}")
        await invoke(self._on_error, error)


# ============================================================
# SNAPSHOT / DELTA STREAM
# ============================================================

class SnapshotDeltaTickerStream(TickerStream):
    """Ticker stream for venues that push partial updates."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._state: Dict[str, Dict[str, Any]] = {}

    @abstractmethod
    def ticker_from_state(self, state: Dict[str, Any]) -> Ticker:
        """Build a Ticker from a complete venue state."""
        pass

    def state(self, key: str) -> Optional[Dict[str, Any]]:
        """Copy of the accumulated state for a key."""
        current = self._state.get(key)
        return dict(current) if current is not None else None

    def apply_snapshot(self, key: str, data: Dict[str, Any]) -> bool:
        self._state[key] = dict(data)
        return True

    def apply_delta(self, key: str, data: Dict[str, Any]) -> bool:
        """
        Merge a partial update into existing state.

        Returns:
            False when no snapshot has been seen for the key
        """
        current = self._state.get(key)
        if current is None:
            logger.warning(f"[{self.exchange_id}] Delta for {key} before snapshot, ignored")
            return False
        current.update(data)
        return True

    async def emit_keys(self, keys: Iterable[str]) -> None:
        """Emit one ticker per touched key, in order, without repeats."""
        seen = set()
        for key in keys:
            if key in seen or key not in self._state:
                continue
            seen.add(key)
            await self.emit(self.ticker_from_state(self._state[key]))

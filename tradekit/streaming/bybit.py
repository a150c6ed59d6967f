"""
Tradekit - Bybit Ticker Stream.

============================================================
PURPOSE
============================================================
V5 linear tickers (tickers.<SYMBOL>). Bybit pushes one
snapshot per symbol, then deltas carrying only changed
fields:

    {"topic": "tickers.BTCUSDT", "type": "snapshot",
     "data": {"symbol": "BTCUSDT", "lastPrice": "...", ...},
     "ts": 1673853746003}

The envelope "ts" is folded into the symbol state.

============================================================
"""

import logging
from typing import Any, Dict, List

from ..adapters import DAY_MS, ms_to_datetime
from ..config import StreamConfig
from ..errors import WebSocketError, parse_bybit_socket_error
from ..types import Ticker
from .base import SnapshotDeltaTickerStream, to_float
from .socket import Payload, PushSocket


logger = logging.getLogger(__name__)


class BybitSocket(PushSocket):
    """Bybit V5 public linear stream."""

    PUBLIC_URL = "wss://stream.bybit.com/v5/public/linear"
    TESTNET_PUBLIC_URL = "wss://stream-testnet.bybit.com/v5/public/linear"

    def __init__(self, testnet: bool = False, **kwargs):
        super().__init__(self.TESTNET_PUBLIC_URL if testnet else self.PUBLIC_URL, **kwargs)

    def subscribe_message(self, topics: List[str]) -> Payload:
        return {"op": "subscribe", "args": topics}

    def ping_payload(self) -> Payload:
        return {"op": "ping"}


class BybitTickerStream(SnapshotDeltaTickerStream):
    """Bybit linear ticker stream."""

    exchange_id = "bybit"

    def wire_symbol(self, symbol: str) -> str:
        """BTC/USDT:USDT -> BTCUSDT"""
        return symbol.replace("/", "").split(":", 1)[0].upper()

    def topics(self) -> List[str]:
        return [f"tickers.{wire}" for wire in self._symbol_map]

    def create_socket(self, config: StreamConfig) -> PushSocket:
        return BybitSocket(testnet=self._sandbox, config=config)

    def parse_error(self, raw: Any) -> WebSocketError:
        return parse_bybit_socket_error(raw)

    async def process_message(self, data: Any) -> None:
        if not isinstance(data, dict):
            return

        # Operation replies: subscribe acks, pongs and failures
        if "op" in data or "success" in data:
            if data.get("success") is False:
                await self.emit_error(data)
            return

        topic = data.get("topic", "")
        if not topic.startswith("tickers."):
            return

        payload = dict(data["data"])
        key = payload.setdefault("symbol", topic.split(".", 1)[1])
        if "ts" in data:
            payload["ts"] = data["ts"]

        if data.get("type") == "snapshot":
            touched = self.apply_snapshot(key, payload)
        else:
            touched = self.apply_delta(key, payload)

        if touched:
            await self.emit_keys([key])

    def ticker_from_state(self, state: Dict[str, Any]) -> Ticker:
        timestamp = int(state["ts"])
        last = to_float(state.get("lastPrice"))
        open_ = to_float(state.get("prevPrice24h"))
        return Ticker(
            symbol=self.requested_symbol(state["symbol"]),
            timestamp=timestamp,
            datetime=ms_to_datetime(timestamp),
            last=last,
            close=last,
            abs_change=last - open_,
            perc_change=to_float(state.get("price24hPcnt")) * 100,
            high=to_float(state.get("highPrice24h")),
            low=to_float(state.get("lowPrice24h")),
            volume=to_float(state.get("volume24h")),
            base_volume=to_float(state.get("volume24h")),
            quote_volume=to_float(state.get("turnover24h")),
            open=open_,
            open_time=ms_to_datetime(timestamp - DAY_MS),
            info=dict(state),
        )

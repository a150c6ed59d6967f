"""
Tradekit - Bitget Ticker Stream.

============================================================
PURPOSE
============================================================
V2 public "ticker" channel for USDT-M futures. Bitget pushes
a snapshot and then deltas, each carrying a list of rows:

    {"action": "snapshot",
     "arg": {"instType": "USDT-FUTURES", "channel": "ticker",
             "instId": "BTCUSDT"},
     "data": [{"instId": "BTCUSDT", "lastPr": "...", ...}],
     "ts": 1695716760565}

State is keyed by "<instId>--<instType>".

Demo trading uses the "S" product type and coin prefixes.

============================================================
"""

import logging
from typing import Any, Dict, List

from ..adapters import DAY_MS, ms_to_datetime
from ..config import StreamConfig
from ..connectors.bitget import normalize_symbol
from ..errors import WebSocketError, parse_bitget_socket_error
from ..types import Ticker
from .base import SnapshotDeltaTickerStream, to_float
from .socket import Payload, PushSocket


logger = logging.getLogger(__name__)


class BitgetSocket(PushSocket):
    """
    Bitget V2 public stream.

    Topics are "<instType>:<channel>:<instId>".
    """

    PUBLIC_URL = "wss://ws.bitget.com/v2/ws/public"
    DEMO_PUBLIC_URL = "wss://wspap.bitget.com/v2/ws/public"

    def __init__(self, demo: bool = False, **kwargs):
        super().__init__(self.DEMO_PUBLIC_URL if demo else self.PUBLIC_URL, **kwargs)

    def subscribe_message(self, topics: List[str]) -> Payload:
        args = []
        for topic in topics:
            inst_type, channel, inst_id = topic.split(":")
            args.append({"instType": inst_type, "channel": channel, "instId": inst_id})
        return {"op": "subscribe", "args": args}

    def ping_payload(self) -> Payload:
        return "ping"

    def is_pong(self, data: str) -> bool:
        return data == "pong"


class BitgetTickerStream(SnapshotDeltaTickerStream):
    """Bitget USDT-M futures ticker stream."""

    exchange_id = "bitget"

    @property
    def inst_type(self) -> str:
        return f"{'S' if self._sandbox else ''}USDT-FUTURES"

    def wire_symbol(self, symbol: str) -> str:
        return normalize_symbol(symbol, self._sandbox)

    def topics(self) -> List[str]:
        return [f"{self.inst_type}:ticker:{wire}" for wire in self._symbol_map]

    def create_socket(self, config: StreamConfig) -> PushSocket:
        return BitgetSocket(demo=self._sandbox, config=config)

    def parse_error(self, raw: Any) -> WebSocketError:
        return parse_bitget_socket_error(raw)

    async def process_message(self, data: Any) -> None:
        if not isinstance(data, dict):
            return

        event = data.get("event")
        if event == "error":
            await self.emit_error(data)
            return
        if event is not None:
            logger.debug(f"[bitget] Event: {event}")
            return

        action = data.get("action")
        if action not in ("snapshot", "update"):
            return

        arg = data.get("arg")
        inst_type = arg.get("instType", self.inst_type) if isinstance(arg, dict) else self.inst_type
        touched = []

        for row in data.get("data") or []:
            if not isinstance(row, dict):
                continue
            inst_id = row.get("instId")
            if not inst_id:
                continue
            key = f"{inst_id}--{inst_type}"
            if action == "snapshot":
                applied = self.apply_snapshot(key, row)
            else:
                applied = self.apply_delta(key, row)
            if applied:
                touched.append(key)

        await self.emit_keys(touched)

    def ticker_from_state(self, state: Dict[str, Any]) -> Ticker:
        timestamp = int(state["ts"])
        last = to_float(state.get("lastPr"))
        open_ = to_float(state.get("open24h"))
        abs_change = last - open_
        return Ticker(
            symbol=self.requested_symbol(state["instId"]),
            timestamp=timestamp,
            datetime=ms_to_datetime(timestamp),
            last=last,
            close=last,
            abs_change=abs_change,
            perc_change=(abs_change / open_) * 100 if open_ else 0.0,
            high=to_float(state.get("high24h")),
            low=to_float(state.get("low24h")),
            volume=to_float(state.get("baseVolume")),
            base_volume=to_float(state.get("baseVolume")),
            quote_volume=to_float(state.get("quoteVolume")),
            open=open_,
            open_time=ms_to_datetime(timestamp - DAY_MS),
            info=dict(state),
        )

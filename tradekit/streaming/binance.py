"""
Tradekit - Binance Ticker Stream.

============================================================
PURPOSE
============================================================
USD-M futures 24hr rolling ticker (<symbol>@ticker). Every
message is a complete quote, so no state is kept.

Message fields:
    E event time, s symbol, c last, o open, h high, l low,
    p price change, P change percent, v base volume,
    q quote volume, O window open time

============================================================
"""

import logging
from typing import Any, Dict, List

from ..adapters import DAY_MS, ms_to_datetime
from ..config import StreamConfig
from ..errors import WebSocketError, parse_binance_socket_error
from ..types import Ticker
from .base import TickerStream, to_float
from .socket import Payload, PushSocket


logger = logging.getLogger(__name__)


class BinanceSocket(PushSocket):
    """Binance USD-M futures market stream."""

    MAINNET_URL = "wss://fstream.binance.com/ws"
    TESTNET_URL = "wss://stream.binancefuture.com/ws"

    def __init__(self, testnet: bool = False, **kwargs):
        super().__init__(self.TESTNET_URL if testnet else self.MAINNET_URL, **kwargs)
        self._message_id = 0

    def subscribe_message(self, topics: List[str]) -> Payload:
        self._message_id += 1
        return {
            "method": "SUBSCRIBE",
            "params": topics,
            "id": self._message_id,
        }


class BinanceTickerStream(TickerStream):
    """Binance 24hr ticker stream."""

    exchange_id = "binance"

    def wire_symbol(self, symbol: str) -> str:
        """BTC/USDT:USDT -> BTCUSDT"""
        return symbol.replace("/", "").split(":", 1)[0].upper()

    def topics(self) -> List[str]:
        return [f"{wire.lower()}@ticker" for wire in self._symbol_map]

    def create_socket(self, config: StreamConfig) -> PushSocket:
        return BinanceSocket(testnet=self._sandbox, config=config)

    def parse_error(self, raw: Any) -> WebSocketError:
        return parse_binance_socket_error(raw)

    async def process_message(self, data: Any) -> None:
        if not isinstance(data, dict):
            return

        if "error" in data:
            await self.emit_error(data)
            return

        # Subscription acknowledgement: {"result": null, "id": 1}
        if "result" in data:
            logger.debug(f"[binance] Subscription acknowledged (id={data.get('id')})")
            return

        if data.get("e") != "24hrTicker":
            return

        await self.emit(self.ticker_from_message(data))

    def ticker_from_message(self, data: Dict[str, Any]) -> Ticker:
        timestamp = int(data["E"])
        last = to_float(data["c"])
        return Ticker(
            symbol=self.requested_symbol(data["s"]),
            timestamp=timestamp,
            datetime=ms_to_datetime(timestamp),
            last=last,
            close=last,
            abs_change=to_float(data.get("p")),
            perc_change=to_float(data.get("P")),
            high=to_float(data.get("h")),
            low=to_float(data.get("l")),
            volume=to_float(data.get("v")),
            base_volume=to_float(data.get("v")),
            quote_volume=to_float(data.get("q")),
            open=to_float(data.get("o")),
            open_time=ms_to_datetime(int(data.get("O") or timestamp - DAY_MS)),
            info=data,
        )

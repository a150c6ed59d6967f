"""
Tradekit - Bitget USDT-M Futures Connector.

============================================================
PURPOSE
============================================================
Bitget needs raw v2 mix endpoints for leverage and order
placement:
- Leverage is set per hold side (long and short)
- Orders carry productType, marginMode and marginCoin
- Demo trading prefixes coins with "S" (SBTCSUSDT, SUSDT)

============================================================
"""

import asyncio
import logging
from typing import Any, Dict, List

from ..errors import TradeError, normalize_bitget_error
from ..logging_utils import mask_params
from ..proxy import DIRECT, ProxySettings
from ..types import OrderSide
from .base import ExchangeConnector, FillDetection


logger = logging.getLogger(__name__)


def normalize_symbol(symbol: str, sandbox: bool = False) -> str:
    """
    Unified symbol to Bitget's instrument id.

    BTC/USDT:USDT -> BTCUSDT, or SBTCSUSDT in demo trading.
    """
    prefix = "S" if sandbox else ""
    base, rest = symbol.split("/", 1)
    quote = rest.split(":", 1)[0]
    return f"{prefix}{base}{prefix}{quote}"


class BitgetConnector(ExchangeConnector):
    """
    Bitget USDT-M futures through ccxt.

    Fills are detected by the order record reporting nothing
    remaining.
    """

    exchange_id = "bitget"
    fill_detection = FillDetection.REMAINING

    HOLD_SIDES = ("long", "short")

    def normalize_error(self, raw: Any) -> TradeError:
        return normalize_bitget_error(raw)

    @property
    def product_type(self) -> str:
        return f"{'S' if self._sandbox else ''}USDT-FUTURES"

    @property
    def margin_coin(self) -> str:
        return f"{'S' if self._sandbox else ''}USDT"

    # --------------------------------------------------------
    # MARKET DATA
    # --------------------------------------------------------

    async def fetch_tickers(
        self,
        symbols: List[str],
        proxy: ProxySettings = DIRECT,
    ) -> List[Dict[str, Any]]:
        """Fetch tickers one by one; all must succeed."""
        client = self.client(proxy)
        return list(await asyncio.gather(
            *(client.fetch_ticker(symbol) for symbol in symbols)
        ))

    # --------------------------------------------------------
    # ACCOUNT
    # --------------------------------------------------------

    async def set_leverage(
        self,
        leverage: int,
        symbol: str,
        proxy: ProxySettings = DIRECT,
    ) -> None:
        """Apply leverage to both hold sides, stopping at the first failure."""
        client = self.client(proxy)
        for hold_side in self.HOLD_SIDES:
            await client.private_mix_post_v2_mix_account_set_leverage({
                "symbol": normalize_symbol(symbol, self._sandbox),
                "productType": self.product_type,
                "marginCoin": self.margin_coin,
                "leverage": str(leverage),
                "holdSide": hold_side,
            })
            logger.debug(f"[bitget] Leverage {leverage} set for {symbol} ({hold_side})")

    # --------------------------------------------------------
    # ORDERS
    # --------------------------------------------------------

    async def submit_market_order(
        self,
        symbol: str,
        side: OrderSide,
        amount: float,
        reduce_only: bool = False,
        proxy: ProxySettings = DIRECT,
    ) -> str:
        request = {
            "symbol": normalize_symbol(symbol, self._sandbox),
            "productType": self.product_type,
            "marginMode": "isolated",
            "marginCoin": self.margin_coin,
            "size": str(amount),
            "side": side.value,
            "orderType": "market",
        }
        if reduce_only:
            request["reduceOnly"] = "YES"

        logger.debug(f"[bitget] Placing order {mask_params(request)}")

        response = await self.client(proxy).private_mix_post_v2_mix_order_place_order(request)
        return str(response["data"]["orderId"])

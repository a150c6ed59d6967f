"""
Tradekit - Bybit V5 Linear Connector.
"""

import logging
from typing import Any, Dict

import ccxt

from ..errors import BYBIT_PROFILE, TradeError, normalize_bybit_error, parse_venue_payload
from ..proxy import DIRECT, ProxySettings
from .base import ExchangeConnector, FillDetection


logger = logging.getLogger(__name__)


# Bybit: leverage not modified
LEVERAGE_NOT_MODIFIED = "110043"


class BybitConnector(ExchangeConnector):
    """
    Bybit V5 linear perpetuals through ccxt.

    Filled orders leave the open-orders list and are then read
    back from the closed-orders endpoint.
    """

    exchange_id = "bybit"
    fill_detection = FillDetection.OPEN_ORDERS

    def normalize_error(self, raw: Any) -> TradeError:
        return normalize_bybit_error(raw)

    async def set_leverage(
        self,
        leverage: int,
        symbol: str,
        proxy: ProxySettings = DIRECT,
    ) -> None:
        """Set leverage; an unchanged value counts as success."""
        try:
            await self.client(proxy).set_leverage(leverage, symbol)
        except ccxt.ExchangeError as e:
            payload = parse_venue_payload(BYBIT_PROFILE, str(e))
            if payload is None or payload.code != LEVERAGE_NOT_MODIFIED:
                raise
            logger.debug(f"[bybit] Leverage for {symbol} already {leverage}")

    async def fetch_filled_order(
        self,
        order_id: str,
        symbol: str,
        proxy: ProxySettings = DIRECT,
    ) -> Dict[str, Any]:
        return await self.client(proxy).fetch_closed_order(order_id, symbol)

"""
Tradekit - Binance USD-M Futures Connector.
"""

from typing import Any

from ..errors import TradeError, normalize_binance_error
from .base import ExchangeConnector, FillDetection


class BinanceConnector(ExchangeConnector):
    """
    Binance USD-M futures through ccxt.

    Fills are detected by the order leaving the open-orders list.
    """

    exchange_id = "binance"
    fill_detection = FillDetection.OPEN_ORDERS

    def normalize_error(self, raw: Any) -> TradeError:
        return normalize_binance_error(raw)

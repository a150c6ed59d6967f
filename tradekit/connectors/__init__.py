"""
Tradekit - Exchange Connectors.

AVAILABLE CONNECTORS:
- BinanceConnector: Binance USD-M futures
- BybitConnector: Bybit V5 linear
- BitgetConnector: Bitget USDT-M futures
"""

from .base import ExchangeConnector, ExchangeFactory, FillDetection
from .binance import BinanceConnector
from .bybit import BybitConnector
from .bitget import BitgetConnector, normalize_symbol


__all__ = [
    "ExchangeConnector",
    "ExchangeFactory",
    "FillDetection",
    "BinanceConnector",
    "BybitConnector",
    "BitgetConnector",
    "normalize_symbol",
]

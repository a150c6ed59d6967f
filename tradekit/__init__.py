"""
Tradekit - Unified Futures Trading Facade.

============================================================
PURPOSE
============================================================
One typed interface over Binance USD-M, Bybit V5 linear and
Bitget USDT-M futures.

CLIENTS:
- BinanceClient, BybitClient, BitgetClient
- create_client / ClientFactory

RESULTS AND ERRORS:
- Ok / Err results, never exceptions, for venue failures
- TradeError variants tagged by ErrorReason

UTILITIES:
- ProxyRotator / ProxyEndpoint: round-robin egress proxies
- TradekitOptions.from_env: configuration from environment

============================================================
"""

# Data model
from .types import (
    Balance,
    CurrencyBalance,
    Order,
    OrderSide,
    OrderStatus,
    OrderType,
    Ticker,
)

# Results
from .result import Err, Ok, Result, combine

# Errors
from .errors import (
    ErrorReason,
    ExchangeError,
    NetworkError,
    RateLimitError,
    TradeError,
    TradekitError,
    TradekitErrorCode,
    TradekitException,
    UnknownError,
    WebSocketError,
    normalize_binance_error,
    normalize_bitget_error,
    normalize_bybit_error,
    normalize_error,
)

# Proxies
from .proxy import (
    ProxyAuth,
    ProxyEndpoint,
    ProxyProtocol,
    ProxyRotator,
    ProxySettings,
)

# Configuration
from .config import (
    ExecutionConfig,
    StreamConfig,
    TradekitAuth,
    TradekitOptions,
    parse_proxy_url,
)

# Execution
from .execution import (
    ExecutionState,
    InvalidTransitionError,
    OrderExecutionController,
)

# Clients
from .client import (
    BinanceClient,
    BitgetClient,
    BybitClient,
    VenueClient,
)

# Factory
from .factory import ClientFactory, ExchangeId, create_client


__version__ = "1.0.0"

__all__ = [
    # Data model
    "Balance",
    "CurrencyBalance",
    "Order",
    "OrderSide",
    "OrderStatus",
    "OrderType",
    "Ticker",
    # Results
    "Err",
    "Ok",
    "Result",
    "combine",
    # Errors
    "ErrorReason",
    "ExchangeError",
    "NetworkError",
    "RateLimitError",
    "TradeError",
    "TradekitError",
    "TradekitErrorCode",
    "TradekitException",
    "UnknownError",
    "WebSocketError",
    "normalize_binance_error",
    "normalize_bitget_error",
    "normalize_bybit_error",
    "normalize_error",
    # Proxies
    "ProxyAuth",
    "ProxyEndpoint",
    "ProxyProtocol",
    "ProxyRotator",
    "ProxySettings",
    # Configuration
    "ExecutionConfig",
    "StreamConfig",
    "TradekitAuth",
    "TradekitOptions",
    "parse_proxy_url",
    # Execution
    "ExecutionState",
    "InvalidTransitionError",
    "OrderExecutionController",
    # Clients
    "BinanceClient",
    "BitgetClient",
    "BybitClient",
    "VenueClient",
    # Factory
    "ClientFactory",
    "ExchangeId",
    "create_client",
]

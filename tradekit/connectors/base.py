"""
Tradekit - Exchange Connector Interface.

============================================================
PURPOSE
============================================================
Thin capability layer over a ccxt async client for one venue.

Connectors raise whatever ccxt raises; the facade turns those
exceptions into TradeErrors with the venue normalizer.

============================================================
PROXIES
============================================================
Every call takes a ProxySettings value. The connector keeps
one lazily created ccxt client per distinct setting plus a
direct one, so concurrent calls never see each other's proxy.

============================================================
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import ccxt.async_support as ccxt_async

from ..config import TradekitAuth
from ..errors import TradeError
from ..logging_utils import mask_headers, mask_url, mask_value
from ..proxy import DIRECT, ProxySettings
from ..types import OrderSide


logger = logging.getLogger(__name__)


ExchangeFactory = Callable[[Dict[str, Any]], Any]


class FillDetection(Enum):
    """How a venue reveals that a market order has filled."""

    OPEN_ORDERS = "open_orders"
    """Order no longer listed among the symbol's open orders."""

    REMAINING = "remaining"
    """Order record reports remaining == 0."""


# ============================================================
# ABSTRACT CONNECTOR
# ============================================================

class ExchangeConnector(ABC):
    """
    ccxt-backed connectivity for one venue.

    Implementations:
    - BinanceConnector: Binance USD-M futures
    - BybitConnector: Bybit V5 linear
    - BitgetConnector: Bitget USDT-M futures
    """

    exchange_id: str = ""
    fill_detection: FillDetection = FillDetection.OPEN_ORDERS

    def __init__(
        self,
        auth: Optional[TradekitAuth] = None,
        sandbox: bool = False,
        exchange_factory: Optional[ExchangeFactory] = None,
    ):
        """
        Initialize connector.

        Args:
            auth: API credentials (None for public data only)
            sandbox: Target the venue's test environment
            exchange_factory: Builds a ccxt client from a config
                dict; defaults to the ccxt async_support class
        """
        self._auth = auth
        self._sandbox = sandbox
        self._factory = exchange_factory or getattr(ccxt_async, self.exchange_id)

        self._clients: Dict[ProxySettings, Any] = {}
        self._retired: List[Any] = []

    @property
    def sandbox(self) -> bool:
        return self._sandbox

    @property
    def auth(self) -> Optional[TradekitAuth]:
        return self._auth

    # --------------------------------------------------------
    # CLIENT MANAGEMENT
    # --------------------------------------------------------

    def _build_client(self, proxy: ProxySettings) -> Any:
        config: Dict[str, Any] = {
            "enableRateLimit": True,
            "options": {"defaultType": "swap"},
        }
        config.update(self._credential_options())
        config.update(proxy.client_options())

        client = self._factory(config)
        if self._sandbox:
            client.set_sandbox_mode(True)

        logger.debug(
            f"[{self.exchange_id}] Created client "
            f"(proxy={mask_url(proxy.url) or 'direct'}, "
            f"headers={mask_headers(dict(proxy.headers))}, sandbox={self._sandbox})"
        )
        return client

    def _credential_options(self) -> Dict[str, Any]:
        if self._auth is None:
            return {}
        options = {"apiKey": self._auth.key, "secret": self._auth.secret}
        if self._auth.passphrase:
            options["password"] = self._auth.passphrase
        return options

    def client(self, proxy: ProxySettings = DIRECT) -> Any:
        """ccxt client bound to the given proxy setting."""
        client = self._clients.get(proxy)
        if client is None:
            client = self._build_client(proxy)
            self._clients[proxy] = client
        return client

    def set_credentials(self, auth: Optional[TradekitAuth]) -> None:
        """Apply credentials to existing and future clients."""
        self._auth = auth
        for client in self._clients.values():
            client.apiKey = auth.key if auth else None
            client.secret = auth.secret if auth else None
            client.password = auth.passphrase if auth else None
        logger.info(
            f"[{self.exchange_id}] Credentials updated "
            f"(key={mask_value(auth.key) if auth else None})"
        )

    def set_sandbox(self, sandbox: bool) -> None:
        """Switch environment; existing clients are retired."""
        if sandbox == self._sandbox:
            return
        self._sandbox = sandbox
        self._retired.extend(self._clients.values())
        self._clients = {}
        logger.info(f"[{self.exchange_id}] Sandbox {'enabled' if sandbox else 'disabled'}")

    async def close(self) -> None:
        """Close every ccxt client this connector created."""
        clients = list(self._clients.values()) + self._retired
        self._clients = {}
        self._retired = []
        for client in clients:
            await client.close()

    # --------------------------------------------------------
    # ERRORS
    # --------------------------------------------------------

    @abstractmethod
    def normalize_error(self, raw: Any) -> TradeError:
        """Map a failure raised by this connector to a TradeError."""
        pass

    # --------------------------------------------------------
    # MARKET DATA
    # --------------------------------------------------------

    async def fetch_ticker(self, symbol: str, proxy: ProxySettings = DIRECT) -> Dict[str, Any]:
        return await self.client(proxy).fetch_ticker(symbol)

    async def fetch_tickers(
        self,
        symbols: List[str],
        proxy: ProxySettings = DIRECT,
    ) -> List[Dict[str, Any]]:
        tickers = await self.client(proxy).fetch_tickers(symbols)
        return list(tickers.values())

    # --------------------------------------------------------
    # ACCOUNT
    # --------------------------------------------------------

    async def fetch_balance(self, proxy: ProxySettings = DIRECT) -> Dict[str, Any]:
        return await self.client(proxy).fetch_balance()

    async def set_leverage(
        self,
        leverage: int,
        symbol: str,
        proxy: ProxySettings = DIRECT,
    ) -> None:
        await self.client(proxy).set_leverage(leverage, symbol)

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
        """
        Submit a market order.

        Returns:
            Venue order ID
        """
        params = {"reduceOnly": True} if reduce_only else {}
        order = await self.client(proxy).create_order(
            symbol, "market", side.value, amount, None, params
        )
        return str(order["id"])

    async def list_open_orders(
        self,
        symbol: str,
        proxy: ProxySettings = DIRECT,
    ) -> List[Dict[str, Any]]:
        return await self.client(proxy).fetch_open_orders(symbol)

    async def fetch_order(
        self,
        order_id: str,
        symbol: str,
        proxy: ProxySettings = DIRECT,
    ) -> Dict[str, Any]:
        return await self.client(proxy).fetch_order(order_id, symbol)

    async def fetch_filled_order(
        self,
        order_id: str,
        symbol: str,
        proxy: ProxySettings = DIRECT,
    ) -> Dict[str, Any]:
        """Record of an order known to be filled."""
        return await self.fetch_order(order_id, symbol, proxy)

    async def cancel_order(
        self,
        order_id: str,
        symbol: str,
        proxy: ProxySettings = DIRECT,
    ) -> None:
        await self.client(proxy).cancel_order(order_id, symbol)

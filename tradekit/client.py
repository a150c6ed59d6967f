"""
Tradekit - Venue Client Facade.

============================================================
PURPOSE
============================================================
One typed interface per venue:
- Quotes (REST and streaming)
- Balance and leverage
- Market position open/close with fill confirmation
- Proxy rotation, credentials, sandbox

Every REST operation returns Ok/Err and never raises for
venue, network or conversion failures.

============================================================
PROXY POLICY
============================================================
Each operation reads the current proxy once, uses it for
every request it makes, and rotates the pool exactly once
when it finishes, whatever the outcome.

============================================================
USAGE
============================================================
```python
async with BybitClient(TradekitOptions.from_env("bybit")) as client:
    quote = await client.get_quote("BTC/USDT:USDT")
    order = await client.open_long("BTC/USDT:USDT", 0.01)
```

============================================================
"""

import logging
from typing import Awaitable, Callable, Iterable, List, Optional, Type

from .adapters import ccxt_balance_adapter, ccxt_ticker_adapter
from .config import StreamConfig, TradekitAuth, TradekitOptions
from .connectors import (
    BinanceConnector,
    BitgetConnector,
    BybitConnector,
    ExchangeConnector,
    ExchangeFactory,
)
from .errors import bad_symbol_error
from .execution import OrderExecutionController
from .logging_utils import describe_proxy
from .proxy import ProxyEndpoint, ProxyRotator, ProxySettings
from .result import Err, Ok, Result, combine
from .streaming import (
    BinanceTickerStream,
    BitgetTickerStream,
    BybitTickerStream,
    TickerStream,
)
from .streaming.base import ErrorCallback, EventCallback, TickerCallback
from .types import OrderSide


logger = logging.getLogger(__name__)


# ============================================================
# BASE CLIENT
# ============================================================

class VenueClient:
    """
    Facade over one venue.

    Subclasses bind the connector and ticker stream classes.
    """

    connector_class: Type[ExchangeConnector] = ExchangeConnector
    stream_class: Type[TickerStream] = TickerStream

    def __init__(
        self,
        options: Optional[TradekitOptions] = None,
        exchange_factory: Optional[ExchangeFactory] = None,
        stream_config: Optional[StreamConfig] = None,
    ):
        """
        Initialize client.

        Args:
            options: Credentials, sandbox flag and proxies
            exchange_factory: ccxt client builder (tests)
            stream_config: Push-socket behavior for ticker streams
        """
        options = options or TradekitOptions()

        self._sandbox = options.sandbox
        self._proxies = ProxyRotator(options.proxies)
        self._stream_config = stream_config or StreamConfig()
        self._streams: List[TickerStream] = []

        self.connector = self.connector_class(
            auth=options.auth,
            sandbox=options.sandbox,
            exchange_factory=exchange_factory,
        )
        self.controller = OrderExecutionController(self.connector)

    @property
    def exchange_id(self) -> str:
        return self.connector.exchange_id

    async def __aenter__(self) -> "VenueClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Close open ticker streams and every REST client."""
        streams, self._streams = self._streams, []
        for stream in streams:
            await stream.close()
        await self.connector.close()

    # --------------------------------------------------------
    # CALL WRAPPER
    # --------------------------------------------------------

    async def _call(
        self,
        operation: str,
        fn: Callable[[ProxySettings], Awaitable[Result]],
    ) -> Result:
        """Run one operation with the current proxy, then rotate."""
        endpoint = self._proxies.current()
        try:
            logger.debug(f"[{self.exchange_id}] {operation} via {describe_proxy(endpoint)}")
            return await fn(ProxySettings.for_endpoint(endpoint))
        except Exception as e:
            error = self.connector.normalize_error(e)
            logger.warning(
                f"[{self.exchange_id}] {operation} failed via "
                f"{describe_proxy(endpoint)}: {error}"
            )
            return Err(error)
        finally:
            self._proxies.rotate()

    # --------------------------------------------------------
    # MARKET DATA
    # --------------------------------------------------------

    async def get_quote(self, symbol: str) -> Result:
        """Current 24h ticker for one symbol."""
        async def run(proxy: ProxySettings) -> Result:
            ticker = await self.connector.fetch_ticker(symbol, proxy)
            return ccxt_ticker_adapter(ticker)

        return await self._call("get_quote", run)

    async def get_quotes(self, symbols: List[str]) -> Result:
        """Tickers for several symbols; fails as a whole on the first bad one."""
        async def run(proxy: ProxySettings) -> Result:
            tickers = await self.connector.fetch_tickers(symbols, proxy)
            return combine(ccxt_ticker_adapter(ticker) for ticker in tickers)

        return await self._call("get_quotes", run)

    async def subscribe_to_ticker(
        self,
        symbol: str,
        on_update: TickerCallback,
        on_subscription: Optional[EventCallback] = None,
        on_close: Optional[EventCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> TickerStream:
        """Stream ticker updates for one symbol."""
        return await self.subscribe_to_tickers(
            [symbol],
            on_update,
            on_subscription=on_subscription,
            on_close=on_close,
            on_error=on_error,
        )

    async def subscribe_to_tickers(
        self,
        symbols: Iterable[str],
        on_update: TickerCallback,
        on_subscription: Optional[EventCallback] = None,
        on_close: Optional[EventCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> TickerStream:
        """
        Stream ticker updates for several symbols.

        Connection problems are reported through on_error; the
        returned stream keeps reconnecting until closed.
        """
        stream = self.stream_class(
            symbols,
            on_update,
            on_subscription=on_subscription,
            on_close=on_close,
            on_error=on_error,
            sandbox=self._sandbox,
            config=self._stream_config,
        )
        self._streams.append(stream)
        await stream.start()
        return stream

    # --------------------------------------------------------
    # ACCOUNT
    # --------------------------------------------------------

    async def get_balance(self, currencies: Optional[Iterable[str]] = None) -> Result:
        """
        Account balance.

        Args:
            currencies: Keep only these currencies; unknown ones
                are silently omitted
        """
        async def run(proxy: ProxySettings) -> Result:
            balance = ccxt_balance_adapter(await self.connector.fetch_balance(proxy))
            if currencies is not None:
                balance = balance.filtered(currencies)
            return Ok(balance)

        return await self._call("get_balance", run)

    async def set_leverage(self, leverage: int, symbol: Optional[str] = None) -> Result:
        """
        Set leverage for a symbol.

        Returns:
            Ok(leverage); BAD_SYMBOL without a symbol
        """
        async def run(proxy: ProxySettings) -> Result:
            if symbol is None:
                return Err(bad_symbol_error(
                    f"Unable to set global leverage for {self.exchange_id}. "
                    f"Please provide a symbol."
                ))
            await self.connector.set_leverage(leverage, symbol, proxy)
            logger.info(f"[{self.exchange_id}] Leverage for {symbol} set to {leverage}")
            return Ok(leverage)

        return await self._call("set_leverage", run)

    # --------------------------------------------------------
    # POSITIONS
    # --------------------------------------------------------

    async def _execute(
        self,
        operation: str,
        symbol: str,
        amount: float,
        side: OrderSide,
        reduce_only: bool,
        timeout_ms: Optional[int],
    ) -> Result:
        async def run(proxy: ProxySettings) -> Result:
            return await self.controller.execute(
                symbol,
                amount,
                side,
                reduce_only=reduce_only,
                timeout_ms=timeout_ms,
                proxy=proxy,
            )

        return await self._call(operation, run)

    async def open_long(self, symbol: str, amount: float, timeout_ms: Optional[int] = None) -> Result:
        return await self._execute("open_long", symbol, amount, OrderSide.BUY, False, timeout_ms)

    async def open_short(self, symbol: str, amount: float, timeout_ms: Optional[int] = None) -> Result:
        return await self._execute("open_short", symbol, amount, OrderSide.SELL, False, timeout_ms)

    async def close_long(self, symbol: str, amount: float, timeout_ms: Optional[int] = None) -> Result:
        return await self._execute("close_long", symbol, amount, OrderSide.SELL, True, timeout_ms)

    async def close_short(self, symbol: str, amount: float, timeout_ms: Optional[int] = None) -> Result:
        return await self._execute("close_short", symbol, amount, OrderSide.BUY, True, timeout_ms)

    # --------------------------------------------------------
    # AUTH
    # --------------------------------------------------------

    def set_auth(self, auth: TradekitAuth) -> bool:
        self.connector.set_credentials(auth)
        return True

    def get_auth(self) -> Optional[TradekitAuth]:
        return self.connector.auth

    # --------------------------------------------------------
    # SANDBOX
    # --------------------------------------------------------

    def set_sandbox(self, sandbox: bool) -> bool:
        """Switch REST clients and future streams to the test environment."""
        self._sandbox = sandbox
        self.connector.set_sandbox(sandbox)
        return self._sandbox

    @property
    def sandbox(self) -> bool:
        return self._sandbox

    # --------------------------------------------------------
    # PROXY MANAGEMENT
    # --------------------------------------------------------

    def add_proxy(self, endpoint: ProxyEndpoint) -> ProxyEndpoint:
        self._proxies.add(endpoint)
        return endpoint

    def set_proxies(self, endpoints: Iterable[ProxyEndpoint]) -> int:
        self._proxies.set_pool(endpoints)
        return len(self._proxies)

    def get_proxies(self) -> List[ProxyEndpoint]:
        return self._proxies.endpoints

    def get_current_proxy(self) -> Optional[ProxyEndpoint]:
        return self._proxies.current()

    def rotate_proxy(self) -> Optional[ProxyEndpoint]:
        """Advance the pool and return the new current proxy."""
        self._proxies.rotate()
        return self._proxies.current()


# ============================================================
# VENUE CLIENTS
# ============================================================

class BinanceClient(VenueClient):
    """Binance USD-M futures."""

    connector_class = BinanceConnector
    stream_class = BinanceTickerStream


class BybitClient(VenueClient):
    """Bybit V5 linear."""

    connector_class = BybitConnector
    stream_class = BybitTickerStream


class BitgetClient(VenueClient):
    """Bitget USDT-M futures. Passphrase required for private calls."""

    connector_class = BitgetConnector
    stream_class = BitgetTickerStream

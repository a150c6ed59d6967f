"""
Tradekit - Client Factory.

============================================================
PURPOSE
============================================================
Create venue clients by identifier.

FEATURES:
- Centralized client creation
- Environment-based default options
- Registry for additional venues

============================================================
USAGE
============================================================
```python
# Options from BYBIT_* environment variables
client = create_client("bybit")

# Explicit options
client = ClientFactory.create(
    "bitget",
    TradekitOptions(auth=TradekitAuth("key", "secret", "pass"), sandbox=True),
)

# Extra venue
ClientFactory.register("myvenue", MyVenueClient)
```

============================================================
"""

import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Type

from .client import BinanceClient, BitgetClient, BybitClient, VenueClient
from .config import TradekitOptions


logger = logging.getLogger(__name__)


# ============================================================
# EXCHANGE IDENTIFIERS
# ============================================================

class ExchangeId(Enum):
    """Supported venue identifiers."""

    BINANCE = "binance"
    BYBIT = "bybit"
    BITGET = "bitget"


BUILTIN_CLIENTS: Dict[str, Type[VenueClient]] = {
    ExchangeId.BINANCE.value: BinanceClient,
    ExchangeId.BYBIT.value: BybitClient,
    ExchangeId.BITGET.value: BitgetClient,
}


# ============================================================
# CLIENT FACTORY
# ============================================================

class ClientFactory:
    """
    Factory for venue clients.

    Registered classes take precedence over built-ins.
    """

    _registry: Dict[str, Type[VenueClient]] = {}

    @classmethod
    def register(cls, exchange_id: str, client_class: Type[VenueClient]) -> None:
        """Register a client class for a venue."""
        cls._registry[exchange_id.lower()] = client_class

    @classmethod
    def unregister(cls, exchange_id: str) -> None:
        cls._registry.pop(exchange_id.lower(), None)

    @classmethod
    def create(
        cls,
        exchange_id: str,
        options: Optional[TradekitOptions] = None,
        **kwargs: Any,
    ) -> VenueClient:
        """
        Create a venue client.

        Args:
            exchange_id: Venue identifier
            options: Client options (default: from environment)
            **kwargs: Passed to the client constructor

        Returns:
            VenueClient instance

        Raises:
            ValueError: If the venue is not supported
        """
        exchange_id = exchange_id.lower()

        client_class = cls._registry.get(exchange_id) or BUILTIN_CLIENTS.get(exchange_id)
        if client_class is None:
            raise ValueError(f"Unsupported exchange: {exchange_id}")

        if options is None:
            options = TradekitOptions.from_env(exchange_id)

        logger.info(
            f"Creating {exchange_id} client "
            f"(sandbox={options.sandbox}, proxies={len(options.proxies)}, "
            f"auth={'yes' if options.auth else 'no'})"
        )
        return client_class(options, **kwargs)

    @classmethod
    def list_supported(cls) -> List[str]:
        """List supported venues, built-in and registered."""
        return sorted(set(BUILTIN_CLIENTS) | set(cls._registry))


def create_client(
    exchange_id: str,
    options: Optional[TradekitOptions] = None,
    **kwargs: Any,
) -> VenueClient:
    """Convenience wrapper around ClientFactory.create."""
    return ClientFactory.create(exchange_id, options, **kwargs)

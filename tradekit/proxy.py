"""
Tradekit - Proxy Rotation.

============================================================
PURPOSE
============================================================
Spread outbound requests across egress endpoints.

- ProxyEndpoint: one configured egress proxy
- ProxySettings: per-call value handed to a connector
- ProxyRotator: round-robin pool of endpoints

An empty pool is a valid steady state: requests go direct.

============================================================
USAGE
============================================================
```python
rotator = ProxyRotator([
    ProxyEndpoint("10.0.0.1", 8080),
    ProxyEndpoint("10.0.0.2", 8080, auth=ProxyAuth("user", "pass")),
])

settings = ProxySettings.for_endpoint(rotator.current())
try:
    await connector.fetch_ticker("BTC/USDT:USDT", settings)
finally:
    rotator.rotate()
```

============================================================
"""

import base64
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple
from urllib.parse import quote


logger = logging.getLogger(__name__)


# ============================================================
# ENDPOINTS
# ============================================================

class ProxyProtocol(Enum):
    """Supported proxy protocols."""

    HTTP = "http"
    HTTPS = "https"
    SOCKS4 = "socks4"
    SOCKS5 = "socks5"


@dataclass(frozen=True)
class ProxyAuth:
    """Basic-auth credentials for a proxy."""

    username: str
    password: str

    def __repr__(self) -> str:
        return f"ProxyAuth(username={self.username!r}, password='***')"


@dataclass(frozen=True)
class ProxyEndpoint:
    """One egress proxy."""

    host: str
    port: int
    protocol: ProxyProtocol = ProxyProtocol.HTTP
    auth: Optional[ProxyAuth] = None

    @property
    def url(self) -> str:
        """Proxy URL without credentials."""
        return f"{self.protocol.value}://{self.host}:{self.port}"

    @property
    def is_socks(self) -> bool:
        return self.protocol in (ProxyProtocol.SOCKS4, ProxyProtocol.SOCKS5)

    def credentials_url(self) -> str:
        """Proxy URL with percent-encoded credentials, when configured."""
        if self.auth is None:
            return self.url
        username = quote(self.auth.username, safe="")
        password = quote(self.auth.password, safe="")
        return f"{self.protocol.value}://{username}:{password}@{self.host}:{self.port}"

    def authorization_header(self) -> Dict[str, str]:
        """
        Proxy-Authorization header for this endpoint.

        Returns:
            Header dict, empty when no auth is configured
        """
        if self.auth is None:
            return {}
        token = base64.b64encode(
            f"{self.auth.username}:{self.auth.password}".encode("utf-8")
        ).decode("ascii")
        return {"Proxy-Authorization": f"Basic {token}"}

    def to_settings(self) -> "ProxySettings":
        return ProxySettings.for_endpoint(self)


# ============================================================
# PER-CALL SETTINGS
# ============================================================

# ccxt option that carries the proxy URL, by protocol
CCXT_PROXY_OPTION = {
    ProxyProtocol.HTTP: "httpProxy",
    ProxyProtocol.HTTPS: "httpsProxy",
    ProxyProtocol.SOCKS4: "socksProxy",
    ProxyProtocol.SOCKS5: "socksProxy",
}


@dataclass(frozen=True)
class ProxySettings:
    """
    Proxy configuration for a single outbound call.

    Passed by value through connector calls; never stored on a
    shared client. DIRECT means no proxy.
    """

    url: Optional[str] = field(default=None, repr=False)
    option: Optional[str] = None
    headers: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    @classmethod
    def for_endpoint(cls, endpoint: Optional[ProxyEndpoint]) -> "ProxySettings":
        """Build settings for an endpoint, or DIRECT when None."""
        if endpoint is None:
            return DIRECT
        # SOCKS connectors take credentials only from the URL
        if endpoint.is_socks:
            return cls(url=endpoint.credentials_url(), option=CCXT_PROXY_OPTION[endpoint.protocol])
        return cls(
            url=endpoint.url,
            option=CCXT_PROXY_OPTION[endpoint.protocol],
            headers=tuple(endpoint.authorization_header().items()),
        )

    @property
    def is_direct(self) -> bool:
        return self.url is None

    def client_options(self) -> Dict[str, object]:
        """Constructor options for a ccxt client using these settings."""
        if self.is_direct:
            return {}
        options: Dict[str, object] = {self.option: self.url}
        if self.headers:
            options["headers"] = dict(self.headers)
        return options


DIRECT = ProxySettings()


# ============================================================
# ROTATOR
# ============================================================

class ProxyRotator:
    """
    Round-robin pool of proxy endpoints.

    INVARIANT: 0 <= index < len(pool) whenever the pool is
    non-empty. Access is from a single event loop, so no lock.
    """

    def __init__(self, endpoints: Optional[Iterable[ProxyEndpoint]] = None):
        self._pool: List[ProxyEndpoint] = list(endpoints or [])
        self._index = 0

    def __len__(self) -> int:
        return len(self._pool)

    @property
    def endpoints(self) -> List[ProxyEndpoint]:
        """Copy of the pool."""
        return list(self._pool)

    def current(self) -> Optional[ProxyEndpoint]:
        """Current endpoint, or None when the pool is empty."""
        if not self._pool:
            return None
        return self._pool[self._index]

    def rotate(self) -> None:
        """Advance to the next endpoint, wrapping at the end."""
        if not self._pool:
            return
        self._index = (self._index + 1) % len(self._pool)

    def set_pool(self, endpoints: Iterable[ProxyEndpoint]) -> None:
        """Replace the pool and restart from the first endpoint."""
        self._pool = list(endpoints)
        self._index = 0
        logger.debug(f"Proxy pool replaced ({len(self._pool)} endpoints)")

    def add(self, endpoint: ProxyEndpoint) -> None:
        """Append an endpoint, keeping the current position."""
        self._pool.append(endpoint)
        logger.debug(f"Proxy added ({len(self._pool)} endpoints)")

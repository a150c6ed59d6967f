"""
Tradekit - Secure Logging Utilities.

============================================================
PURPOSE
============================================================
Keep credentials out of log output:
- API key / secret / passphrase masking
- Proxy credential masking
- Order and request parameter sanitization

The library never installs handlers; applications configure
logging themselves.

============================================================
SECURITY REQUIREMENTS
============================================================
1. NEVER log raw API keys, secrets or passphrases
2. NEVER log proxy passwords or Proxy-Authorization headers
3. Mask sensitive request parameters before logging them

============================================================
"""

import re
from typing import Any, Dict, Optional

from .proxy import ProxyEndpoint


# ============================================================
# SENSITIVE DATA PATTERNS
# ============================================================

# Header names that should be masked
SENSITIVE_HEADERS = {
    "authorization",
    "proxy-authorization",
    "x-mbx-apikey",
    "x-bapi-api-key",
    "x-bapi-sign",
    "access-key",
    "access-sign",
    "access-passphrase",
}

# Parameter names that should be masked
SENSITIVE_PARAMS = {
    "apikey",
    "api_key",
    "secret",
    "password",
    "passphrase",
    "signature",
    "sign",
}

_URL_CREDENTIALS = re.compile(r"(?P<scheme>[a-z0-9]+://)(?P<user>[^:@/]+):(?P<password>[^@/]+)@")


# ============================================================
# MASKING FUNCTIONS
# ============================================================

def mask_value(value: Optional[str], show_chars: int = 4) -> str:
    """
    Mask a sensitive value, showing only first few chars.

    Args:
        value: Value to mask
        show_chars: Number of chars to show at start

    Returns:
        Masked value
    """
    if not value or len(value) <= show_chars:
        return "***"
    return f"{value[:show_chars]}...***"


def mask_headers(headers: Optional[Dict[str, str]]) -> Dict[str, str]:
    """
    Mask sensitive headers.

    Args:
        headers: Request headers

    Returns:
        Headers with sensitive values masked
    """
    if not headers:
        return {}

    return {
        key: mask_value(str(value)) if key.lower() in SENSITIVE_HEADERS else value
        for key, value in headers.items()
    }


def mask_params(params: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Mask sensitive parameters, recursing into nested dicts."""
    if not params:
        return {}

    masked = {}
    for key, value in params.items():
        if key.lower() in SENSITIVE_PARAMS:
            masked[key] = mask_value(str(value)) if value else value
        elif isinstance(value, dict):
            masked[key] = mask_params(value)
        else:
            masked[key] = value
    return masked


def mask_url(url: Optional[str]) -> Optional[str]:
    """Strip the password from a user:pass@host URL."""
    if not url:
        return url
    return _URL_CREDENTIALS.sub(r"\g<scheme>\g<user>:***@", url)


def describe_proxy(endpoint: Optional[ProxyEndpoint]) -> str:
    """
    Log-safe description of a proxy endpoint.

    Returns:
        "direct" when no proxy, otherwise the URL with the username
        and a masked password
    """
    if endpoint is None:
        return "direct"
    if endpoint.auth is None:
        return endpoint.url
    return (
        f"{endpoint.protocol.value}://{endpoint.auth.username}:***@"
        f"{endpoint.host}:{endpoint.port}"
    )

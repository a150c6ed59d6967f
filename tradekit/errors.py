"""
Tradekit - Error Taxonomy and Normalization.

============================================================
PURPOSE
============================================================
One closed error taxonomy for every venue:
- Unified TradeError variants (tagged by ErrorReason)
- Per-venue normalization of ccxt exceptions
- Per-venue parsing of push-socket error envelopes

Normalizers are total: they never raise, whatever they are
given.

============================================================
ERROR REASONS
============================================================
1. RATE_LIMIT       - Venue or transport throttling
2. NETWORK_ERROR    - Connection issues, timeouts
3. EXCHANGE_ERROR   - Venue-reported error, verbatim code
4. TRADEKIT_ERROR   - Re-classified or locally detected
5. WEB_SOCKET_ERROR - Push-socket failures
6. UNKNOWN_ERROR    - Anything unrecognized

============================================================
"""

import json
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, Optional

import ccxt


# ============================================================
# ERROR TAXONOMY
# ============================================================

class ErrorReason(Enum):
    """Closed set of error reasons."""

    RATE_LIMIT = "RATE_LIMIT"
    NETWORK_ERROR = "NETWORK_ERROR"
    EXCHANGE_ERROR = "EXCHANGE_ERROR"
    TRADEKIT_ERROR = "TRADEKIT_ERROR"
    WEB_SOCKET_ERROR = "WEB_SOCKET_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class TradekitErrorCode(Enum):
    """Codes for errors detected or re-classified locally."""

    BAD_SYMBOL = "BAD_SYMBOL"
    INVALID_ORDER = "INVALID_ORDER"
    TIME_OUT = "TIME_OUT"
    CONVERSION_ERROR = "CONVERSION_ERROR"


@dataclass(frozen=True)
class TradeError:
    """Base of all error variants."""

    reason: ClassVar[ErrorReason]

    def info(self) -> Dict[str, Any]:
        """Variant payload."""
        return {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        payload: Dict[str, Any] = {"reason": self.reason.value}
        info = self.info()
        if info:
            payload["info"] = info
        return payload

    def __str__(self) -> str:
        info = self.info()
        if not info:
            return f"[{self.reason.value}]"
        return f"[{self.reason.value}] {info.get('code', '-')}: {info.get('msg', '')}"


@dataclass(frozen=True)
class RateLimitError(TradeError):
    reason: ClassVar[ErrorReason] = ErrorReason.RATE_LIMIT


@dataclass(frozen=True)
class NetworkError(TradeError):
    reason: ClassVar[ErrorReason] = ErrorReason.NETWORK_ERROR

    msg: str

    def info(self) -> Dict[str, Any]:
        return {"msg": self.msg}


@dataclass(frozen=True)
class ExchangeError(TradeError):
    """Venue-reported error. Code stays a string (leading zeros, signs)."""

    reason: ClassVar[ErrorReason] = ErrorReason.EXCHANGE_ERROR

    exchange: str
    code: str
    msg: str

    def info(self) -> Dict[str, Any]:
        return {"exchange": self.exchange, "code": self.code, "msg": self.msg}


@dataclass(frozen=True)
class TradekitError(TradeError):
    reason: ClassVar[ErrorReason] = ErrorReason.TRADEKIT_ERROR

    code: TradekitErrorCode
    msg: str

    def info(self) -> Dict[str, Any]:
        return {"code": self.code.value, "msg": self.msg}


@dataclass(frozen=True)
class WebSocketError(TradeError):
    reason: ClassVar[ErrorReason] = ErrorReason.WEB_SOCKET_ERROR

    msg: str
    code: str
    conn_id: str

    def info(self) -> Dict[str, Any]:
        return {"msg": self.msg, "code": self.code, "conn_id": self.conn_id}


@dataclass(frozen=True)
class UnknownError(TradeError):
    reason: ClassVar[ErrorReason] = ErrorReason.UNKNOWN_ERROR

    msg: str
    code: str

    original: Optional[BaseException] = field(default=None, compare=False, repr=False)
    """Connectivity-library exception kept for diagnostics."""

    def info(self) -> Dict[str, Any]:
        return {"msg": self.msg, "code": self.code}


class TradekitException(Exception):
    """Raised only for programming errors and broken invariants."""


# ============================================================
# HELPERS
# ============================================================

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")

UNRECOGNIZED_ERROR = UnknownError(
    msg="A non-exception value was raised and could not be interpreted.",
    code="UNRECOGNIZED_ERROR",
)

SOCKET_HANDLED = "HANDLED_ERROR"
SOCKET_UNHANDLED = "UNHANDLED_ERROR"


def error_code_from_class(exc: BaseException) -> str:
    """InsufficientFunds -> INSUFFICIENT_FUNDS."""
    return _CAMEL_BOUNDARY.sub("_", type(exc).__name__).upper()


def timeout_error(msg: str = "The order was not filled in time.") -> TradekitError:
    return TradekitError(code=TradekitErrorCode.TIME_OUT, msg=msg)


def conversion_error(msg: str) -> TradekitError:
    return TradekitError(code=TradekitErrorCode.CONVERSION_ERROR, msg=msg)


def bad_symbol_error(msg: str) -> TradekitError:
    return TradekitError(code=TradekitErrorCode.BAD_SYMBOL, msg=msg)


# ============================================================
# VENUE PAYLOAD PARSING
# ============================================================

@dataclass(frozen=True)
class VenuePayload:
    """Error body embedded in a ccxt exception message."""

    code: str
    msg: str


@dataclass(frozen=True)
class VenueErrorProfile:
    """How one venue shapes its errors."""

    exchange_id: str
    code_field: str
    msg_field: str

    sentinels: Dict[str, TradekitErrorCode] = field(default_factory=dict)
    """Venue codes re-tagged as TRADEKIT_ERROR."""

    invalid_order_class: bool = True
    """Whether ccxt.InvalidOrder is re-tagged directly."""


# Binance: -2022 ReduceOnly order rejected
BINANCE_PROFILE = VenueErrorProfile(
    exchange_id="binance",
    code_field="code",
    msg_field="msg",
    sentinels={"-2022": TradekitErrorCode.INVALID_ORDER},
)

BYBIT_PROFILE = VenueErrorProfile(
    exchange_id="bybit",
    code_field="retCode",
    msg_field="retMsg",
)

# Bitget: 40034 symbol does not exist, 22002 no position to close
BITGET_PROFILE = VenueErrorProfile(
    exchange_id="bitget",
    code_field="code",
    msg_field="msg",
    sentinels={
        "40034": TradekitErrorCode.BAD_SYMBOL,
        "22002": TradekitErrorCode.INVALID_ORDER,
    },
    invalid_order_class=False,
)

VENUE_PROFILES: Dict[str, VenueErrorProfile] = {
    profile.exchange_id: profile
    for profile in (BINANCE_PROFILE, BYBIT_PROFILE, BITGET_PROFILE)
}


def parse_venue_payload(profile: VenueErrorProfile, message: str) -> Optional[VenuePayload]:
    """
    Extract the venue JSON body from a ccxt error message.

    ccxt formats venue errors as "<exchange id> <response body>".

    Args:
        profile: Venue error profile
        message: Exception message

    Returns:
        VenuePayload, or None if the body is not the expected JSON
    """
    prefix = f"{profile.exchange_id} "
    body = message[len(prefix):] if message.startswith(prefix) else message

    try:
        data = json.loads(body)
    except (TypeError, ValueError):
        return None

    if not isinstance(data, dict) or profile.code_field not in data:
        return None

    return VenuePayload(
        code=str(data[profile.code_field]),
        msg=str(data.get(profile.msg_field, "")),
    )


# ============================================================
# NORMALIZATION
# ============================================================

def _normalize(profile: VenueErrorProfile, raw: Any) -> TradeError:
    if isinstance(raw, ccxt.NetworkError):
        if isinstance(raw, ccxt.RateLimitExceeded):
            return RateLimitError()
        return NetworkError(msg=str(raw))

    if isinstance(raw, ccxt.ExchangeError):
        if isinstance(raw, ccxt.BadSymbol):
            return TradekitError(code=TradekitErrorCode.BAD_SYMBOL, msg=str(raw))

        if profile.invalid_order_class and isinstance(raw, ccxt.InvalidOrder):
            return TradekitError(code=TradekitErrorCode.INVALID_ORDER, msg=str(raw))

        payload = parse_venue_payload(profile, str(raw))
        if payload is None:
            return ExchangeError(
                exchange=profile.exchange_id,
                code=error_code_from_class(raw),
                msg=str(raw),
            )

        sentinel = profile.sentinels.get(payload.code)
        if sentinel is not None:
            return TradekitError(code=sentinel, msg=payload.msg)

        return ExchangeError(
            exchange=profile.exchange_id,
            code=payload.code,
            msg=payload.msg,
        )

    if isinstance(raw, ccxt.BaseError):
        return UnknownError(
            msg=str(raw),
            code=error_code_from_class(raw),
            original=raw,
        )

    if isinstance(raw, Exception):
        return UnknownError(msg=str(raw), code=error_code_from_class(raw))

    return UNRECOGNIZED_ERROR


def normalize_binance_error(raw: Any) -> TradeError:
    """Normalize a Binance failure."""
    return _normalize(BINANCE_PROFILE, raw)


def normalize_bybit_error(raw: Any) -> TradeError:
    """Normalize a Bybit failure."""
    return _normalize(BYBIT_PROFILE, raw)


def normalize_bitget_error(raw: Any) -> TradeError:
    """Normalize a Bitget failure."""
    return _normalize(BITGET_PROFILE, raw)


def normalize_error(exchange_id: str, raw: Any) -> TradeError:
    """
    Normalize a failure raised while talking to a venue.

    Routes to the venue-specific normalizer. Unknown venues get the
    generic classification without sentinel re-tagging.

    Args:
        exchange_id: Venue identifier
        raw: Whatever was raised

    Returns:
        Exactly one TradeError
    """
    profile = VENUE_PROFILES.get(str(exchange_id).lower())
    if profile is None:
        profile = VenueErrorProfile(
            exchange_id=str(exchange_id).lower(),
            code_field="code",
            msg_field="msg",
        )
    return _normalize(profile, raw)


# ============================================================
# PUSH-SOCKET ERROR PARSING
# ============================================================

def _decode_socket_payload(raw: Any) -> Dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, BaseException):
        raw = str(raw)
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8")
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("socket error payload is not an object")
    return data


def _unparseable_socket_error() -> WebSocketError:
    return WebSocketError(
        msg="It was not possible to parse the error message",
        code=SOCKET_UNHANDLED,
        conn_id="N/A",
    )


def parse_binance_socket_error(raw: Any) -> WebSocketError:
    """
    Parse a Binance socket error.

    Envelope: {"error": {"code": 2, "msg": "..."}, "id": 1}
    """
    try:
        data = _decode_socket_payload(raw)
        error = data["error"]
        msg = error.get("msg") or error["message"]
        conn_id = data.get("wsKey") or data.get("id") or "N/A"
        return WebSocketError(msg=str(msg), code=SOCKET_HANDLED, conn_id=str(conn_id))
    except (TypeError, ValueError, KeyError, AttributeError):
        return _unparseable_socket_error()


def parse_bybit_socket_error(raw: Any) -> WebSocketError:
    """
    Parse a Bybit socket error.

    Envelope: {"success": false, "ret_msg": "...", "conn_id": "...", "op": "subscribe"}
    """
    try:
        data = _decode_socket_payload(raw)
        return WebSocketError(
            msg=str(data["ret_msg"]),
            code=SOCKET_HANDLED,
            conn_id=str(data.get("conn_id") or "N/A"),
        )
    except (TypeError, ValueError, KeyError, AttributeError):
        return _unparseable_socket_error()


def parse_bitget_socket_error(raw: Any) -> WebSocketError:
    """
    Parse a Bitget socket error.

    Envelope: {"event": "error", "code": 30001, "msg": "...", "arg": {...}}
    """
    try:
        data = _decode_socket_payload(raw)
        return WebSocketError(
            msg=str(data["msg"]),
            code=SOCKET_HANDLED,
            conn_id=str(data.get("wsKey") or "N/A"),
        )
    except (TypeError, ValueError, KeyError, AttributeError):
        return _unparseable_socket_error()

"""
ccxt Structure Adapter Tests.

TEST CATEGORIES:
- Ticker conversion and missing-data rejection
- Balance conversion and filtering
- Order conversion and status mapping
- Result combination
"""

from datetime import datetime, timezone

import pytest

from tradekit.adapters import (
    DAY_MS,
    ccxt_balance_adapter,
    ccxt_order_adapter,
    ccxt_ticker_adapter,
)
from tradekit.errors import TradekitError, TradekitErrorCode
from tradekit.result import Err, Ok, combine
from tradekit.types import OrderSide, OrderStatus, OrderType


@pytest.fixture
def ccxt_ticker():
    return {
        "symbol": "BTC/USDT:USDT",
        "timestamp": 1700000000000,
        "datetime": "2023-11-14T22:13:20.000Z",
        "high": 37500.0,
        "low": 36100.0,
        "open": 36500.0,
        "close": 37000.0,
        "last": 37000.0,
        "change": 500.0,
        "percentage": 1.37,
        "baseVolume": 120000.5,
        "quoteVolume": 4400000000.0,
        "info": {"symbol": "BTCUSDT"},
    }


@pytest.fixture
def ccxt_balance():
    return {
        "info": {"assets": []},
        "timestamp": None,
        "datetime": None,
        "free": {"BTC": 1.0, "ETH": 2.0},
        "used": {"BTC": 0.5, "ETH": None},
        "total": {"BTC": 1.5, "ETH": 2.0},
        "BTC": {"free": 1.0, "used": 0.5, "total": 1.5},
        "ETH": {"free": 2.0, "used": None, "total": 2.0},
        "XRP": {"free": None, "used": None, "total": None},
    }


@pytest.fixture
def ccxt_order():
    return {
        "id": 123456,
        "clientOrderId": "abc",
        "timestamp": 1700000000000,
        "datetime": "2023-11-14T22:13:20.000Z",
        "symbol": "BTC/USDT:USDT",
        "type": "market",
        "side": "buy",
        "price": 37000.0,
        "amount": 0.01,
        "remaining": 0.0,
        "status": "closed",
    }


# ============================================================
# TICKER TESTS
# ============================================================

class TestTickerAdapter:
    """Tests for ccxt_ticker_adapter."""

    def test_complete_ticker(self, ccxt_ticker):
        """Test field mapping."""
        result = ccxt_ticker_adapter(ccxt_ticker)

        assert result.is_ok()
        ticker = result.value
        assert ticker.symbol == "BTC/USDT:USDT"
        assert ticker.last == 37000.0
        assert ticker.abs_change == 500.0
        assert ticker.perc_change == 1.37
        assert ticker.volume == ticker.base_volume == 120000.5
        assert ticker.quote_volume == 4400000000.0
        assert ticker.datetime == datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)
        assert ticker.info == {"symbol": "BTCUSDT"}

    def test_open_time_is_window_start(self, ccxt_ticker):
        """Test open_time is 24h before the update."""
        ticker = ccxt_ticker_adapter(ccxt_ticker).value

        expected = datetime.fromtimestamp((1700000000000 - DAY_MS) / 1000, tz=timezone.utc)
        assert ticker.open_time == expected

    @pytest.mark.parametrize("field", ["last", "change", "percentage", "open", "quoteVolume"])
    def test_missing_field_is_conversion_error(self, ccxt_ticker, field):
        """Test absent fields reject the ticker."""
        ccxt_ticker[field] = None

        result = ccxt_ticker_adapter(ccxt_ticker)

        assert result == Err(TradekitError(
            code=TradekitErrorCode.CONVERSION_ERROR,
            msg="Missing ticker data",
        ))

    def test_zero_change_is_accepted(self, ccxt_ticker):
        """Test a flat market is not treated as missing data."""
        ccxt_ticker["change"] = 0.0
        ccxt_ticker["percentage"] = 0

        result = ccxt_ticker_adapter(ccxt_ticker)

        assert result.is_ok()
        assert result.value.abs_change == 0.0

    def test_missing_timestamp_uses_now(self, ccxt_ticker):
        """Test tickers without a timestamp still convert."""
        ccxt_ticker["timestamp"] = None
        ccxt_ticker["datetime"] = None

        ticker = ccxt_ticker_adapter(ccxt_ticker).value

        assert ticker.timestamp > 1700000000000
        assert ticker.datetime.tzinfo is not None


# ============================================================
# BALANCE TESTS
# ============================================================

class TestBalanceAdapter:
    """Tests for ccxt_balance_adapter."""

    def test_currencies_only(self, ccxt_balance):
        """Test meta keys and empty entries are skipped."""
        balance = ccxt_balance_adapter(ccxt_balance)

        assert set(balance.currencies) == {"BTC", "ETH"}

    def test_amounts(self, ccxt_balance):
        """Test amounts, missing ones defaulting to zero."""
        balance = ccxt_balance_adapter(ccxt_balance)

        assert balance.currencies["BTC"].total == 1.5
        assert balance.currencies["ETH"].used == 0.0

    def test_filtered(self, ccxt_balance):
        """Test filtering keeps only requested currencies."""
        balance = ccxt_balance_adapter(ccxt_balance).filtered(["BTC", "DOGE"])

        assert list(balance.currencies) == ["BTC"]


# ============================================================
# ORDER TESTS
# ============================================================

class TestOrderAdapter:
    """Tests for ccxt_order_adapter."""

    def test_filled_order(self, ccxt_order):
        """Test field mapping for a filled market order."""
        order = ccxt_order_adapter(ccxt_order).value

        assert order.order_id == "123456"
        assert order.quantity == 0.01
        assert order.order_type == OrderType.MARKET
        assert order.side == OrderSide.BUY
        assert order.status == OrderStatus.FILLED
        assert order.client_order_id == "abc"
        assert order.to_dict()["status"] == "filled"

    @pytest.mark.parametrize("ccxt_status,status", [
        ("open", OrderStatus.NEW),
        ("closed", OrderStatus.FILLED),
        ("canceled", OrderStatus.CANCELED),
    ])
    def test_status_mapping(self, ccxt_order, ccxt_status, status):
        """Test ccxt statuses map onto unified ones."""
        ccxt_order["status"] = ccxt_status

        assert ccxt_order_adapter(ccxt_order).value.status == status

    @pytest.mark.parametrize("field,value,message", [
        ("status", "expired", "Unknown order status"),
        ("type", "trailing", "Unknown order type"),
        ("side", None, "Unknown order side"),
    ])
    def test_unknown_values(self, ccxt_order, field, value, message):
        """Test unmapped values are conversion errors."""
        ccxt_order[field] = value

        result = ccxt_order_adapter(ccxt_order)

        assert result.is_err()
        assert result.error.code == TradekitErrorCode.CONVERSION_ERROR
        assert result.error.msg == message


# ============================================================
# RESULT TESTS
# ============================================================

class TestResult:
    """Tests for Ok/Err helpers."""

    def test_combine_all_ok(self):
        """Test values are collected in order."""
        assert combine([Ok(1), Ok(2)]) == Ok([1, 2])

    def test_combine_first_error(self):
        """Test the first error wins."""
        first = Err(TradekitError(code=TradekitErrorCode.BAD_SYMBOL, msg="a"))
        second = Err(TradekitError(code=TradekitErrorCode.TIME_OUT, msg="b"))

        assert combine([Ok(1), first, second]) is first

    def test_unwrap_err_raises(self):
        """Test unwrapping an Err is a usage error."""
        with pytest.raises(ValueError, match="unwrap"):
            Err(TradekitError(code=TradekitErrorCode.TIME_OUT, msg="x")).unwrap()

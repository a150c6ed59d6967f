"""
Order Execution Controller Tests.

============================================================
PURPOSE
============================================================
Drive the submit / poll / cancel flow against a mocked
connector and a virtual clock.

TEST CATEGORIES:
- State machine transitions
- Fill detection (open orders, remaining amount)
- Timeout and cancellation
- Failure handling (submit, poll, fetch, cancel)

============================================================
"""

from unittest.mock import AsyncMock, MagicMock

import ccxt
import pytest

from tradekit.connectors.base import FillDetection
from tradekit.errors import (
    ErrorReason,
    ExchangeError,
    TradekitErrorCode,
    normalize_bybit_error,
)
from tradekit.execution import (
    Execution,
    ExecutionState,
    InvalidTransitionError,
    OrderExecutionController,
)
from tradekit.proxy import DIRECT, ProxySettings
from tradekit.types import OrderSide, OrderStatus


SYMBOL = "BTC/USDT:USDT"


def filled_order(**overrides):
    order = {
        "id": "42",
        "clientOrderId": None,
        "timestamp": 1700000000000,
        "datetime": "2023-11-14T22:13:20.000Z",
        "symbol": SYMBOL,
        "type": "market",
        "side": "buy",
        "price": 37000.0,
        "amount": 0.01,
        "remaining": 0.0,
        "status": "closed",
    }
    order.update(overrides)
    return order


class VirtualClock:
    """Monotonic clock advanced only by sleeping."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    async def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock():
    return VirtualClock()


@pytest.fixture
def connector():
    connector = MagicMock()
    connector.exchange_id = "bybit"
    connector.fill_detection = FillDetection.OPEN_ORDERS
    connector.normalize_error.side_effect = normalize_bybit_error
    connector.submit_market_order = AsyncMock(return_value="42")
    connector.list_open_orders = AsyncMock(return_value=[])
    connector.fetch_order = AsyncMock(return_value=filled_order())
    connector.fetch_filled_order = AsyncMock(return_value=filled_order())
    connector.cancel_order = AsyncMock()
    return connector


@pytest.fixture
def controller(connector, clock):
    return OrderExecutionController(connector, clock=clock, sleep=clock.sleep)


# ============================================================
# STATE MACHINE TESTS
# ============================================================

class TestExecutionStateMachine:
    """Tests for execution state transitions."""

    def test_initial_state(self):
        """Test executions start submitted."""
        execution = Execution(SYMBOL, OrderSide.BUY)

        assert execution.state == ExecutionState.SUBMITTED
        assert not execution.is_terminal

    def test_happy_path(self):
        """Test SUBMITTED -> POLLING -> FILLED."""
        execution = Execution(SYMBOL, OrderSide.BUY)
        execution.transition(ExecutionState.POLLING)
        execution.transition(ExecutionState.FILLED)

        assert execution.is_terminal

    def test_cannot_fill_without_polling(self):
        """Test skipping POLLING is rejected."""
        execution = Execution(SYMBOL, OrderSide.BUY)

        with pytest.raises(InvalidTransitionError):
            execution.transition(ExecutionState.FILLED)

    @pytest.mark.parametrize("terminal", [
        ExecutionState.FILLED,
        ExecutionState.TIMED_OUT_CANCELED,
    ])
    def test_terminal_states_are_final(self, terminal):
        """Test nothing leaves a terminal state."""
        execution = Execution(SYMBOL, OrderSide.SELL)
        execution.transition(ExecutionState.POLLING)
        execution.transition(terminal)

        with pytest.raises(InvalidTransitionError):
            execution.transition(ExecutionState.POLLING)


# ============================================================
# FILL DETECTION TESTS
# ============================================================

class TestFillDetection:
    """Tests for both fill detection strategies."""

    @pytest.mark.asyncio
    async def test_filled_on_first_poll(self, controller, connector, clock):
        """Test order absent from open orders on poll #1."""
        result = await controller.execute(SYMBOL, 0.01, OrderSide.BUY)

        assert result.is_ok()
        assert result.value.order_id == "42"
        assert result.value.status == OrderStatus.FILLED
        assert clock.sleeps == [1.0]
        connector.submit_market_order.assert_awaited_once_with(SYMBOL, OrderSide.BUY, 0.01, False, DIRECT)
        connector.fetch_filled_order.assert_awaited_once_with("42", SYMBOL, DIRECT)
        connector.cancel_order.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_filled_after_several_polls(self, controller, connector, clock):
        """Test polling continues while the order is listed."""
        connector.list_open_orders.side_effect = [
            [{"id": "42"}, {"id": "7"}],
            [{"id": "42"}],
            [{"id": "7"}],
        ]

        result = await controller.execute(SYMBOL, 0.01, OrderSide.BUY)

        assert result.is_ok()
        assert connector.list_open_orders.await_count == 3
        assert clock.sleeps == [1.0, 1.0, 1.0]

    @pytest.mark.asyncio
    async def test_remaining_detection(self, controller, connector):
        """Test remaining == 0 marks the fill and the record is reused."""
        connector.fill_detection = FillDetection.REMAINING
        connector.fetch_order.side_effect = [
            filled_order(remaining=0.01, status="open"),
            filled_order(),
        ]

        result = await controller.execute(SYMBOL, 0.01, OrderSide.BUY)

        assert result.is_ok()
        assert connector.fetch_order.await_count == 2
        connector.list_open_orders.assert_not_awaited()
        connector.fetch_filled_order.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_reduce_only_is_forwarded(self, controller, connector):
        """Test reduce-only flag reaches the connector."""
        await controller.execute(SYMBOL, 0.01, OrderSide.SELL, reduce_only=True)

        connector.submit_market_order.assert_awaited_once_with(SYMBOL, OrderSide.SELL, 0.01, True, DIRECT)

    @pytest.mark.asyncio
    async def test_proxy_used_for_every_request(self, controller, connector):
        """Test one proxy setting for the whole execution."""
        proxy = ProxySettings(url="http://10.0.0.1:8080", option="httpProxy")

        await controller.execute(SYMBOL, 0.01, OrderSide.BUY, proxy=proxy)

        assert connector.submit_market_order.await_args.args[-1] == proxy
        assert connector.list_open_orders.await_args.args[-1] == proxy
        assert connector.fetch_filled_order.await_args.args[-1] == proxy


# ============================================================
# TIMEOUT TESTS
# ============================================================

class TestTimeout:
    """Tests for deadline handling."""

    @pytest.mark.asyncio
    async def test_short_timeout_cancels_once(self, controller, connector):
        """Test an order that never fills within 500ms."""
        connector.list_open_orders.return_value = [{"id": "42"}]

        result = await controller.execute(SYMBOL, 0.01, OrderSide.BUY, timeout_ms=500)

        assert result.is_err()
        assert result.error.code == TradekitErrorCode.TIME_OUT
        assert result.error.msg == "The order was not filled in time."
        assert connector.list_open_orders.await_count == 1
        connector.cancel_order.assert_awaited_once_with("42", SYMBOL, DIRECT)
        connector.fetch_filled_order.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_default_timeout(self, controller, connector, clock):
        """Test the default deadline is 30 seconds."""
        connector.list_open_orders.return_value = [{"id": "42"}]

        result = await controller.execute(SYMBOL, 0.01, OrderSide.BUY)

        assert result.error.code == TradekitErrorCode.TIME_OUT
        assert connector.list_open_orders.await_count == 30
        assert clock.now == 30.0
        connector.cancel_order.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_cancel_failure_still_times_out(self, controller, connector):
        """Test a failing cancel does not change the outcome."""
        connector.list_open_orders.return_value = [{"id": "42"}]
        connector.cancel_order.side_effect = ccxt.OrderNotFound(
            'bybit {"retCode":110001,"retMsg":"order not exists or too late to cancel"}'
        )

        result = await controller.execute(SYMBOL, 0.01, OrderSide.BUY, timeout_ms=2000)

        assert result.error.code == TradekitErrorCode.TIME_OUT
        connector.cancel_order.assert_awaited_once()


# ============================================================
# FAILURE TESTS
# ============================================================

class TestFailures:
    """Tests for venue failures during execution."""

    @pytest.mark.asyncio
    async def test_submit_failure(self, controller, connector, clock):
        """Test a rejected submit returns the normalized error without polling."""
        connector.submit_market_order.side_effect = ccxt.InsufficientFunds(
            'bybit {"retCode":110007,"retMsg":"ab not enough for new order"}'
        )

        result = await controller.execute(SYMBOL, 0.01, OrderSide.BUY)

        assert result.error == ExchangeError(exchange="bybit", code="110007", msg="ab not enough for new order")
        assert clock.sleeps == []
        connector.list_open_orders.assert_not_awaited()
        connector.cancel_order.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_poll_failure_keeps_polling(self, controller, connector):
        """Test a transient poll error is not terminal."""
        connector.list_open_orders.side_effect = [
            ccxt.NetworkError("Connection reset by peer"),
            [],
        ]

        result = await controller.execute(SYMBOL, 0.01, OrderSide.BUY)

        assert result.is_ok()
        assert connector.list_open_orders.await_count == 2

    @pytest.mark.asyncio
    async def test_fetch_filled_failure(self, controller, connector):
        """Test a fill that cannot be fetched returns the error."""
        connector.fetch_filled_order.side_effect = ccxt.RequestTimeout("bybit timed out")

        result = await controller.execute(SYMBOL, 0.01, OrderSide.BUY)

        assert result.error.reason == ErrorReason.NETWORK_ERROR
        connector.cancel_order.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unconvertible_record(self, controller, connector):
        """Test an unknown status in the filled record."""
        connector.fetch_filled_order.return_value = filled_order(status="expired")

        result = await controller.execute(SYMBOL, 0.01, OrderSide.BUY)

        assert result.error.code == TradekitErrorCode.CONVERSION_ERROR

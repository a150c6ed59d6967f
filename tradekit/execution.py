"""
Tradekit - Order Execution Controller.

============================================================
PURPOSE
============================================================
Submit a market order and wait until it fills, cancelling it
when it does not fill in time.

STATE MACHINE:

    SUBMITTED ──────► SUBMIT_FAILED
        │
        ▼
     POLLING ───────► TIMED_OUT_CANCELED
        │
        ▼
      FILLED

INVARIANTS:
- Exactly one terminal outcome per execution
- One submit, at most one cancel
- Polls are strictly sequential
- Poll interval is fixed; only the timeout is per call

The last probe may overrun the timeout by one call's latency.

============================================================
USAGE
============================================================
```python
controller = OrderExecutionController(BybitConnector(auth=auth))
result = await controller.execute(
    "BTC/USDT:USDT", 0.01, OrderSide.BUY, reduce_only=False
)
```

============================================================
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from .adapters import ccxt_order_adapter
from .config import ExecutionConfig
from .connectors.base import ExchangeConnector, FillDetection
from .errors import TradekitException, timeout_error
from .proxy import DIRECT, ProxySettings
from .result import Err, Result
from .types import OrderSide


logger = logging.getLogger(__name__)


# ============================================================
# STATES
# ============================================================

class ExecutionState(Enum):
    """Lifecycle of one execution."""

    SUBMITTED = "submitted"
    POLLING = "polling"
    FILLED = "filled"
    TIMED_OUT_CANCELED = "timed_out_canceled"
    SUBMIT_FAILED = "submit_failed"


VALID_TRANSITIONS: Dict[ExecutionState, Set[ExecutionState]] = {
    ExecutionState.SUBMITTED: {
        ExecutionState.POLLING,
        ExecutionState.SUBMIT_FAILED,
    },
    ExecutionState.POLLING: {
        ExecutionState.FILLED,
        ExecutionState.TIMED_OUT_CANCELED,
    },
    # Terminal states - no transitions out
    ExecutionState.FILLED: set(),
    ExecutionState.TIMED_OUT_CANCELED: set(),
    ExecutionState.SUBMIT_FAILED: set(),
}


class InvalidTransitionError(TradekitException):
    """Illegal execution state transition."""

    def __init__(self, from_state: ExecutionState, to_state: ExecutionState):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(f"Invalid transition: {from_state.value} -> {to_state.value}")


class Execution:
    """State of one order execution."""

    def __init__(self, symbol: str, side: OrderSide):
        self.symbol = symbol
        self.side = side
        self.order_id: Optional[str] = None
        self.state = ExecutionState.SUBMITTED
        self.polls = 0
        self.record: Optional[Dict[str, Any]] = None

    @property
    def is_terminal(self) -> bool:
        return not VALID_TRANSITIONS[self.state]

    def transition(self, to_state: ExecutionState) -> None:
        """
        Move to a new state.

        Raises:
            InvalidTransitionError: If the move is not allowed
        """
        if to_state not in VALID_TRANSITIONS[self.state]:
            raise InvalidTransitionError(self.state, to_state)
        logger.debug(
            f"Execution {self.order_id or '-'} ({self.symbol}): "
            f"{self.state.value} -> {to_state.value}"
        )
        self.state = to_state


# ============================================================
# CONTROLLER
# ============================================================

class OrderExecutionController:
    """
    Drives market orders to a terminal outcome on one venue.

    Fill detection follows the connector's FillDetection.
    """

    def __init__(
        self,
        connector: ExchangeConnector,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Initialize controller.

        Args:
            connector: Venue connector
            clock: Monotonic clock in seconds
            sleep: Coroutine sleeping for the given seconds
        """
        self._connector = connector
        self._clock = clock
        self._sleep = sleep

    async def execute(
        self,
        symbol: str,
        amount: float,
        side: OrderSide,
        reduce_only: bool = False,
        timeout_ms: Optional[int] = None,
        proxy: ProxySettings = DIRECT,
    ) -> Result:
        """
        Submit a market order and wait for the fill.

        Args:
            symbol: Unified symbol
            amount: Base-currency amount
            side: Order side
            reduce_only: Only reduce an existing position
            timeout_ms: Fill deadline, default 30000
            proxy: Proxy used for every request of this execution

        Returns:
            Ok(Order) when filled; Err(TIME_OUT) after cancelling;
            Err(normalized error) when submission fails
        """
        if timeout_ms is None:
            timeout_ms = ExecutionConfig.DEFAULT_TIMEOUT_MS

        connector = self._connector
        execution = Execution(symbol, side)

        try:
            execution.order_id = await connector.submit_market_order(
                symbol, side, amount, reduce_only, proxy
            )
        except Exception as e:
            execution.transition(ExecutionState.SUBMIT_FAILED)
            error = connector.normalize_error(e)
            logger.warning(f"[{connector.exchange_id}] Submit failed for {symbol}: {error}")
            return Err(error)

        logger.info(
            f"[{connector.exchange_id}] Submitted {side.value} {amount} {symbol} "
            f"(order={execution.order_id}, reduce_only={reduce_only})"
        )

        started = self._clock()
        execution.transition(ExecutionState.POLLING)

        while (self._clock() - started) * 1000 < timeout_ms:
            await self._sleep(ExecutionConfig.POLL_INTERVAL_MS / 1000)
            execution.polls += 1

            try:
                filled = await self._probe(execution, proxy)
            except Exception as e:
                logger.warning(
                    f"[{connector.exchange_id}] Poll #{execution.polls} failed for "
                    f"{execution.order_id}: {connector.normalize_error(e)}"
                )
                continue

            if not filled:
                logger.debug(
                    f"[{connector.exchange_id}] Order {execution.order_id} still open "
                    f"(poll #{execution.polls})"
                )
                continue

            execution.transition(ExecutionState.FILLED)
            return await self._complete(execution, proxy)

        execution.transition(ExecutionState.TIMED_OUT_CANCELED)
        await self._cancel(execution, proxy)
        logger.warning(
            f"[{connector.exchange_id}] Order {execution.order_id} not filled "
            f"within {timeout_ms}ms"
        )
        return Err(timeout_error())

    # --------------------------------------------------------
    # STEPS
    # --------------------------------------------------------

    async def _probe(self, execution: Execution, proxy: ProxySettings) -> bool:
        """
        Check whether the order has filled.

        With REMAINING detection the fetched record is kept on the
        execution so it is not requested twice.
        """
        connector = self._connector

        if connector.fill_detection is FillDetection.REMAINING:
            record = await connector.fetch_order(execution.order_id, execution.symbol, proxy)
            if record.get("remaining") != 0:
                return False
            execution.record = record
            return True

        open_orders = await connector.list_open_orders(execution.symbol, proxy)
        return all(str(order.get("id")) != execution.order_id for order in open_orders)

    async def _complete(self, execution: Execution, proxy: ProxySettings) -> Result:
        connector = self._connector

        if execution.record is None:
            try:
                execution.record = await connector.fetch_filled_order(
                    execution.order_id, execution.symbol, proxy
                )
            except Exception as e:
                error = connector.normalize_error(e)
                logger.warning(
                    f"[{connector.exchange_id}] Order {execution.order_id} filled "
                    f"but could not be fetched: {error}"
                )
                return Err(error)

        logger.info(
            f"[{connector.exchange_id}] Order {execution.order_id} filled "
            f"after {execution.polls} poll(s)"
        )
        return ccxt_order_adapter(execution.record)

    async def _cancel(self, execution: Execution, proxy: ProxySettings) -> None:
        """Best-effort cancel; the outcome is only logged."""
        connector = self._connector
        try:
            await connector.cancel_order(execution.order_id, execution.symbol, proxy)
            logger.info(f"[{connector.exchange_id}] Canceled order {execution.order_id}")
        except Exception as e:
            logger.error(
                f"[{connector.exchange_id}] Cancel failed for {execution.order_id}: "
                f"{connector.normalize_error(e)}"
            )

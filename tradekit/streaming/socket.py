"""
Tradekit - Push Socket.

============================================================
PURPOSE
============================================================
Base class for venue WebSocket connections.

FEATURES:
- Persistent connection management
- Automatic reconnection with exponential backoff
- Venue heartbeat (protocol ping, JSON or text payload)
- Subscription replay after reconnect
- Event forwarding to a SocketHandler

Connection failures never raise out of connect(); they are
forwarded to the handler and retried in the background.

============================================================
USAGE
============================================================
```python
class MySocket(PushSocket):
    def subscribe_message(self, topics):
        return {"op": "subscribe", "args": topics}

socket = MySocket("wss://example/ws", handler=stream)
await socket.connect()
await socket.subscribe(["tickers.BTCUSDT"])
```

============================================================
"""

import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

import aiohttp

from ..config import StreamConfig


logger = logging.getLogger(__name__)


Payload = Union[Dict[str, Any], str]


# ============================================================
# CONNECTION STATE
# ============================================================

class ConnectionState(Enum):
    """WebSocket connection states."""

    DISCONNECTED = "DISCONNECTED"
    CONNECTING = "CONNECTING"
    CONNECTED = "CONNECTED"
    RECONNECTING = "RECONNECTING"
    CLOSING = "CLOSING"


class SocketHandler:
    """Receiver of socket events. Every hook is a coroutine."""

    async def handle_open(self) -> None:
        pass

    async def handle_close(self) -> None:
        pass

    async def handle_error(self, raw: Any) -> None:
        pass

    async def handle_message(self, data: Any) -> None:
        pass


# ============================================================
# PUSH SOCKET
# ============================================================

class PushSocket(ABC):
    """
    Abstract base class for venue WebSocket connections.

    Provides:
    - Connection lifecycle management
    - Automatic reconnection with exponential backoff
    - Heartbeat handling
    - Subscription management
    """

    def __init__(
        self,
        url: str,
        handler: Optional[SocketHandler] = None,
        config: Optional[StreamConfig] = None,
        session_factory: Callable[[], aiohttp.ClientSession] = aiohttp.ClientSession,
    ):
        """
        Initialize socket.

        Args:
            url: WebSocket URL
            handler: Receiver of open/close/error/message events
            config: Connection behavior
            session_factory: Builds the aiohttp session
        """
        self._url = url
        self._handler = handler or SocketHandler()
        self._config = config or StreamConfig()
        self._session_factory = session_factory

        # Connection state
        self._state = ConnectionState.DISCONNECTED
        self._session: Optional[aiohttp.ClientSession] = None
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None

        # Reconnection
        self._reconnect_count = 0
        self._reconnect_task: Optional[asyncio.Task] = None

        # Tasks
        self._receive_task: Optional[asyncio.Task] = None
        self._ping_task: Optional[asyncio.Task] = None
        self._last_message_time = 0.0

        # Subscriptions, in subscription order
        self._topics: List[str] = []

    # --------------------------------------------------------
    # PROPERTIES
    # --------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED and self._ws is not None

    @property
    def url(self) -> str:
        return self._url

    @property
    def topics(self) -> List[str]:
        return list(self._topics)

    def bind(self, handler: SocketHandler) -> None:
        """Route events to a different handler."""
        self._handler = handler

    # --------------------------------------------------------
    # CONNECTION
    # --------------------------------------------------------

    async def connect(self) -> None:
        """Establish the connection, retrying in the background on failure."""
        if self._state in (ConnectionState.CONNECTED, ConnectionState.CONNECTING):
            return

        self._state = ConnectionState.CONNECTING

        try:
            if self._session is None:
                self._session = self._session_factory()

            self._ws = await asyncio.wait_for(
                self._session.ws_connect(self._url),
                timeout=self._config.connect_timeout_seconds,
            )
        except (aiohttp.ClientError, OSError, asyncio.TimeoutError) as e:
            self._state = ConnectionState.DISCONNECTED
            logger.error(f"WebSocket connection failed ({self._url}): {e}")
            await self._handler.handle_error(e)
            self._schedule_reconnect()
            return

        self._state = ConnectionState.CONNECTED
        self._last_message_time = time.time()
        logger.info(f"WebSocket connected: {self._url}")

        self._receive_task = asyncio.create_task(self._receive_loop())
        self._ping_task = asyncio.create_task(self._heartbeat_loop())

        if self._topics:
            try:
                await self._send(self.subscribe_message(self._topics))
            except (aiohttp.ClientError, OSError) as e:
                logger.error(f"Subscription replay failed ({self._url}): {e}")
                await self._handler.handle_error(e)
                await self._drop_connection()
                return

        self._reconnect_count = 0
        await self._handler.handle_open()

    async def _drop_connection(self) -> None:
        """Tear down a half-open connection and retry in the background."""
        self._state = ConnectionState.DISCONNECTED

        for task in (self._receive_task, self._ping_task):
            if task is not None and not task.done():
                task.cancel()
        self._receive_task = None
        self._ping_task = None

        if self._ws is not None and not self._ws.closed:
            await self._ws.close()
        self._ws = None

        self._schedule_reconnect()

    async def disconnect(self) -> None:
        """Close the connection and stop reconnecting."""
        self._state = ConnectionState.CLOSING

        current = asyncio.current_task()
        for task in (self._reconnect_task, self._receive_task, self._ping_task):
            if task is not None and task is not current and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._reconnect_task = None
        self._receive_task = None
        self._ping_task = None

        if self._ws is not None and not self._ws.closed:
            await self._ws.close()
        self._ws = None

        if self._session is not None:
            await self._session.close()
            self._session = None

        self._state = ConnectionState.DISCONNECTED
        logger.info(f"WebSocket disconnected: {self._url}")

        await self._handler.handle_close()

    def _schedule_reconnect(self) -> None:
        """Start a background reconnect unless one is pending."""
        if self._reconnect_task is not None and not self._reconnect_task.done():
            return
        self._reconnect_task = asyncio.create_task(self._reconnect())

    async def _reconnect(self) -> None:
        if not self._config.reconnect:
            await self._give_up()
            return

        if self._reconnect_count >= self._config.max_reconnect_attempts:
            logger.error(f"Max reconnection attempts reached ({self._url})")
            await self._give_up()
            return

        self._state = ConnectionState.RECONNECTING
        self._reconnect_count += 1

        delay = min(
            self._config.reconnect_delay_seconds * (2 ** (self._reconnect_count - 1)),
            self._config.max_reconnect_delay_seconds,
        )
        logger.info(f"Reconnecting in {delay:.1f}s (attempt {self._reconnect_count})")
        await asyncio.sleep(delay)

        self._state = ConnectionState.DISCONNECTED
        self._reconnect_task = None
        await self.connect()

    async def _give_up(self) -> None:
        if self._state == ConnectionState.CLOSING:
            return
        await self.disconnect()

    # --------------------------------------------------------
    # MESSAGE HANDLING
    # --------------------------------------------------------

    async def _receive_loop(self) -> None:
        """Main receive loop."""
        try:
            async for msg in self._ws:
                self._last_message_time = time.time()

                if msg.type == aiohttp.WSMsgType.TEXT:
                    await self._handle_text(msg.data)

                elif msg.type == aiohttp.WSMsgType.CLOSE:
                    logger.warning(f"WebSocket closed by venue: {msg.data}")
                    break

                elif msg.type == aiohttp.WSMsgType.ERROR:
                    error = self._ws.exception()
                    logger.error(f"WebSocket error: {error}")
                    await self._handler.handle_error(error)
                    break

        except (aiohttp.ClientError, OSError) as e:
            logger.error(f"Error in receive loop: {e}")
            await self._handler.handle_error(e)
        except Exception as e:
            logger.error(f"Message handler failed ({self._url}): {e}", exc_info=True)
            await self._handler.handle_error(e)

        if self._state == ConnectionState.CONNECTED:
            self._state = ConnectionState.DISCONNECTED
            self._schedule_reconnect()

    async def _handle_text(self, data: str) -> None:
        if self.is_pong(data):
            return
        try:
            parsed = json.loads(data)
        except json.JSONDecodeError:
            logger.debug(f"Raw message: {data[:100]}")
            return
        await self._handler.handle_message(parsed)

    def is_pong(self, data: str) -> bool:
        """Whether a text frame is a heartbeat reply (override)."""
        return False

    # --------------------------------------------------------
    # HEARTBEAT
    # --------------------------------------------------------

    async def _heartbeat_loop(self) -> None:
        """Send the venue ping at a fixed interval."""
        interval = self._config.ping_interval_seconds
        while self._state == ConnectionState.CONNECTED:
            await asyncio.sleep(interval)
            if not self.is_connected:
                break

            if time.time() - self._last_message_time > interval * 3:
                logger.warning("No messages within heartbeat window, reconnecting")
                await self._ws.close()
                break

            try:
                await self.send_ping()
            except (aiohttp.ClientError, ConnectionError) as e:
                logger.error(f"Heartbeat error: {e}")

    async def send_ping(self) -> None:
        """Send the venue ping; protocol-level by default."""
        payload = self.ping_payload()
        if payload is None:
            if self._ws is not None and not self._ws.closed:
                await self._ws.ping()
            return
        await self._send(payload)

    def ping_payload(self) -> Optional[Payload]:
        """Application-level ping (override), None for protocol ping."""
        return None

    # --------------------------------------------------------
    # SENDING
    # --------------------------------------------------------

    async def _send(self, payload: Payload) -> None:
        if not self.is_connected:
            raise ConnectionError("Not connected")
        if isinstance(payload, str):
            await self._ws.send_str(payload)
        else:
            await self._ws.send_json(payload)

    # --------------------------------------------------------
    # SUBSCRIPTIONS
    # --------------------------------------------------------

    async def subscribe(self, topics: List[str]) -> None:
        """
        Subscribe to topics.

        Topics are remembered and replayed after every reconnect.
        """
        new_topics = [topic for topic in topics if topic not in self._topics]
        self._topics.extend(new_topics)

        if new_topics and self.is_connected:
            await self._send(self.subscribe_message(new_topics))
            logger.info(f"Subscribed to {', '.join(new_topics)}")

    @abstractmethod
    def subscribe_message(self, topics: List[str]) -> Payload:
        """Venue subscription frame."""
        pass

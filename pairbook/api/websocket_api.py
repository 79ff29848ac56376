"""
WebSocket API for the engine notification feed.

Clients subscribe to one or more event channels (order_created,
order_filled, order_cancelled) and receive every matching notification
as it is emitted.
"""
import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Set, Dict, Any, Optional

import websockets
from websockets.asyncio.server import ServerConnection, serve

from ..core.events import EngineEvent
from ..core.matching_engine import MatchingEngine

logger = logging.getLogger(__name__)

CHANNELS = ("order_created", "order_filled", "order_cancelled")


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class WebSocketServer:
    """
    WebSocket server for real-time engine notifications.

    Engine calls happen on other threads (the REST server), so
    notifications are handed to the server's event loop thread-safely.
    """

    def __init__(
        self,
        matching_engine: MatchingEngine,
        host: str = 'localhost',
        port: int = 8765,
        ping_interval: int = 20,
        ping_timeout: int = 10,
    ):
        """
        Initialize WebSocket server.

        Args:
            matching_engine: Matching engine instance
            host: Host to bind to
            port: Port to bind to
            ping_interval: Seconds between keepalive pings
            ping_timeout: Seconds to wait for a pong
        """
        self.matching_engine = matching_engine
        self.host = host
        self.port = port
        self.ping_interval = ping_interval
        self.ping_timeout = ping_timeout
        self.loop: Optional[asyncio.AbstractEventLoop] = None

        # Client management
        self.clients: Set[ServerConnection] = set()
        self.subscriptions: Dict[ServerConnection, Set[str]] = {}

        self.matching_engine.add_event_callback(self._on_event)

        logger.info(f"WebSocket server initialized on {host}:{port}")

    async def start(self) -> None:
        """Start the WebSocket server and run until cancelled."""
        self.loop = asyncio.get_running_loop()
        logger.info(f"Starting WebSocket server on {self.host}:{self.port}")

        async with serve(
            self._handle_client,
            self.host,
            self.port,
            ping_interval=self.ping_interval,
            ping_timeout=self.ping_timeout,
            close_timeout=10
        ):
            await asyncio.Future()  # Run forever

    async def _handle_client(self, websocket: ServerConnection) -> None:
        """
        Handle new client connection.

        Args:
            websocket: WebSocket connection
        """
        client_address = f"{websocket.remote_address[0]}:{websocket.remote_address[1]}"
        logger.info(f"Client connected: {client_address}")

        self.clients.add(websocket)
        self.subscriptions[websocket] = set()

        try:
            await self._send_message(websocket, {
                'type': 'connection',
                'status': 'connected',
                'symbol': self.matching_engine.store.symbol,
                'channels': list(CHANNELS),
                'timestamp': _timestamp(),
            })

            async for message in websocket:
                await self._handle_message(websocket, message)

        except websockets.exceptions.ConnectionClosed:
            logger.info(f"Client disconnected: {client_address}")
        finally:
            self.clients.discard(websocket)
            self.subscriptions.pop(websocket, None)

    async def _handle_message(self, websocket: ServerConnection, message: str) -> None:
        """
        Handle message from client.

        Args:
            websocket: WebSocket connection
            message: Message from client
        """
        try:
            data = json.loads(message)
        except json.JSONDecodeError:
            await self._send_error(websocket, "Invalid JSON format")
            return

        if not isinstance(data, dict):
            await self._send_error(websocket, "Message must be a JSON object")
            return

        message_type = str(data.get('type', '')).lower()

        if message_type == 'subscribe':
            await self._handle_subscribe(websocket, data)
        elif message_type == 'unsubscribe':
            await self._handle_unsubscribe(websocket, data)
        elif message_type == 'ping':
            await self._send_message(websocket, {'type': 'pong', 'timestamp': _timestamp()})
        elif message_type == 'get_orderbook':
            await self._send_orderbook(websocket)
        else:
            await self._send_error(websocket, f"Unknown message type: {message_type}")

    async def _handle_subscribe(self, websocket: ServerConnection, data: Dict[str, Any]) -> None:
        """Subscribe to one channel, or to all when none is given."""
        channel = data.get('channel')

        if channel is None:
            channels = set(CHANNELS)
        elif channel in CHANNELS:
            channels = {channel}
        else:
            await self._send_error(websocket, f"Unknown channel: {channel}. Must be one of: {list(CHANNELS)}")
            return

        self.subscriptions.setdefault(websocket, set()).update(channels)

        await self._send_message(websocket, {
            'type': 'subscription',
            'status': 'subscribed',
            'channels': sorted(self.subscriptions[websocket]),
            'timestamp': _timestamp(),
        })

        logger.info(f"Client subscribed to {sorted(channels)}")

    async def _handle_unsubscribe(self, websocket: ServerConnection, data: Dict[str, Any]) -> None:
        """Unsubscribe from one channel, or from all when none is given."""
        channel = data.get('channel')
        subscribed = self.subscriptions.setdefault(websocket, set())

        if channel:
            subscribed.discard(channel)
        else:
            subscribed.clear()

        await self._send_message(websocket, {
            'type': 'subscription',
            'status': 'unsubscribed' if channel else 'unsubscribed_all',
            'channels': sorted(subscribed),
            'timestamp': _timestamp(),
        })

    async def _send_orderbook(self, websocket: ServerConnection) -> None:
        """Send both side collections to a client."""
        # get_book waits on the engine lock; keep the loop free meanwhile
        book = await asyncio.get_running_loop().run_in_executor(None, self.matching_engine.get_book)
        book['type'] = 'orderbook'
        book['timestamp'] = _timestamp()
        await self._send_message(websocket, book)

    async def _send_message(self, websocket: ServerConnection, message: Dict[str, Any]) -> None:
        """Send message to client."""
        try:
            await websocket.send(json.dumps(message))
        except websockets.exceptions.ConnectionClosed:
            logger.debug("Client connection closed while sending message")

    async def _send_error(self, websocket: ServerConnection, error_message: str) -> None:
        """Send error message to client."""
        await self._send_message(websocket, {
            'type': 'error',
            'message': error_message,
            'timestamp': _timestamp(),
        })

    def _on_event(self, event: EngineEvent) -> None:
        """Hand an engine notification to the server loop."""
        if self.loop is None or self.loop.is_closed():
            return
        asyncio.run_coroutine_threadsafe(self.broadcast_event(event.to_dict()), self.loop)

    async def broadcast_event(self, event_data: Dict[str, Any]) -> None:
        """Broadcast a serialized event to clients subscribed to its channel."""
        if not self.clients:
            return

        channel = event_data.get('type')
        tasks = []
        for websocket in self.clients.copy():
            if channel in self.subscriptions.get(websocket, set()):
                tasks.append(self._send_message(websocket, event_data))

        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def get_client_count(self) -> int:
        """Get number of connected clients."""
        return len(self.clients)

    def get_subscription_count(self) -> Dict[str, int]:
        """Get subscription counts by channel."""
        counts: Dict[str, int] = {}
        for subscriptions in self.subscriptions.values():
            for channel in subscriptions:
                counts[channel] = counts.get(channel, 0) + 1
        return counts

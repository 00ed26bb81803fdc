"""
WebSocket server for broadcasting control surface state.

This module provides a StateBroadcaster that embeds a WebSocket server within
the ControlSurface to broadcast parameter, transport and outport activity to
connected debug TUI clients.
"""

import asyncio
import contextlib
import threading
import time
from datetime import datetime
from typing import TYPE_CHECKING, Optional

import websockets.asyncio.server
from pydantic import BaseModel

from patchbound.debug.messages import (
    FullStateMessage,
    OutportMessage,
    ParameterChangeMessage,
    TransportChangeMessage,
)
from patchbound.logging_config import get_logger

if TYPE_CHECKING:
    from websockets.asyncio.server import Server, ServerConnection

    from patchbound.device import Parameter
    from patchbound.parameters import ParameterState
    from patchbound.transport import TransportSnapshot

logger = get_logger(__name__)


class StateBroadcaster:
    """
    WebSocket server for broadcasting control surface state.

    Runs an async WebSocket server on its own event loop in a background
    thread. The broadcast_* methods are thread-safe and are called from the
    control plane's loop.
    """

    def __init__(self, host: str = "127.0.0.1", port: int = 8765):
        """
        Initialize the broadcaster.

        Args:
            host: Host to bind the WebSocket server to
            port: Port to bind the WebSocket server to
        """
        self._host = host
        self._port = port
        self._server: Optional["Server"] = None
        self._clients: set["ServerConnection"] = set()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._running = False
        self._lock = threading.Lock()

        # Cached full state for new client connections
        self._cached_full_state: Optional[FullStateMessage] = None

    @property
    def host(self) -> str:
        return self._host

    @property
    def port(self) -> int:
        return self._port

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def client_count(self) -> int:
        """Get the number of connected clients."""
        with self._lock:
            return len(self._clients)

    def start(self) -> None:
        """Start the WebSocket server in a background thread."""
        if self._running:
            logger.warning("StateBroadcaster is already running")
            return

        self._running = True
        self._thread = threading.Thread(target=self._run_server, daemon=True, name="DebugServerThread")
        self._thread.start()

        # Wait for server to start
        deadline = time.monotonic() + 5.0
        while self._loop is None and time.monotonic() < deadline:
            time.sleep(0.01)

        if self._loop is None:
            self._running = False
            raise RuntimeError("Failed to start WebSocket server")

        logger.info(f"StateBroadcaster started on ws://{self._host}:{self._port}")

    def stop(self) -> None:
        """Stop the WebSocket server."""
        if not self._running:
            return

        self._running = False

        if self._loop and self._clients:
            future = asyncio.run_coroutine_threadsafe(self._close_all_clients(), self._loop)
            try:
                future.result(timeout=2.0)
            except Exception as e:
                logger.warning(f"Error closing clients: {e}")

        if self._server and self._loop:
            self._server.close()
            future = asyncio.run_coroutine_threadsafe(self._server.wait_closed(), self._loop)
            try:
                future.result(timeout=2.0)
            except Exception as e:
                logger.warning(f"Error waiting for server close: {e}")

        if self._loop:
            self._loop.call_soon_threadsafe(self._loop.stop)

        if self._thread:
            self._thread.join(timeout=2.0)

        self._server = None
        self._loop = None
        self._thread = None
        self._clients.clear()

        logger.info("StateBroadcaster stopped")

    def set_full_state(
        self,
        device_name: str,
        states: dict[str, "ParameterState"],
        definitions: dict[str, "Parameter"],
        visible: Optional[list[str]] = None,
        labels: Optional[dict[str, str]] = None,
        transport: Optional["TransportSnapshot"] = None,
        title: Optional[str] = None,
    ) -> None:
        """
        Cache the full surface state for new client connections.

        Called after the surface connects and whenever the cached snapshot
        should follow a change.
        """
        # Use model_construct() to skip re-validation - nested models are already valid
        self._cached_full_state = FullStateMessage.model_construct(
            type="full_state",
            timestamp=datetime.now(),
            device_name=device_name,
            title=title,
            visible=visible or [],
            labels=labels or {},
            states=states,
            definitions=definitions,
            transport=transport,
        )

    def update_cached_state(self, state: "ParameterState") -> None:
        """Fold a parameter change into the cached full state."""
        if self._cached_full_state is not None:
            self._cached_full_state.states[state.parameter_id] = state

    def broadcast_parameter_change(self, state: "ParameterState") -> None:
        self.update_cached_state(state)
        self._send(ParameterChangeMessage.model_construct(type="parameter_change", timestamp=datetime.now(), state=state))

    def broadcast_transport_change(self, transport: "TransportSnapshot") -> None:
        if self._cached_full_state is not None:
            self._cached_full_state.transport = transport
        self._send(
            TransportChangeMessage.model_construct(type="transport_change", timestamp=datetime.now(), transport=transport),
        )

    def broadcast_outport(self, tag: str, payload: list[float]) -> None:
        self._send(OutportMessage(timestamp=datetime.now(), tag=tag, payload=payload))

    def _send(self, message: BaseModel) -> None:
        if not self._running or not self._loop:
            return
        asyncio.run_coroutine_threadsafe(self._broadcast(message.model_dump_json()), self._loop)

    def _run_server(self) -> None:
        """Run the WebSocket server in the background thread."""
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)

        async def serve():
            self._server = await websockets.asyncio.server.serve(
                self._handle_client,
                self._host,
                self._port,
            )
            self._loop = loop
            await self._server.wait_closed()

        try:
            loop.run_until_complete(serve())
        except Exception as e:
            if self._running:  # Only log if not intentionally stopped
                logger.error(f"WebSocket server error: {e}")
        finally:
            loop.close()

    async def _handle_client(self, websocket: "ServerConnection") -> None:
        """Send the cached full state, then keep the connection open."""
        with self._lock:
            self._clients.add(websocket)

        logger.debug(f"Debug client connected from {websocket.remote_address}")

        try:
            if self._cached_full_state:
                await websocket.send(self._cached_full_state.model_dump_json())

            async for message in websocket:
                # Clients are read-only observers
                logger.debug(f"Received message from client: {message}")

        except Exception as e:
            logger.debug(f"Client disconnected: {e}")
        finally:
            with self._lock:
                self._clients.discard(websocket)
            logger.debug(f"Debug client disconnected from {websocket.remote_address}")

    async def _broadcast(self, message: str) -> None:
        """Broadcast a message to all connected clients, dropping failed ones."""
        with self._lock:
            clients = self._clients.copy()

        if not clients:
            return

        failed_clients = []
        for client in clients:
            try:
                await client.send(message)
            except Exception:
                failed_clients.append(client)

        if failed_clients:
            with self._lock:
                for client in failed_clients:
                    self._clients.discard(client)

    async def _close_all_clients(self) -> None:
        """Close all client connections."""
        with self._lock:
            clients = self._clients.copy()

        for client in clients:
            with contextlib.suppress(Exception):
                await client.close()

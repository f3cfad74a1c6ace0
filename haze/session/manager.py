"""
WebSocket session manager for the haze backend.

Holds the single live browser connection plots are streamed to. A new
browser connection replaces the previous one; a streaming call takes an
exclusive lease on the connection so frames of two calls never interleave
on the wire (the browser reassembles column data from a stack of received
binary frames, which interleaving would corrupt).
"""

import asyncio
import json
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import WebSocket

from ..messages import MessageType, UiMessage
from ..shared.logger import get_logger

logger = get_logger(__name__)


class NoActiveSessionError(RuntimeError):
    """No browser is connected to stream plots to."""


class TransportError(RuntimeError):
    """Sending a frame to the browser failed."""


class PlotConnection:
    """Send capability over the current connection, handed out by a lease."""

    def __init__(self, manager: "PlotSessionManager", websocket: WebSocket):
        self._manager = manager
        self._websocket = websocket

    @property
    def websocket(self) -> WebSocket:
        return self._websocket

    async def send_text(self, text: str) -> None:
        """Send one text frame.

        Raises:
            TransportError: If the frame could not be sent.
        """
        try:
            await self._websocket.send_text(text)
        except Exception as e:
            await self._fail("text", e)

    async def send_binary(self, data: bytes) -> None:
        """Send one binary frame.

        Raises:
            TransportError: If the frame could not be sent.
        """
        try:
            await self._websocket.send_bytes(data)
        except Exception as e:
            await self._fail("binary", e)

    async def _fail(self, kind: str, exc: Exception) -> None:
        logger.error("Error sending %s frame over WebSocket: %s", kind, exc)
        await self._manager.disconnect(self._websocket)
        raise TransportError(f"Failed to send {kind} frame: {exc}") from exc


class PlotSessionManager:
    """
    Manages the one WebSocket connection plots are streamed over.

    Whether a session exists is readable by anyone at any time; sending
    requires holding the lease (see ``acquire``/``lease``).
    """

    def __init__(self):
        self._websocket: Optional[WebSocket] = None
        self._info: Dict[str, Any] = {}
        self._loop: Optional[asyncio.AbstractEventLoop] = None

        # Exclusive use of the connection for one streaming call
        self._lease_lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, client_id: Optional[str] = None) -> None:
        """
        Accept a browser connection and make it the current session.

        Args:
            websocket: The WebSocket connection
            client_id: Optional client identifier
        """
        await websocket.accept()

        if self._websocket is not None and self._websocket is not websocket:
            logger.info(
                "Replacing plot session %s with %s",
                self._info.get("client_id"),
                client_id,
            )

        self._websocket = websocket
        self._info = {
            "client_id": client_id,
            "connected_at": datetime.now().isoformat(),
        }
        self._loop = asyncio.get_running_loop()
        logger.info("Plot session connected: %s", client_id)

    async def disconnect(self, websocket: WebSocket) -> None:
        """
        Drop a connection; the session ends only if it was the current one.

        Args:
            websocket: The WebSocket connection to disconnect
        """
        if self._websocket is websocket:
            logger.info("Plot session disconnected: %s", self._info.get("client_id"))
            self._websocket = None
            self._info = {}

    def is_active(self) -> bool:
        """Whether a browser is currently connected."""
        return self._websocket is not None

    def get_connection(self) -> WebSocket:
        """
        Return the current WebSocket.

        Raises:
            NoActiveSessionError: If no browser is connected.
        """
        if self._websocket is None:
            raise NoActiveSessionError("No WebSocket session is active")
        return self._websocket

    @property
    def loop(self) -> Optional[asyncio.AbstractEventLoop]:
        """Event loop the current (or last) session was accepted on."""
        return self._loop

    async def acquire(self) -> PlotConnection:
        """
        Take exclusive use of the connection; pair with ``release``.

        Raises:
            NoActiveSessionError: If no browser is connected once the lease
                is obtained. The lease is not held in that case.
        """
        await self._lease_lock.acquire()
        try:
            return PlotConnection(self, self.get_connection())
        except NoActiveSessionError:
            self._lease_lock.release()
            raise

    def release(self) -> None:
        self._lease_lock.release()

    @asynccontextmanager
    async def lease(self) -> AsyncIterator[PlotConnection]:
        conn = await self.acquire()
        try:
            yield conn
        finally:
            self.release()

    def is_leased(self) -> bool:
        return self._lease_lock.locked()

    async def handle_message(self, message_text: str) -> Optional[UiMessage]:
        """
        Handle an incoming WebSocket text message.

        Args:
            message_text: Raw message text

        Returns:
            Response message or None
        """
        try:
            message = UiMessage.from_json(message_text)
        except (json.JSONDecodeError, ValueError) as e:
            return UiMessage(
                type=MessageType.ERROR,
                data={"error": f"Invalid message format: {e}"},
            )

        if message.type == MessageType.PING:
            return UiMessage(
                type=MessageType.PONG,
                data={"timestamp": datetime.now().isoformat()},
            )

        return None

    def get_status(self) -> Dict[str, Any]:
        """Session status for the HTTP status route."""
        return {
            "active": self.is_active(),
            "client_id": self._info.get("client_id"),
            "connected_at": self._info.get("connected_at"),
            "streaming": self.is_leased(),
        }


# Global session manager instance
plot_session = PlotSessionManager()

import json
import logging
from typing import Any, Optional, Set

import websockets
from websockets.exceptions import ConnectionClosed

logger = logging.getLogger(__name__)

RELOAD_MESSAGE = json.dumps({"type": "reload"}, separators=(",", ":"))


class BroadcastServer:
    """
    WebSocket server fanning reload notifications out to every browser tab.

    Connections are anonymous: each one is kept in ``clients`` while open and
    receives every broadcast. Anything a client sends is read and dropped.
    """

    def __init__(self):
        self.clients: Set[Any] = set()
        self._server = None
        self._port: Optional[int] = None

    @property
    def running(self) -> bool:
        return self._server is not None

    @property
    def port(self) -> Optional[int]:
        return self._port

    async def start(self, host: str, port: int) -> None:
        """Start listening on ``host:port``. Raises OSError if the bind fails."""
        if self._server is not None:
            return
        self._server = await websockets.serve(self._handle_connection, host, port)
        self._port = port
        logger.info(f"WebSocket server listening on ws://{host}:{port}")

    async def stop(self) -> None:
        """Close the server and every tracked connection. Safe to call twice."""
        if self._server is None:
            return
        server, port = self._server, self._port
        self._server = None
        self._port = None
        server.close()
        await server.wait_closed()
        self.clients.clear()
        logger.info(f"WebSocket server on port {port} stopped")

    async def _handle_connection(self, connection) -> None:
        self.add_client(connection)
        try:
            async for _ in connection:
                pass
        except ConnectionClosed:
            pass
        finally:
            self.remove_client(connection)

    def add_client(self, connection) -> None:
        self.clients.add(connection)
        logger.info(f"Client connected ({len(self.clients)} open)")

    def remove_client(self, connection) -> None:
        if connection in self.clients:
            self.clients.discard(connection)
            logger.info(f"Client disconnected ({len(self.clients)} open)")

    async def broadcast(self, message: str) -> int:
        """
        Send ``message`` to every open connection; returns how many got it.

        Works on a snapshot of ``clients`` because a failed send removes the
        connection (and closing it may fire the handler's cleanup).
        """
        delivered = 0
        for connection in list(self.clients):
            try:
                await connection.send(message)
                delivered += 1
            except Exception as e:
                logger.warning(f"Dropping client after failed send: {e}")
                self.remove_client(connection)
        logger.debug(f"Broadcast delivered to {delivered} client(s)")
        return delivered

    async def send_reload(self) -> int:
        return await self.broadcast(RELOAD_MESSAGE)

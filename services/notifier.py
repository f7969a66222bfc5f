"""
Notification channel: best-effort broadcast of task events to WebSocket observers
"""

import asyncio
import logging
from typing import Any, List

from models.events import NotificationEvent

logger = logging.getLogger(__name__)


class NotificationChannel:
    """
    Fan-out of events to every observer connected at broadcast time.

    This is not a message queue: there is no history, no replay for late
    joiners and no acknowledgement. Observers filter by ``taskId`` themselves.
    An observer is anything with an async ``send_json`` (a Starlette WebSocket
    in production).
    """

    def __init__(self, send_timeout: float = 5.0):
        self.send_timeout = send_timeout
        self.active_connections: List[Any] = []

    @property
    def subscriber_count(self) -> int:
        return len(self.active_connections)

    async def connect(self, websocket, accept: bool = True):
        if accept:
            await websocket.accept()
        self.active_connections.append(websocket)
        logger.info("Observer connected. Total: %d", len(self.active_connections))

    def disconnect(self, websocket):
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)
            logger.info("Observer disconnected. Total: %d", len(self.active_connections))

    async def _send(self, connection, message) -> bool:
        try:
            await asyncio.wait_for(connection.send_json(message), self.send_timeout)
            return True
        except asyncio.TimeoutError:
            logger.warning("Dropping observer that did not accept an event within %.1fs", self.send_timeout)
        except Exception as e:
            logger.warning("Dropping observer after failed send: %s", e)
        return False

    async def broadcast(self, event: NotificationEvent) -> None:
        """
        Send an event to all connected observers; never raises.
        Sends run concurrently and each is bounded by ``send_timeout``, so a
        stalled observer is dropped instead of holding up the caller.
        """
        message = event.to_wire()
        connections = list(self.active_connections)
        results = await asyncio.gather(*(self._send(conn, message) for conn in connections))

        for conn, delivered in zip(connections, results):
            if not delivered:
                self.disconnect(conn)

    async def status_log(self, task_id: str, message: str) -> None:
        logger.info("[%s] %s", task_id, message)
        await self.broadcast(NotificationEvent.status_log(task_id, message))

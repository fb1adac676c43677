"""
Travel Log API — Realtime Stats Broadcaster
=============================================

What:  Keeps the list of connected WebSocket clients and pushes the number of
       users, trips and places to all of them after every write.
How:   Write routes schedule broadcast() as a FastAPI background task, so it
       runs after the response has been sent, with its own database session.
       Failures are logged and never reach the request that triggered them.

Message format (JSON text frame):
    {"users": 3, "trips": 5, "places": 12}
"""

import logging
from typing import Dict, List

from sqlalchemy import func, select
from starlette.websockets import WebSocket

from travellog.database import async_session_factory
from travellog.models.place import Place
from travellog.models.trip import Trip
from travellog.models.user import User

logger = logging.getLogger(__name__)


class StatsBroadcaster:
    """
    Connected clients are only tracked in this process; with several worker
    processes each one broadcasts to its own clients.
    """

    def __init__(self, session_factory=async_session_factory):
        self.session_factory = session_factory
        self.clients: List[WebSocket] = []

    def connect(self, websocket: WebSocket) -> None:
        self.clients.append(websocket)
        logger.info("WebSocket client connected (%d connected)", len(self.clients))

    def disconnect(self, websocket: WebSocket) -> None:
        if websocket in self.clients:
            self.clients.remove(websocket)
        logger.debug("WebSocket client disconnected (%d connected)", len(self.clients))

    async def count(self) -> Dict[str, int]:
        async with self.session_factory() as session:
            return {
                "users": await session.scalar(select(func.count()).select_from(User)),
                "trips": await session.scalar(select(func.count()).select_from(Trip)),
                "places": await session.scalar(select(func.count()).select_from(Place)),
            }

    async def broadcast(self) -> None:
        """Sends the current counts to every client, dropping clients that fail."""
        if not self.clients:
            return

        try:
            stats = await self.count()
        except Exception:
            logger.warning("Could not count documents for the realtime stats", exc_info=True)
            return

        for websocket in list(self.clients):
            try:
                await websocket.send_json(stats)
            except Exception as e:
                logger.warning("Could not send stats to a WebSocket client, dropping it: %s", e)
                self.disconnect(websocket)

        logger.debug("Broadcast stats %s to %d client(s)", stats, len(self.clients))


# ── Singleton Instance ────────────────────────────────────────────────────
stats_broadcaster = StatsBroadcaster()

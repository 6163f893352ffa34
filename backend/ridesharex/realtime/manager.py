# ridesharex/realtime/manager.py
"""
Per-user websocket rooms.

Each authenticated socket joins the room ``user:{id}``; the outbox
dispatcher pushes notification events into that room.
"""
import asyncio
import logging
from collections import defaultdict
from typing import Any, DefaultDict, Dict, Set

from fastapi import WebSocket

logger = logging.getLogger(__name__)


def room_for(user_id: int) -> str:
    return f"user:{user_id}"


class ConnectionManager:
    def __init__(self):
        self._rooms: DefaultDict[str, Set[WebSocket]] = defaultdict(set)
        self._lock = asyncio.Lock()

    async def connect(self, user_id: int, websocket: WebSocket) -> None:
        async with self._lock:
            self._rooms[room_for(user_id)].add(websocket)
        logger.info("Websocket joined %s", room_for(user_id))

    async def disconnect(self, user_id: int, websocket: WebSocket) -> None:
        room = room_for(user_id)
        async with self._lock:
            sockets = self._rooms.get(room)
            if sockets is None:
                return
            sockets.discard(websocket)
            if not sockets:
                del self._rooms[room]
        logger.info("Websocket left %s", room)

    def connection_count(self, user_id: int) -> int:
        return len(self._rooms.get(room_for(user_id), ()))

    async def send_to_user(self, user_id: int, message: Dict[str, Any]) -> int:
        """
        Send a JSON message to every socket in the user's room.
        Sockets that fail are dropped. Returns how many sockets got it.
        """
        async with self._lock:
            sockets = list(self._rooms.get(room_for(user_id), ()))

        delivered = 0
        for websocket in sockets:
            try:
                await websocket.send_json(message)
                delivered += 1
            except Exception:
                logger.warning("Dropping dead websocket in %s", room_for(user_id), exc_info=True)
                await self.disconnect(user_id, websocket)
        return delivered


# Process-wide manager used by the app and the dispatcher
manager = ConnectionManager()

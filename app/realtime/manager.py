"""
Realtime connection manager.

Every frame on the wire is a JSON object `{"event": <name>, "data": <payload>}`.
Each authenticated connection joins the room `user_<id>`; messages addressed
to a user are emitted to that room so every tab of the user receives them.
"""
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol, Set

from fastapi.encoders import jsonable_encoder

from app.realtime.presence import PresenceRegistry


logger = logging.getLogger(__name__)

USER_ONLINE = "user_online"
USER_OFFLINE = "user_offline"


class Socket(Protocol):
    async def send_json(self, data: Any) -> None: ...


def user_room(user_id: uuid.UUID) -> str:
    return f"user_{user_id}"


@dataclass
class Connection:
    id: str
    user_id: uuid.UUID
    socket: Socket


class ConnectionManager:
    """Tracks open connections, their rooms and the users' presence."""

    def __init__(self, presence: Optional[PresenceRegistry] = None):
        self.presence = presence or PresenceRegistry()
        self._connections: Dict[str, Connection] = {}
        self._rooms: Dict[str, Set[str]] = {}

    async def connect(self, user_id: uuid.UUID, socket: Socket) -> Connection:
        """Register an authenticated socket; broadcasts user_online on the first one."""
        connection = Connection(id=uuid.uuid4().hex, user_id=user_id, socket=socket)
        self._connections[connection.id] = connection
        self._rooms.setdefault(user_room(user_id), set()).add(connection.id)

        if self.presence.connect(user_id, connection.id):
            logger.info(f"User {user_id} online")
            await self.broadcast(USER_ONLINE, {"userId": user_id}, exclude=connection.id)
        return connection

    async def disconnect(self, connection: Connection) -> None:
        """Forget a socket; broadcasts user_offline when it was the user's last one."""
        self._connections.pop(connection.id, None)
        room = self._rooms.get(user_room(connection.user_id))
        if room is not None:
            room.discard(connection.id)
            if not room:
                del self._rooms[user_room(connection.user_id)]

        if self.presence.disconnect(connection.user_id, connection.id):
            logger.info(f"User {connection.user_id} offline")
            await self.broadcast(USER_OFFLINE, {"userId": connection.user_id})

    async def send(self, connection: Connection, event: str, data: Any) -> None:
        try:
            await connection.socket.send_json({"event": event, "data": jsonable_encoder(data)})
        except Exception as e:
            # Closed sockets are cleaned up by their own receive loop
            logger.warning(f"Failed to deliver '{event}' to connection {connection.id}: {e}")

    async def emit_to_room(self, room: str, event: str, data: Any) -> int:
        """Send to every connection in a room. Returns the number of connections."""
        connection_ids = list(self._rooms.get(room, ()))
        for connection_id in connection_ids:
            connection = self._connections.get(connection_id)
            if connection is not None:
                await self.send(connection, event, data)
        return len(connection_ids)

    async def emit_to_user(self, user_id: uuid.UUID, event: str, data: Any) -> int:
        return await self.emit_to_room(user_room(user_id), event, data)

    async def broadcast(self, event: str, data: Any, exclude: Optional[str] = None) -> None:
        for connection in list(self._connections.values()):
            if connection.id != exclude:
                await self.send(connection, event, data)

    def room_members(self, room: str) -> Set[str]:
        return set(self._rooms.get(room, ()))


manager = ConnectionManager()

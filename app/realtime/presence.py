"""
In-process presence registry.

Tracks which users hold at least one open realtime connection. A user is
online from its first connection until its last one closes, so a second
browser tab does not produce duplicate online/offline events.

State lives in this process only. Running several API instances would
need a shared store.
"""
import uuid
from typing import Dict, List, Set


class PresenceRegistry:
    """user_id -> set of connection ids."""

    def __init__(self):
        self._sessions: Dict[uuid.UUID, Set[str]] = {}

    def connect(self, user_id: uuid.UUID, connection_id: str) -> bool:
        """Register a connection. Returns True when the user just came online."""
        sessions = self._sessions.setdefault(user_id, set())
        came_online = not sessions
        sessions.add(connection_id)
        return came_online

    def disconnect(self, user_id: uuid.UUID, connection_id: str) -> bool:
        """Drop a connection. Returns True when it was the user's last one."""
        sessions = self._sessions.get(user_id)
        if not sessions or connection_id not in sessions:
            return False
        sessions.discard(connection_id)
        if sessions:
            return False
        del self._sessions[user_id]
        return True

    def is_online(self, user_id: uuid.UUID) -> bool:
        return bool(self._sessions.get(user_id))

    def connection_count(self, user_id: uuid.UUID) -> int:
        return len(self._sessions.get(user_id, ()))

    def online_user_ids(self) -> List[uuid.UUID]:
        return [user_id for user_id, sessions in self._sessions.items() if sessions]

    def clear(self) -> None:
        self._sessions.clear()

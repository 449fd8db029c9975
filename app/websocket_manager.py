import logging
from typing import Any, Dict, List, Optional, Set

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class Connection:
    """One live socket owned by an authenticated user."""

    def __init__(self, websocket: WebSocket, user_id: int):
        self.websocket = websocket
        self.user_id = user_id
        self.channels: Set[int] = set()

    async def send(self, event: str, data: Any) -> None:
        await self.websocket.send_json({"type": event, "data": data})

    def __repr__(self):
        return f"<Connection user={self.user_id} channels={len(self.channels)}>"


class PresenceRegistry:
    """
    Process-local map from identity channel (a user id) to the connections
    joined to it.

    A connection joins its owner's channel and the channel of every friend
    it had when it connected. Events addressed to a user go to the live
    connections that user owns in their channel; membership of the other
    connections records who the owner is allowed to reach without a
    database round trip (typing indicators).

    All mutation happens on the event loop thread, so no locking is needed.
    """

    def __init__(self):
        self.channels: Dict[int, Set[Connection]] = {}

    def join(self, connection: Connection, channel_id: int) -> None:
        self.channels.setdefault(channel_id, set()).add(connection)
        connection.channels.add(channel_id)

    def link(self, user_id: int, other_id: int) -> None:
        """Join both users' live connections to each other's channel (new friendship)."""
        for connection in self.connections_for(user_id):
            self.join(connection, other_id)
        for connection in self.connections_for(other_id):
            self.join(connection, user_id)

    def leave_all(self, connection: Connection) -> None:
        for channel_id in list(connection.channels):
            members = self.channels.get(channel_id)
            if members is not None:
                members.discard(connection)
                if not members:
                    del self.channels[channel_id]
        connection.channels.clear()

    def connections_for(self, user_id: int) -> List[Connection]:
        return [c for c in self.channels.get(user_id, ()) if c.user_id == user_id]

    def has_joined(self, connection: Connection, channel_id: int) -> bool:
        return channel_id in connection.channels

    def is_online(self, user_id: int) -> bool:
        return bool(self.connections_for(user_id))

    def online_users(self) -> List[int]:
        return sorted(
            channel_id for channel_id in self.channels
            if self.is_online(channel_id)
        )

    async def emit(
        self,
        user_id: int,
        event: str,
        data: Any,
        exclude: Optional[Connection] = None,
    ) -> int:
        """Send to every live connection of user_id; returns how many got it."""
        delivered = 0
        for connection in self.connections_for(user_id):
            if connection is exclude:
                continue
            try:
                await connection.send(event, data)
                delivered += 1
            except Exception as e:
                # socket already gone; its disconnect handler may still be pending
                logger.warning("Dropping dead connection %r: %s", connection, e)
                self.leave_all(connection)
        return delivered

    async def emit_many(self, user_ids, event: str, data: Any) -> int:
        delivered = 0
        for user_id in user_ids:
            delivered += await self.emit(user_id, event, data)
        return delivered

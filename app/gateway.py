"""
Realtime gateway: connection lifecycle and event handling for live sockets.

Each handler opens its own database session, so an event never waits on
another event's transaction, and a socket that drops mid-send does not undo
a message that was already stored.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import WebSocket
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.auth import get_user_from_token
from app.exceptions import AppError, AuthenticationFailure, ValidationFailure
from app.models.base import isoformat_utc, utcnow
from app.schemas.message import MessageResponse, SendMessageEvent, TypingEvent
from app.services.auth_service import AuthService
from app.services.chat_service import ChatService
from app.services.friend_service import FriendService
from app.websocket_manager import Connection, PresenceRegistry

logger = logging.getLogger(__name__)


def message_payload(message) -> Dict[str, Any]:
    return MessageResponse.model_validate(message).model_dump(mode="json")


def _validation_message(exc: ValidationError) -> str:
    first = exc.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ())) or "payload"
    return f"Invalid {field}: {first.get('msg', 'invalid value')}"


class RealtimeGateway:
    def __init__(self, registry: PresenceRegistry, session_factory: async_sessionmaker):
        self.registry = registry
        self.session_factory = session_factory
        self.handlers = {
            "sendMessage": self.handle_send_message,
            "typing": self.handle_typing,
            "ping": self.handle_ping,
        }

    async def authenticate(self, token: Optional[str]) -> int:
        async with self.session_factory() as db:
            user = await get_user_from_token(token, db)
            return user.id

    async def connect(self, websocket: WebSocket, token: Optional[str]) -> Optional[Connection]:
        """Authenticate and register the socket; None means it was closed."""
        try:
            user_id = await self.authenticate(token)
        except AuthenticationFailure as e:
            logger.info("Rejected realtime connection: %s", e.message)
            await websocket.close(code=1008, reason=e.message)
            return None

        await websocket.accept()
        connection = Connection(websocket, user_id)
        try:
            await self.on_authenticated(connection)
        except Exception:
            # socket dropped mid-handshake; undo the presence it already recorded
            await self.disconnect(connection)
            raise
        return connection

    async def on_authenticated(self, connection: Connection) -> None:
        user_id = connection.user_id

        async with self.session_factory() as db:
            await AuthService(db).update_online_status(user_id, True)
            friends = await FriendService(db).get_friends(user_id)

        self.registry.join(connection, user_id)
        for friend in friends:
            self.registry.join(connection, friend.id)

        logger.info("User connected: %s (%d friends)", user_id, len(friends))

        online_ids = [friend.id for friend in friends if friend.is_online]
        if online_ids:
            await connection.send("onlineFriendsList", {"onlineUserIds": online_ids})

        await self.registry.emit_many(
            [friend.id for friend in friends],
            "userOnline",
            {"userId": user_id, "isOnline": True},
        )

    async def disconnect(self, connection: Connection) -> None:
        user_id = connection.user_id
        self.registry.leave_all(connection)

        if self.registry.is_online(user_id):
            logger.info("User %s closed one of several connections", user_id)
            return

        async with self.session_factory() as db:
            user = await AuthService(db).update_online_status(user_id, False)
            # friendships may have changed since connect
            friend_ids = await FriendService(db).get_friend_ids(user_id)

        last_seen = user.last_seen if user else utcnow()
        await self.registry.emit_many(
            friend_ids,
            "userOffline",
            {"userId": user_id, "isOnline": False, "lastSeen": isoformat_utc(last_seen)},
        )
        logger.info("User disconnected: %s", user_id)

    async def dispatch(self, connection: Connection, frame: Any) -> None:
        """Route one inbound frame; every failure is reported back as an error event."""
        try:
            if not isinstance(frame, dict):
                raise ValidationFailure("Invalid frame format")

            action = frame.get("action")
            handler = self.handlers.get(action)
            if handler is None:
                raise ValidationFailure(f"Unknown action: {action}")

            payload = frame.get("data") or {}
            if not isinstance(payload, dict):
                raise ValidationFailure("Invalid payload")

            await handler(connection, payload)
        except AppError as e:
            await self.send_error(connection, e.message)
        except Exception:
            logger.exception("Failed to handle frame from user %s", connection.user_id)
            await self.send_error(connection, "Server error")

    async def send_error(self, connection: Connection, message: str) -> None:
        try:
            await connection.send("error", {"message": message})
        except Exception as e:
            logger.warning("Could not report error to %r: %s", connection, e)

    async def handle_send_message(self, connection: Connection, payload: Dict) -> None:
        try:
            event = SendMessageEvent(**payload)
        except ValidationError as e:
            raise ValidationFailure(_validation_message(e))

        async with self.session_factory() as db:
            message = await ChatService(db).send_message(connection.user_id, event.receiver, event.text)

        data = message_payload(message)
        await self.registry.emit(event.receiver, "newMessage", data)
        await connection.send("messageSent", data)

    async def handle_typing(self, connection: Connection, payload: Dict) -> None:
        try:
            event = TypingEvent(**payload)
        except ValidationError as e:
            raise ValidationFailure(_validation_message(e))

        # only friends known at connect time; anything else is dropped quietly
        if event.receiver == connection.user_id or not self.registry.has_joined(connection, event.receiver):
            return

        await self.registry.emit(
            event.receiver,
            "typing",
            {"sender": connection.user_id, "isTyping": event.is_typing},
            exclude=connection,
        )

    async def handle_ping(self, connection: Connection, payload: Dict) -> None:
        await connection.send("pong", {})

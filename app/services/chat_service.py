import logging
from typing import Dict, List

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.exceptions import AuthorizationFailure, ValidationFailure
from app.models.message import Message
from app.repositories.message_repository import MessageRepository
from app.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)


class ChatService:
    """Direct messages between friends."""

    def __init__(self, db: AsyncSession, max_message_length: int = None):
        self.db = db
        self.users = UserRepository(db)
        self.messages = MessageRepository(db)
        if max_message_length is None:
            max_message_length = settings.MAX_MESSAGE_LENGTH
        self.max_message_length = max_message_length

    def _clean_text(self, text) -> str:
        if not isinstance(text, str):
            raise ValidationFailure("Message text is required")

        text = text.strip()
        if not text:
            raise ValidationFailure("Message text is required")
        if len(text) > self.max_message_length:
            raise ValidationFailure(
                f"Message must be at most {self.max_message_length} characters"
            )
        return text

    async def send_message(self, sender_id: int, receiver_id: int, text: str) -> Message:
        """
        Persist a message from sender to receiver.

        The friendship check runs before the text is looked at, so a non-friend
        always gets AuthorizationFailure whatever the payload.
        """
        if not await self.users.is_friend(sender_id, receiver_id):
            raise AuthorizationFailure("You can only message friends")

        message = await self.messages.create(sender_id, receiver_id, self._clean_text(text))
        logger.debug("Message %s stored: %s -> %s", message.id, sender_id, receiver_id)
        return message

    async def get_messages(self, user_id: int, other_id: int) -> List[Message]:
        """Thread between the two users, oldest first; marks other -> user messages read."""
        if not await self.users.is_friend(user_id, other_id):
            raise AuthorizationFailure("You can only view messages with friends")

        messages = await self.messages.get_thread(user_id, other_id)
        marked = await self.messages.mark_read(receiver_id=user_id, sender_id=other_id)
        if marked:
            logger.debug("Marked %s messages from %s read for %s", marked, other_id, user_id)
        return messages

    async def count_unread(self, sender_id: int, receiver_id: int) -> int:
        return await self.messages.count_unread(sender_id, receiver_id)

    async def get_conversations(self, user_id: int) -> List[Dict]:
        conversations: Dict[int, Dict] = {}

        # newest first, so the first message seen per counterpart is the latest
        for message in await self.messages.get_involving_user(user_id):
            outgoing = message.sender_id == user_id
            partner = message.receiver if outgoing else message.sender

            if partner.id not in conversations:
                conversations[partner.id] = {
                    "user": partner,
                    "last_message": message,
                    "unread_count": 0,
                }

        for partner_id, conversation in conversations.items():
            conversation["unread_count"] = await self.messages.count_unread(partner_id, user_id)

        return list(conversations.values())

from typing import Optional, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, or_, update, func
from sqlalchemy.orm import joinedload

from app.models.base import utcnow
from app.models.message import Message

class MessageRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    def _with_users(self):
        return select(Message).options(
            joinedload(Message.sender),
            joinedload(Message.receiver),
        )

    @staticmethod
    def _between(user_id1: int, user_id2: int):
        return or_(
            and_(Message.sender_id == user_id1, Message.receiver_id == user_id2),
            and_(Message.sender_id == user_id2, Message.receiver_id == user_id1),
        )

    async def create(self, sender_id: int, receiver_id: int, text: str) -> Message:
        message = Message(
            sender_id=sender_id,
            receiver_id=receiver_id,
            text=text,
            is_read=False,
        )
        self.db.add(message)
        await self.db.commit()
        return await self.get_by_id(message.id)

    async def get_by_id(self, message_id: int) -> Optional[Message]:
        result = await self.db.execute(
            self._with_users().where(Message.id == message_id)
        )
        return result.scalar_one_or_none()

    async def get_thread(self, user_id1: int, user_id2: int) -> List[Message]:
        """Every message between the pair, oldest first."""
        result = await self.db.execute(
            self._with_users()
            .where(self._between(user_id1, user_id2))
            .order_by(Message.created_at.asc(), Message.id.asc())
        )
        return list(result.scalars().all())

    async def mark_read(self, receiver_id: int, sender_id: int) -> int:
        """Flip every unread sender -> receiver message to read; returns the row count."""
        result = await self.db.execute(
            update(Message)
            .where(
                and_(
                    Message.sender_id == sender_id,
                    Message.receiver_id == receiver_id,
                    Message.is_read.is_(False),
                )
            )
            .values(is_read=True, read_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return result.rowcount or 0

    async def count_unread(self, sender_id: int, receiver_id: int) -> int:
        result = await self.db.execute(
            select(func.count(Message.id)).where(
                and_(
                    Message.sender_id == sender_id,
                    Message.receiver_id == receiver_id,
                    Message.is_read.is_(False),
                )
            )
        )
        return result.scalar() or 0

    async def get_involving_user(self, user_id: int) -> List[Message]:
        """Every message the user sent or received, newest first."""
        result = await self.db.execute(
            self._with_users()
            .where(or_(Message.sender_id == user_id, Message.receiver_id == user_id))
            .order_by(Message.created_at.desc(), Message.id.desc())
        )
        return list(result.scalars().all())

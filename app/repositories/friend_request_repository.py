from typing import Optional, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, or_
from sqlalchemy.orm import selectinload

from app.models.friend_request import FriendRequest, FriendRequestStatus

class FriendRequestRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    def _with_users(self):
        return select(FriendRequest).options(
            selectinload(FriendRequest.sender),
            selectinload(FriendRequest.receiver),
        )

    async def create(self, sender_id: int, receiver_id: int) -> FriendRequest:
        friend_request = FriendRequest(
            sender_id=sender_id,
            receiver_id=receiver_id,
            status=FriendRequestStatus.PENDING,
        )
        self.db.add(friend_request)
        await self.db.commit()
        return await self.get_by_id(friend_request.id)

    async def get_by_id(self, request_id: int) -> Optional[FriendRequest]:
        result = await self.db.execute(
            self._with_users()
            .where(FriendRequest.id == request_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_pending_between(self, user_id1: int, user_id2: int) -> Optional[FriendRequest]:
        """Pending request between the pair, whichever of them sent it."""
        result = await self.db.execute(
            select(FriendRequest).where(
                and_(
                    FriendRequest.status == FriendRequestStatus.PENDING,
                    or_(
                        and_(FriendRequest.sender_id == user_id1, FriendRequest.receiver_id == user_id2),
                        and_(FriendRequest.sender_id == user_id2, FriendRequest.receiver_id == user_id1),
                    ),
                )
            ).limit(1)
        )
        return result.scalars().first()

    async def update_status(
        self,
        friend_request: FriendRequest,
        status: FriendRequestStatus,
        commit: bool = True,
    ) -> FriendRequest:
        friend_request.status = status
        if commit:
            await self.db.commit()
        else:
            await self.db.flush()
        return friend_request

    async def list_received_pending(self, user_id: int) -> List[FriendRequest]:
        result = await self.db.execute(
            self._with_users()
            .where(
                and_(
                    FriendRequest.receiver_id == user_id,
                    FriendRequest.status == FriendRequestStatus.PENDING,
                )
            )
            .order_by(FriendRequest.created_at.desc(), FriendRequest.id.desc())
        )
        return list(result.scalars().all())

    async def list_for_user(self, user_id: int) -> List[FriendRequest]:
        result = await self.db.execute(
            self._with_users()
            .where(or_(FriendRequest.sender_id == user_id, FriendRequest.receiver_id == user_id))
            .order_by(FriendRequest.created_at.desc(), FriendRequest.id.desc())
        )
        return list(result.scalars().all())

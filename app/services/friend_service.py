import logging
from typing import List

from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import AuthorizationFailure, Conflict, NotFound, ValidationFailure
from app.models.friend_request import FriendRequest, FriendRequestStatus
from app.models.user import User
from app.repositories.friend_request_repository import FriendRequestRepository
from app.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)


class FriendService:
    """Friend-request lifecycle and friendship queries."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.users = UserRepository(db)
        self.requests = FriendRequestRepository(db)

    async def send_friend_request(self, from_user_id: int, to_user_id: int) -> FriendRequest:
        if from_user_id == to_user_id:
            raise ValidationFailure("Cannot send friend request to yourself")

        if not await self.users.get_by_id(to_user_id):
            raise NotFound("User not found")

        if await self.users.is_friend(from_user_id, to_user_id):
            raise Conflict("Already friends")

        if await self.requests.find_pending_between(from_user_id, to_user_id):
            raise Conflict("Friend request already exists")

        friend_request = await self.requests.create(from_user_id, to_user_id)
        logger.info("Friend request %s: %s -> %s", friend_request.id, from_user_id, to_user_id)
        return friend_request

    async def _get_request_for_receiver(self, request_id: int, user_id: int, verb: str) -> FriendRequest:
        friend_request = await self.requests.get_by_id(request_id)
        if not friend_request:
            raise NotFound("Friend request not found")

        if friend_request.receiver_id != user_id:
            raise AuthorizationFailure(f"Not authorized to {verb} this request")

        if friend_request.status != FriendRequestStatus.PENDING:
            raise Conflict(f"Friend request already {friend_request.status.value}")

        return friend_request

    async def accept_friend_request(self, request_id: int, user_id: int) -> FriendRequest:
        friend_request = await self._get_request_for_receiver(request_id, user_id, "accept")

        # status flip and both edges land in one transaction
        await self.requests.update_status(friend_request, FriendRequestStatus.ACCEPTED, commit=False)
        await self.users.add_friend_edge(friend_request.sender_id, friend_request.receiver_id, commit=False)
        await self.users.add_friend_edge(friend_request.receiver_id, friend_request.sender_id, commit=False)
        await self.db.commit()

        logger.info(
            "Friend request %s accepted: %s <-> %s",
            request_id, friend_request.sender_id, friend_request.receiver_id,
        )
        return await self.requests.get_by_id(request_id)

    async def reject_friend_request(self, request_id: int, user_id: int) -> FriendRequest:
        friend_request = await self._get_request_for_receiver(request_id, user_id, "reject")
        await self.requests.update_status(friend_request, FriendRequestStatus.REJECTED)
        logger.info("Friend request %s rejected by %s", request_id, user_id)
        return friend_request

    async def get_friend_requests(self, user_id: int) -> List[FriendRequest]:
        return await self.requests.list_received_pending(user_id)

    async def get_all_friend_requests(self, user_id: int) -> List[FriendRequest]:
        return await self.requests.list_for_user(user_id)

    async def get_friends(self, user_id: int) -> List[User]:
        return await self.users.get_friends(user_id)

    async def get_friend_ids(self, user_id: int) -> List[int]:
        return await self.users.get_friend_ids(user_id)

    async def are_friends(self, user_id: int, other_id: int) -> bool:
        return await self.users.is_friend(user_id, other_id)

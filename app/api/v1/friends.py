from typing import List
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import get_current_user
from app.database import get_db
from app.dependencies import get_registry
from app.models.user import User
from app.schemas.friend import FriendRequestResponse, FriendshipCheck
from app.schemas.user import UserPresence
from app.services.friend_service import FriendService
from app.websocket_manager import PresenceRegistry

router = APIRouter()

@router.post("/request/{user_id}", response_model=FriendRequestResponse, status_code=status.HTTP_201_CREATED)
async def send_friend_request(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await FriendService(db).send_friend_request(current_user.id, user_id)

@router.put("/accept/{request_id}", response_model=FriendRequestResponse)
async def accept_friend_request(
    request_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    registry: PresenceRegistry = Depends(get_registry)
):
    friend_request = await FriendService(db).accept_friend_request(request_id, current_user.id)
    registry.link(friend_request.sender_id, friend_request.receiver_id)
    return friend_request

@router.put("/reject/{request_id}", response_model=FriendRequestResponse)
async def reject_friend_request(
    request_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await FriendService(db).reject_friend_request(request_id, current_user.id)

@router.get("/requests", response_model=List[FriendRequestResponse])
async def get_friend_requests(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Pending requests other people sent to the current user"""
    return await FriendService(db).get_friend_requests(current_user.id)

@router.get("/requests/all", response_model=List[FriendRequestResponse])
async def get_all_friend_requests(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await FriendService(db).get_all_friend_requests(current_user.id)

@router.get("/", response_model=List[UserPresence])
async def get_friends(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await FriendService(db).get_friends(current_user.id)

@router.get("/check/{user_id}", response_model=FriendshipCheck)
async def check_friendship(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    is_friend = await FriendService(db).are_friends(current_user.id, user_id)
    return {"user_id": user_id, "is_friend": is_friend}

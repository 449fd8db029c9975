from typing import List
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import get_current_user
from app.database import get_db
from app.dependencies import get_registry
from app.gateway import message_payload
from app.models.user import User
from app.schemas.message import ConversationResponse, MessageCreate, MessageResponse
from app.services.chat_service import ChatService
from app.websocket_manager import PresenceRegistry

router = APIRouter()

@router.post("/message", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def send_message(
    message_data: MessageCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    registry: PresenceRegistry = Depends(get_registry)
):
    message = await ChatService(db).send_message(current_user.id, message_data.receiver, message_data.text)

    # Same push a socket send gets; offline receivers read it from history
    await registry.emit(message.receiver_id, "newMessage", message_payload(message))

    return message

@router.get("/messages/{user_id}", response_model=List[MessageResponse])
async def get_messages(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Thread with a friend, oldest first; marks their messages as read"""
    return await ChatService(db).get_messages(current_user.id, user_id)

@router.get("/conversations", response_model=List[ConversationResponse])
async def get_conversations(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await ChatService(db).get_conversations(current_user.id)

from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from app.schemas.user import UserBrief, UserPresence

class MessageCreate(BaseModel):
    receiver: int
    text: str

class MessageResponse(BaseModel):
    id: int
    sender: UserBrief
    receiver: UserBrief
    text: str
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime
    
    class Config:
        from_attributes = True

class ConversationResponse(BaseModel):
    user: UserPresence
    last_message: MessageResponse
    unread_count: int
    
    class Config:
        from_attributes = True

class SendMessageEvent(BaseModel):
    receiver: int
    text: str

class TypingEvent(BaseModel):
    receiver: int
    is_typing: bool = Field(alias="isTyping")

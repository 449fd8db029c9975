from pydantic import BaseModel
from datetime import datetime

from app.models.friend_request import FriendRequestStatus
from app.schemas.user import UserBrief

class FriendRequestResponse(BaseModel):
    id: int
    sender: UserBrief
    receiver: UserBrief
    status: FriendRequestStatus
    created_at: datetime
    updated_at: datetime
    
    class Config:
        from_attributes = True

class FriendshipCheck(BaseModel):
    user_id: int
    is_friend: bool

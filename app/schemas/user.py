from pydantic import BaseModel
from typing import Optional
from datetime import datetime

class UserBrief(BaseModel):
    id: int
    name: str
    avatar: str = ""
    
    class Config:
        from_attributes = True

class UserPresence(UserBrief):
    is_online: bool
    last_seen: Optional[datetime] = None

class UserResponse(UserPresence):
    email: str
    created_at: datetime

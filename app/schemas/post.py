from pydantic import BaseModel
from datetime import datetime

from app.schemas.user import UserBrief

class PostResponse(BaseModel):
    id: int
    author: UserBrief
    text: str
    image: str
    video: str
    created_at: datetime
    updated_at: datetime
    
    class Config:
        from_attributes = True

from sqlalchemy import Column, Integer, ForeignKey, Text, String
from sqlalchemy.orm import relationship
from .base import BaseModel

class Post(BaseModel):
    __tablename__ = "posts"
    
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    text = Column(Text, default="", nullable=False)
    image = Column(String(1024), default="", nullable=False)
    video = Column(String(1024), default="", nullable=False)
    
    author = relationship("User", back_populates="posts")

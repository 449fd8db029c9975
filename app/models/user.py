from sqlalchemy import Column, String, Boolean, DateTime
from sqlalchemy.orm import relationship
from .base import BaseModel, utcnow

class User(BaseModel):
    __tablename__ = "users"
    
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    # NULL for accounts not yet linked; unique only among linked accounts
    google_id = Column(String(255), unique=True, index=True, nullable=True)
    avatar = Column(String(1024), default="", nullable=False)
    is_online = Column(Boolean, default=False, nullable=False)
    last_seen = Column(DateTime, default=utcnow, nullable=False)
    
    friendships = relationship(
        "Friendship",
        foreign_keys="Friendship.user_id",
        back_populates="user",
        order_by="Friendship.created_at",
        cascade="all, delete-orphan",
    )
    sent_messages = relationship("Message", foreign_keys="Message.sender_id", back_populates="sender")
    received_messages = relationship("Message", foreign_keys="Message.receiver_id", back_populates="receiver")
    posts = relationship("Post", back_populates="author")

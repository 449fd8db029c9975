from sqlalchemy import Column, Integer, ForeignKey, DateTime
from sqlalchemy.orm import relationship
from .base import Base, utcnow

class Friendship(Base):
    """One direction of a friend edge; an accepted request writes both directions."""
    __tablename__ = "friendships"
    
    user_id = Column(Integer, ForeignKey("users.id"), primary_key=True)
    friend_id = Column(Integer, ForeignKey("users.id"), primary_key=True, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    
    user = relationship("User", foreign_keys=[user_id], back_populates="friendships")
    friend = relationship("User", foreign_keys=[friend_id])

from .base import Base
from .user import User
from .friendship import Friendship
from .friend_request import FriendRequest, FriendRequestStatus
from .message import Message
from .post import Post

__all__ = [
    "Base",
    "User",
    "Friendship",
    "FriendRequest",
    "FriendRequestStatus",
    "Message",
    "Post",
]

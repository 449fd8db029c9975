from typing import Optional, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_, func

from app.models.base import utcnow
from app.models.friendship import Friendship
from app.models.user import User

class UserRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, name: str, email: str, google_id: Optional[str] = None, avatar: str = "") -> User:
        db_user = User(
            name=name.strip(),
            email=email.strip().lower(),
            google_id=google_id,
            avatar=avatar or "",
        )
        self.db.add(db_user)
        await self.db.commit()
        await self.db.refresh(db_user)
        return db_user

    async def get_by_id(self, user_id: int) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_by_google_id(self, google_id: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.google_id == google_id))
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == email.strip().lower()))
        return result.scalar_one_or_none()

    async def link_google_account(self, user: User, google_id: str, avatar: Optional[str] = None) -> User:
        user.google_id = google_id
        if not user.avatar and avatar:
            user.avatar = avatar
        await self.db.commit()
        await self.db.refresh(user)
        return user

    async def update_presence(self, user_id: int, online: bool) -> Optional[User]:
        db_user = await self.get_by_id(user_id)
        if not db_user:
            return None

        db_user.is_online = online
        if not online:
            db_user.last_seen = utcnow()

        await self.db.commit()
        await self.db.refresh(db_user)
        return db_user

    async def add_friend_edge(self, user_id: int, friend_id: int, commit: bool = True) -> bool:
        """Insert the user_id -> friend_id edge; returns False when it already existed."""
        existing = await self.db.get(Friendship, (user_id, friend_id))
        if existing:
            return False

        self.db.add(Friendship(user_id=user_id, friend_id=friend_id))
        if commit:
            await self.db.commit()
        else:
            await self.db.flush()
        return True

    async def get_friend_ids(self, user_id: int) -> List[int]:
        result = await self.db.execute(
            select(Friendship.friend_id)
            .where(Friendship.user_id == user_id)
            .order_by(Friendship.created_at.asc())
        )
        return list(result.scalars().all())

    async def get_friends(self, user_id: int) -> List[User]:
        result = await self.db.execute(
            select(User)
            .join(Friendship, Friendship.friend_id == User.id)
            .where(Friendship.user_id == user_id)
            .order_by(Friendship.created_at.asc())
        )
        return list(result.scalars().all())

    async def is_friend(self, user_id: int, other_id: int) -> bool:
        return await self.db.get(Friendship, (user_id, other_id)) is not None

    async def search(self, query: str, exclude_id: int, limit: int = 20) -> List[User]:
        pattern = f"%{query.strip().lower()}%"
        result = await self.db.execute(
            select(User)
            .where(
                User.id != exclude_id,
                or_(func.lower(User.name).like(pattern), User.email.like(pattern)),
            )
            .order_by(User.name.asc())
            .limit(limit)
        )
        return list(result.scalars().all())

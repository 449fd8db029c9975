from typing import Optional, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.orm import joinedload

from app.models.post import Post

class PostRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, user_id: int, text: str = "", image: str = "", video: str = "") -> Post:
        post = Post(user_id=user_id, text=text, image=image, video=video)
        self.db.add(post)
        await self.db.commit()
        return await self.get_by_id(post.id)

    async def get_by_id(self, post_id: int) -> Optional[Post]:
        result = await self.db.execute(
            select(Post)
            .options(joinedload(Post.author))
            .where(Post.id == post_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_recent(self, skip: int = 0, limit: int = 50) -> List[Post]:
        result = await self.db.execute(
            select(Post)
            .options(joinedload(Post.author))
            .order_by(Post.created_at.desc(), Post.id.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def update(self, post: Post, **fields) -> Post:
        for field, value in fields.items():
            setattr(post, field, value)

        await self.db.commit()
        return await self.get_by_id(post.id)

    async def delete(self, post: Post) -> None:
        await self.db.delete(post)
        await self.db.commit()

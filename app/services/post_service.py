import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.exceptions import AuthorizationFailure, NotFound, ValidationFailure
from app.integrations.object_storage import LocalObjectStorage
from app.models.post import Post
from app.repositories.post_repository import PostRepository

logger = logging.getLogger(__name__)


@dataclass
class MediaUpload:
    data: bytes
    filename: str
    content_type: str


class PostService:
    def __init__(self, db: AsyncSession, storage: LocalObjectStorage):
        self.posts = PostRepository(db)
        self.storage = storage

    def _check_text(self, text: Optional[str]) -> str:
        text = (text or "").strip()
        if len(text) > settings.MAX_POST_LENGTH:
            raise ValidationFailure(f"Text must be at most {settings.MAX_POST_LENGTH} characters")
        return text

    def _check_media(self, media: Optional[MediaUpload], kind: str) -> None:
        if media is None:
            return

        if not (media.content_type or "").startswith(f"{kind}/"):
            raise ValidationFailure(f"Only {kind} files are allowed here")
        if len(media.data) > settings.MAX_UPLOAD_BYTES:
            raise ValidationFailure("File is too large")

    async def _upload_all(self, image: Optional[MediaUpload], video: Optional[MediaUpload]) -> dict:
        """Store the already checked files; nothing stays on disk if one of them fails."""
        stored = {}
        try:
            for kind, media in (("image", image), ("video", video)):
                if media is not None:
                    stored[kind] = await self.storage.store(
                        media.data, media.filename, f"{kind}s", media.content_type
                    )
        except Exception:
            await self._discard(stored.values())
            raise
        return stored

    async def _discard(self, urls) -> None:
        for url in urls:
            await self.storage.delete(url)

    async def create_post(
        self,
        user_id: int,
        text: Optional[str] = None,
        image: Optional[MediaUpload] = None,
        video: Optional[MediaUpload] = None,
    ) -> Post:
        text = self._check_text(text)
        if not text and image is None and video is None:
            raise ValidationFailure("Post must contain text, image, or video")
        self._check_media(image, "image")
        self._check_media(video, "video")

        stored = await self._upload_all(image, video)
        try:
            post = await self.posts.create(
                user_id, text=text, image=stored.get("image", ""), video=stored.get("video", "")
            )
        except Exception:
            await self._discard(stored.values())
            raise

        logger.info("User %s created post %s", user_id, post.id)
        return post

    async def get_all_posts(self, skip: int = 0, limit: int = 50) -> List[Post]:
        return await self.posts.list_recent(skip=skip, limit=limit)

    async def get_post(self, post_id: int) -> Post:
        post = await self.posts.get_by_id(post_id)
        if not post:
            raise NotFound("Post not found")
        return post

    async def _get_owned(self, post_id: int, user_id: int, verb: str) -> Post:
        post = await self.get_post(post_id)
        if post.user_id != user_id:
            raise AuthorizationFailure(f"Not authorized to {verb} this post")
        return post

    async def update_post(
        self,
        post_id: int,
        user_id: int,
        text: Optional[str] = None,
        image: Optional[MediaUpload] = None,
        video: Optional[MediaUpload] = None,
    ) -> Post:
        post = await self._get_owned(post_id, user_id, "update")

        fields = {}
        if text is not None:
            fields["text"] = self._check_text(text)
        self._check_media(image, "image")
        self._check_media(video, "video")

        has_image = image is not None or bool(post.image)
        has_video = video is not None or bool(post.video)
        if not (fields.get("text", post.text) or has_image or has_video):
            raise ValidationFailure("Post must contain text, image, or video")

        stored = await self._upload_all(image, video)
        replaced = [getattr(post, kind) for kind in stored]
        fields.update(stored)

        try:
            post = await self.posts.update(post, **fields)
        except Exception:
            await self._discard(stored.values())
            raise

        await self._discard(replaced)
        return post

    async def delete_post(self, post_id: int, user_id: int) -> None:
        post = await self._get_owned(post_id, user_id, "delete")
        media = [post.image, post.video]

        await self.posts.delete(post)
        for url in media:
            await self.storage.delete(url)
        logger.info("User %s deleted post %s", user_id, post_id)

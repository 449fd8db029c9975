import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import create_access_token
from app.exceptions import NotFound
from app.models.user import User
from app.repositories.user_repository import UserRepository
from app.schemas.auth import ExternalProfile

logger = logging.getLogger(__name__)


class AuthService:
    def __init__(self, db: AsyncSession):
        self.users = UserRepository(db)

    async def get_user_by_id(self, user_id: int) -> User:
        user = await self.users.get_by_id(user_id)
        if not user:
            raise NotFound("User not found")
        return user

    async def get_or_create_user(self, profile: ExternalProfile) -> User:
        """Match by external id, then by email (linking the account), else create."""
        user = await self.users.get_by_google_id(profile.external_id)
        if user:
            return user

        user = await self.users.get_by_email(profile.email)
        if user:
            logger.info("Linking Google account to existing user %s", user.id)
            return await self.users.link_google_account(user, profile.external_id, profile.avatar_url)

        user = await self.users.create(
            name=profile.name,
            email=profile.email,
            google_id=profile.external_id,
            avatar=profile.avatar_url or "",
        )
        logger.info("Created user %s from Google sign-in", user.id)
        return user

    def issue_token(self, user: User) -> str:
        return create_access_token(user.id)

    async def update_online_status(self, user_id: int, is_online: bool) -> Optional[User]:
        return await self.users.update_presence(user_id, is_online)

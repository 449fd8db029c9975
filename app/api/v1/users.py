from typing import List
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.repositories.user_repository import UserRepository
from app.services.auth_service import AuthService
from app.schemas.user import UserPresence, UserResponse
from app.auth import get_current_user
from app.models.user import User

router = APIRouter()

@router.get("/me", response_model=UserResponse)
async def get_current_user_profile(
    current_user: User = Depends(get_current_user)
):
    return current_user

@router.get("/search", response_model=List[UserPresence])
async def search_users(
    q: str = Query(..., min_length=1, max_length=100, description="Part of a name or email"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Find people to send friend requests to"""
    user_repo = UserRepository(db)
    return await user_repo.search(q, exclude_id=current_user.id)

@router.get("/{user_id}", response_model=UserPresence)
async def get_user_by_id(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await AuthService(db).get_user_by_id(user_id)

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import get_current_user
from app.config import settings
from app.database import get_db
from app.dependencies import get_identity_provider
from app.exceptions import AppError
from app.integrations.google_oauth import GoogleIdentityProvider
from app.models.user import User
from app.schemas.auth import Token
from app.schemas.user import UserResponse
from app.services.auth_service import AuthService

logger = logging.getLogger(__name__)

router = APIRouter()

@router.get("/google")
async def initiate_google_auth(provider: GoogleIdentityProvider = Depends(get_identity_provider)):
    return RedirectResponse(provider.authorization_url(), status_code=302)

@router.get("/google/callback")
async def google_callback(request: Request, code: Optional[str] = None, db: AsyncSession = Depends(get_db)):
    if not code:
        return RedirectResponse(f"{settings.FRONTEND_URL}/login?error=no_code", status_code=302)

    try:
        provider = get_identity_provider(request)
        profile = await provider.exchange_code(code)
        auth_service = AuthService(db)
        user = await auth_service.get_or_create_user(profile)
        token = auth_service.issue_token(user)
    except AppError as e:
        logger.warning("Google callback failed: %s", e.message)
        return RedirectResponse(f"{settings.FRONTEND_URL}/login?error=auth_failed", status_code=302)

    return RedirectResponse(f"{settings.FRONTEND_URL}/auth/callback?token={token}", status_code=302)

@router.get("/me", response_model=UserResponse)
async def get_current_user_info(current_user: User = Depends(get_current_user)):
    return current_user

@router.post("/refresh", response_model=Token)
async def refresh_token(current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    token = AuthService(db).issue_token(current_user)
    return {"access_token": token, "token_type": "bearer", "expires_in": settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60}

@router.post("/logout")
async def logout(current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    await AuthService(db).update_online_status(current_user.id, False)
    return {"message": "Logged out successfully"}

from typing import List, Optional
from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import get_current_user
from app.database import get_db
from app.dependencies import get_storage
from app.integrations.object_storage import LocalObjectStorage
from app.models.user import User
from app.schemas.post import PostResponse
from app.services.post_service import MediaUpload, PostService

router = APIRouter()

async def _read_upload(upload: Optional[UploadFile]) -> Optional[MediaUpload]:
    if upload is None or not upload.filename:
        return None
    data = await upload.read()
    return MediaUpload(data=data, filename=upload.filename, content_type=upload.content_type or "")

@router.post("/", response_model=PostResponse, status_code=status.HTTP_201_CREATED)
async def create_post(
    text: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    video: Optional[UploadFile] = File(None),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    storage: LocalObjectStorage = Depends(get_storage)
):
    return await PostService(db, storage).create_post(
        current_user.id,
        text=text,
        image=await _read_upload(image),
        video=await _read_upload(video),
    )

@router.get("/", response_model=List[PostResponse])
async def get_posts(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    storage: LocalObjectStorage = Depends(get_storage)
):
    return await PostService(db, storage).get_all_posts(skip=skip, limit=limit)

@router.get("/{post_id}", response_model=PostResponse)
async def get_post(
    post_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    storage: LocalObjectStorage = Depends(get_storage)
):
    return await PostService(db, storage).get_post(post_id)

@router.put("/{post_id}", response_model=PostResponse)
async def update_post(
    post_id: int,
    text: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    video: Optional[UploadFile] = File(None),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    storage: LocalObjectStorage = Depends(get_storage)
):
    """Only the author may edit; uploaded files replace the old ones"""
    return await PostService(db, storage).update_post(
        post_id,
        current_user.id,
        text=text,
        image=await _read_upload(image),
        video=await _read_upload(video),
    )

@router.delete("/{post_id}")
async def delete_post(
    post_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    storage: LocalObjectStorage = Depends(get_storage)
):
    await PostService(db, storage).delete_post(post_id, current_user.id)
    return {"message": "Post deleted successfully"}

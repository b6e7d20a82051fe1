"""
Progress Router - per user study state

=== ENDPOINTS ===
- GET  /users/{user_id}/progress/{lesson_id}  one progress record
- POST /users/{user_id}/progress              upsert (only the sent fields change)
- GET  /users/{user_id}/bookmarks             bookmarked lessons, latest first
- GET  /users/{user_id}/completed             completed lessons, latest first
"""
from fastapi import APIRouter, Depends, HTTPException
from typing import List

from studyhub.core.dependencies import get_storage
from studyhub.schemas import ProgressRequest, ProgressUpdate, ProgressResponse, LessonWithProgress
from studyhub.storage.base import ContentStorage

router = APIRouter(
    prefix="/users/{user_id}",
    tags=["Progress"]
)


@router.get("/progress/{lesson_id}", response_model=ProgressResponse)
def get_progress(
    user_id: str,
    lesson_id: str,
    storage: ContentStorage = Depends(get_storage)
):
    progress = storage.get_user_progress(user_id, lesson_id)
    if not progress:
        raise HTTPException(status_code=404, detail="Progress not found")
    return progress


@router.post("/progress", response_model=ProgressResponse)
def update_progress(
    user_id: str,
    progress_data: ProgressRequest,
    storage: ContentStorage = Depends(get_storage)
):
    """
    Insert or merge progress for one lesson

    Unknown user or lesson is answered with 409.
    """
    payload = ProgressUpdate(user_id=user_id, **progress_data.model_dump(exclude_unset=True))
    return storage.update_user_progress(payload)


@router.get("/bookmarks", response_model=List[LessonWithProgress])
def list_bookmarks(user_id: str, storage: ContentStorage = Depends(get_storage)):
    return storage.get_user_bookmarks(user_id)


@router.get("/completed", response_model=List[LessonWithProgress])
def list_completed(user_id: str, storage: ContentStorage = Depends(get_storage)):
    return storage.get_user_completed_lessons(user_id)

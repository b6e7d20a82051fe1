"""
Lessons Router - API endpoints for lessons

=== DRAFTS ===
GET /lessons/{id} returns a lesson whether or not it is published, so the
editor can open drafts. List and search endpoints hide drafts.
"""
from fastapi import APIRouter, Depends, HTTPException, status
from typing import Optional

from studyhub.core.dependencies import get_storage
from studyhub.schemas import LessonCreate, LessonUpdate, LessonResponse, LessonWithProgress
from studyhub.storage.base import ContentStorage

router = APIRouter(
    prefix="/lessons",
    tags=["Lessons"]
)


@router.get("/{lesson_id}", response_model=LessonWithProgress)
def get_lesson(
    lesson_id: str,
    user_id: Optional[str] = None,
    storage: ContentStorage = Depends(get_storage)
):
    lesson = storage.get_lesson_by_id(lesson_id, user_id=user_id)
    if not lesson:
        raise HTTPException(status_code=404, detail="Lesson not found")
    return lesson


@router.post("", response_model=LessonResponse, status_code=status.HTTP_201_CREATED)
def create_lesson(
    lesson_data: LessonCreate,
    storage: ContentStorage = Depends(get_storage)
):
    return storage.create_lesson(lesson_data)


@router.put("/{lesson_id}", response_model=LessonResponse)
def update_lesson(
    lesson_id: str,
    lesson_data: LessonUpdate,
    storage: ContentStorage = Depends(get_storage)
):
    lesson = storage.update_lesson(lesson_id, lesson_data)
    if not lesson:
        raise HTTPException(status_code=404, detail="Lesson not found")
    return lesson


@router.delete("/{lesson_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_lesson(lesson_id: str, storage: ContentStorage = Depends(get_storage)):
    if not storage.delete_lesson(lesson_id):
        raise HTTPException(status_code=404, detail="Lesson not found")
    return None

"""
Search Router - full text lookup over published lessons
"""
from fastapi import APIRouter, Depends, Query
from typing import List, Optional

from studyhub.core.dependencies import get_storage
from studyhub.schemas import LessonWithProgress
from studyhub.storage.base import ContentStorage

router = APIRouter(
    prefix="/search",
    tags=["Search"]
)


@router.get("", response_model=List[LessonWithProgress])
def search_lessons(
    q: str = Query(..., min_length=1, description="Matched against title, content, excerpt and bible reference"),
    user_id: Optional[str] = None,
    storage: ContentStorage = Depends(get_storage)
):
    return storage.search_lessons(q, user_id=user_id)

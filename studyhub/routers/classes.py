"""
Classes Router - API endpoints for classes and their lessons
"""
from fastapi import APIRouter, Depends, HTTPException, status
from typing import List, Optional

from studyhub.core.dependencies import get_storage
from studyhub.schemas import (
    ClassCreate, ClassUpdate, ClassResponse, ClassWithLessons, LessonWithProgress,
)
from studyhub.storage.base import ContentStorage

router = APIRouter(
    prefix="/classes",
    tags=["Classes"]
)


@router.get("/{class_id}", response_model=ClassWithLessons)
def get_class(
    class_id: str,
    user_id: Optional[str] = None,
    include_unpublished: bool = False,
    storage: ContentStorage = Depends(get_storage)
):
    study_class = storage.get_class_by_id(
        class_id, user_id=user_id, include_unpublished=include_unpublished
    )
    if not study_class:
        raise HTTPException(status_code=404, detail="Class not found")
    return study_class


@router.get("/{class_id}/lessons", response_model=List[LessonWithProgress])
def list_class_lessons(
    class_id: str,
    user_id: Optional[str] = None,
    include_unpublished: bool = False,
    storage: ContentStorage = Depends(get_storage)
):
    return storage.get_lessons(class_id, user_id=user_id, include_unpublished=include_unpublished)


@router.post("", response_model=ClassResponse, status_code=status.HTTP_201_CREATED)
def create_class(
    class_data: ClassCreate,
    storage: ContentStorage = Depends(get_storage)
):
    """
    Create a class

    Unknown main topic or parent, or a parent under another main topic,
    is answered with 409.
    """
    return storage.create_class(class_data)


@router.put("/{class_id}", response_model=ClassResponse)
def update_class(
    class_id: str,
    class_data: ClassUpdate,
    storage: ContentStorage = Depends(get_storage)
):
    study_class = storage.update_class(class_id, class_data)
    if not study_class:
        raise HTTPException(status_code=404, detail="Class not found")
    return study_class


@router.delete("/{class_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_class(class_id: str, storage: ContentStorage = Depends(get_storage)):
    if not storage.delete_class(class_id):
        raise HTTPException(status_code=404, detail="Class not found")
    return None

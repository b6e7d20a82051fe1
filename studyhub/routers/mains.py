"""
Mains Router - API endpoints for main topics

=== READ OPTIONS ===
- user_id: merge that user's progress into every lesson of the tree
- include_unpublished: also return draft lessons (content management screens)
"""
from fastapi import APIRouter, Depends, HTTPException, status
from typing import List, Optional

from studyhub.core.dependencies import get_storage
from studyhub.schemas import (
    MainTopicCreate, MainTopicUpdate, MainTopicResponse, MainWithClasses,
    ClassWithLessons,
)
from studyhub.storage.base import ContentStorage

router = APIRouter(
    prefix="/mains",
    tags=["Main Topics"]
)


# ============================================================
# GET /mains - every main topic with its class tree
# ============================================================
@router.get("", response_model=List[MainWithClasses])
def list_mains(
    user_id: Optional[str] = None,
    include_unpublished: bool = False,
    storage: ContentStorage = Depends(get_storage)
):
    return storage.get_mains(user_id=user_id, include_unpublished=include_unpublished)


@router.get("/{main_id}", response_model=MainWithClasses)
def get_main(
    main_id: str,
    user_id: Optional[str] = None,
    include_unpublished: bool = False,
    storage: ContentStorage = Depends(get_storage)
):
    main = storage.get_main_by_id(main_id, user_id=user_id, include_unpublished=include_unpublished)
    if not main:
        raise HTTPException(status_code=404, detail="Main topic not found")
    return main


@router.get("/{main_id}/classes", response_model=List[ClassWithLessons])
def list_main_classes(
    main_id: str,
    user_id: Optional[str] = None,
    include_unpublished: bool = False,
    storage: ContentStorage = Depends(get_storage)
):
    """Top level classes of a main topic, sub-classes nested"""
    return storage.get_classes(main_id, user_id=user_id, include_unpublished=include_unpublished)


# ============================================================
# CONTENT MANAGEMENT
# ============================================================

@router.post("", response_model=MainTopicResponse, status_code=status.HTTP_201_CREATED)
def create_main(
    main_data: MainTopicCreate,
    storage: ContentStorage = Depends(get_storage)
):
    return storage.create_main(main_data)


@router.put("/{main_id}", response_model=MainTopicResponse)
def update_main(
    main_id: str,
    main_data: MainTopicUpdate,
    storage: ContentStorage = Depends(get_storage)
):
    main = storage.update_main(main_id, main_data)
    if not main:
        raise HTTPException(status_code=404, detail="Main topic not found")
    return main


@router.delete("/{main_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_main(main_id: str, storage: ContentStorage = Depends(get_storage)):
    """Delete a main topic together with its classes, lessons and progress"""
    if not storage.delete_main(main_id):
        raise HTTPException(status_code=404, detail="Main topic not found")
    return None

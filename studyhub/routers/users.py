"""
Users Router - API endpoints for users

Accounts are plain records here: registration and login live outside
this service, admins are flagged with is_admin.
"""
from fastapi import APIRouter, Depends, HTTPException, status
from typing import List

from studyhub.core.dependencies import get_storage
from studyhub.schemas import UserCreate, UserUpdate, UserResponse
from studyhub.storage.base import ContentStorage

router = APIRouter(
    prefix="/users",
    tags=["Users"]
)


@router.get("", response_model=List[UserResponse])
def list_users(storage: ContentStorage = Depends(get_storage)):
    return storage.list_users()


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(
    user_data: UserCreate,
    storage: ContentStorage = Depends(get_storage)
):
    """
    Create a user

    A taken email is answered with 409 by the constraint handler.
    """
    return storage.create_user(user_data)


@router.get("/{user_id}", response_model=UserResponse)
def get_user(user_id: str, storage: ContentStorage = Depends(get_storage)):
    user = storage.get_user_by_id(user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.put("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: str,
    user_data: UserUpdate,
    storage: ContentStorage = Depends(get_storage)
):
    user = storage.update_user(user_id, user_data)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user

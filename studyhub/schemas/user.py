"""
User schemas - input/output structures for users
Pydantic validates the data before it reaches the storage
"""
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


# ============= REQUEST SCHEMAS =============

class UserCreate(BaseModel):
    """
    Schema for inserting a user
    Email uniqueness is checked by the caller before insert
    """
    email: str = Field(..., min_length=3, max_length=255, examples=["admin@biblestudyhub.com"])
    full_name: str = Field(..., min_length=1, examples=["Bible Study Admin"])
    is_admin: bool = False


class UserUpdate(BaseModel):
    """Schema for updating a user - only name and admin flag can change"""
    full_name: Optional[str] = Field(None, min_length=1)
    is_admin: Optional[bool] = None


# ============= RESPONSE SCHEMAS =============

class UserResponse(BaseModel):
    """Schema returned for a stored user"""
    id: str
    email: str
    full_name: str
    is_admin: bool = False
    created_at: datetime

    class Config:
        from_attributes = True

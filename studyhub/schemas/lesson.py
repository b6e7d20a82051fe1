"""
Lesson schemas - lessons and lessons merged with user progress

A lesson belongs to one class. Unpublished lessons (drafts) are left out
of list and search reads unless drafts are requested explicitly.
"""
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from studyhub.schemas.progress import ProgressResponse


# ============= REQUEST SCHEMAS =============

class LessonCreate(BaseModel):
    """Schema for creating a lesson"""
    title: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1, description="Rich text body")
    excerpt: Optional[str] = None
    bible_reference: Optional[str] = None
    image_url: Optional[str] = None
    audio_url: Optional[str] = None
    duration: Optional[int] = Field(None, ge=0, description="Minutes")
    class_id: str
    order: int = 0
    is_published: bool = False
    created_by: str


class LessonUpdate(BaseModel):
    """Schema for updating a lesson - every field optional"""
    title: Optional[str] = Field(None, min_length=1)
    content: Optional[str] = Field(None, min_length=1)
    excerpt: Optional[str] = None
    bible_reference: Optional[str] = None
    image_url: Optional[str] = None
    audio_url: Optional[str] = None
    duration: Optional[int] = Field(None, ge=0)
    class_id: Optional[str] = None
    order: Optional[int] = None
    is_published: Optional[bool] = None


# ============= RESPONSE SCHEMAS =============

class LessonResponse(BaseModel):
    """Schema for a stored lesson"""
    id: str
    title: str
    content: str
    excerpt: Optional[str] = None
    bible_reference: Optional[str] = None
    image_url: Optional[str] = None
    audio_url: Optional[str] = None
    duration: Optional[int] = None
    class_id: str
    order: int = 0
    is_published: bool = False
    created_by: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class LessonWithProgress(LessonResponse):
    """
    Lesson plus the reading user's progress record

    progress is None when the user has no record for the lesson yet,
    or when the read carried no user.
    """
    progress: Optional[ProgressResponse] = None

"""
Progress schemas - per user, per lesson study state

UPSERT RULES:
=============
- One record per (user_id, lesson_id)
- Only the fields set on ProgressUpdate are merged into an existing record
- completed_at is stamped on the first transition into completed and kept afterwards
- study_time never goes down: the stored value becomes max(stored, supplied)
"""
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


# ============= REQUEST SCHEMAS =============

class ProgressUpdate(BaseModel):
    """Schema for the progress upsert"""
    user_id: str
    lesson_id: str
    completed: Optional[bool] = None
    bookmarked: Optional[bool] = None
    study_time: Optional[int] = Field(None, ge=0, description="Accumulated minutes")
    notes: Optional[str] = None


# ============= RESPONSE SCHEMAS =============

class ProgressResponse(BaseModel):
    """Schema for a stored progress record"""
    id: str
    user_id: str
    lesson_id: str
    completed: bool = False
    bookmarked: bool = False
    study_time: int = 0
    notes: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ProgressRequest(BaseModel):
    """Body of POST /users/{user_id}/progress - the user comes from the path"""
    lesson_id: str
    completed: Optional[bool] = None
    bookmarked: Optional[bool] = None
    study_time: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = None

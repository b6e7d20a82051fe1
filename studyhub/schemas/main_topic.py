"""
Main topic schemas - top level subject areas

Example: "People of God in the Bible"
  - Righteous People (class)
      - Abraham: The Father of Faith (lesson)
      - Moses: The Great Lawgiver (lesson)
  - Wicked People (class)
"""
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

from studyhub.models.main_topic import DEFAULT_ICON
from studyhub.schemas.study_class import ClassWithLessons


# ============= REQUEST SCHEMAS =============

class MainTopicCreate(BaseModel):
    """Schema for creating a main topic"""
    title: str = Field(..., min_length=1, description="Topic title")
    description: Optional[str] = None
    icon: Optional[str] = Field(DEFAULT_ICON, description="Icon identifier, e.g. 'fas fa-users'")
    order: int = 0
    created_by: str


class MainTopicUpdate(BaseModel):
    """Schema for updating a main topic"""
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    icon: Optional[str] = None
    order: Optional[int] = None


# ============= RESPONSE SCHEMAS =============

class MainTopicResponse(BaseModel):
    """Schema for a stored main topic"""
    id: str
    title: str
    description: Optional[str] = None
    icon: Optional[str] = None
    order: int = 0
    created_by: str
    created_at: datetime

    class Config:
        from_attributes = True


class MainWithClasses(MainTopicResponse):
    """Main topic with its top level classes fully hydrated"""
    classes: List[ClassWithLessons] = []

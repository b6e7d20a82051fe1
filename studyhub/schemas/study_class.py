"""
Class schemas - groups of lessons under a main topic

A class may sit under a parent class of the same main topic.
Reads nest sub-classes recursively; sub_classes is None (not []) when a
class has none.
"""
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

from studyhub.schemas.lesson import LessonWithProgress


# ============= REQUEST SCHEMAS =============

class ClassCreate(BaseModel):
    """Schema for creating a class"""
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    main_id: str
    parent_class_id: Optional[str] = None
    order: int = 0
    created_by: str


class ClassUpdate(BaseModel):
    """Schema for updating a class - classes never move between main topics"""
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    parent_class_id: Optional[str] = None
    order: Optional[int] = None


# ============= RESPONSE SCHEMAS =============

class ClassResponse(BaseModel):
    """Schema for a stored class"""
    id: str
    title: str
    description: Optional[str] = None
    main_id: str
    parent_class_id: Optional[str] = None
    order: int = 0
    created_by: str
    created_at: datetime

    class Config:
        from_attributes = True


class ClassWithLessons(ClassResponse):
    """Class with its lessons and nested sub-classes"""
    lessons: List[LessonWithProgress] = []
    sub_classes: Optional[List["ClassWithLessons"]] = None


ClassWithLessons.model_rebuild()

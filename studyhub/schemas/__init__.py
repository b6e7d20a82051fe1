"""
Schemas package initialization - Export all Pydantic schemas
"""
# User schemas
from studyhub.schemas.user import UserCreate, UserUpdate, UserResponse

# Progress schemas
from studyhub.schemas.progress import ProgressUpdate, ProgressRequest, ProgressResponse

# Lesson schemas
from studyhub.schemas.lesson import LessonCreate, LessonUpdate, LessonResponse, LessonWithProgress

# Class schemas
from studyhub.schemas.study_class import ClassCreate, ClassUpdate, ClassResponse, ClassWithLessons

# Main topic schemas
from studyhub.schemas.main_topic import (
    MainTopicCreate, MainTopicUpdate, MainTopicResponse, MainWithClasses
)

__all__ = [
    # User
    "UserCreate",
    "UserUpdate",
    "UserResponse",

    # Progress
    "ProgressUpdate",
    "ProgressRequest",
    "ProgressResponse",

    # Lesson
    "LessonCreate",
    "LessonUpdate",
    "LessonResponse",
    "LessonWithProgress",

    # Class
    "ClassCreate",
    "ClassUpdate",
    "ClassResponse",
    "ClassWithLessons",

    # Main topic
    "MainTopicCreate",
    "MainTopicUpdate",
    "MainTopicResponse",
    "MainWithClasses",
]

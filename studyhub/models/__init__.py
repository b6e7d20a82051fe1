"""
Database models - Export all models
"""
from studyhub.models.user import User
from studyhub.models.main_topic import MainTopic, DEFAULT_ICON
from studyhub.models.study_class import StudyClass
from studyhub.models.lesson import Lesson
from studyhub.models.progress import UserProgress

__all__ = [
    # User
    "User",

    # Content
    "MainTopic",
    "StudyClass",
    "Lesson",

    # Progress
    "UserProgress",

    # Defaults
    "DEFAULT_ICON",
]

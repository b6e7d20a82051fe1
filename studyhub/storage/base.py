"""
ContentStorage - the contract every storage backend implements.

Route handlers only talk to this interface. The concrete backend
(memory, sql, sql_core) is picked once at startup by the factory.

Dependencies: pydantic schemas
System role: repository interface for users, content tree and progress
"""
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel

from studyhub.schemas import (
    UserCreate, UserUpdate, UserResponse,
    MainTopicCreate, MainTopicUpdate, MainTopicResponse, MainWithClasses,
    ClassCreate, ClassUpdate, ClassResponse, ClassWithLessons,
    LessonCreate, LessonUpdate, LessonResponse, LessonWithProgress,
    ProgressUpdate, ProgressResponse,
)
from studyhub.storage.exceptions import ConstraintViolationError
from studyhub.utils.time import utcnow

Clock = Callable[[], datetime]

# Columns that can never be set to NULL through a partial update
NON_NULLABLE_FIELDS = frozenset({
    "title", "content", "class_id", "order", "is_published",
    "full_name", "is_admin", "completed", "bookmarked", "study_time",
})

SEARCHABLE_LESSON_FIELDS = ("title", "content", "excerpt", "bible_reference")


def new_id() -> str:
    return str(uuid.uuid4())


def collect_changes(payload: BaseModel) -> Dict[str, Any]:
    """Fields the caller actually set, minus NULLs for required columns."""
    changes = payload.model_dump(exclude_unset=True)
    return {
        key: value for key, value in changes.items()
        if not (value is None and key in NON_NULLABLE_FIELDS)
    }


def merge_progress(
    current: Optional[Dict[str, Any]],
    changes: Dict[str, Any],
    now: datetime,
) -> Dict[str, Any]:
    """
    Compute the mutable progress fields after an upsert.

    Args:
        current: stored field values, or None when no record exists
        changes: fields set on the ProgressUpdate (user_id/lesson_id excluded)
        now: timestamp for updated_at and a first completion

    Returns:
        completed, bookmarked, study_time, notes, completed_at, updated_at
    """
    if current is None:
        current = {
            "completed": False,
            "bookmarked": False,
            "study_time": 0,
            "notes": None,
            "completed_at": None,
        }

    merged = {
        "completed": changes.get("completed", current["completed"]),
        "bookmarked": changes.get("bookmarked", current["bookmarked"]),
        "study_time": max(current["study_time"] or 0, changes.get("study_time", 0)),
        "notes": changes["notes"] if "notes" in changes else current["notes"],
        "completed_at": current["completed_at"],
        "updated_at": now,
    }
    if merged["completed"] and merged["completed_at"] is None:
        merged["completed_at"] = now
    return merged


def check_class_placement(
    class_id: Optional[str],
    main_id: str,
    parent_class_id: Optional[str],
    lookup: Callable[[str], Optional[Tuple[str, Optional[str]]]],
) -> None:
    """
    Validate where a class sits in the tree.

    A parent must exist, belong to the same main topic and must not be the
    class itself or one of its descendants.

    Args:
        class_id: the class being moved, None for a new class
        main_id: main topic of the class
        parent_class_id: requested parent, None for a top level class
        lookup: returns (main_id, parent_class_id) of a class id, or None

    Raises:
        ConstraintViolationError: when the placement is invalid
    """
    if parent_class_id is None:
        return

    parent = lookup(parent_class_id)
    if parent is None:
        raise ConstraintViolationError(
            "Parent class does not exist",
            constraint="classes_parent_class_id_fkey",
            details={"parent_class_id": parent_class_id},
        )
    if parent[0] != main_id:
        raise ConstraintViolationError(
            "Parent class belongs to another main topic",
            constraint="classes_parent_same_main",
            details={"parent_class_id": parent_class_id, "main_id": main_id},
        )

    ancestor: Optional[str] = parent_class_id
    seen = set()
    while ancestor is not None and ancestor not in seen:
        if ancestor == class_id:
            raise ConstraintViolationError(
                "Class cannot be nested under itself",
                constraint="classes_parent_not_descendant",
                details={"class_id": class_id, "parent_class_id": parent_class_id},
            )
        seen.add(ancestor)
        found = lookup(ancestor)
        ancestor = found[1] if found else None


def newest_first(items: Iterable[Any], key: Callable[[Any], Any], tie: Callable[[Any], Any]) -> List[Any]:
    """Sort by key descending, ties by tie ascending."""
    ordered = sorted(items, key=tie)
    ordered.sort(key=key, reverse=True)
    return ordered


class ContentStorage(ABC):
    """
    Repository interface for the study content platform.

    Every "by id" read returns None when the row does not exist. Constraint
    problems raise ConstraintViolationError, an unreachable database raises
    StorageConnectionError.

    Read paths take user_id to merge that user's progress into each lesson,
    and include_unpublished to return draft lessons as well.
    """

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self._clock: Clock = clock or utcnow

    def close(self) -> None:
        """Release backend resources (connection pools)."""

    # ============================================================
    # USERS
    # ============================================================

    @abstractmethod
    def list_users(self) -> List[UserResponse]:
        ...

    @abstractmethod
    def get_user_by_id(self, user_id: str) -> Optional[UserResponse]:
        ...

    @abstractmethod
    def get_user_by_email(self, email: str) -> Optional[UserResponse]:
        """Exact, case-sensitive match on the stored email."""

    @abstractmethod
    def create_user(self, payload: UserCreate) -> UserResponse:
        ...

    @abstractmethod
    def update_user(self, user_id: str, payload: UserUpdate) -> Optional[UserResponse]:
        ...

    # ============================================================
    # MAIN TOPICS
    # ============================================================

    @abstractmethod
    def get_mains(
        self,
        user_id: Optional[str] = None,
        include_unpublished: bool = False,
    ) -> List[MainWithClasses]:
        """All main topics by order, each with its class tree."""

    @abstractmethod
    def get_main_by_id(
        self,
        main_id: str,
        user_id: Optional[str] = None,
        include_unpublished: bool = False,
    ) -> Optional[MainWithClasses]:
        ...

    @abstractmethod
    def create_main(self, payload: MainTopicCreate) -> MainTopicResponse:
        ...

    @abstractmethod
    def update_main(self, main_id: str, payload: MainTopicUpdate) -> Optional[MainTopicResponse]:
        ...

    @abstractmethod
    def delete_main(self, main_id: str) -> bool:
        """Delete a main topic with all its classes, lessons and progress."""

    # ============================================================
    # CLASSES
    # ============================================================

    @abstractmethod
    def get_classes(
        self,
        main_id: str,
        user_id: Optional[str] = None,
        include_unpublished: bool = False,
    ) -> List[ClassWithLessons]:
        """Top level classes of a main topic with nested sub-classes."""

    @abstractmethod
    def get_class_by_id(
        self,
        class_id: str,
        user_id: Optional[str] = None,
        include_unpublished: bool = False,
    ) -> Optional[ClassWithLessons]:
        ...

    @abstractmethod
    def create_class(self, payload: ClassCreate) -> ClassResponse:
        ...

    @abstractmethod
    def update_class(self, class_id: str, payload: ClassUpdate) -> Optional[ClassResponse]:
        ...

    @abstractmethod
    def delete_class(self, class_id: str) -> bool:
        """Delete a class, its sub-classes, their lessons and progress."""

    # ============================================================
    # LESSONS
    # ============================================================

    @abstractmethod
    def get_lessons(
        self,
        class_id: str,
        user_id: Optional[str] = None,
        include_unpublished: bool = False,
    ) -> List[LessonWithProgress]:
        ...

    @abstractmethod
    def get_lesson_by_id(
        self,
        lesson_id: str,
        user_id: Optional[str] = None,
    ) -> Optional[LessonWithProgress]:
        """A lesson whether or not it is published."""

    @abstractmethod
    def create_lesson(self, payload: LessonCreate) -> LessonResponse:
        ...

    @abstractmethod
    def update_lesson(self, lesson_id: str, payload: LessonUpdate) -> Optional[LessonResponse]:
        """Partial update, always refreshes updated_at."""

    @abstractmethod
    def delete_lesson(self, lesson_id: str) -> bool:
        ...

    @abstractmethod
    def search_lessons(self, query: str, user_id: Optional[str] = None) -> List[LessonWithProgress]:
        """
        Case-insensitive substring search over title, content, excerpt and
        bible_reference of published lessons, newest first.
        """

    # ============================================================
    # PROGRESS
    # ============================================================

    @abstractmethod
    def get_user_progress(self, user_id: str, lesson_id: str) -> Optional[ProgressResponse]:
        ...

    @abstractmethod
    def update_user_progress(self, payload: ProgressUpdate) -> ProgressResponse:
        """Insert or merge the progress record of (user_id, lesson_id)."""

    @abstractmethod
    def get_user_bookmarks(self, user_id: str) -> List[LessonWithProgress]:
        """Published bookmarked lessons, most recently updated first."""

    @abstractmethod
    def get_user_completed_lessons(self, user_id: str) -> List[LessonWithProgress]:
        """Published completed lessons, most recently completed first."""

"""
In-memory storage backend.

One dict per entity keyed by id, plus a progress index keyed by
(user_id, lesson_id). The class tree is stored flat and nested on read.
Nothing cascades by itself here: every delete removes its descendants
explicitly before returning.

Dependencies: storage.base, pydantic schemas
System role: reference backend for development and tests
"""
import threading
from typing import Dict, List, Optional, Tuple

from studyhub.schemas import (
    UserCreate, UserUpdate, UserResponse,
    MainTopicCreate, MainTopicUpdate, MainTopicResponse, MainWithClasses,
    ClassCreate, ClassUpdate, ClassResponse, ClassWithLessons,
    LessonCreate, LessonUpdate, LessonResponse, LessonWithProgress,
    ProgressUpdate, ProgressResponse,
)
from studyhub.storage.base import (
    ContentStorage, Clock, SEARCHABLE_LESSON_FIELDS,
    check_class_placement, collect_changes, merge_progress, new_id, newest_first,
)
from studyhub.storage.exceptions import ConstraintViolationError


def _sibling_key(record):
    return (record.order, record.created_at, record.id)


class MemoryStorage(ContentStorage):
    """Map-backed storage, owned by a single process."""

    def __init__(self, clock: Optional[Clock] = None) -> None:
        super().__init__(clock)
        self._lock = threading.RLock()
        self._users: Dict[str, UserResponse] = {}
        self._mains: Dict[str, MainTopicResponse] = {}
        self._classes: Dict[str, ClassResponse] = {}
        self._lessons: Dict[str, LessonResponse] = {}
        self._progress: Dict[str, ProgressResponse] = {}
        self._progress_index: Dict[Tuple[str, str], str] = {}

    # ============================================================
    # INTERNAL HELPERS
    # ============================================================

    @staticmethod
    def _require(collection: Dict, key: Optional[str], constraint: str) -> None:
        if key not in collection:
            raise ConstraintViolationError(
                "Referenced row does not exist",
                constraint=constraint,
                details={"id": key},
            )

    def _class_lookup(self, class_id: str) -> Optional[Tuple[str, Optional[str]]]:
        found = self._classes.get(class_id)
        return (found.main_id, found.parent_class_id) if found else None

    def _progress_for(self, user_id: Optional[str], lesson_id: str) -> Optional[ProgressResponse]:
        if user_id is None:
            return None
        progress_id = self._progress_index.get((user_id, lesson_id))
        if progress_id is None:
            return None
        return self._progress[progress_id].model_copy()

    def _with_progress(self, lesson: LessonResponse, user_id: Optional[str]) -> LessonWithProgress:
        return LessonWithProgress(
            **lesson.model_dump(),
            progress=self._progress_for(user_id, lesson.id),
        )

    def _lessons_of(
        self,
        class_id: str,
        user_id: Optional[str],
        include_unpublished: bool,
    ) -> List[LessonWithProgress]:
        lessons = [
            lesson for lesson in self._lessons.values()
            if lesson.class_id == class_id and (include_unpublished or lesson.is_published)
        ]
        lessons.sort(key=_sibling_key)
        return [self._with_progress(lesson, user_id) for lesson in lessons]

    def _children_of(self, class_id: str) -> List[ClassResponse]:
        children = [c for c in self._classes.values() if c.parent_class_id == class_id]
        children.sort(key=_sibling_key)
        return children

    def _assemble_class(
        self,
        class_item: ClassResponse,
        user_id: Optional[str],
        include_unpublished: bool,
    ) -> ClassWithLessons:
        sub_classes = [
            self._assemble_class(child, user_id, include_unpublished)
            for child in self._children_of(class_item.id)
        ]
        return ClassWithLessons(
            **class_item.model_dump(),
            lessons=self._lessons_of(class_item.id, user_id, include_unpublished),
            sub_classes=sub_classes or None,
        )

    def _assemble_main(
        self,
        main: MainTopicResponse,
        user_id: Optional[str],
        include_unpublished: bool,
    ) -> MainWithClasses:
        return MainWithClasses(
            **main.model_dump(),
            classes=self._top_level_classes(main.id, user_id, include_unpublished),
        )

    def _top_level_classes(
        self,
        main_id: str,
        user_id: Optional[str],
        include_unpublished: bool,
    ) -> List[ClassWithLessons]:
        top_level = [
            c for c in self._classes.values()
            if c.main_id == main_id and c.parent_class_id is None
        ]
        top_level.sort(key=_sibling_key)
        return [self._assemble_class(c, user_id, include_unpublished) for c in top_level]

    def _drop_lesson(self, lesson_id: str) -> None:
        for key in [k for k in self._progress_index if k[1] == lesson_id]:
            del self._progress[self._progress_index.pop(key)]
        del self._lessons[lesson_id]

    def _drop_class(self, class_id: str) -> None:
        for child in [c.id for c in self._classes.values() if c.parent_class_id == class_id]:
            self._drop_class(child)
        for lesson_id in [l.id for l in self._lessons.values() if l.class_id == class_id]:
            self._drop_lesson(lesson_id)
        del self._classes[class_id]

    # ============================================================
    # USERS
    # ============================================================

    def list_users(self) -> List[UserResponse]:
        with self._lock:
            users = sorted(self._users.values(), key=lambda u: (u.created_at, u.id))
            return [u.model_copy() for u in users]

    def get_user_by_id(self, user_id: str) -> Optional[UserResponse]:
        with self._lock:
            user = self._users.get(user_id)
            return user.model_copy() if user else None

    def get_user_by_email(self, email: str) -> Optional[UserResponse]:
        with self._lock:
            for user in self._users.values():
                if user.email == email:
                    return user.model_copy()
            return None

    def create_user(self, payload: UserCreate) -> UserResponse:
        with self._lock:
            if any(u.email == payload.email for u in self._users.values()):
                raise ConstraintViolationError(
                    "Email already registered",
                    constraint="users_email_key",
                    details={"email": payload.email},
                )
            user = UserResponse(
                id=new_id(),
                email=payload.email,
                full_name=payload.full_name,
                is_admin=payload.is_admin or False,
                created_at=self._clock(),
            )
            self._users[user.id] = user
            return user.model_copy()

    def update_user(self, user_id: str, payload: UserUpdate) -> Optional[UserResponse]:
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                return None
            updated = user.model_copy(update=collect_changes(payload))
            self._users[user_id] = updated
            return updated.model_copy()

    # ============================================================
    # MAIN TOPICS
    # ============================================================

    def get_mains(self, user_id=None, include_unpublished=False) -> List[MainWithClasses]:
        with self._lock:
            mains = sorted(self._mains.values(), key=_sibling_key)
            return [self._assemble_main(m, user_id, include_unpublished) for m in mains]

    def get_main_by_id(self, main_id, user_id=None, include_unpublished=False) -> Optional[MainWithClasses]:
        with self._lock:
            main = self._mains.get(main_id)
            if main is None:
                return None
            return self._assemble_main(main, user_id, include_unpublished)

    def create_main(self, payload: MainTopicCreate) -> MainTopicResponse:
        with self._lock:
            self._require(self._users, payload.created_by, "mains_created_by_fkey")
            main = MainTopicResponse(
                id=new_id(),
                title=payload.title,
                description=payload.description,
                icon=payload.icon,
                order=payload.order,
                created_by=payload.created_by,
                created_at=self._clock(),
            )
            self._mains[main.id] = main
            return main.model_copy()

    def update_main(self, main_id: str, payload: MainTopicUpdate) -> Optional[MainTopicResponse]:
        with self._lock:
            main = self._mains.get(main_id)
            if main is None:
                return None
            updated = main.model_copy(update=collect_changes(payload))
            self._mains[main_id] = updated
            return updated.model_copy()

    def delete_main(self, main_id: str) -> bool:
        with self._lock:
            if main_id not in self._mains:
                return False
            for class_id in [c.id for c in self._classes.values() if c.main_id == main_id]:
                # a sub-class may already be gone with its parent
                if class_id in self._classes:
                    self._drop_class(class_id)
            del self._mains[main_id]
            return True

    # ============================================================
    # CLASSES
    # ============================================================

    def get_classes(self, main_id, user_id=None, include_unpublished=False) -> List[ClassWithLessons]:
        with self._lock:
            return self._top_level_classes(main_id, user_id, include_unpublished)

    def get_class_by_id(self, class_id, user_id=None, include_unpublished=False) -> Optional[ClassWithLessons]:
        with self._lock:
            class_item = self._classes.get(class_id)
            if class_item is None:
                return None
            return self._assemble_class(class_item, user_id, include_unpublished)

    def create_class(self, payload: ClassCreate) -> ClassResponse:
        with self._lock:
            self._require(self._mains, payload.main_id, "classes_main_id_fkey")
            self._require(self._users, payload.created_by, "classes_created_by_fkey")
            check_class_placement(None, payload.main_id, payload.parent_class_id, self._class_lookup)
            class_item = ClassResponse(
                id=new_id(),
                title=payload.title,
                description=payload.description,
                main_id=payload.main_id,
                parent_class_id=payload.parent_class_id,
                order=payload.order,
                created_by=payload.created_by,
                created_at=self._clock(),
            )
            self._classes[class_item.id] = class_item
            return class_item.model_copy()

    def update_class(self, class_id: str, payload: ClassUpdate) -> Optional[ClassResponse]:
        with self._lock:
            class_item = self._classes.get(class_id)
            if class_item is None:
                return None
            changes = collect_changes(payload)
            if "parent_class_id" in changes:
                check_class_placement(
                    class_id, class_item.main_id, changes["parent_class_id"], self._class_lookup
                )
            updated = class_item.model_copy(update=changes)
            self._classes[class_id] = updated
            return updated.model_copy()

    def delete_class(self, class_id: str) -> bool:
        with self._lock:
            if class_id not in self._classes:
                return False
            self._drop_class(class_id)
            return True

    # ============================================================
    # LESSONS
    # ============================================================

    def get_lessons(self, class_id, user_id=None, include_unpublished=False) -> List[LessonWithProgress]:
        with self._lock:
            return self._lessons_of(class_id, user_id, include_unpublished)

    def get_lesson_by_id(self, lesson_id, user_id=None) -> Optional[LessonWithProgress]:
        with self._lock:
            lesson = self._lessons.get(lesson_id)
            if lesson is None:
                return None
            return self._with_progress(lesson, user_id)

    def create_lesson(self, payload: LessonCreate) -> LessonResponse:
        with self._lock:
            self._require(self._classes, payload.class_id, "lessons_class_id_fkey")
            self._require(self._users, payload.created_by, "lessons_created_by_fkey")
            now = self._clock()
            lesson = LessonResponse(
                id=new_id(),
                **payload.model_dump(),
                created_at=now,
                updated_at=now,
            )
            self._lessons[lesson.id] = lesson
            return lesson.model_copy()

    def update_lesson(self, lesson_id: str, payload: LessonUpdate) -> Optional[LessonResponse]:
        with self._lock:
            lesson = self._lessons.get(lesson_id)
            if lesson is None:
                return None
            changes = collect_changes(payload)
            if "class_id" in changes:
                self._require(self._classes, changes["class_id"], "lessons_class_id_fkey")
            changes["updated_at"] = self._clock()
            updated = lesson.model_copy(update=changes)
            self._lessons[lesson_id] = updated
            return updated.model_copy()

    def delete_lesson(self, lesson_id: str) -> bool:
        with self._lock:
            if lesson_id not in self._lessons:
                return False
            self._drop_lesson(lesson_id)
            return True

    def search_lessons(self, query: str, user_id: Optional[str] = None) -> List[LessonWithProgress]:
        needle = query.lower()

        def matches(lesson: LessonResponse) -> bool:
            return any(
                value is not None and needle in value.lower()
                for value in (getattr(lesson, field) for field in SEARCHABLE_LESSON_FIELDS)
            )

        with self._lock:
            found = [l for l in self._lessons.values() if l.is_published and matches(l)]
            found = newest_first(found, key=lambda l: l.created_at, tie=lambda l: l.id)
            return [self._with_progress(lesson, user_id) for lesson in found]

    # ============================================================
    # PROGRESS
    # ============================================================

    def get_user_progress(self, user_id: str, lesson_id: str) -> Optional[ProgressResponse]:
        with self._lock:
            return self._progress_for(user_id, lesson_id)

    def update_user_progress(self, payload: ProgressUpdate) -> ProgressResponse:
        with self._lock:
            self._require(self._users, payload.user_id, "user_progress_user_id_fkey")
            self._require(self._lessons, payload.lesson_id, "user_progress_lesson_id_fkey")

            key = (payload.user_id, payload.lesson_id)
            changes = collect_changes(payload)
            changes.pop("user_id", None)
            changes.pop("lesson_id", None)
            now = self._clock()

            existing_id = self._progress_index.get(key)
            if existing_id is not None:
                existing = self._progress[existing_id]
                merged = merge_progress(existing.model_dump(), changes, now)
                progress = existing.model_copy(update=merged)
            else:
                merged = merge_progress(None, changes, now)
                progress = ProgressResponse(
                    id=new_id(),
                    user_id=payload.user_id,
                    lesson_id=payload.lesson_id,
                    created_at=now,
                    **merged,
                )
                self._progress_index[key] = progress.id

            self._progress[progress.id] = progress
            return progress.model_copy()

    def _lessons_for_progress(self, user_id: str, flag: str) -> List[Tuple[LessonResponse, ProgressResponse]]:
        pairs = []
        for progress in self._progress.values():
            if progress.user_id != user_id or not getattr(progress, flag):
                continue
            lesson = self._lessons.get(progress.lesson_id)
            if lesson is not None and lesson.is_published:
                pairs.append((lesson, progress))
        return pairs

    def get_user_bookmarks(self, user_id: str) -> List[LessonWithProgress]:
        with self._lock:
            pairs = newest_first(
                self._lessons_for_progress(user_id, "bookmarked"),
                key=lambda pair: pair[1].updated_at,
                tie=lambda pair: pair[0].id,
            )
            return [
                LessonWithProgress(**lesson.model_dump(), progress=progress.model_copy())
                for lesson, progress in pairs
            ]

    def get_user_completed_lessons(self, user_id: str) -> List[LessonWithProgress]:
        with self._lock:
            pairs = newest_first(
                self._lessons_for_progress(user_id, "completed"),
                key=lambda pair: pair[1].completed_at,
                tie=lambda pair: pair[0].id,
            )
            return [
                LessonWithProgress(**lesson.model_dump(), progress=progress.model_copy())
                for lesson, progress in pairs
            ]

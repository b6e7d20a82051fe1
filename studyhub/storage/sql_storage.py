"""
Relational storage backend on SQLAlchemy ORM sessions.

=== HOW READS WORK ===
The tree is assembled level by level: main topics, then the top level
classes of each main, then for every class its sub-classes and lessons,
then the reading user's progress for those lessons in one IN query.
Rows removed between two level queries are simply missing from the
result; a failing query aborts the whole read.

=== HOW WRITES WORK ===
One session and one transaction per operation. Cascades are done by the
database (ON DELETE CASCADE). The progress upsert reads the row with
SELECT ... FOR UPDATE and writes in the same transaction.

Dependencies: sqlalchemy, studyhub.models, storage.base
System role: relational backend (MySQL/PyMySQL, PostgreSQL, SQLite)
"""
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional

from sqlalchemy import or_
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from studyhub.database import connection_guard, create_session_factory
from studyhub.models import User, MainTopic, StudyClass, Lesson, UserProgress
from studyhub.schemas import (
    UserCreate, UserUpdate, UserResponse,
    MainTopicCreate, MainTopicUpdate, MainTopicResponse, MainWithClasses,
    ClassCreate, ClassUpdate, ClassResponse, ClassWithLessons,
    LessonCreate, LessonUpdate, LessonResponse, LessonWithProgress,
    ProgressUpdate, ProgressResponse,
)
from studyhub.storage.base import (
    ContentStorage, Clock, SEARCHABLE_LESSON_FIELDS,
    check_class_placement, collect_changes, merge_progress, new_id,
)
from studyhub.storage.exceptions import ConstraintViolationError, translate_db_errors


class SqlStorage(ContentStorage):
    """Storage over an SQLAlchemy engine, one ORM session per operation."""

    def __init__(self, engine: Engine, clock: Optional[Clock] = None) -> None:
        super().__init__(clock)
        self._engine = engine
        self._session_factory = create_session_factory(engine)
        self._guard = connection_guard(engine)

    @property
    def engine(self) -> Engine:
        return self._engine

    def close(self) -> None:
        self._engine.dispose()

    @contextmanager
    def _session(self) -> Iterator[Session]:
        with self._guard, translate_db_errors():
            with self._session_factory() as db:
                with db.begin():
                    yield db

    # ============================================================
    # TREE ASSEMBLY
    # ============================================================

    @staticmethod
    def _attach_progress(
        db: Session,
        lessons: List[Lesson],
        user_id: Optional[str],
    ) -> List[LessonWithProgress]:
        progress_by_lesson: Dict[str, UserProgress] = {}
        if user_id is not None and lessons:
            rows = db.query(UserProgress).filter(
                UserProgress.user_id == user_id,
                UserProgress.lesson_id.in_([lesson.id for lesson in lessons])
            ).all()
            progress_by_lesson = {row.lesson_id: row for row in rows}

        result = []
        for lesson in lessons:
            progress = progress_by_lesson.get(lesson.id)
            result.append(LessonWithProgress(
                **LessonResponse.model_validate(lesson).model_dump(),
                progress=ProgressResponse.model_validate(progress) if progress else None,
            ))
        return result

    @staticmethod
    def _query_lessons(db: Session, class_id: str, include_unpublished: bool) -> List[Lesson]:
        query = db.query(Lesson).filter(Lesson.class_id == class_id)
        if not include_unpublished:
            query = query.filter(Lesson.is_published == True)  # noqa: E712
        return query.order_by(Lesson.order, Lesson.created_at, Lesson.id).all()

    def _assemble_class(
        self,
        db: Session,
        class_row: StudyClass,
        user_id: Optional[str],
        include_unpublished: bool,
    ) -> ClassWithLessons:
        children = db.query(StudyClass).filter(
            StudyClass.parent_class_id == class_row.id
        ).order_by(StudyClass.order, StudyClass.created_at, StudyClass.id).all()

        sub_classes = [
            self._assemble_class(db, child, user_id, include_unpublished)
            for child in children
        ]
        lessons = self._attach_progress(
            db, self._query_lessons(db, class_row.id, include_unpublished), user_id
        )
        return ClassWithLessons(
            **ClassResponse.model_validate(class_row).model_dump(),
            lessons=lessons,
            sub_classes=sub_classes or None,
        )

    def _top_level_classes(
        self,
        db: Session,
        main_id: str,
        user_id: Optional[str],
        include_unpublished: bool,
    ) -> List[ClassWithLessons]:
        rows = db.query(StudyClass).filter(
            StudyClass.main_id == main_id,
            StudyClass.parent_class_id.is_(None)
        ).order_by(StudyClass.order, StudyClass.created_at, StudyClass.id).all()
        return [self._assemble_class(db, row, user_id, include_unpublished) for row in rows]

    def _assemble_main(self, db, main: MainTopic, user_id, include_unpublished) -> MainWithClasses:
        return MainWithClasses(
            **MainTopicResponse.model_validate(main).model_dump(),
            classes=self._top_level_classes(db, main.id, user_id, include_unpublished),
        )

    @staticmethod
    def _class_lookup(db: Session):
        def lookup(class_id: str):
            row = db.query(StudyClass.main_id, StudyClass.parent_class_id).filter(
                StudyClass.id == class_id
            ).first()
            return (row[0], row[1]) if row else None
        return lookup

    # ============================================================
    # USERS
    # ============================================================

    def list_users(self) -> List[UserResponse]:
        with self._session() as db:
            users = db.query(User).order_by(User.created_at, User.id).all()
            return [UserResponse.model_validate(u) for u in users]

    def get_user_by_id(self, user_id: str) -> Optional[UserResponse]:
        with self._session() as db:
            user = db.query(User).filter(User.id == user_id).first()
            return UserResponse.model_validate(user) if user else None

    def get_user_by_email(self, email: str) -> Optional[UserResponse]:
        with self._session() as db:
            user = db.query(User).filter(User.email == email).first()
            return UserResponse.model_validate(user) if user else None

    def create_user(self, payload: UserCreate) -> UserResponse:
        with self._session() as db:
            user = User(id=new_id(), created_at=self._clock(), **payload.model_dump())
            db.add(user)
            db.flush()
            return UserResponse.model_validate(user)

    def update_user(self, user_id: str, payload: UserUpdate) -> Optional[UserResponse]:
        with self._session() as db:
            user = db.query(User).filter(User.id == user_id).first()
            if not user:
                return None
            for key, value in collect_changes(payload).items():
                setattr(user, key, value)
            db.flush()
            return UserResponse.model_validate(user)

    # ============================================================
    # MAIN TOPICS
    # ============================================================

    def get_mains(self, user_id=None, include_unpublished=False) -> List[MainWithClasses]:
        with self._session() as db:
            mains = db.query(MainTopic).order_by(
                MainTopic.order, MainTopic.created_at, MainTopic.id
            ).all()
            return [self._assemble_main(db, m, user_id, include_unpublished) for m in mains]

    def get_main_by_id(self, main_id, user_id=None, include_unpublished=False) -> Optional[MainWithClasses]:
        with self._session() as db:
            main = db.query(MainTopic).filter(MainTopic.id == main_id).first()
            if not main:
                return None
            return self._assemble_main(db, main, user_id, include_unpublished)

    def create_main(self, payload: MainTopicCreate) -> MainTopicResponse:
        with self._session() as db:
            main = MainTopic(id=new_id(), created_at=self._clock(), **payload.model_dump())
            db.add(main)
            db.flush()
            return MainTopicResponse.model_validate(main)

    def update_main(self, main_id: str, payload: MainTopicUpdate) -> Optional[MainTopicResponse]:
        with self._session() as db:
            main = db.query(MainTopic).filter(MainTopic.id == main_id).first()
            if not main:
                return None
            for key, value in collect_changes(payload).items():
                setattr(main, key, value)
            db.flush()
            return MainTopicResponse.model_validate(main)

    def delete_main(self, main_id: str) -> bool:
        with self._session() as db:
            deleted = db.query(MainTopic).filter(
                MainTopic.id == main_id
            ).delete(synchronize_session=False)
            return deleted > 0

    # ============================================================
    # CLASSES
    # ============================================================

    def get_classes(self, main_id, user_id=None, include_unpublished=False) -> List[ClassWithLessons]:
        with self._session() as db:
            return self._top_level_classes(db, main_id, user_id, include_unpublished)

    def get_class_by_id(self, class_id, user_id=None, include_unpublished=False) -> Optional[ClassWithLessons]:
        with self._session() as db:
            class_row = db.query(StudyClass).filter(StudyClass.id == class_id).first()
            if not class_row:
                return None
            return self._assemble_class(db, class_row, user_id, include_unpublished)

    def create_class(self, payload: ClassCreate) -> ClassResponse:
        with self._session() as db:
            check_class_placement(
                None, payload.main_id, payload.parent_class_id, self._class_lookup(db)
            )
            class_row = StudyClass(id=new_id(), created_at=self._clock(), **payload.model_dump())
            db.add(class_row)
            db.flush()
            return ClassResponse.model_validate(class_row)

    def update_class(self, class_id: str, payload: ClassUpdate) -> Optional[ClassResponse]:
        with self._session() as db:
            class_row = db.query(StudyClass).filter(StudyClass.id == class_id).first()
            if not class_row:
                return None
            changes = collect_changes(payload)
            if "parent_class_id" in changes:
                check_class_placement(
                    class_id, class_row.main_id, changes["parent_class_id"], self._class_lookup(db)
                )
            for key, value in changes.items():
                setattr(class_row, key, value)
            db.flush()
            return ClassResponse.model_validate(class_row)

    def delete_class(self, class_id: str) -> bool:
        with self._session() as db:
            deleted = db.query(StudyClass).filter(
                StudyClass.id == class_id
            ).delete(synchronize_session=False)
            return deleted > 0

    # ============================================================
    # LESSONS
    # ============================================================

    def get_lessons(self, class_id, user_id=None, include_unpublished=False) -> List[LessonWithProgress]:
        with self._session() as db:
            lessons = self._query_lessons(db, class_id, include_unpublished)
            return self._attach_progress(db, lessons, user_id)

    def get_lesson_by_id(self, lesson_id, user_id=None) -> Optional[LessonWithProgress]:
        with self._session() as db:
            lesson = db.query(Lesson).filter(Lesson.id == lesson_id).first()
            if not lesson:
                return None
            return self._attach_progress(db, [lesson], user_id)[0]

    def create_lesson(self, payload: LessonCreate) -> LessonResponse:
        now = self._clock()
        with self._session() as db:
            lesson = Lesson(id=new_id(), created_at=now, updated_at=now, **payload.model_dump())
            db.add(lesson)
            db.flush()
            return LessonResponse.model_validate(lesson)

    def update_lesson(self, lesson_id: str, payload: LessonUpdate) -> Optional[LessonResponse]:
        with self._session() as db:
            lesson = db.query(Lesson).filter(Lesson.id == lesson_id).first()
            if not lesson:
                return None
            for key, value in collect_changes(payload).items():
                setattr(lesson, key, value)
            lesson.updated_at = self._clock()
            db.flush()
            return LessonResponse.model_validate(lesson)

    def delete_lesson(self, lesson_id: str) -> bool:
        with self._session() as db:
            deleted = db.query(Lesson).filter(
                Lesson.id == lesson_id
            ).delete(synchronize_session=False)
            return deleted > 0

    def search_lessons(self, query: str, user_id: Optional[str] = None) -> List[LessonWithProgress]:
        with self._session() as db:
            matches = or_(*(
                getattr(Lesson, field).icontains(query, autoescape=True)
                for field in SEARCHABLE_LESSON_FIELDS
            ))
            lessons = db.query(Lesson).filter(
                Lesson.is_published == True,  # noqa: E712
                matches
            ).order_by(Lesson.created_at.desc(), Lesson.id).all()
            return self._attach_progress(db, lessons, user_id)

    # ============================================================
    # PROGRESS
    # ============================================================

    def get_user_progress(self, user_id: str, lesson_id: str) -> Optional[ProgressResponse]:
        with self._session() as db:
            progress = db.query(UserProgress).filter(
                UserProgress.user_id == user_id,
                UserProgress.lesson_id == lesson_id
            ).first()
            return ProgressResponse.model_validate(progress) if progress else None

    def update_user_progress(self, payload: ProgressUpdate) -> ProgressResponse:
        try:
            return self._upsert_progress(payload)
        except ConstraintViolationError:
            # Another caller inserted the same pair first: merge into its row.
            # Anything else (unknown user or lesson) is raised as is.
            if self.get_user_progress(payload.user_id, payload.lesson_id) is None:
                raise
            return self._upsert_progress(payload)

    def _upsert_progress(self, payload: ProgressUpdate) -> ProgressResponse:
        changes = collect_changes(payload)
        changes.pop("user_id", None)
        changes.pop("lesson_id", None)

        with self._session() as db:
            now = self._clock()
            progress = db.query(UserProgress).filter(
                UserProgress.user_id == payload.user_id,
                UserProgress.lesson_id == payload.lesson_id
            ).with_for_update().first()

            if progress:
                current = {
                    "completed": progress.completed,
                    "bookmarked": progress.bookmarked,
                    "study_time": progress.study_time,
                    "notes": progress.notes,
                    "completed_at": progress.completed_at,
                }
                for key, value in merge_progress(current, changes, now).items():
                    setattr(progress, key, value)
            else:
                progress = UserProgress(
                    id=new_id(),
                    user_id=payload.user_id,
                    lesson_id=payload.lesson_id,
                    created_at=now,
                    **merge_progress(None, changes, now)
                )
                db.add(progress)

            db.flush()
            return ProgressResponse.model_validate(progress)

    def _lessons_flagged(self, user_id: str, flag, order_column) -> List[LessonWithProgress]:
        with self._session() as db:
            rows = db.query(Lesson, UserProgress).join(
                UserProgress, UserProgress.lesson_id == Lesson.id
            ).filter(
                UserProgress.user_id == user_id,
                flag == True,  # noqa: E712
                Lesson.is_published == True  # noqa: E712
            ).order_by(order_column.desc(), Lesson.id).all()

            return [
                LessonWithProgress(
                    **LessonResponse.model_validate(lesson).model_dump(),
                    progress=ProgressResponse.model_validate(progress),
                )
                for lesson, progress in rows
            ]

    def get_user_bookmarks(self, user_id: str) -> List[LessonWithProgress]:
        return self._lessons_flagged(user_id, UserProgress.bookmarked, UserProgress.updated_at)

    def get_user_completed_lessons(self, user_id: str) -> List[LessonWithProgress]:
        return self._lessons_flagged(user_id, UserProgress.completed, UserProgress.completed_at)

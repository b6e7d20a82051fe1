"""
Relational storage backend on SQLAlchemy Core connections.

Unlike SqlStorage this variant never walks the tree query by query: it
loads each table level in bulk (IN queries) and nests the rows in Python.
The progress upsert is a single statement in the dialect of the connected
driver:

- PostgreSQL (psycopg2), SQLite:  INSERT ... ON CONFLICT DO UPDATE
- MySQL / MariaDB (PyMySQL):      INSERT ... ON DUPLICATE KEY UPDATE
- anything else:                  SELECT ... FOR UPDATE, then INSERT/UPDATE
                                  in the same transaction

Dependencies: sqlalchemy core, studyhub.models (table definitions)
System role: relational backend with atomic progress upsert
"""
from collections import defaultdict
from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, List, Optional

from sqlalchemy import and_, case, delete, func, insert, or_, select, update
from sqlalchemy.dialects import mysql, postgresql, sqlite
from sqlalchemy.engine import Connection, Engine

from studyhub.database import connection_guard
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
from studyhub.storage.exceptions import translate_db_errors

users = User.__table__
mains = MainTopic.__table__
classes = StudyClass.__table__
lessons = Lesson.__table__
progress_table = UserProgress.__table__

ON_CONFLICT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}
MYSQL_DIALECTS = ("mysql", "mariadb")


def _as_dict(row) -> Dict[str, Any]:
    return dict(row._mapping)


class _TreeBuilder:
    """Nests flat class, lesson and progress rows into ClassWithLessons."""

    def __init__(self, class_rows, lesson_rows, progress_rows) -> None:
        self.children = defaultdict(list)
        for row in class_rows:
            self.children[row.parent_class_id].append(row)
        self.lessons = defaultdict(list)
        for row in lesson_rows:
            self.lessons[row.class_id].append(row)
        self.progress = {row.lesson_id: row for row in progress_rows}

    def lesson(self, row) -> LessonWithProgress:
        progress = self.progress.get(row.id)
        return LessonWithProgress(
            **_as_dict(row),
            progress=ProgressResponse(**_as_dict(progress)) if progress is not None else None,
        )

    def build(self, class_row) -> ClassWithLessons:
        sub_classes = [self.build(child) for child in self.children.get(class_row.id, [])]
        return ClassWithLessons(
            **_as_dict(class_row),
            lessons=[self.lesson(row) for row in self.lessons.get(class_row.id, [])],
            sub_classes=sub_classes or None,
        )


class SqlCoreStorage(ContentStorage):
    """Storage over an SQLAlchemy engine using Core statements."""

    def __init__(self, engine: Engine, clock: Optional[Clock] = None) -> None:
        super().__init__(clock)
        self._engine = engine
        self._guard = connection_guard(engine)

    @property
    def engine(self) -> Engine:
        return self._engine

    def close(self) -> None:
        self._engine.dispose()

    @contextmanager
    def _connect(self) -> Iterator[Connection]:
        with self._guard, translate_db_errors():
            with self._engine.begin() as conn:
                yield conn

    # ============================================================
    # BULK LOADING
    # ============================================================

    @staticmethod
    def _load_classes(conn: Connection, main_ids: List[str]) -> list:
        if not main_ids:
            return []
        return conn.execute(
            select(classes)
            .where(classes.c.main_id.in_(main_ids))
            .order_by(classes.c.order, classes.c.created_at, classes.c.id)
        ).all()

    @staticmethod
    def _load_lessons(conn: Connection, class_ids: List[str], include_unpublished: bool) -> list:
        if not class_ids:
            return []
        stmt = select(lessons).where(lessons.c.class_id.in_(class_ids))
        if not include_unpublished:
            stmt = stmt.where(lessons.c.is_published.is_(True))
        return conn.execute(
            stmt.order_by(lessons.c.order, lessons.c.created_at, lessons.c.id)
        ).all()

    @staticmethod
    def _load_progress(conn: Connection, user_id: Optional[str], lesson_ids: List[str]) -> list:
        if user_id is None or not lesson_ids:
            return []
        return conn.execute(
            select(progress_table).where(
                progress_table.c.user_id == user_id,
                progress_table.c.lesson_id.in_(lesson_ids),
            )
        ).all()

    def _tree_for_mains(
        self,
        conn: Connection,
        main_ids: List[str],
        user_id: Optional[str],
        include_unpublished: bool,
    ) -> _TreeBuilder:
        class_rows = self._load_classes(conn, main_ids)
        lesson_rows = self._load_lessons(conn, [c.id for c in class_rows], include_unpublished)
        progress_rows = self._load_progress(conn, user_id, [l.id for l in lesson_rows])
        return _TreeBuilder(class_rows, lesson_rows, progress_rows)

    def _with_progress(self, conn: Connection, lesson_rows: Iterable, user_id: Optional[str]) -> List[LessonWithProgress]:
        lesson_rows = list(lesson_rows)
        tree = _TreeBuilder(
            [], lesson_rows, self._load_progress(conn, user_id, [l.id for l in lesson_rows])
        )
        return [tree.lesson(row) for row in lesson_rows]

    @staticmethod
    def _class_lookup(conn: Connection):
        def lookup(class_id: str):
            row = conn.execute(
                select(classes.c.main_id, classes.c.parent_class_id).where(classes.c.id == class_id)
            ).first()
            return (row.main_id, row.parent_class_id) if row is not None else None
        return lookup

    @staticmethod
    def _fetch(conn: Connection, table, row_id: str):
        return conn.execute(select(table).where(table.c.id == row_id)).first()

    def _update_row(self, table, row_id: str, changes: Dict[str, Any], conn: Connection):
        if self._fetch(conn, table, row_id) is None:
            return None
        if changes:
            conn.execute(update(table).where(table.c.id == row_id).values(**changes))
        return self._fetch(conn, table, row_id)

    def _delete_row(self, table, row_id: str) -> bool:
        with self._connect() as conn:
            result = conn.execute(delete(table).where(table.c.id == row_id))
            return result.rowcount > 0

    # ============================================================
    # USERS
    # ============================================================

    def list_users(self) -> List[UserResponse]:
        with self._connect() as conn:
            rows = conn.execute(select(users).order_by(users.c.created_at, users.c.id)).all()
            return [UserResponse(**_as_dict(row)) for row in rows]

    def get_user_by_id(self, user_id: str) -> Optional[UserResponse]:
        with self._connect() as conn:
            row = self._fetch(conn, users, user_id)
            return UserResponse(**_as_dict(row)) if row is not None else None

    def get_user_by_email(self, email: str) -> Optional[UserResponse]:
        with self._connect() as conn:
            row = conn.execute(select(users).where(users.c.email == email)).first()
            return UserResponse(**_as_dict(row)) if row is not None else None

    def create_user(self, payload: UserCreate) -> UserResponse:
        values = dict(payload.model_dump(), id=new_id(), created_at=self._clock())
        with self._connect() as conn:
            conn.execute(insert(users).values(**values))
        return UserResponse(**values)

    def update_user(self, user_id: str, payload: UserUpdate) -> Optional[UserResponse]:
        with self._connect() as conn:
            row = self._update_row(users, user_id, collect_changes(payload), conn)
            return UserResponse(**_as_dict(row)) if row is not None else None

    # ============================================================
    # MAIN TOPICS
    # ============================================================

    def get_mains(self, user_id=None, include_unpublished=False) -> List[MainWithClasses]:
        with self._connect() as conn:
            main_rows = conn.execute(
                select(mains).order_by(mains.c.order, mains.c.created_at, mains.c.id)
            ).all()
            tree = self._tree_for_mains(conn, [m.id for m in main_rows], user_id, include_unpublished)

        top_level = defaultdict(list)
        for class_row in tree.children.get(None, []):
            top_level[class_row.main_id].append(tree.build(class_row))
        return [
            MainWithClasses(**_as_dict(main), classes=top_level.get(main.id, []))
            for main in main_rows
        ]

    def get_main_by_id(self, main_id, user_id=None, include_unpublished=False) -> Optional[MainWithClasses]:
        with self._connect() as conn:
            main = self._fetch(conn, mains, main_id)
            if main is None:
                return None
            tree = self._tree_for_mains(conn, [main_id], user_id, include_unpublished)

        return MainWithClasses(
            **_as_dict(main),
            classes=[tree.build(row) for row in tree.children.get(None, [])],
        )

    def create_main(self, payload: MainTopicCreate) -> MainTopicResponse:
        values = dict(payload.model_dump(), id=new_id(), created_at=self._clock())
        with self._connect() as conn:
            conn.execute(insert(mains).values(**values))
        return MainTopicResponse(**values)

    def update_main(self, main_id: str, payload: MainTopicUpdate) -> Optional[MainTopicResponse]:
        with self._connect() as conn:
            row = self._update_row(mains, main_id, collect_changes(payload), conn)
            return MainTopicResponse(**_as_dict(row)) if row is not None else None

    def delete_main(self, main_id: str) -> bool:
        return self._delete_row(mains, main_id)

    # ============================================================
    # CLASSES
    # ============================================================

    def get_classes(self, main_id, user_id=None, include_unpublished=False) -> List[ClassWithLessons]:
        with self._connect() as conn:
            tree = self._tree_for_mains(conn, [main_id], user_id, include_unpublished)
        return [tree.build(row) for row in tree.children.get(None, [])]

    def get_class_by_id(self, class_id, user_id=None, include_unpublished=False) -> Optional[ClassWithLessons]:
        with self._connect() as conn:
            class_row = self._fetch(conn, classes, class_id)
            if class_row is None:
                return None
            # sub-classes always share their parent's main topic
            tree = self._tree_for_mains(conn, [class_row.main_id], user_id, include_unpublished)
        return tree.build(class_row)

    def create_class(self, payload: ClassCreate) -> ClassResponse:
        values = dict(payload.model_dump(), id=new_id(), created_at=self._clock())
        with self._connect() as conn:
            check_class_placement(
                None, payload.main_id, payload.parent_class_id, self._class_lookup(conn)
            )
            conn.execute(insert(classes).values(**values))
        return ClassResponse(**values)

    def update_class(self, class_id: str, payload: ClassUpdate) -> Optional[ClassResponse]:
        changes = collect_changes(payload)
        with self._connect() as conn:
            current = self._fetch(conn, classes, class_id)
            if current is None:
                return None
            if "parent_class_id" in changes:
                check_class_placement(
                    class_id, current.main_id, changes["parent_class_id"], self._class_lookup(conn)
                )
            row = self._update_row(classes, class_id, changes, conn)
            return ClassResponse(**_as_dict(row))

    def delete_class(self, class_id: str) -> bool:
        return self._delete_row(classes, class_id)

    # ============================================================
    # LESSONS
    # ============================================================

    def get_lessons(self, class_id, user_id=None, include_unpublished=False) -> List[LessonWithProgress]:
        with self._connect() as conn:
            return self._with_progress(
                conn, self._load_lessons(conn, [class_id], include_unpublished), user_id
            )

    def get_lesson_by_id(self, lesson_id, user_id=None) -> Optional[LessonWithProgress]:
        with self._connect() as conn:
            row = self._fetch(conn, lessons, lesson_id)
            if row is None:
                return None
            return self._with_progress(conn, [row], user_id)[0]

    def create_lesson(self, payload: LessonCreate) -> LessonResponse:
        now = self._clock()
        values = dict(payload.model_dump(), id=new_id(), created_at=now, updated_at=now)
        with self._connect() as conn:
            conn.execute(insert(lessons).values(**values))
        return LessonResponse(**values)

    def update_lesson(self, lesson_id: str, payload: LessonUpdate) -> Optional[LessonResponse]:
        changes = collect_changes(payload)
        changes["updated_at"] = self._clock()
        with self._connect() as conn:
            row = self._update_row(lessons, lesson_id, changes, conn)
            return LessonResponse(**_as_dict(row)) if row is not None else None

    def delete_lesson(self, lesson_id: str) -> bool:
        return self._delete_row(lessons, lesson_id)

    def search_lessons(self, query: str, user_id: Optional[str] = None) -> List[LessonWithProgress]:
        matches = or_(*(
            lessons.c[field].icontains(query, autoescape=True)
            for field in SEARCHABLE_LESSON_FIELDS
        ))
        with self._connect() as conn:
            rows = conn.execute(
                select(lessons)
                .where(lessons.c.is_published.is_(True), matches)
                .order_by(lessons.c.created_at.desc(), lessons.c.id)
            ).all()
            return self._with_progress(conn, rows, user_id)

    # ============================================================
    # PROGRESS
    # ============================================================

    @staticmethod
    def _pair_clause(user_id: str, lesson_id: str):
        return and_(
            progress_table.c.user_id == user_id,
            progress_table.c.lesson_id == lesson_id,
        )

    def get_user_progress(self, user_id: str, lesson_id: str) -> Optional[ProgressResponse]:
        with self._connect() as conn:
            row = conn.execute(
                select(progress_table).where(self._pair_clause(user_id, lesson_id))
            ).first()
            return ProgressResponse(**_as_dict(row)) if row is not None else None

    @staticmethod
    def _conflict_assignments(incoming, changes: Dict[str, Any]) -> Dict[str, Any]:
        """
        SET clause applied when the (user_id, lesson_id) row already exists.

        incoming is the proposed row (EXCLUDED on PostgreSQL/SQLite,
        VALUES() on MySQL).
        """
        current = progress_table.c
        assignments: Dict[str, Any] = {}
        for field in ("completed", "bookmarked", "notes"):
            if field in changes:
                assignments[field] = incoming[field]
        if "study_time" in changes:
            assignments["study_time"] = case(
                (incoming.study_time > current.study_time, incoming.study_time),
                else_=current.study_time,
            )
        # incoming completed_at is only set when this update completes the lesson
        assignments["completed_at"] = func.coalesce(current.completed_at, incoming.completed_at)
        assignments["updated_at"] = incoming.updated_at
        return assignments

    def update_user_progress(self, payload: ProgressUpdate) -> ProgressResponse:
        changes = collect_changes(payload)
        changes.pop("user_id", None)
        changes.pop("lesson_id", None)
        now = self._clock()
        values = dict(
            id=new_id(),
            user_id=payload.user_id,
            lesson_id=payload.lesson_id,
            created_at=now,
            **merge_progress(None, changes, now)
        )

        with self._connect() as conn:
            dialect = conn.dialect.name
            if dialect in ON_CONFLICT_INSERTS:
                stmt = ON_CONFLICT_INSERTS[dialect](progress_table).values(**values)
                stmt = stmt.on_conflict_do_update(
                    index_elements=[progress_table.c.user_id, progress_table.c.lesson_id],
                    set_=self._conflict_assignments(stmt.excluded, changes),
                )
                conn.execute(stmt)
            elif dialect in MYSQL_DIALECTS:
                stmt = mysql.insert(progress_table).values(**values)
                stmt = stmt.on_duplicate_key_update(
                    self._conflict_assignments(stmt.inserted, changes)
                )
                conn.execute(stmt)
            else:
                self._read_then_write_progress(conn, payload, changes, values, now)

            row = conn.execute(
                select(progress_table).where(self._pair_clause(payload.user_id, payload.lesson_id))
            ).one()
            return ProgressResponse(**_as_dict(row))

    def _read_then_write_progress(self, conn, payload, changes, values, now) -> None:
        pair = self._pair_clause(payload.user_id, payload.lesson_id)
        existing = conn.execute(select(progress_table).where(pair).with_for_update()).first()
        if existing is None:
            conn.execute(insert(progress_table).values(**values))
            return
        merged = merge_progress(_as_dict(existing), changes, now)
        conn.execute(update(progress_table).where(pair).values(**merged))

    def _lessons_flagged(self, user_id: str, flag, order_column) -> List[LessonWithProgress]:
        joined = lessons.join(progress_table, progress_table.c.lesson_id == lessons.c.id)
        with self._connect() as conn:
            lesson_rows = conn.execute(
                select(lessons)
                .select_from(joined)
                .where(
                    progress_table.c.user_id == user_id,
                    flag.is_(True),
                    lessons.c.is_published.is_(True),
                )
                .order_by(order_column.desc(), lessons.c.id)
            ).all()
            return self._with_progress(conn, lesson_rows, user_id)

    def get_user_bookmarks(self, user_id: str) -> List[LessonWithProgress]:
        return self._lessons_flagged(user_id, progress_table.c.bookmarked, progress_table.c.updated_at)

    def get_user_completed_lessons(self, user_id: str) -> List[LessonWithProgress]:
        return self._lessons_flagged(user_id, progress_table.c.completed, progress_table.c.completed_at)

from __future__ import annotations

from collections.abc import Callable, Iterator
from datetime import datetime, timedelta

import pytest

from studyhub.database import create_db_engine, init_db
from studyhub.schemas import ClassCreate, LessonCreate, MainTopicCreate, UserCreate, UserResponse
from studyhub.storage import ContentStorage, MemoryStorage, SqlCoreStorage, SqlStorage

BACKENDS = ("memory", "sql", "sql_core")


@pytest.fixture
def clock() -> Callable[[], datetime]:
    """Deterministic clock: every call is one second after the previous one."""
    current = [datetime(2024, 1, 1, 9, 0, 0)]

    def tick() -> datetime:
        current[0] += timedelta(seconds=1)
        return current[0]

    return tick


def build_storage(backend: str, clock: Callable[[], datetime]) -> ContentStorage:
    if backend == "memory":
        return MemoryStorage(clock=clock)
    engine = create_db_engine("sqlite://")
    init_db(engine)
    if backend == "sql":
        return SqlStorage(engine, clock=clock)
    return SqlCoreStorage(engine, clock=clock)


@pytest.fixture(params=BACKENDS)
def storage(request: pytest.FixtureRequest, clock: Callable[[], datetime]) -> Iterator[ContentStorage]:
    """The same storage test runs against every backend."""
    store = build_storage(request.param, clock)
    try:
        yield store
    finally:
        store.close()


@pytest.fixture
def admin(storage: ContentStorage) -> UserResponse:
    return storage.create_user(UserCreate(email="admin@example.com", full_name="Admin", is_admin=True))


@pytest.fixture
def reader(storage: ContentStorage) -> UserResponse:
    return storage.create_user(UserCreate(email="reader@example.com", full_name="Reader"))


@pytest.fixture
def make_main(storage: ContentStorage, admin: UserResponse):
    def _make(title: str = "Topic", **fields):
        return storage.create_main(MainTopicCreate(title=title, created_by=admin.id, **fields))

    return _make


@pytest.fixture
def make_class(storage: ContentStorage, admin: UserResponse):
    def _make(main_id: str, title: str = "Class", **fields):
        return storage.create_class(
            ClassCreate(title=title, main_id=main_id, created_by=admin.id, **fields)
        )

    return _make


@pytest.fixture
def make_lesson(storage: ContentStorage, admin: UserResponse):
    def _make(class_id: str, title: str = "Lesson", content: str = "<p>Body</p>", **fields):
        fields.setdefault("is_published", True)
        return storage.create_lesson(
            LessonCreate(title=title, content=content, class_id=class_id, created_by=admin.id, **fields)
        )

    return _make

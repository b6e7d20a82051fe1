from concurrent.futures import ThreadPoolExecutor

import pytest

from studyhub.schemas import ProgressUpdate
from studyhub.storage import ConstraintViolationError


@pytest.fixture
def lessons(make_main, make_class, make_lesson):
    class_item = make_class(make_main().id)
    return [make_lesson(class_item.id, title, order=i) for i, title in enumerate(("Abraham", "Moses", "David"))]


def test_first_update_creates_record(storage, reader, lessons) -> None:
    progress = storage.update_user_progress(
        ProgressUpdate(user_id=reader.id, lesson_id=lessons[0].id, bookmarked=True)
    )

    assert progress.bookmarked is True
    assert progress.completed is False
    assert progress.study_time == 0
    assert progress.completed_at is None
    assert storage.get_user_progress(reader.id, lessons[0].id) == progress


def test_updates_merge_into_one_record(storage, reader, lessons) -> None:
    lesson_id = lessons[0].id
    first = storage.update_user_progress(ProgressUpdate(user_id=reader.id, lesson_id=lesson_id, bookmarked=True))
    second = storage.update_user_progress(
        ProgressUpdate(user_id=reader.id, lesson_id=lesson_id, completed=True, notes="Genesis 15:6")
    )

    assert second.id == first.id
    assert second.bookmarked is True
    assert second.completed is True
    assert second.notes == "Genesis 15:6"
    assert second.completed_at is not None
    assert second.created_at == first.created_at


def test_repeated_update_changes_only_updated_at(storage, reader, lessons) -> None:
    payload = ProgressUpdate(user_id=reader.id, lesson_id=lessons[0].id, completed=True, study_time=5)
    first = storage.update_user_progress(payload)
    second = storage.update_user_progress(payload)

    assert second.updated_at > first.updated_at
    assert second.model_dump(exclude={"updated_at"}) == first.model_dump(exclude={"updated_at"})


def test_completed_at_is_kept_from_first_completion(storage, reader, lessons) -> None:
    lesson_id = lessons[0].id
    first = storage.update_user_progress(ProgressUpdate(user_id=reader.id, lesson_id=lesson_id, completed=True))
    reopened = storage.update_user_progress(ProgressUpdate(user_id=reader.id, lesson_id=lesson_id, completed=False))
    again = storage.update_user_progress(ProgressUpdate(user_id=reader.id, lesson_id=lesson_id, completed=True))

    assert reopened.completed is False
    assert reopened.completed_at == first.completed_at
    assert again.completed_at == first.completed_at


def test_study_time_never_decreases(storage, reader, lessons) -> None:
    lesson_id = lessons[0].id
    storage.update_user_progress(ProgressUpdate(user_id=reader.id, lesson_id=lesson_id, study_time=10))
    lower = storage.update_user_progress(ProgressUpdate(user_id=reader.id, lesson_id=lesson_id, study_time=5))
    higher = storage.update_user_progress(ProgressUpdate(user_id=reader.id, lesson_id=lesson_id, study_time=20))
    untouched = storage.update_user_progress(ProgressUpdate(user_id=reader.id, lesson_id=lesson_id, notes="x"))

    assert lower.study_time == 10
    assert higher.study_time == 20
    assert untouched.study_time == 20


def test_progress_requires_existing_user_and_lesson(storage, reader, lessons) -> None:
    with pytest.raises(ConstraintViolationError):
        storage.update_user_progress(ProgressUpdate(user_id=reader.id, lesson_id="missing", completed=True))
    with pytest.raises(ConstraintViolationError):
        storage.update_user_progress(ProgressUpdate(user_id="missing", lesson_id=lessons[0].id, completed=True))
    assert storage.get_user_progress(reader.id, "missing") is None


def test_progress_is_merged_into_reads(storage, reader, admin, lessons) -> None:
    lesson = lessons[0]
    storage.update_user_progress(ProgressUpdate(user_id=reader.id, lesson_id=lesson.id, bookmarked=True))

    assert storage.get_lesson_by_id(lesson.id).progress is None
    assert storage.get_lesson_by_id(lesson.id, user_id=admin.id).progress is None
    assert storage.get_lesson_by_id(lesson.id, user_id=reader.id).progress.bookmarked is True

    by_reader = storage.get_lessons(lesson.class_id, user_id=reader.id)
    assert [l.progress is not None for l in by_reader] == [True, False, False]

    main = storage.get_mains(user_id=reader.id)[0]
    assert main.classes[0].lessons[0].progress.bookmarked is True
    assert storage.search_lessons("abraham", user_id=reader.id)[0].progress.bookmarked is True


def test_bookmarks_most_recently_updated_first(storage, reader, lessons) -> None:
    abraham, moses, david = lessons
    for lesson in (abraham, moses, david):
        storage.update_user_progress(ProgressUpdate(user_id=reader.id, lesson_id=lesson.id, bookmarked=True))
    storage.update_user_progress(ProgressUpdate(user_id=reader.id, lesson_id=moses.id, bookmarked=False))
    storage.update_user_progress(ProgressUpdate(user_id=reader.id, lesson_id=abraham.id, notes="reread"))

    bookmarks = storage.get_user_bookmarks(reader.id)
    assert [l.id for l in bookmarks] == [abraham.id, david.id]
    assert all(l.progress.bookmarked for l in bookmarks)


def test_completed_most_recently_completed_first(storage, reader, lessons) -> None:
    abraham, moses, david = lessons
    for lesson in (abraham, moses):
        storage.update_user_progress(ProgressUpdate(user_id=reader.id, lesson_id=lesson.id, completed=True))
    # touching an already completed lesson does not move it
    storage.update_user_progress(ProgressUpdate(user_id=reader.id, lesson_id=abraham.id, completed=True))
    storage.update_user_progress(ProgressUpdate(user_id=reader.id, lesson_id=david.id, bookmarked=True))

    assert [l.id for l in storage.get_user_completed_lessons(reader.id)] == [moses.id, abraham.id]


def test_flagged_lists_skip_drafts(storage, reader, lessons) -> None:
    from studyhub.schemas import LessonUpdate

    lesson = lessons[0]
    storage.update_user_progress(
        ProgressUpdate(user_id=reader.id, lesson_id=lesson.id, bookmarked=True, completed=True)
    )
    storage.update_lesson(lesson.id, LessonUpdate(is_published=False))

    assert storage.get_user_bookmarks(reader.id) == []
    assert storage.get_user_completed_lessons(reader.id) == []
    assert storage.get_user_progress(reader.id, lesson.id).bookmarked is True


def test_unknown_user_has_no_flagged_lessons(storage) -> None:
    assert storage.get_user_bookmarks("nobody") == []
    assert storage.get_user_completed_lessons("nobody") == []


def test_end_to_end_scenario(storage, reader, make_main, make_class, make_lesson) -> None:
    main = make_main("Test")
    class_item = make_class(main.id)
    lesson = make_lesson(class_item.id, "Only lesson")

    mains = storage.get_mains()
    assert len(mains) == 1
    assert len(mains[0].classes) == 1
    assert [(l.id, l.title) for l in mains[0].classes[0].lessons] == [(lesson.id, "Only lesson")]

    storage.update_user_progress(ProgressUpdate(user_id=reader.id, lesson_id=lesson.id, completed=True))

    fetched = storage.get_lessons(class_item.id, user_id=reader.id)[0]
    assert fetched.progress.completed is True
    assert fetched.progress.completed_at is not None


def test_concurrent_updates_across_lessons(storage, reader, lessons) -> None:
    def study(lesson_id: str) -> None:
        for minutes in range(1, 21):
            storage.update_user_progress(
                ProgressUpdate(user_id=reader.id, lesson_id=lesson_id, study_time=minutes, bookmarked=True)
            )

    with ThreadPoolExecutor(max_workers=6) as pool:
        # two workers per lesson; result() re-raises anything a worker hit
        for future in [pool.submit(study, lesson.id) for lesson in lessons * 2]:
            future.result()

    for lesson in lessons:
        progress = storage.get_user_progress(reader.id, lesson.id)
        assert progress.study_time == 20
        assert progress.bookmarked is True


def test_concurrent_updates_of_one_pair_share_a_record(storage, reader, lessons) -> None:
    lesson_id = lessons[0].id

    def study(minutes: int):
        return storage.update_user_progress(
            ProgressUpdate(user_id=reader.id, lesson_id=lesson_id, study_time=minutes)
        )

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(study, range(1, 41)))

    assert len({progress.id for progress in results}) == 1
    assert storage.get_user_progress(reader.id, lesson_id).study_time == 40
    assert [l.id for l in storage.get_user_bookmarks(reader.id)] == []

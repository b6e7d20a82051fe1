import pytest

from studyhub.schemas import LessonUpdate
from studyhub.storage import ConstraintViolationError


@pytest.fixture
def study_class(make_main, make_class):
    return make_class(make_main().id)


def test_drafts_hidden_from_lists_but_readable_by_id(storage, study_class, make_lesson) -> None:
    published = make_lesson(study_class.id, "Published")
    draft = make_lesson(study_class.id, "Draft", is_published=False)

    assert [l.id for l in storage.get_lessons(study_class.id)] == [published.id]
    assert [l.id for l in storage.get_lessons(study_class.id, include_unpublished=True)] == [
        published.id, draft.id,
    ]
    assert storage.get_lesson_by_id(draft.id).is_published is False

    tree = storage.get_class_by_id(study_class.id)
    assert [l.id for l in tree.lessons] == [published.id]
    tree = storage.get_class_by_id(study_class.id, include_unpublished=True)
    assert len(tree.lessons) == 2


def test_lesson_defaults(storage, study_class, admin) -> None:
    from studyhub.schemas import LessonCreate

    lesson = storage.create_lesson(
        LessonCreate(title="Ruth", content="<p>Loyalty</p>", class_id=study_class.id, created_by=admin.id)
    )
    assert lesson.is_published is False
    assert lesson.order == 0
    assert lesson.created_at == lesson.updated_at


def test_lesson_requires_existing_class(storage, make_lesson) -> None:
    with pytest.raises(ConstraintViolationError):
        make_lesson("missing-class")


def test_update_lesson_refreshes_updated_at(storage, study_class, make_lesson) -> None:
    lesson = make_lesson(study_class.id, "Samuel", excerpt="The boy who listened")

    updated = storage.update_lesson(lesson.id, LessonUpdate(duration=12))
    assert updated.duration == 12
    assert updated.excerpt == "The boy who listened"
    assert updated.created_at == lesson.created_at
    assert updated.updated_at > lesson.updated_at

    again = storage.update_lesson(lesson.id, LessonUpdate())
    assert again.updated_at > updated.updated_at


def test_update_lesson_can_clear_optional_fields(storage, study_class, make_lesson) -> None:
    lesson = make_lesson(study_class.id, "Samuel", excerpt="The boy who listened")
    updated = storage.update_lesson(lesson.id, LessonUpdate(excerpt=None, title=None))

    assert updated.excerpt is None
    assert updated.title == "Samuel"


def test_lesson_order_within_class(storage, study_class, make_lesson) -> None:
    second = make_lesson(study_class.id, "Moses", order=2)
    first = make_lesson(study_class.id, "Abraham", order=1)
    assert [l.id for l in storage.get_lessons(study_class.id)] == [first.id, second.id]


def test_search_matches_published_excerpt_only(storage, study_class, make_lesson) -> None:
    match = make_lesson(study_class.id, "Abraham", excerpt="A journey of faith")
    make_lesson(study_class.id, "Draft", excerpt="Faith in progress", is_published=False)
    make_lesson(study_class.id, "Moses", excerpt="The lawgiver")

    assert [l.id for l in storage.search_lessons("faith")] == [match.id]
    assert [l.id for l in storage.search_lessons("FAITH")] == [match.id]


def test_search_covers_every_text_field(storage, study_class, make_lesson) -> None:
    by_title = make_lesson(study_class.id, "Grace abounding")
    by_content = make_lesson(study_class.id, "Second", content="<p>saved by grace</p>")
    by_reference = make_lesson(study_class.id, "Third", bible_reference="Grace 1:1")
    make_lesson(study_class.id, "Unrelated")

    found = storage.search_lessons("grace")
    # newest first
    assert [l.id for l in found] == [by_reference.id, by_content.id, by_title.id]


def test_search_folds_non_ascii_case(storage, study_class, make_lesson) -> None:
    eden = make_lesson(study_class.id, "Éden and the Fall")
    make_lesson(study_class.id, "Eden restored")

    assert [l.id for l in storage.search_lessons("éden")] == [eden.id]
    assert [l.id for l in storage.search_lessons("ÉDEN")] == [eden.id]


def test_search_treats_wildcards_literally(storage, study_class, make_lesson) -> None:
    percent = make_lesson(study_class.id, "Tithe 10% of everything")
    make_lesson(study_class.id, "Tithe 10 of everything")
    underscore = make_lesson(study_class.id, "snake_case")
    make_lesson(study_class.id, "snakeXcase")

    assert [l.id for l in storage.search_lessons("10%")] == [percent.id]
    assert [l.id for l in storage.search_lessons("e_c")] == [underscore.id]


def test_search_without_match_is_empty(storage, study_class, make_lesson) -> None:
    make_lesson(study_class.id, "Abraham")
    assert storage.search_lessons("pharaoh") == []


def test_delete_lesson(storage, study_class, make_lesson) -> None:
    lesson = make_lesson(study_class.id)
    assert storage.delete_lesson(lesson.id) is True
    assert storage.get_lesson_by_id(lesson.id) is None
    assert storage.delete_lesson(lesson.id) is False


def test_missing_lesson_is_none(storage) -> None:
    assert storage.get_lesson_by_id("missing") is None
    assert storage.update_lesson("missing", LessonUpdate(title="X")) is None
    assert storage.get_lessons("missing") == []

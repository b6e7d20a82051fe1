import pytest

from studyhub.models import DEFAULT_ICON
from studyhub.schemas import ClassUpdate, MainTopicCreate, MainTopicUpdate
from studyhub.storage import ConstraintViolationError


def test_main_defaults(storage, admin) -> None:
    main = storage.create_main(MainTopicCreate(title="Prophets", created_by=admin.id))
    assert main.icon == DEFAULT_ICON
    assert main.order == 0


def test_main_requires_existing_creator(storage) -> None:
    with pytest.raises(ConstraintViolationError):
        storage.create_main(MainTopicCreate(title="Orphan", created_by="nobody"))


def test_mains_are_referentially_consistent(storage, make_main, make_class, make_lesson) -> None:
    for main_title in ("Old Testament", "New Testament"):
        main = make_main(main_title)
        top = make_class(main.id, "Top")
        child = make_class(main.id, "Child", parent_class_id=top.id)
        make_lesson(top.id, "Top lesson")
        make_lesson(child.id, "Child lesson")

    mains = storage.get_mains()
    assert len(mains) == 2
    for main in mains:
        for class_item in main.classes:
            assert class_item.main_id == main.id
            assert class_item.parent_class_id is None
            for lesson in class_item.lessons:
                assert lesson.class_id == class_item.id
            for sub_class in class_item.sub_classes:
                assert sub_class.parent_class_id == class_item.id
                assert sub_class.main_id == main.id
                assert [l.class_id for l in sub_class.lessons] == [sub_class.id]


def test_class_without_children_has_no_sub_classes(storage, make_main, make_class) -> None:
    main = make_main()
    class_item = make_class(main.id)

    fetched = storage.get_class_by_id(class_item.id)
    assert fetched.sub_classes is None
    assert fetched.lessons == []
    assert storage.get_classes(main.id)[0].sub_classes is None


def test_sub_classes_nest_recursively(storage, make_main, make_class, make_lesson) -> None:
    main = make_main()
    top = make_class(main.id, "Patriarchs")
    middle = make_class(main.id, "Abraham's family", parent_class_id=top.id)
    bottom = make_class(main.id, "Isaac's sons", parent_class_id=middle.id)
    make_lesson(bottom.id, "Jacob and Esau")

    classes = storage.get_classes(main.id)
    assert [c.id for c in classes] == [top.id]
    nested = classes[0].sub_classes[0].sub_classes[0]
    assert nested.id == bottom.id
    assert nested.sub_classes is None
    assert [l.title for l in nested.lessons] == ["Jacob and Esau"]

    from_middle = storage.get_class_by_id(middle.id)
    assert [c.id for c in from_middle.sub_classes] == [bottom.id]


def test_siblings_follow_order_then_creation(storage, make_main, make_class) -> None:
    main = make_main()
    late = make_class(main.id, "Second", order=2)
    early = make_class(main.id, "First", order=1)
    tie = make_class(main.id, "Also second", order=2)

    assert [c.id for c in storage.get_classes(main.id)] == [early.id, late.id, tie.id]


def test_mains_sorted_by_order(storage, make_main) -> None:
    second = make_main("Second", order=2)
    first = make_main("First", order=1)
    assert [m.id for m in storage.get_mains()] == [first.id, second.id]


def test_update_main_partial(storage, make_main) -> None:
    main = make_main("Kings", description="Rulers of Israel")
    updated = storage.update_main(main.id, MainTopicUpdate(icon="fas fa-crown"))

    assert updated.icon == "fas fa-crown"
    assert updated.description == "Rulers of Israel"
    assert storage.update_main("missing", MainTopicUpdate(title="X")) is None


def test_unknown_main_is_rejected(storage, make_class) -> None:
    with pytest.raises(ConstraintViolationError):
        make_class("missing-main")


def test_unknown_parent_is_rejected(storage, make_main, make_class) -> None:
    main = make_main()
    with pytest.raises(ConstraintViolationError):
        make_class(main.id, parent_class_id="missing-class")


def test_parent_must_share_the_main(storage, make_main, make_class) -> None:
    first = make_main("First")
    second = make_main("Second")
    foreign_parent = make_class(first.id)

    with pytest.raises(ConstraintViolationError) as excinfo:
        make_class(second.id, parent_class_id=foreign_parent.id)
    assert excinfo.value.constraint == "classes_parent_same_main"


def test_class_cannot_move_under_itself_or_descendant(storage, make_main, make_class) -> None:
    main = make_main()
    top = make_class(main.id, "Top")
    child = make_class(main.id, "Child", parent_class_id=top.id)

    with pytest.raises(ConstraintViolationError):
        storage.update_class(top.id, ClassUpdate(parent_class_id=top.id))
    with pytest.raises(ConstraintViolationError):
        storage.update_class(top.id, ClassUpdate(parent_class_id=child.id))

    assert storage.get_class_by_id(top.id).parent_class_id is None


def test_class_can_move_back_to_top_level(storage, make_main, make_class) -> None:
    main = make_main()
    top = make_class(main.id, "Top")
    child = make_class(main.id, "Child", parent_class_id=top.id)

    moved = storage.update_class(child.id, ClassUpdate(parent_class_id=None))
    assert moved.parent_class_id is None
    assert [c.id for c in storage.get_classes(main.id)] == [top.id, child.id]


def test_missing_hierarchy_reads_are_none(storage) -> None:
    assert storage.get_main_by_id("missing") is None
    assert storage.get_class_by_id("missing") is None
    assert storage.update_class("missing", ClassUpdate(title="X")) is None
    assert storage.get_classes("missing") == []
    assert storage.delete_main("missing") is False
    assert storage.delete_class("missing") is False

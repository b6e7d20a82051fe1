from studyhub.schemas import ProgressUpdate


def _build_tree(storage, reader, make_main, make_class, make_lesson):
    main = make_main()
    top = make_class(main.id, "Top")
    child = make_class(main.id, "Child", parent_class_id=top.id)
    top_lesson = make_lesson(top.id, "Top lesson")
    child_lesson = make_lesson(child.id, "Child lesson")
    for lesson in (top_lesson, child_lesson):
        storage.update_user_progress(ProgressUpdate(user_id=reader.id, lesson_id=lesson.id, completed=True))
    return main, top, child, top_lesson, child_lesson


def test_delete_main_removes_everything_below(storage, reader, make_main, make_class, make_lesson) -> None:
    main, top, child, top_lesson, child_lesson = _build_tree(storage, reader, make_main, make_class, make_lesson)
    other = make_main("Kept")

    assert storage.delete_main(main.id) is True

    assert storage.get_main_by_id(main.id) is None
    assert storage.get_class_by_id(top.id) is None
    assert storage.get_class_by_id(child.id) is None
    assert storage.get_lesson_by_id(top_lesson.id) is None
    assert storage.get_lesson_by_id(child_lesson.id) is None
    assert storage.get_user_progress(reader.id, top_lesson.id) is None
    assert storage.get_user_progress(reader.id, child_lesson.id) is None
    assert storage.get_user_completed_lessons(reader.id) == []
    assert [m.id for m in storage.get_mains()] == [other.id]
    assert storage.get_user_by_id(reader.id) is not None


def test_delete_class_removes_sub_classes_and_lessons(storage, reader, make_main, make_class, make_lesson) -> None:
    main, top, child, top_lesson, child_lesson = _build_tree(storage, reader, make_main, make_class, make_lesson)

    assert storage.delete_class(top.id) is True

    assert storage.get_class_by_id(child.id) is None
    assert storage.get_lesson_by_id(child_lesson.id) is None
    assert storage.get_user_progress(reader.id, top_lesson.id) is None
    assert storage.get_main_by_id(main.id).classes == []


def test_delete_sub_class_keeps_parent(storage, reader, make_main, make_class, make_lesson) -> None:
    main, top, child, top_lesson, child_lesson = _build_tree(storage, reader, make_main, make_class, make_lesson)

    assert storage.delete_class(child.id) is True

    parent = storage.get_class_by_id(top.id)
    assert parent.sub_classes is None
    assert [l.id for l in parent.lessons] == [top_lesson.id]
    assert [l.id for l in storage.get_user_completed_lessons(reader.id)] == [top_lesson.id]


def test_delete_lesson_removes_its_progress(storage, reader, make_main, make_class, make_lesson) -> None:
    _, _, _, top_lesson, child_lesson = _build_tree(storage, reader, make_main, make_class, make_lesson)

    assert storage.delete_lesson(top_lesson.id) is True

    assert storage.get_user_progress(reader.id, top_lesson.id) is None
    assert storage.get_user_progress(reader.id, child_lesson.id) is not None

import pytest

from studyhub.schemas import UserCreate, UserUpdate
from studyhub.storage import ConstraintViolationError


def test_create_and_fetch_user(storage) -> None:
    user = storage.create_user(UserCreate(email="ruth@example.com", full_name="Ruth"))

    assert user.is_admin is False
    assert storage.get_user_by_id(user.id) == user
    assert storage.get_user_by_email("ruth@example.com") == user


def test_email_lookup_is_exact(storage) -> None:
    storage.create_user(UserCreate(email="ruth@example.com", full_name="Ruth"))
    assert storage.get_user_by_email("Ruth@Example.com") is None


def test_duplicate_email_is_rejected(storage) -> None:
    storage.create_user(UserCreate(email="ruth@example.com", full_name="Ruth"))
    with pytest.raises(ConstraintViolationError) as excinfo:
        storage.create_user(UserCreate(email="ruth@example.com", full_name="Other Ruth"))
    assert excinfo.value.constraint == "users_email_key"
    assert len(storage.list_users()) == 1


def test_update_user_changes_only_sent_fields(storage) -> None:
    user = storage.create_user(UserCreate(email="boaz@example.com", full_name="Boaz"))

    updated = storage.update_user(user.id, UserUpdate(is_admin=True))
    assert updated.is_admin is True
    assert updated.full_name == "Boaz"
    assert updated.email == "boaz@example.com"

    # a null for a required column is ignored
    updated = storage.update_user(user.id, UserUpdate(full_name=None))
    assert updated.full_name == "Boaz"


def test_missing_user_is_none(storage) -> None:
    assert storage.get_user_by_id("does-not-exist") is None
    assert storage.update_user("does-not-exist", UserUpdate(full_name="X")) is None


def test_list_users_in_creation_order(storage) -> None:
    first = storage.create_user(UserCreate(email="a@example.com", full_name="A"))
    second = storage.create_user(UserCreate(email="b@example.com", full_name="B"))
    assert [u.id for u in storage.list_users()] == [first.id, second.id]

"""Tests for UserService normalisation, validation and error taxonomy."""

import pytest

from user_directory.app.core.store import UserAttributes
from user_directory.app.services.errors import (
    ErrorKind,
    InternalError,
    InvalidInputError,
    NotFoundError,
)
from user_directory.app.services.user_service import UserService


def test_documented_scenario(service):
    ada = service.create(UserAttributes(name="Ada", email="ada@example.com"))
    grace = service.create(UserAttributes(name="Grace", email="grace@example.com"))
    assert (ada.id, grace.id) == ("1", "2")
    assert [u.id for u in service.list()] == ["1", "2"]

    service.delete("1")
    with pytest.raises(NotFoundError):
        service.get("1")
    assert [u.id for u in service.list()] == ["2"]


def test_create_normalizes_input(service):
    created = service.create(
        UserAttributes(
            name="  Ada  ",
            email=" ada@example.com ",
            phone=" 555 ",
            address="\t1 Main St\n",
            bio="  hi ",
            tags=[" math ", "   ", "", "engines"],
            avatar=b"\x89PNG",
        )
    )
    assert created.attributes == UserAttributes(
        name="Ada",
        email="ada@example.com",
        phone="555",
        address="1 Main St",
        bio="hi",
        tags=["math", "engines"],
        avatar=b"\x89PNG",
    )
    assert service.get(created.id).attributes == created.attributes


def test_none_fields_are_treated_as_empty(service):
    created = service.create(UserAttributes(name="Ada", email="a@b", phone=None, tags=None, avatar=None))
    assert created.attributes.phone == ""
    assert created.attributes.tags == []
    assert created.attributes.avatar == b""


@pytest.mark.parametrize(
    "name, email, message",
    [
        ("", "ada@example.com", "name is required"),
        ("   ", "ada@example.com", "name is required"),
        ("Ada", "", "email must contain '@'"),
        ("Ada", "ada.example.com", "email must contain '@'"),
    ],
)
def test_create_rejects_invalid_attributes(service, store, name, email, message):
    with pytest.raises(InvalidInputError) as excinfo:
        service.create(UserAttributes(name=name, email=email))
    assert excinfo.value.message == message
    assert excinfo.value.kind is ErrorKind.INVALID_INPUT
    assert len(store) == 0


@pytest.mark.parametrize("user_id", ["", "   ", None])
def test_blank_id_is_invalid_for_every_lookup(service, user_id):
    for call in (
        lambda: service.get(user_id),
        lambda: service.delete(user_id),
        lambda: service.update(user_id, UserAttributes(name="Ada", email="a@b")),
    ):
        with pytest.raises(InvalidInputError, match="id is required"):
            call()


def test_id_is_trimmed_before_lookup(service):
    created = service.create(UserAttributes(name="Ada", email="a@b"))
    assert service.get(f"  {created.id} ").id == created.id


def test_update_replaces_whole_bundle(service):
    created = service.create(UserAttributes(name="Ada", email="a@b", phone="1", tags=["x"]))
    updated = service.update(created.id, UserAttributes(name="Ada", email="a@c"))
    assert updated.id == created.id
    assert updated.attributes.phone == ""
    assert updated.attributes.tags == []


def test_update_missing_is_not_found_and_leaves_store_unchanged(service, store):
    created = service.create(UserAttributes(name="Ada", email="a@b"))
    service.delete(created.id)
    snapshot = store.list()
    for user_id in (created.id, "999"):
        with pytest.raises(NotFoundError) as excinfo:
            service.update(user_id, UserAttributes(name="New", email="n@x"))
        assert excinfo.value.kind is ErrorKind.NOT_FOUND
    assert store.list() == snapshot


def test_update_validates_id_before_payload(service):
    with pytest.raises(InvalidInputError, match="id is required"):
        service.update(" ", UserAttributes())


def test_delete_twice_reports_not_found(service):
    created = service.create(UserAttributes(name="Ada", email="a@b"))
    assert service.delete(created.id) is None
    with pytest.raises(NotFoundError):
        service.delete(created.id)


def test_list_empty(service):
    assert service.list() == []


class ExplodingStore:
    def create(self, attributes):
        raise ZeroDivisionError("boom")

    def list(self):
        raise KeyError("broken")


def test_unexpected_errors_become_internal():
    service = UserService(ExplodingStore())
    with pytest.raises(InternalError) as excinfo:
        service.create(UserAttributes(name="Ada", email="a@b"))
    assert excinfo.value.kind is ErrorKind.INTERNAL
    assert isinstance(excinfo.value.__cause__, ZeroDivisionError)
    with pytest.raises(InternalError):
        service.list()


def test_validation_errors_are_not_wrapped():
    service = UserService(ExplodingStore())
    with pytest.raises(InvalidInputError):
        service.create(UserAttributes(name="", email="a@b"))

import pytest
from pydantic import ValidationError

from mynotes.exceptions import RowDecodeError
from mynotes.models import Note, User, note_from_row, user_from_row


def test_user_from_row():
    user = user_from_row({"id": 3, "email": "a@x.com"})
    assert user.id == 3
    assert user.email == "a@x.com"


def test_note_from_row_decodes_sync_flag():
    row = {"id": 1, "user_id": 2, "text": "hi", "is_sync_with_cloud": 1}
    note = note_from_row(row)
    assert note.is_synced_with_cloud is True
    assert note.text == "hi"

    row["is_sync_with_cloud"] = 0
    assert note_from_row(row).is_synced_with_cloud is False


def test_note_from_row_null_text_is_empty():
    note = note_from_row({"id": 1, "user_id": 2, "text": None, "is_sync_with_cloud": 0})
    assert note.text == ""


def test_note_from_row_missing_column():
    with pytest.raises(RowDecodeError) as exc_info:
        note_from_row({"id": 1, "text": "hi", "is_sync_with_cloud": 0})
    assert exc_info.value.table == "note"
    assert "user_id" in exc_info.value.detail


def test_note_from_row_wrong_type():
    with pytest.raises(RowDecodeError):
        note_from_row({"id": 1, "user_id": "abc", "text": "hi", "is_sync_with_cloud": 0})

    with pytest.raises(RowDecodeError):
        note_from_row({"id": 1, "user_id": 1, "text": "hi", "is_sync_with_cloud": 7})


def test_user_from_row_missing_email():
    with pytest.raises(RowDecodeError) as exc_info:
        user_from_row({"id": 1})
    assert exc_info.value.table == "user"


def test_equality_is_by_id():
    assert User(id=1, email="a@x.com") == User(id=1, email="b@x.com")
    assert User(id=1, email="a@x.com") != User(id=2, email="a@x.com")

    first = Note(id=5, user_id=1, text="old", is_synced_with_cloud=True)
    second = Note(id=5, user_id=1, text="new", is_synced_with_cloud=False)
    assert first == second
    assert hash(first) == hash(second)
    assert len({first, second}) == 1


def test_entities_are_immutable():
    note = Note(id=5, user_id=1, text="old", is_synced_with_cloud=True)
    with pytest.raises(ValidationError):
        note.text = "new"

import pytest

from mynotes.auth import AuthUser
from mynotes.db import Database
from mynotes.notes_service import NotesService


@pytest.fixture
def notes_home(tmp_path, monkeypatch):
    """Point the data and config directories at tmp_path."""
    home = tmp_path / "home"
    monkeypatch.setenv("MYNOTES_HOME", str(home))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.delenv("MYNOTES_FIREBASE_API_KEY", raising=False)
    return home


@pytest.fixture
def signed_in(notes_home):
    """Write a session for u@test.com."""
    user = AuthUser(uid="uid-1", email="u@test.com", is_email_verified=True, id_token="token")
    notes_home.mkdir(parents=True, exist_ok=True)
    (notes_home / "session.json").write_text(user.model_dump_json(), encoding="utf-8")
    return user


@pytest.fixture
async def db(tmp_path):
    database = Database(tmp_path / "notes.db")
    await database.open()
    yield database
    if database.is_open:
        await database.close()


@pytest.fixture
async def service(tmp_path):
    notes = NotesService(Database(tmp_path / "notes.db"))
    yield notes
    if notes.db.is_open:
        await notes.close()

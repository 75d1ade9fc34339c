import asyncio
import sqlite3

import pytest

from mynotes.db import Database
from mynotes.exceptions import AlreadyOpenError, DirectoryUnavailableError, NotOpenError

# Schema as written by earlier versions of the app
LEGACY_SCHEMA = """
CREATE TABLE IF NOT EXISTS "user" (
    "id"	INTEGER,
    "email"	TEXT NOT NULL UNIQUE,
    PRIMARY KEY("id" AUTOINCREMENT)
);
CREATE TABLE IF NOT EXISTS "note" (
    "id"	INTEGER,
    "user_id"	INTEGER,
    "text"	TEXT,
    "is_sync_with_cloud"	INTEGER NOT NULL DEFAULT 0,
    FOREIGN KEY("user_id") REFERENCES "user"("id"),
    PRIMARY KEY("id" AUTOINCREMENT)
);
"""


async def test_open_twice_fails(db):
    with pytest.raises(AlreadyOpenError):
        await db.open()


async def test_close_unopened_fails(tmp_path):
    database = Database(tmp_path / "notes.db")
    assert not database.is_open
    with pytest.raises(NotOpenError):
        await database.close()


async def test_operations_on_closed_database_fail(db):
    await db.close()
    with pytest.raises(NotOpenError):
        await db.all_notes()


async def test_reopen_after_close(db):
    await db.insert_user("a@x.com")
    await db.close()
    await db.open()
    assert (await db.find_user("a@x.com"))["email"] == "a@x.com"


async def test_open_creates_file_and_tables(tmp_path):
    path = tmp_path / "nested" / "notes.db"
    database = Database(path)
    await database.open()
    await database.close()

    conn = sqlite3.connect(path)
    tables = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")}
    columns = [row[1] for row in conn.execute('PRAGMA table_info("note")')]
    conn.close()

    assert {"user", "note"} <= tables
    assert columns == ["id", "user_id", "text", "is_sync_with_cloud"]


async def test_unusable_directory(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    database = Database(blocker / "notes.db")
    with pytest.raises(DirectoryUnavailableError):
        await database.open()
    assert not database.is_open


async def test_accepts_existing_file(tmp_path):
    path = tmp_path / "notes.db"
    conn = sqlite3.connect(path)
    conn.executescript(LEGACY_SCHEMA)
    conn.execute("INSERT INTO user (email) VALUES ('old@x.com')")
    conn.execute("INSERT INTO note (user_id, text, is_sync_with_cloud) VALUES (1, 'kept', 1)")
    conn.commit()
    conn.close()

    database = Database(path)
    await database.open()
    try:
        notes = await database.all_notes()
    finally:
        await database.close()

    assert notes == [{"id": 1, "user_id": 1, "text": "kept", "is_sync_with_cloud": 1}]


async def test_user_crud(db):
    user_id = await db.insert_user("a@x.com")
    assert await db.find_user("a@x.com") == {"id": user_id, "email": "a@x.com"}
    assert await db.find_user("b@x.com") is None

    with pytest.raises(sqlite3.IntegrityError):
        await db.insert_user("a@x.com")

    assert await db.delete_user("a@x.com") == 1
    assert await db.delete_user("a@x.com") == 0


async def test_note_crud(db):
    user_id = await db.insert_user("a@x.com")
    note_id = await db.insert_note(user_id, "", is_synced=True)

    assert await db.find_note(note_id) == {
        "id": note_id, "user_id": user_id, "text": "", "is_sync_with_cloud": 1,
    }

    assert await db.update_note(note_id, "hello", is_synced=False) == 1
    assert (await db.find_note(note_id))["is_sync_with_cloud"] == 0
    assert await db.update_note(999, "nope", is_synced=False) == 0

    assert await db.delete_note(note_id) == 1
    assert await db.delete_note(note_id) == 0
    assert await db.find_note(note_id) is None


async def test_note_requires_existing_user(db):
    with pytest.raises(sqlite3.IntegrityError):
        await db.insert_note(42, "", is_synced=True)


async def test_delete_all_notes_and_stats(db):
    user_id = await db.insert_user("a@x.com")
    await db.insert_note(user_id, "one", is_synced=True)
    await db.insert_note(user_id, "two", is_synced=False)

    assert await db.stats() == {"total_users": 1, "total_notes": 2, "unsynced_notes": 1}
    assert await db.delete_all_notes() == 2
    assert await db.all_notes() == []


async def test_concurrent_calls_are_serialized(db):
    user_id = await db.insert_user("a@x.com")
    ids = await asyncio.gather(*(db.insert_note(user_id, str(i), is_synced=True) for i in range(10)))

    assert len(set(ids)) == 10
    rows = await db.all_notes()
    assert [row["text"] for row in rows] == [str(i) for i in range(10)]

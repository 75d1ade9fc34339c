"""
Database module for mynotes.

SQLite storage for users and their notes. One connection per Database,
driven from a single worker thread so every caller is served in order.
"""

import asyncio
import logging
import sqlite3
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from functools import partial
from pathlib import Path
from typing import Any, Callable, Iterator, TypeVar

from mynotes.config import get_db_path
from mynotes.exceptions import AlreadyOpenError, DirectoryUnavailableError, NotOpenError
from mynotes.models import (
    EMAIL_COLUMN,
    ID_COLUMN,
    IS_SYNC_WITH_CLOUD_COLUMN,
    NOTE_TABLE,
    TEXT_COLUMN,
    USER_ID_COLUMN,
    USER_TABLE,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Column names are fixed: existing notes.db files must keep working.
CREATE_USER_TABLE = f"""
CREATE TABLE IF NOT EXISTS "{USER_TABLE}" (
    "{ID_COLUMN}"    INTEGER,
    "{EMAIL_COLUMN}" TEXT NOT NULL UNIQUE,
    PRIMARY KEY("{ID_COLUMN}" AUTOINCREMENT)
);
"""

CREATE_NOTE_TABLE = f"""
CREATE TABLE IF NOT EXISTS "{NOTE_TABLE}" (
    "{ID_COLUMN}"                 INTEGER,
    "{USER_ID_COLUMN}"            INTEGER,
    "{TEXT_COLUMN}"               TEXT,
    "{IS_SYNC_WITH_CLOUD_COLUMN}" INTEGER NOT NULL DEFAULT 0,
    FOREIGN KEY("{USER_ID_COLUMN}") REFERENCES "{USER_TABLE}"("{ID_COLUMN}"),
    PRIMARY KEY("{ID_COLUMN}" AUTOINCREMENT)
);
"""

SCHEMA = CREATE_USER_TABLE + CREATE_NOTE_TABLE


class Database:
    """SQLite database wrapper for mynotes."""

    def __init__(self, db_path: Path | None = None):
        self.db_path = db_path
        self._conn: sqlite3.Connection | None = None
        self._executor: ThreadPoolExecutor | None = None

    @property
    def is_open(self) -> bool:
        return self._executor is not None

    async def open(self) -> None:
        """
        Open (or create) notes.db and ensure the schema exists.

        Raises AlreadyOpenError if this database is already open and
        DirectoryUnavailableError if the documents directory is unusable.
        """
        if self._executor is not None:
            raise AlreadyOpenError("Database is already open")

        if self.db_path is None:
            db_path = get_db_path()
        else:
            db_path = self.db_path
            try:
                db_path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise DirectoryUnavailableError(f"Cannot use {db_path.parent}: {e}") from e

        # Claimed before the first await so a concurrent open() sees it
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="mynotes-db")
        self._executor = executor
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(executor, self._connect, db_path)
        except BaseException:
            self._executor = None
            executor.shutdown(wait=False)
            raise

        logger.info(f"Opened database at {db_path}")

    async def close(self) -> None:
        """Close the connection. Raises NotOpenError if nothing is open."""
        executor = self._executor
        if executor is None:
            raise NotOpenError("Database is not open")

        self._executor = None
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(executor, self._disconnect)
        finally:
            executor.shutdown(wait=False)

        logger.info("Closed database")

    def _connect(self, db_path: Path) -> None:
        """Runs on the worker thread."""
        conn = sqlite3.connect(db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        conn.executescript(SCHEMA)
        conn.commit()
        self._conn = conn

    def _disconnect(self) -> None:
        """Runs on the worker thread."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def _call(self, fn: Callable[..., T], *args: Any) -> T:
        conn = self._conn
        if conn is None:
            raise NotOpenError("Database is not open")
        return fn(conn, *args)

    async def _run(self, fn: Callable[..., T], *args: Any) -> T:
        """Queue fn(conn, *args) on the worker thread and await the result."""
        executor = self._executor
        if executor is None:
            raise NotOpenError("Database is not open")
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(executor, partial(self._call, fn, *args))

    @staticmethod
    @contextmanager
    def _transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
        """Commit on success, roll back on error."""
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    # Users

    async def find_user(self, email: str) -> dict[str, Any] | None:
        """Get a single user row by (lowercase) email."""
        def query(conn: sqlite3.Connection) -> dict[str, Any] | None:
            row = conn.execute(
                f'SELECT * FROM "{USER_TABLE}" WHERE {EMAIL_COLUMN} = ? LIMIT 1',
                (email,)
            ).fetchone()
            return dict(row) if row else None

        return await self._run(query)

    async def insert_user(self, email: str) -> int:
        """Insert a user. Returns the new user ID."""
        def insert(conn: sqlite3.Connection) -> int:
            with self._transaction(conn):
                cursor = conn.execute(
                    f'INSERT INTO "{USER_TABLE}" ({EMAIL_COLUMN}) VALUES (?)',
                    (email,)
                )
                return cursor.lastrowid

        return await self._run(insert)

    async def delete_user(self, email: str) -> int:
        """Delete a user by email. Returns the number of rows deleted."""
        def delete(conn: sqlite3.Connection) -> int:
            with self._transaction(conn):
                cursor = conn.execute(
                    f'DELETE FROM "{USER_TABLE}" WHERE {EMAIL_COLUMN} = ?',
                    (email,)
                )
                return cursor.rowcount

        return await self._run(delete)

    # Notes

    async def find_note(self, note_id: int) -> dict[str, Any] | None:
        """Get a single note row by ID."""
        def query(conn: sqlite3.Connection) -> dict[str, Any] | None:
            row = conn.execute(
                f'SELECT * FROM "{NOTE_TABLE}" WHERE {ID_COLUMN} = ? LIMIT 1',
                (note_id,)
            ).fetchone()
            return dict(row) if row else None

        return await self._run(query)

    async def all_notes(self) -> list[dict[str, Any]]:
        """Get every note row, whoever owns it."""
        def query(conn: sqlite3.Connection) -> list[dict[str, Any]]:
            rows = conn.execute(
                f'SELECT * FROM "{NOTE_TABLE}" ORDER BY {ID_COLUMN}'
            ).fetchall()
            return [dict(row) for row in rows]

        return await self._run(query)

    async def insert_note(self, user_id: int, text: str, is_synced: bool) -> int:
        """Insert a note. Returns the new note ID."""
        def insert(conn: sqlite3.Connection) -> int:
            with self._transaction(conn):
                cursor = conn.execute(f"""
                    INSERT INTO "{NOTE_TABLE}" (
                        {USER_ID_COLUMN}, {TEXT_COLUMN}, {IS_SYNC_WITH_CLOUD_COLUMN}
                    ) VALUES (?, ?, ?)
                """, (user_id, text, int(is_synced)))
                return cursor.lastrowid

        return await self._run(insert)

    async def update_note(self, note_id: int, text: str, is_synced: bool) -> int:
        """Replace a note's text and sync flag. Returns the number of rows updated."""
        def update(conn: sqlite3.Connection) -> int:
            with self._transaction(conn):
                cursor = conn.execute(f"""
                    UPDATE "{NOTE_TABLE}"
                    SET {TEXT_COLUMN} = ?, {IS_SYNC_WITH_CLOUD_COLUMN} = ?
                    WHERE {ID_COLUMN} = ?
                """, (text, int(is_synced), note_id))
                return cursor.rowcount

        return await self._run(update)

    async def delete_note(self, note_id: int) -> int:
        """Delete a note by ID. Returns the number of rows deleted."""
        def delete(conn: sqlite3.Connection) -> int:
            with self._transaction(conn):
                cursor = conn.execute(
                    f'DELETE FROM "{NOTE_TABLE}" WHERE {ID_COLUMN} = ?',
                    (note_id,)
                )
                return cursor.rowcount

        return await self._run(delete)

    async def delete_all_notes(self) -> int:
        """Delete every note. Returns the number of rows deleted."""
        def delete(conn: sqlite3.Connection) -> int:
            with self._transaction(conn):
                return conn.execute(f'DELETE FROM "{NOTE_TABLE}"').rowcount

        return await self._run(delete)

    async def stats(self) -> dict[str, Any]:
        """Get database statistics."""
        def query(conn: sqlite3.Connection) -> dict[str, Any]:
            users = conn.execute(f'SELECT COUNT(*) FROM "{USER_TABLE}"').fetchone()[0]
            notes = conn.execute(f'SELECT COUNT(*) FROM "{NOTE_TABLE}"').fetchone()[0]
            unsynced = conn.execute(
                f'SELECT COUNT(*) FROM "{NOTE_TABLE}" WHERE {IS_SYNC_WITH_CLOUD_COLUMN} = 0'
            ).fetchone()[0]

            return {
                "total_users": users,
                "total_notes": notes,
                "unsynced_notes": unsynced,
            }

        return await self._run(query)

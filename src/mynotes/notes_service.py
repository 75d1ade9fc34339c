"""
Notes service for mynotes.

Coordinates the local database, an in-memory cache of notes and the
snapshot stream that pushes the note list to listeners.
"""

import logging
import sqlite3
from typing import Iterable

from mynotes.db import Database
from mynotes.exceptions import (
    AlreadyOpenError,
    DeleteFailedError,
    NoActiveUserError,
    NoteNotFoundError,
    UpdateFailedError,
    UserAlreadyExistsError,
    UserNotFoundError,
)
from mynotes.models import Note, User, note_from_row, user_from_row
from mynotes.stream import SnapshotStream, Subscription

logger = logging.getLogger(__name__)


def notes_for(user: User, snapshot: Iterable[Note]) -> list[Note]:
    """Filter a snapshot down to the notes owned by user."""
    return [note for note in snapshot if note.user_id == user.id]


class ActiveUserNotes:
    """
    Snapshots of the active user's notes.

    The active user is read each time a snapshot is taken, so switching
    users changes what later snapshots contain.
    """

    def __init__(self, service: "NotesService", subscription: Subscription[Note]):
        self._service = service
        self._subscription = subscription

    def __aiter__(self) -> "ActiveUserNotes":
        return self

    async def __anext__(self) -> list[Note]:
        snapshot = await self._subscription.__anext__()
        user = self._service.active_user
        if user is None:
            self.close()
            raise NoActiveUserError("Set a user before reading notes")
        return notes_for(user, snapshot)

    @property
    def closed(self) -> bool:
        return self._subscription.closed

    def close(self) -> None:
        self._subscription.close()

    async def __aenter__(self) -> "ActiveUserNotes":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()


class NotesService:
    """
    User and note CRUD over a Database, with a cached, observable note list.

    Create one per application and pass it to whatever needs it. Every
    operation opens the database on first use.
    """

    def __init__(self, db: Database | None = None):
        self.db = db or Database()
        self._notes: list[Note] = []
        self._user: User | None = None
        self._stream: SnapshotStream[Note] = SnapshotStream()

    @property
    def active_user(self) -> User | None:
        """The user that all_notes() filters on, if one has been set."""
        return self._user

    @property
    def snapshot(self) -> tuple[Note, ...]:
        """The last published, unfiltered note list."""
        return self._stream.current

    def all_notes(self) -> ActiveUserNotes:
        """Subscribe to the active user's notes. The first item is the current list."""
        return ActiveUserNotes(self, self._stream.subscribe())

    # Lifecycle

    async def open(self) -> None:
        """Open the database and load every note into the cache."""
        await self.db.open()
        await self._cache_notes()

    async def close(self) -> None:
        await self.db.close()

    async def _ensure_db_is_open(self) -> None:
        try:
            await self.open()
        except AlreadyOpenError:
            pass

    async def __aenter__(self) -> "NotesService":
        await self._ensure_db_is_open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self._stream.close()
        if self.db.is_open:
            await self.close()

    async def _cache_notes(self) -> None:
        self._notes = list(await self.get_all_notes())
        self._publish()

    def _publish(self) -> None:
        self._stream.publish(self._notes)

    def _upsert(self, note: Note) -> None:
        self._notes = [cached for cached in self._notes if cached.id != note.id]
        self._notes.append(note)

    # Users

    async def get_or_create_user(self, email: str, set_as_current: bool = True) -> User:
        """Get the user for email, creating it if needed."""
        try:
            user = await self.get_user(email)
        except UserNotFoundError:
            try:
                user = await self.create_user(email)
            except UserAlreadyExistsError:
                # Created by an overlapping call since the lookup
                user = await self.get_user(email)

        if set_as_current:
            self._user = user
            logger.debug(f"Active user is now {user.id}")
        return user

    async def create_user(self, email: str) -> User:
        """Create a user. Raises UserAlreadyExistsError if the email is taken."""
        await self._ensure_db_is_open()
        email = email.lower()

        if await self.db.find_user(email) is not None:
            raise UserAlreadyExistsError(f"User already exists: {email}")

        try:
            user_id = await self.db.insert_user(email)
        except sqlite3.IntegrityError as e:
            raise UserAlreadyExistsError(f"User already exists: {email}") from e
        logger.debug(f"Created user {user_id}")
        return User(id=user_id, email=email)

    async def get_user(self, email: str) -> User:
        """Get a user by email. Raises UserNotFoundError if absent."""
        await self._ensure_db_is_open()
        row = await self.db.find_user(email.lower())
        if row is None:
            raise UserNotFoundError(f"User not found: {email}")
        return user_from_row(row)

    async def delete_user(self, email: str) -> None:
        """
        Delete a user by email. Raises DeleteFailedError if nothing was deleted.

        A user who still owns notes is refused by the foreign key: the
        sqlite3.IntegrityError propagates and nothing changes.
        """
        await self._ensure_db_is_open()
        email = email.lower()

        count = await self.db.delete_user(email)
        if count == 0:
            raise DeleteFailedError(f"Could not delete user: {email}")

        if self._user is not None and self._user.email == email:
            self._user = None
        logger.debug(f"Deleted user {email}")

    # Notes

    async def create_note(self, owner: User) -> Note:
        """
        Create an empty, synced note for owner.

        The owner is looked up again by email; if the stored user is not
        the same one (by id), UserNotFoundError is raised.
        """
        await self._ensure_db_is_open()

        db_user = await self.get_user(owner.email)
        if db_user != owner:
            raise UserNotFoundError(f"Stale user reference: {owner}")

        text = ""
        note_id = await self.db.insert_note(owner.id, text, is_synced=True)
        note = Note(id=note_id, user_id=owner.id, text=text, is_synced_with_cloud=True)

        self._upsert(note)
        self._publish()
        logger.debug(f"Created note {note_id} for user {owner.id}")
        return note

    async def _fetch_note(self, note_id: int) -> Note:
        row = await self.db.find_note(note_id)
        if row is None:
            raise NoteNotFoundError(f"Note not found: {note_id}")
        return note_from_row(row)

    async def get_note(self, note_id: int) -> Note:
        """Get a note by ID and refresh it in the cache."""
        await self._ensure_db_is_open()
        note = await self._fetch_note(note_id)
        self._upsert(note)
        self._publish()
        return note

    async def get_all_notes(self) -> list[Note]:
        """Get every stored note, whoever owns it. Leaves the cache alone."""
        await self._ensure_db_is_open()
        return [note_from_row(row) for row in await self.db.all_notes()]

    async def update_note(self, note: Note, text: str) -> Note:
        """
        Replace a note's text and mark it as not synced.

        Raises UpdateFailedError if the note no longer exists. Returns the
        note as stored after the update.
        """
        await self._ensure_db_is_open()

        try:
            await self._fetch_note(note.id)
        except NoteNotFoundError as e:
            raise UpdateFailedError(f"Could not update note: {note.id}") from e

        count = await self.db.update_note(note.id, text, is_synced=False)
        if count == 0:
            raise UpdateFailedError(f"Could not update note: {note.id}")

        updated = await self._fetch_note(note.id)
        self._upsert(updated)
        self._publish()
        logger.debug(f"Updated note {note.id}")
        return updated

    async def delete_note(self, note_id: int) -> None:
        """Delete a note. Raises DeleteFailedError if nothing was deleted."""
        await self._ensure_db_is_open()

        count = await self.db.delete_note(note_id)
        if count == 0:
            raise DeleteFailedError(f"Could not delete note: {note_id}")

        self._notes = [note for note in self._notes if note.id != note_id]
        self._publish()
        logger.debug(f"Deleted note {note_id}")

    async def delete_all_notes(self) -> int:
        """Delete every note. Returns how many were deleted."""
        await self._ensure_db_is_open()

        count = await self.db.delete_all_notes()
        self._notes = []
        self._publish()
        logger.debug(f"Deleted all notes ({count})")
        return count

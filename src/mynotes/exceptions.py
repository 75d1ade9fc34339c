"""
Exceptions raised by the mynotes storage and service layers.
"""


class MynotesError(Exception):
    """Base class for all mynotes errors."""


# Store lifecycle

class AlreadyOpenError(MynotesError):
    """The database is already open."""


class NotOpenError(MynotesError):
    """The database is not open."""


class DirectoryUnavailableError(MynotesError):
    """The documents directory could not be resolved."""


# CRUD outcomes

class UserNotFoundError(MynotesError):
    """No user matches the given email, or the user reference is stale."""


class UserAlreadyExistsError(MynotesError):
    """A user with this email already exists."""


class NoteNotFoundError(MynotesError):
    """No note matches the given id."""


class UpdateFailedError(MynotesError):
    """An update affected no rows."""


class DeleteFailedError(MynotesError):
    """A delete affected no rows."""


# Stream precondition

class NoActiveUserError(MynotesError):
    """The filtered note stream was read before a user was made active."""


# Decoding

class RowDecodeError(MynotesError):
    """A database row does not match the expected columns."""

    def __init__(self, table: str, detail: str):
        self.table = table
        self.detail = detail
        super().__init__(f"Bad row in '{table}': {detail}")

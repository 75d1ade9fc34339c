"""
Row codec for mynotes.

Decodes raw SQLite rows into immutable User and Note entities.
Both entities compare and hash by id only.
"""

from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from mynotes.exceptions import RowDecodeError

USER_TABLE = "user"
NOTE_TABLE = "note"

ID_COLUMN = "id"
EMAIL_COLUMN = "email"
USER_ID_COLUMN = "user_id"
TEXT_COLUMN = "text"
IS_SYNC_WITH_CLOUD_COLUMN = "is_sync_with_cloud"


class User(BaseModel):
    """A local account, keyed by lowercase email."""

    model_config = ConfigDict(frozen=True)

    id: int
    email: str

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, User):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def __str__(self) -> str:
        return f"User(id={self.id}, email={self.email})"


class Note(BaseModel):
    """A text note owned by a user."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int
    user_id: int
    text: str = ""
    is_synced_with_cloud: bool = Field(alias=IS_SYNC_WITH_CLOUD_COLUMN)

    @field_validator("text", mode="before")
    @classmethod
    def _null_text(cls, value: Any) -> Any:
        # The text column is nullable in existing files
        return "" if value is None else value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Note):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def __str__(self) -> str:
        return (
            f"Note(id={self.id}, user_id={self.user_id}, "
            f"synced={self.is_synced_with_cloud}, text={self.text!r})"
        )


def _describe(error: ValidationError) -> str:
    """Flatten a pydantic error into 'column: message' pairs."""
    parts = []
    for err in error.errors():
        column = ".".join(str(loc) for loc in err["loc"]) or "<row>"
        parts.append(f"{column}: {err['msg']}")
    return "; ".join(parts)


def user_from_row(row: Mapping[str, Any]) -> User:
    """Decode a row of the user table. Raises RowDecodeError on mismatch."""
    try:
        return User.model_validate(dict(row))
    except ValidationError as e:
        raise RowDecodeError(USER_TABLE, _describe(e)) from e


def note_from_row(row: Mapping[str, Any]) -> Note:
    """Decode a row of the note table. Raises RowDecodeError on mismatch."""
    try:
        return Note.model_validate(dict(row))
    except ValidationError as e:
        raise RowDecodeError(NOTE_TABLE, _describe(e)) from e

"""Entity: Book."""

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from src.library.entities._base import Entity


class Genre(StrEnum):
    """Fixed set of genres a book can belong to."""

    FICTION = "Fiction"
    NON_FICTION = "Non-Fiction"
    SCIENCE_FICTION = "Science Fiction"
    FANTASY = "Fantasy"
    MYSTERY = "Mystery"
    THRILLER = "Thriller"
    ROMANCE = "Romance"
    HORROR = "Horror"
    BIOGRAPHY = "Biography"
    HISTORY = "History"
    SCIENCE = "Science"
    SELF_HELP = "Self-Help"
    POETRY = "Poetry"
    CHILDREN = "Children"
    OTHER = "Other"

    @classmethod
    def values(cls) -> list[str]:
        return [genre.value for genre in cls]


class BookFields(BaseModel):
    """Client-writable book fields and their validation rules.

    Archival state, identifiers and timestamps are owned by the service and
    are ignored when present in a payload.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )

    title: str = Field(min_length=1, max_length=500, description="Book title")
    author: str = Field(min_length=1, max_length=300, description="Book author")
    genre: Genre = Field(description="Book genre")
    isbn: str | None = Field(default=None, max_length=32, description="Unique ISBN")
    description: str | None = Field(default=None, max_length=5000)
    published_year: int | None = Field(default=None, ge=0, le=9999)

    @field_validator("isbn", mode="before")
    @classmethod
    def _blank_isbn_is_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class Book(Entity, BookFields):
    """Book entity representing a catalog record.

    ``is_archived`` and ``archived_at`` move together: a book is archived
    exactly when it carries an archive timestamp.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        str_strip_whitespace=True,
        extra="ignore",
    )

    is_archived: bool = Field(default=False, description="Archived flag")
    archived_at: datetime | None = Field(default=None, description="Archive time")

    @field_validator("is_archived", mode="before")
    @classmethod
    def _legacy_archive_flag(cls, value: Any) -> Any:
        # Rows written before the column existed hold NULL and count as active.
        return False if value is None else value

    @field_validator("created_at", "updated_at", "archived_at")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    @model_validator(mode="after")
    def _archive_state_consistent(self) -> "Book":
        if self.is_archived != (self.archived_at is not None):
            raise ValueError("archivedAt must be set exactly when isArchived is true")
        return self

    def archive(self, now: datetime) -> None:
        self.is_archived = True
        self.archived_at = now
        self.updated_at = now

    def restore(self, now: datetime) -> None:
        self.is_archived = False
        self.archived_at = None
        self.updated_at = now

    def __eq__(self, other: Any) -> bool:
        """Compare books by every attribute except created_at and updated_at."""
        if not isinstance(other, Book):
            return False

        return (
            self.id == other.id
            and self.title == other.title
            and self.author == other.author
            and self.genre == other.genre
            and self.isbn == other.isbn
            and self.description == other.description
            and self.published_year == other.published_year
            and self.is_archived == other.is_archived
            and self.archived_at == other.archived_at
        )

    def __hash__(self) -> int:
        """Hash consistent with ``__eq__``."""
        return hash((
            self.id,
            self.title,
            self.author,
            self.genre,
            self.isbn,
            self.description,
            self.published_year,
            self.is_archived,
            self.archived_at,
        ))

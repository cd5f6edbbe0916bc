"""Book database table model."""

from datetime import datetime

from sqlmodel import Field

from src.library.entities._base import EntityTable


class BookTable(EntityTable, table=True):
    """Database persistence model for books.

    ``is_archived`` stays nullable so rows imported before archiving existed
    keep loading; queries treat NULL as active.
    """

    __tablename__ = "books"

    title: str
    author: str = Field(index=True)
    genre: str = Field(index=True)
    isbn: str | None = Field(default=None, unique=True)
    description: str | None = None
    published_year: int | None = None
    is_archived: bool | None = Field(default=False, nullable=True, index=True)
    archived_at: datetime | None = None

"""Data-access layer for books."""

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from src.library.core.errors import DuplicateKeyError
from src.library.entities.book.entity import Book, Genre
from src.library.entities.book.table import BookTable


class BookRepository:
    """Store client for book records: find, find_by_id, save and delete_one."""

    def __init__(self, session: Session) -> None:
        self._session = session

    @staticmethod
    def _to_entity(row: BookTable) -> Book:
        return Book.model_validate(row.model_dump())

    def find(
        self, genre: Genre | str | None = None, include_archived: bool = False
    ) -> list[Book]:
        """Return books matching the filter, newest first.

        ``include_archived`` selects archived books only; otherwise active
        books, including legacy rows whose flag is NULL.
        """
        statement = select(BookTable)
        if include_archived:
            statement = statement.where(col(BookTable.is_archived).is_(True))
        else:
            statement = statement.where(
                or_(
                    col(BookTable.is_archived).is_(False),
                    col(BookTable.is_archived).is_(None),
                )
            )
        if genre:
            statement = statement.where(BookTable.genre == str(genre))
        statement = statement.order_by(col(BookTable.created_at).desc())

        rows = self._session.exec(statement).all()
        return [self._to_entity(row) for row in rows]

    def find_by_id(self, book_id: str) -> Book | None:
        row = self._session.get(BookTable, book_id)
        if row is None:
            return None
        return self._to_entity(row)

    def save(self, book: Book) -> Book:
        """Insert or update ``book``.

        Raises:
            DuplicateKeyError: another book already uses the same ISBN.
        """
        data = book.model_dump()
        data["genre"] = Genre(book.genre).value

        row = self._session.get(BookTable, book.id)
        if row is None:
            row = BookTable(**data)
            self._session.add(row)
        else:
            for key, value in data.items():
                setattr(row, key, value)

        try:
            self._session.flush()
        except IntegrityError as exc:
            if "isbn" in str(exc.orig).lower():
                raise DuplicateKeyError() from exc
            raise

        self._session.refresh(row)
        return self._to_entity(row)

    def delete_one(self, book_id: str) -> bool:
        row = self._session.get(BookTable, book_id)
        if row is None:
            return False
        self._session.delete(row)
        self._session.flush()
        return True

"""Catalog service: book reads and writes under the cache/event policy.

Reads consult the list cache before the store. Every successful write drops
the whole list-cache namespace, and creations also publish a
``book.created`` event. Cache and publish failures are logged and never
change the outcome of the store operation.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Any, TypeVar

from loguru import logger
from pydantic import ValidationError
from pydantic.alias_generators import to_camel
from starlette.concurrency import run_in_threadpool

from src.library.core.errors import BookNotFoundError, BookValidationError
from src.library.core.services.cache.list_cache import BookListCache
from src.library.core.services.database.db_session import DbSessionService
from src.library.core.services.events.publisher import EventPublisher
from src.library.core.services.metrics import CatalogMetrics
from src.library.entities._base import utcnow
from src.library.entities.book import Book, BookFields, BookRepository, Genre

T = TypeVar("T")

BOOK_CREATED = "book.created"


def _format_errors(exc: ValidationError) -> list[str]:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"])
        messages.append(f"{location}: {error['msg']}" if location else error["msg"])
    return messages


def _normalize_keys(payload: dict[str, Any]) -> dict[str, Any]:
    """Rewrite snake_case field names to their camelCase aliases."""
    return {
        to_camel(key) if key in BookFields.model_fields else key: value
        for key, value in payload.items()
    }


def validate_book_fields(payload: Any) -> BookFields:
    """Validate a client payload, collecting every field error at once."""
    if not isinstance(payload, dict):
        raise BookValidationError(errors=["Request body must be a JSON object"])
    try:
        return BookFields.model_validate(_normalize_keys(payload))
    except ValidationError as exc:
        raise BookValidationError(errors=_format_errors(exc)) from exc


class CatalogService:
    """Orchestrates the store, the list cache and the event publisher."""

    def __init__(
        self,
        database_service: DbSessionService,
        list_cache: BookListCache,
        publisher: EventPublisher,
        metrics: CatalogMetrics,
        exchange: str = "library_events",
        clock: Callable[[], datetime] = utcnow,
    ):
        self._db = database_service
        self._cache = list_cache
        self._publisher = publisher
        self._metrics = metrics
        self._exchange = exchange
        self._clock = clock

    async def _in_session(self, work: Callable[[BookRepository], T]) -> T:
        """Run ``work`` inside one transaction on the threadpool."""

        def _unit_of_work() -> T:
            with self._db.session_scope() as session:
                return work(BookRepository(session))

        return await run_in_threadpool(_unit_of_work)

    @staticmethod
    def _require(repository: BookRepository, book_id: str) -> Book:
        book = repository.find_by_id(book_id)
        if book is None:
            raise BookNotFoundError()
        return book

    async def _invalidate_lists(self) -> None:
        await self._cache.invalidate_all()

    async def _publish(self, routing_key: str, payload: dict[str, Any]) -> None:
        try:
            await self._publisher.publish(self._exchange, routing_key, payload)
        except Exception as e:
            logger.warning("Event publishing failed for {}: {}", routing_key, e)

    # --- Reads ---

    async def list_books(
        self, genre: str | None = None, include_archived: bool = False
    ) -> list[Book]:
        """List active books, or archived books only when ``include_archived``."""
        cache_key = self._cache.make_key(genre, include_archived)

        cached = await self._cache.get_list(cache_key)
        if cached is not None:
            logger.bind(genre=genre, include_archived=include_archived).info(
                "Books fetched from cache"
            )
            return cached

        books = await self._in_session(
            lambda repository: repository.find(genre, include_archived)
        )
        await self._cache.set_list(cache_key, books)
        self._metrics.set_books_total(len(books))

        logger.bind(
            count=len(books), genre=genre, include_archived=include_archived
        ).info("Books fetched from database")
        return books

    @staticmethod
    def get_genres() -> list[str]:
        return Genre.values()

    async def get_book(self, book_id: str) -> Book:
        return await self._in_session(
            lambda repository: self._require(repository, book_id)
        )

    # --- Writes ---

    async def create_book(self, payload: Any) -> Book:
        """Validate and persist a new book, then notify and invalidate.

        Raises:
            BookValidationError: the payload does not satisfy the book schema.
            DuplicateKeyError: the ISBN is already taken.
        """
        fields = validate_book_fields(payload)
        now = self._clock()
        book = Book(**fields.model_dump(), created_at=now, updated_at=now)

        created = await self._in_session(lambda repository: repository.save(book))

        await self._publish(
            BOOK_CREATED,
            {
                "bookId": created.id,
                "title": created.title,
                "author": created.author,
                "genre": created.genre,
                "timestamp": self._clock().isoformat(),
            },
        )
        await self._invalidate_lists()

        logger.bind(book_id=created.id, title=created.title).info("Book created")
        return created

    async def update_book(self, book_id: str, payload: Any) -> Book:
        """Shallow-merge ``payload`` over the stored book and persist it."""
        if not isinstance(payload, dict):
            raise BookValidationError(errors=["Request body must be a JSON object"])

        def _update(repository: BookRepository) -> Book:
            existing = self._require(repository, book_id)
            current = existing.model_dump(include=set(BookFields.model_fields), by_alias=True)
            fields = validate_book_fields({**current, **_normalize_keys(payload)})
            merged = existing.model_copy(
                update={**fields.model_dump(), "updated_at": self._clock()}
            )
            return repository.save(merged)

        updated = await self._in_session(_update)
        await self._invalidate_lists()

        logger.bind(book_id=updated.id, title=updated.title).info("Book updated")
        return updated

    async def archive_book(self, book_id: str) -> Book:
        """Archive a book; archiving again refreshes ``archived_at``."""

        def _archive(repository: BookRepository) -> Book:
            book = self._require(repository, book_id)
            book.archive(self._clock())
            return repository.save(book)

        archived = await self._in_session(_archive)
        await self._invalidate_lists()

        logger.bind(book_id=archived.id, title=archived.title).info("Book archived")
        return archived

    async def restore_book(self, book_id: str) -> Book:
        def _restore(repository: BookRepository) -> Book:
            book = self._require(repository, book_id)
            book.restore(self._clock())
            return repository.save(book)

        restored = await self._in_session(_restore)
        await self._invalidate_lists()

        logger.bind(book_id=restored.id, title=restored.title).info("Book restored")
        return restored

    async def delete_book(self, book_id: str) -> Book:
        """Permanently remove a book and return what was deleted."""

        def _delete(repository: BookRepository) -> Book:
            book = self._require(repository, book_id)
            repository.delete_one(book_id)
            return book

        deleted = await self._in_session(_delete)
        await self._invalidate_lists()

        logger.bind(book_id=book_id, title=deleted.title).info("Book deleted")
        return deleted

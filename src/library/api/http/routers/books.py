"""Book API router with CRUD and archival operations."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import APIRouter, Body, Depends, Query
from loguru import logger

from src.library.api.http.deps import get_catalog_service
from src.library.core.errors import CatalogError, OperationFailedError
from src.library.core.services import CatalogService
from src.library.entities.book import Book

router = APIRouter(tags=["books"])


@asynccontextmanager
async def _operation(action: str, status_code: int, **context: Any) -> AsyncIterator[None]:
    """Turn unexpected failures into ``OperationFailedError`` with ``status_code``."""
    try:
        yield
    except CatalogError:
        raise
    except Exception as e:
        logger.bind(**context).exception("Error {}", action)
        raise OperationFailedError(str(e) or None, status_code=status_code) from e


def _with_message(message: str, book: Book) -> dict[str, Any]:
    return {"message": message, "book": book.model_dump(mode="json", by_alias=True)}


@router.get("", response_model=list[Book])
async def list_books(
    genre: str | None = None,
    # Parsed as a bool, so 1, yes and on also select archived books; other strings are a 400
    is_archived: bool = Query(False, alias="isArchived"),
    catalog: CatalogService = Depends(get_catalog_service),
) -> list[Book]:
    """List active books, or only archived ones with ``isArchived=true``."""
    async with _operation("fetching books", 500, genre=genre):
        return await catalog.list_books(genre=genre or None, include_archived=is_archived)


@router.get("/genres")
async def list_genres(
    catalog: CatalogService = Depends(get_catalog_service),
) -> list[str]:
    return catalog.get_genres()


@router.get("/{book_id}", response_model=Book)
async def get_book(
    book_id: str,
    catalog: CatalogService = Depends(get_catalog_service),
) -> Book:
    async with _operation("fetching book", 500, book_id=book_id):
        return await catalog.get_book(book_id)


@router.post("", response_model=Book, status_code=201)
async def create_book(
    payload: Any = Body(None),
    catalog: CatalogService = Depends(get_catalog_service),
) -> Book:
    """Create a book; publishes ``book.created`` once stored."""
    async with _operation("creating book", 400):
        return await catalog.create_book(payload)


@router.put("/{book_id}", response_model=Book)
async def update_book(
    book_id: str,
    payload: Any = Body(None),
    catalog: CatalogService = Depends(get_catalog_service),
) -> Book:
    async with _operation("updating book", 400, book_id=book_id):
        return await catalog.update_book(book_id, payload)


@router.put("/{book_id}/archive")
async def archive_book(
    book_id: str,
    catalog: CatalogService = Depends(get_catalog_service),
) -> dict[str, Any]:
    async with _operation("archiving book", 400, book_id=book_id):
        book = await catalog.archive_book(book_id)
    return _with_message("Book archived successfully", book)


@router.put("/{book_id}/restore")
async def restore_book(
    book_id: str,
    catalog: CatalogService = Depends(get_catalog_service),
) -> dict[str, Any]:
    async with _operation("restoring book", 400, book_id=book_id):
        book = await catalog.restore_book(book_id)
    return _with_message("Book restored successfully", book)


@router.delete("/{book_id}")
async def delete_book(
    book_id: str,
    catalog: CatalogService = Depends(get_catalog_service),
) -> dict[str, str]:
    """Permanently delete a book."""
    async with _operation("deleting book", 500, book_id=book_id):
        await catalog.delete_book(book_id)
    return {"message": "Book deleted permanently"}

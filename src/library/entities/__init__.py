"""Entities module with entity-centric structure.

Each entity has its own package containing:
- entity.py: Domain model with validation rules
- table.py: Database persistence model
- repository.py: Data access layer
"""

from .book import Book, BookFields, BookRepository, BookTable, Genre

__all__ = [
    "Book",
    "BookFields",
    "BookRepository",
    "BookTable",
    "Genre",
]

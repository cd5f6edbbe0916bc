"""Entity package: Book."""

from .entity import Book, BookFields, Genre
from .repository import BookRepository
from .table import BookTable

__all__ = ["Book", "BookFields", "BookRepository", "BookTable", "Genre"]

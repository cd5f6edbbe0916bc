"""Library catalog service.

FastAPI application exposing CRUD endpoints for a book catalog backed by a
SQL store, with a best-effort Redis list cache and event publication.
"""

__version__ = "0.1.0"

"""HTTP tests for the book routes."""

from unittest.mock import AsyncMock

import pytest
from fastapi import status

from src.library.api.http.deps import get_catalog_service
from src.library.entities.book import Genre

_BOOK = {"title": "A", "author": "B", "genre": "Fiction", "isbn": "123"}


class TestBookLifecycle:
    """End-to-end behaviour of the book routes over a real in-memory store."""

    def test_create_archive_and_list(self, client):
        response = client.post("/api/books", json=_BOOK)
        assert response.status_code == status.HTTP_201_CREATED
        created = response.json()
        assert created["isArchived"] is False
        assert created["archivedAt"] is None
        assert created["title"] == "A"

        response = client.put(f"/api/books/{created['id']}/archive")
        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["message"] == "Book archived successfully"
        assert body["book"]["isArchived"] is True
        assert body["book"]["archivedAt"] is not None

        active = client.get("/api/books").json()
        assert created["id"] not in [book["id"] for book in active]

        archived = client.get("/api/books", params={"isArchived": "true"}).json()
        assert [book["id"] for book in archived] == [created["id"]]

    @pytest.mark.parametrize("flag", ["1", "yes", "on"])
    def test_archived_flag_accepts_bool_spellings(self, client, flag):
        created = client.post("/api/books", json=_BOOK).json()
        client.put(f"/api/books/{created['id']}/archive")

        response = client.get("/api/books", params={"isArchived": flag})

        assert response.status_code == status.HTTP_200_OK
        assert [book["id"] for book in response.json()] == [created["id"]]

    def test_restore(self, client):
        created = client.post("/api/books", json=_BOOK).json()
        client.put(f"/api/books/{created['id']}/archive")

        response = client.put(f"/api/books/{created['id']}/restore")

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["message"] == "Book restored successfully"
        assert body["book"]["isArchived"] is False
        assert body["book"]["archivedAt"] is None
        assert [book["id"] for book in client.get("/api/books").json()] == [
            created["id"]
        ]

    def test_get_update_and_delete(self, client):
        created = client.post("/api/books", json=_BOOK).json()

        fetched = client.get(f"/api/books/{created['id']}")
        assert fetched.status_code == status.HTTP_200_OK
        assert fetched.json()["isbn"] == "123"

        updated = client.put(
            f"/api/books/{created['id']}", json={"publishedYear": 2001}
        )
        assert updated.status_code == status.HTTP_200_OK
        assert updated.json()["publishedYear"] == 2001
        assert updated.json()["title"] == "A"

        deleted = client.delete(f"/api/books/{created['id']}")
        assert deleted.status_code == status.HTTP_200_OK
        assert deleted.json() == {"message": "Book deleted permanently"}

        missing = client.get(f"/api/books/{created['id']}")
        assert missing.status_code == status.HTTP_404_NOT_FOUND
        assert missing.json() == {"message": "Book not found"}

    def test_list_by_genre(self, client):
        client.post("/api/books", json=_BOOK)
        client.post(
            "/api/books", json={"title": "Emma", "author": "Austen", "genre": "Romance"}
        )

        response = client.get("/api/books", params={"genre": "Romance"})

        assert [book["title"] for book in response.json()] == ["Emma"]

    def test_list_reflects_creates(self, client, fake_redis):
        assert client.get("/api/books").json() == []
        assert "books:all:false" in fake_redis.store

        client.post("/api/books", json=_BOOK)

        assert len(client.get("/api/books").json()) == 1

    def test_genres(self, client):
        response = client.get("/api/books/genres")

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == Genre.values()


class TestBookErrors:
    """Status codes and error bodies."""

    def test_validation_failure(self, client):
        response = client.post("/api/books", json={"title": "", "genre": "Cookbooks"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        body = response.json()
        assert body["message"] == "Validation failed"
        assert len(body["errors"]) == 3

    def test_missing_body(self, client):
        response = client.post("/api/books")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["message"] == "Validation failed"

    def test_duplicate_isbn(self, client):
        client.post("/api/books", json=_BOOK)

        response = client.post("/api/books", json={**_BOOK, "title": "Copy"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json() == {"message": "Book with this ISBN already exists"}
        assert len(client.get("/api/books").json()) == 1

    @pytest.mark.parametrize(
        ("method", "path"),
        [
            ("put", "/api/books/missing"),
            ("put", "/api/books/missing/archive"),
            ("put", "/api/books/missing/restore"),
            ("delete", "/api/books/missing"),
        ],
    )
    def test_not_found(self, client, method, path):
        kwargs = {"json": {"title": "X"}} if method == "put" else {}

        response = client.request(method.upper(), path, **kwargs)

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json() == {"message": "Book not found"}

    @pytest.mark.parametrize(
        ("method", "path", "service_method", "expected_status"),
        [
            ("GET", "/api/books", "list_books", 500),
            ("GET", "/api/books/abc", "get_book", 500),
            ("POST", "/api/books", "create_book", 400),
            ("PUT", "/api/books/abc", "update_book", 400),
            ("PUT", "/api/books/abc/archive", "archive_book", 400),
            ("PUT", "/api/books/abc/restore", "restore_book", 400),
            ("DELETE", "/api/books/abc", "delete_book", 500),
        ],
    )
    def test_unexpected_failures(
        self, client, method, path, service_method, expected_status
    ):
        from src.library.api.http.app import app

        catalog = AsyncMock()
        getattr(catalog, service_method).side_effect = RuntimeError("store exploded")
        app.dependency_overrides[get_catalog_service] = lambda: catalog

        kwargs = {"json": _BOOK} if method in {"POST", "PUT"} else {}
        response = client.request(method, path, **kwargs)

        assert response.status_code == expected_status
        assert response.json() == {"message": "store exploded"}

    def test_invalid_archived_flag(self, client):
        response = client.get("/api/books", params={"isArchived": "maybe"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["message"] == "Validation failed"

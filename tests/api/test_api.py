"""
Tests for the FastAPI application.
"""

import pytest
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock, patch

from api.config import config as api_config
from api.main import app
from repository.errors import RepositoryError, RepositoryTimeoutError
from repository.models import Book


@pytest.fixture
def client():
    """Create test client."""
    return TestClient(app)


@pytest.fixture
def repository(memory_repository):
    """Install the in-memory repository as the active backend."""
    with patch('api.main.book_repository', memory_repository):
        yield memory_repository


@pytest.fixture
def failing_repository():
    """Repository whose every call fails with a backend error."""
    mock = AsyncMock()
    error = RepositoryError("connection lost")
    for name in ("get_all_books", "get_book", "add_book", "update_book", "delete_book", "delete_all_books"):
        getattr(mock, name).side_effect = error
    with patch('api.main.book_repository', mock):
        yield mock


def test_health_check(client, repository):
    """Test health check endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["database_status"] == "healthy"
    assert "timestamp" in data
    assert "version" in data
    assert "database_type" in data


def test_health_check_without_repository(client):
    """Health is reported as degraded before the database is connected."""
    with patch('api.main.book_repository', None):
        response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "degraded"


class TestGetBooks:
    """Test cases for GET /book and GET /book/{id}."""

    def test_get_all_books(self, client, repository, stored_books):
        response = client.get("/book")
        assert response.status_code == 200
        body = response.json()
        assert body["error"] is False
        assert body["message"] == ""
        assert sorted(body["data"], key=lambda b: b["id"]) == [b.to_public() for b in stored_books]

    def test_get_all_books_empty_returns_array(self, client, repository):
        repository.books.clear()
        response = client.get("/book")
        assert response.status_code == 200
        assert response.json()["data"] == []

    def test_get_book_by_id(self, client, repository, stored_books):
        expected = stored_books[0]
        response = client.get(f"/book/{expected.id}")
        assert response.status_code == 200
        body = response.json()
        assert body["error"] is False
        assert body["data"] == {"id": expected.id, "name": expected.name, "author": expected.author}

    def test_get_book_not_found(self, client, repository):
        response = client.get("/book/-1")
        assert response.status_code == 404
        body = response.json()
        assert body["error"] is True
        assert "not found" in body["message"]
        assert "data" not in body

    def test_get_all_books_backend_failure(self, client, failing_repository):
        response = client.get("/book")
        assert response.status_code == 500
        assert response.json()["error"] is True

    def test_get_book_backend_failure_is_not_404(self, client, failing_repository):
        failing_repository.get_book.side_effect = RepositoryTimeoutError("get_book", 3)
        response = client.get("/book/1")
        assert response.status_code == 500
        assert "timed out" in response.json()["message"]


class TestAddBook:
    """Test cases for POST /book."""

    def test_add_book(self, client, repository):
        response = client.post("/book", json={"name": "NewBook", "author": "NewAuthor"})
        assert response.status_code == 201
        body = response.json()
        assert body["error"] is False
        assert body["data"]["id"]
        assert body["data"]["name"] == "NewBook"
        assert body["data"]["author"] == "NewAuthor"

    def test_add_book_ignores_client_id(self, client, repository):
        response = client.post("/book", json={"id": "1", "name": "NewBook", "author": "NewAuthor"})
        assert response.status_code == 201
        new_id = response.json()["data"]["id"]
        assert new_id != "1"
        assert repository.books["1"].name == "Name1"

    def test_add_book_existing_id_fails(self, client, repository):
        repository.books["101"] = Book(id="101", name="Taken", author="Someone")
        response = client.post("/book", json={"name": "NewBook", "author": "NewAuthor"})
        assert response.status_code == 500
        assert response.json()["error"] is True

    def test_add_book_malformed_payload(self, client, repository):
        response = client.post("/book", json={"id": -1})
        assert response.status_code == 400
        assert response.json()["error"] is True

    def test_add_book_invalid_json(self, client, repository):
        response = client.post(
            "/book",
            content="{not json",
            headers={"Content-Type": "application/json"}
        )
        assert response.status_code == 400
        assert response.json()["error"] is True

    def test_add_book_timestamps_not_serialized(self, client, repository):
        response = client.post("/book", json={"name": "Dune", "author": "Herbert"})
        assert set(response.json()["data"]) == {"id", "name", "author"}


class TestUpdateBook:
    """Test cases for PUT /book/{id}."""

    def test_update_book(self, client, repository):
        response = client.put("/book/1", json={"name": "UpdatedBookName", "author": "UpdatedBookAuthor"})
        assert response.status_code == 204
        assert response.content == b""
        assert repository.books["1"].name == "UpdatedBookName"
        assert repository.books["1"].author == "UpdatedBookAuthor"

    def test_update_missing_book(self, client, repository):
        response = client.put("/book/-1", json={"name": "UpdatedBookName", "author": "UpdatedBookAuthor"})
        assert response.status_code == 500
        assert response.json()["error"] is True
        assert "-1" not in repository.books

    def test_update_book_malformed_payload(self, client, repository):
        response = client.put("/book/1", json={"id": -1})
        assert response.status_code == 400
        assert response.json()["error"] is True
        assert repository.books["1"].name == "Name1"


class TestDeleteBook:
    """Test cases for DELETE /book/{id} and DELETE /book."""

    def test_delete_book(self, client, repository):
        response = client.delete("/book/1")
        assert response.status_code == 204
        assert "1" not in repository.books

    def test_delete_missing_book(self, client, repository):
        response = client.delete("/book/-1")
        assert response.status_code == 400
        assert response.json()["error"] is True
        assert len(repository.books) == 3

    def test_delete_book_backend_failure(self, client, failing_repository):
        response = client.delete("/book/1")
        assert response.status_code == 500

    def test_delete_all_books(self, client, repository):
        response = client.delete("/book")
        assert response.status_code == 204
        assert repository.books == {}

    def test_delete_all_books_on_empty_store(self, client, repository):
        repository.books.clear()
        response = client.delete("/book")
        assert response.status_code == 204

    def test_delete_all_books_backend_failure(self, client, failing_repository):
        response = client.delete("/book")
        assert response.status_code == 500
        assert response.json()["error"] is True


def test_book_lifecycle(client, repository):
    """Create, read, delete, then read again."""
    response = client.post("/book", json={"name": "Dune", "author": "Herbert"})
    assert response.status_code == 201
    book_id = response.json()["data"]["id"]
    assert book_id

    response = client.get(f"/book/{book_id}")
    assert response.status_code == 200
    assert response.json()["data"]["name"] == "Dune"
    assert response.json()["data"]["author"] == "Herbert"

    response = client.delete(f"/book/{book_id}")
    assert response.status_code == 204

    response = client.get(f"/book/{book_id}")
    assert response.status_code == 404


def test_repository_not_available(client):
    """Requests fail with 500 when no backend is connected."""
    with patch('api.main.book_repository', None):
        response = client.get("/book")
    assert response.status_code == 500
    assert response.json() == {"error": True, "message": "Database service not available"}


def test_unknown_route_uses_envelope(client, repository):
    response = client.get("/books")
    assert response.status_code == 404
    assert response.json()["error"] is True


def test_app_description_from_config(client):
    assert app.description == api_config.api_description
    assert client.get("/openapi.json").json()["info"]["description"] == api_config.api_description


class TestRelationalBackend:
    """Routes running against the relational adapter over SQLite."""

    @pytest.fixture
    def sql_backend(self, sql_repository):
        with patch('api.main.book_repository', sql_repository):
            yield sql_repository

    def test_get_invalid_id(self, client, sql_backend):
        response = client.get("/book/abc")
        assert response.status_code == 404
        assert response.json()["error"] is True

    def test_delete_invalid_id(self, client, sql_backend):
        response = client.delete("/book/abc")
        assert response.status_code == 400
        assert response.json()["error"] is True

    def test_update_invalid_id(self, client, sql_backend):
        response = client.put("/book/abc", json={"name": "X", "author": "Y"})
        assert response.status_code == 500
        assert response.json()["error"] is True

    def test_delete_id_alias_keeps_book(self, client, sql_backend):
        book_id = client.post("/book", json={"name": "Dune", "author": "Herbert"}).json()["data"]["id"]

        response = client.delete("/book/+" + book_id)
        assert response.status_code == 400

        response = client.get(f"/book/{book_id}")
        assert response.status_code == 200
        assert response.json()["data"]["name"] == "Dune"

    def test_book_lifecycle(self, client, sql_backend):
        response = client.post("/book", json={"name": "Dune", "author": "Herbert"})
        assert response.status_code == 201
        book_id = response.json()["data"]["id"]
        assert book_id

        response = client.get(f"/book/{book_id}")
        assert response.status_code == 200
        assert response.json()["data"] == {"id": book_id, "name": "Dune", "author": "Herbert"}

        response = client.delete(f"/book/{book_id}")
        assert response.status_code == 204

        response = client.get(f"/book/{book_id}")
        assert response.status_code == 404

        response = client.get("/book")
        assert response.json()["data"] == []

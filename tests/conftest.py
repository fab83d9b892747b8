"""
Pytest configuration and shared fixtures.
"""

import itertools
from typing import Dict, List
from unittest.mock import AsyncMock, Mock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from repository.base import BookRepository
from repository.errors import BookAlreadyExistsError, BookNotFoundError
from repository.models import Book
from repository.mongodb import MongoDBBookRepository
from repository.postgresql import PostgreSQLBookRepository


class InMemoryBookRepository(BookRepository):
    """Dictionary-backed repository used to exercise the HTTP layer."""

    backend = "memory"

    def __init__(self, books: List[Book] = None):
        self.books: Dict[str, Book] = {}
        self._ids = itertools.count(101)
        for book in books or []:
            self.books[book.id] = book

    async def connect(self):
        pass

    async def disconnect(self):
        pass

    async def health_check(self):
        return {"status": "healthy", "books_count": len(self.books)}

    async def get_all_books(self):
        return list(self.books.values())

    async def get_book(self, book_id):
        if book_id not in self.books:
            raise BookNotFoundError(book_id)
        return self.books[book_id]

    async def add_book(self, book):
        book_id = str(next(self._ids))
        if book_id in self.books:
            raise BookAlreadyExistsError(book_id)
        created = Book(id=book_id, name=book.name, author=book.author)
        self.books[book_id] = created
        return created

    async def update_book(self, book_id, book):
        if book_id not in self.books:
            raise BookNotFoundError(book_id)
        self.books[book_id] = Book(id=book_id, name=book.name, author=book.author)

    async def delete_book(self, book_id):
        if book_id not in self.books:
            raise BookNotFoundError(book_id)
        del self.books[book_id]

    async def delete_all_books(self):
        self.books.clear()


@pytest.fixture
def stored_books():
    """Books preloaded into the in-memory repository."""
    return [
        Book(id="1", name="Name1", author="Author1"),
        Book(id="2", name="Name2", author="Author2"),
        Book(id="3", name="Name3", author="Author3"),
    ]


@pytest.fixture
def memory_repository(stored_books):
    """In-memory repository holding the stored books."""
    return InMemoryBookRepository(stored_books)


@pytest_asyncio.fixture
async def sql_repository():
    """
    Relational repository over an in-memory SQLite database.
    Opened and closed per test.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    repository = PostgreSQLBookRepository("sqlite+aiosqlite://", engine=engine)
    await repository.connect()
    yield repository
    await repository.disconnect()


@pytest.fixture
def mock_collection():
    """Create a mock Motor collection for testing."""
    collection = AsyncMock()
    cursor = Mock()
    cursor.to_list = AsyncMock(return_value=[])
    collection.find = Mock(return_value=cursor)
    collection.find_one.return_value = None
    return collection


@pytest.fixture
def mongo_repository(mock_collection):
    """Document repository bound to the mock collection."""
    return MongoDBBookRepository("mongodb://localhost:27017", collection=mock_collection)

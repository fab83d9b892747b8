"""
Backend-agnostic contract for book persistence.

Every adapter implements the same operation set with the same error
semantics, so the HTTP layer never needs to know which database is active:

- lookups, updates and deletes of an unknown or malformed id raise
  BookNotFoundError (InvalidBookIdError for malformed ids)
- get_all_books returns an empty list, never None
- driver failures surface as RepositoryError, expired calls as
  RepositoryTimeoutError
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List

from .models import Book


class BookRepository(ABC):
    """Abstract book repository."""

    backend: str = ""

    @abstractmethod
    async def connect(self) -> None:
        """Open the connection pool and verify the database is reachable."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Release the connection pool."""

    @abstractmethod
    async def health_check(self) -> Dict[str, Any]:
        """Report database reachability without raising."""

    @abstractmethod
    async def get_all_books(self) -> List[Book]:
        """Return every stored book."""

    @abstractmethod
    async def get_book(self, book_id: str) -> Book:
        """Return the book stored under ``book_id``."""

    @abstractmethod
    async def add_book(self, book: Book) -> Book:
        """
        Persist a new book.

        Any identifier on ``book`` is ignored; the returned copy carries the
        one assigned by storage.
        """

    @abstractmethod
    async def update_book(self, book_id: str, book: Book) -> None:
        """Replace name and author of the book stored under ``book_id``."""

    @abstractmethod
    async def delete_book(self, book_id: str) -> None:
        """Remove the book stored under ``book_id``."""

    @abstractmethod
    async def delete_all_books(self) -> None:
        """Remove every stored book; succeeds on an empty store."""

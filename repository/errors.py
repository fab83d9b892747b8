"""
Error hierarchy shared by every book repository backend.
"""

from typing import Optional


class RepositoryError(Exception):
    """Base class for all storage failures."""


class BookNotFoundError(RepositoryError):
    """No stored book matches the requested identifier."""

    def __init__(self, book_id: Optional[str], message: Optional[str] = None):
        self.book_id = book_id
        super().__init__(message or f"book (id={book_id}) not found")


class InvalidBookIdError(BookNotFoundError):
    """The identifier is not of the shape the backend expects."""

    def __init__(self, book_id: Optional[str], backend: str):
        self.backend = backend
        super().__init__(book_id, f"invalid book id '{book_id}' for {backend} storage")


class BookAlreadyExistsError(RepositoryError):
    """The database rejected an insert because the identifier is taken."""

    def __init__(self, book_id: Optional[str] = None):
        self.book_id = book_id
        if book_id:
            super().__init__(f"book (id={book_id}) already exists")
        else:
            super().__init__("book already exists")


class RepositoryTimeoutError(RepositoryError):
    """A storage call did not finish within its time limit."""

    def __init__(self, operation: str, timeout: float):
        self.operation = operation
        self.timeout = timeout
        super().__init__(f"{operation} timed out after {timeout:g}s")

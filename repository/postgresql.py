"""
PostgreSQL book repository built on the SQLAlchemy async engine.
Identifiers are the table's auto-increment integer key in decimal text form.
"""

import asyncio
import re
from typing import Any, Callable, Dict, List, Optional

import structlog
from sqlalchemy import Column, Integer, MetaData, String, Table, delete, func, insert, select, text, update
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from .base import BookRepository
from .errors import (
    BookAlreadyExistsError, BookNotFoundError, InvalidBookIdError,
    RepositoryError, RepositoryTimeoutError
)
from .models import Book, DatabaseType

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT = 3.0
DEFAULT_DATABASE = "books"

# Decimal integer text, ASCII digits only
_ID_PATTERN = re.compile(r"-?[0-9]+", re.ASCII)

# INTEGER column bounds
_MIN_ID = -2 ** 31
_MAX_ID = 2 ** 31 - 1

metadata = MetaData()

books_table = Table(
    "books",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String, nullable=False),
    Column("author", String, nullable=False),
)


def build_async_url(connection_string: str, database: str = DEFAULT_DATABASE) -> URL:
    """
    Turn a plain PostgreSQL connection string into an asyncpg engine URL.

    ``postgresql://user:pw@host:port`` becomes
    ``postgresql+asyncpg://user:pw@host:port/<database>``. URLs that already
    name a driver or a database are kept as they are.
    """
    url = make_url(connection_string)
    if url.drivername in ("postgresql", "postgres"):
        url = url.set(drivername="postgresql+asyncpg")
    if url.drivername.startswith("postgresql") and not url.database:
        url = url.set(database=database)
    return url


class PostgreSQLBookRepository(BookRepository):
    """Book repository backed by the ``books`` table."""

    backend = DatabaseType.POSTGRESQL.value

    def __init__(
        self,
        connection_string: str,
        database: str = DEFAULT_DATABASE,
        timeout: float = DEFAULT_TIMEOUT,
        engine: Optional[AsyncEngine] = None
    ):
        """
        Initialize the repository.

        Args:
            connection_string: Database URL, with or without database name
            database: Database used when the URL names none
            timeout: Per-call time limit in seconds
            engine: Pre-built engine; one is created on connect() otherwise
        """
        self.connection_string = connection_string
        self.database = database
        self.timeout = timeout
        self.engine = engine

    async def connect(self) -> None:
        """Create the engine, ping the server and make sure the table exists."""
        async def bootstrap() -> None:
            async with self.engine.begin() as conn:
                await conn.execute(text("SELECT 1"))
                await conn.run_sync(metadata.create_all)

        try:
            if self.engine is None:
                self.engine = create_async_engine(
                    build_async_url(self.connection_string, self.database),
                    pool_pre_ping=True,
                )
            await asyncio.wait_for(bootstrap(), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            logger.error("Timed out connecting to PostgreSQL", timeout=self.timeout)
            raise RepositoryTimeoutError("connect", self.timeout) from e
        except (SQLAlchemyError, OSError) as e:
            logger.error("Failed to connect to PostgreSQL", error=str(e))
            raise RepositoryError(f"failed to connect to PostgreSQL: {e}") from e

        logger.info("Successfully connected to PostgreSQL", table=books_table.name)

    async def disconnect(self) -> None:
        """Dispose of the connection pool."""
        if self.engine is not None:
            await self.engine.dispose()
            self.engine = None
            logger.info("Disconnected from PostgreSQL")

    async def health_check(self) -> Dict[str, Any]:
        try:
            count = await self._execute(
                "health_check",
                select(func.count()).select_from(books_table),
                lambda result: result.scalar_one(),
            )
            return {"status": "healthy", "backend": self.backend, "books_count": count}
        except RepositoryError as e:
            return {"status": "unhealthy", "backend": self.backend, "error": str(e)}

    async def _execute(
        self,
        operation: str,
        statement: Any,
        fetch: Optional[Callable[[Any], Any]] = None
    ) -> Any:
        """
        Run one statement in its own transaction under the per-call timeout.

        Returns ``fetch(result)`` when a fetch callable is given, the number of
        affected rows otherwise.
        """
        if self.engine is None:
            raise RepositoryError("PostgreSQL repository is not connected")

        async def run() -> Any:
            async with self.engine.begin() as conn:
                result = await conn.execute(statement)
                if fetch is not None:
                    return fetch(result)
                return result.rowcount

        try:
            return await asyncio.wait_for(run(), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            logger.error("PostgreSQL call timed out", operation=operation, timeout=self.timeout)
            raise RepositoryTimeoutError(operation, self.timeout) from e
        except IntegrityError as e:
            logger.warning("Integrity violation", operation=operation, error=str(e))
            raise BookAlreadyExistsError() from e
        except (SQLAlchemyError, OSError) as e:
            logger.error("PostgreSQL call failed", operation=operation, error=str(e))
            raise RepositoryError(f"{operation} failed: {e}") from e

    def _parse_id(self, book_id: str) -> int:
        if not isinstance(book_id, str) or not _ID_PATTERN.fullmatch(book_id):
            raise InvalidBookIdError(book_id, self.backend)
        key = int(book_id)
        if not _MIN_ID <= key <= _MAX_ID:
            raise InvalidBookIdError(book_id, self.backend)
        return key

    @staticmethod
    def _row_to_book(row: Any) -> Book:
        return Book(id=str(row.id), name=row.name, author=row.author)

    async def get_all_books(self) -> List[Book]:
        rows = await self._execute(
            "get_all_books",
            select(books_table.c.id, books_table.c.name, books_table.c.author).order_by(books_table.c.id),
            lambda result: result.all(),
        )
        books = [self._row_to_book(row) for row in rows]
        logger.debug("Retrieved all books", count=len(books))
        return books

    async def get_book(self, book_id: str) -> Book:
        key = self._parse_id(book_id)
        row = await self._execute(
            "get_book",
            select(books_table.c.id, books_table.c.name, books_table.c.author).where(books_table.c.id == key),
            lambda result: result.first(),
        )
        if row is None:
            raise BookNotFoundError(book_id)
        return self._row_to_book(row)

    async def add_book(self, book: Book) -> Book:
        new_id = await self._execute(
            "add_book",
            insert(books_table).values(name=book.name, author=book.author).returning(books_table.c.id),
            lambda result: result.scalar_one(),
        )
        logger.debug("Successfully inserted book", book_id=new_id, book_name=book.name)
        return Book(id=str(new_id), name=book.name, author=book.author)

    async def update_book(self, book_id: str, book: Book) -> None:
        key = self._parse_id(book_id)
        affected = await self._execute(
            "update_book",
            update(books_table).where(books_table.c.id == key).values(name=book.name, author=book.author),
        )
        if affected == 0:
            logger.warning("Book not found for update", book_id=book_id)
            raise BookNotFoundError(book_id)
        logger.debug("Successfully updated book", book_id=book_id)

    async def delete_book(self, book_id: str) -> None:
        key = self._parse_id(book_id)
        affected = await self._execute(
            "delete_book",
            delete(books_table).where(books_table.c.id == key),
        )
        if affected == 0:
            logger.warning("Book not found for deletion", book_id=book_id)
            raise BookNotFoundError(book_id)
        logger.debug("Successfully deleted book", book_id=book_id)

    async def delete_all_books(self) -> None:
        affected = await self._execute("delete_all_books", delete(books_table))
        logger.info("Deleted all books", count=affected)

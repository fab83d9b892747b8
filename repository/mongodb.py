"""
MongoDB book repository using Motor for async operations.
Identifiers are the generated ObjectId in 24-character hex form.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Awaitable, Dict, List, Optional

import structlog
from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError, PyMongoError

from .base import BookRepository
from .errors import (
    BookAlreadyExistsError, BookNotFoundError, InvalidBookIdError,
    RepositoryError, RepositoryTimeoutError
)
from .models import Book, DatabaseType

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT = 10.0
DEFAULT_DATABASE = "db"
DEFAULT_COLLECTION = "books"


class MongoDBBookRepository(BookRepository):
    """
    Book repository backed by a single MongoDB collection.
    Documents hold name, author, created_at and updated_at.
    """

    backend = DatabaseType.MONGODB.value

    def __init__(
        self,
        connection_url: str,
        database_name: str = DEFAULT_DATABASE,
        collection_name: str = DEFAULT_COLLECTION,
        timeout: float = DEFAULT_TIMEOUT,
        collection: Optional[AsyncIOMotorCollection] = None
    ):
        """
        Initialize the repository.

        Args:
            connection_url: MongoDB connection URL
            database_name: Name of the database
            collection_name: Name of the collection
            timeout: Per-call time limit in seconds
            collection: Pre-built collection; connect() creates one otherwise
        """
        self.connection_url = connection_url
        self.database_name = database_name
        self.collection_name = collection_name
        self.timeout = timeout
        self.client: Optional[AsyncIOMotorClient] = None
        self.database: Optional[AsyncIOMotorDatabase] = None
        self.collection = collection

    async def connect(self) -> None:
        """Establish connection to MongoDB and ping the server."""
        try:
            self.client = AsyncIOMotorClient(
                self.connection_url,
                serverSelectionTimeoutMS=int(self.timeout * 1000),
            )
        except (PyMongoError, ValueError) as e:
            logger.error("Invalid MongoDB connection settings", error=str(e))
            raise RepositoryError(f"failed to connect to MongoDB: {e}") from e

        self.database = self.client[self.database_name]
        self.collection = self.database[self.collection_name]

        try:
            await self._run("connect", self.client.admin.command("ping"))
        except RepositoryError:
            self.client.close()
            self.client = None
            raise

        logger.info("Successfully connected to MongoDB",
                    database=self.database_name,
                    collection=self.collection_name)

    async def disconnect(self) -> None:
        """Close MongoDB connection."""
        if self.client:
            self.client.close()
            self.client = None
            logger.info("Disconnected from MongoDB")

    async def health_check(self) -> Dict[str, Any]:
        try:
            count = await self._run("health_check", self._collection().count_documents({}))
            return {"status": "healthy", "backend": self.backend, "books_count": count}
        except RepositoryError as e:
            return {"status": "unhealthy", "backend": self.backend, "error": str(e)}

    def _collection(self) -> AsyncIOMotorCollection:
        if self.collection is None:
            raise RepositoryError("MongoDB repository is not connected")
        return self.collection

    async def _run(self, operation: str, call: Awaitable[Any]) -> Any:
        """Await one driver call under the per-call timeout."""
        try:
            return await asyncio.wait_for(call, timeout=self.timeout)
        except asyncio.TimeoutError as e:
            logger.error("MongoDB call timed out", operation=operation, timeout=self.timeout)
            raise RepositoryTimeoutError(operation, self.timeout) from e
        except DuplicateKeyError as e:
            logger.warning("Duplicate key", operation=operation, error=str(e))
            raise BookAlreadyExistsError() from e
        except PyMongoError as e:
            logger.error("MongoDB call failed", operation=operation, error=str(e))
            raise RepositoryError(f"{operation} failed: {e}") from e

    def _parse_id(self, book_id: str) -> ObjectId:
        try:
            return ObjectId(book_id)
        except (InvalidId, TypeError):
            raise InvalidBookIdError(book_id, self.backend) from None

    @staticmethod
    def _document_to_book(document: Dict[str, Any]) -> Book:
        return Book(
            id=str(document["_id"]),
            name=document.get("name", ""),
            author=document.get("author", ""),
            created_at=document.get("created_at"),
            updated_at=document.get("updated_at"),
        )

    async def get_all_books(self) -> List[Book]:
        cursor = self._collection().find({})
        documents = await self._run("get_all_books", cursor.to_list(length=None))
        books = [self._document_to_book(document) for document in documents or []]
        logger.debug("Retrieved all books", count=len(books))
        return books

    async def get_book(self, book_id: str) -> Book:
        object_id = self._parse_id(book_id)
        document = await self._run("get_book", self._collection().find_one({"_id": object_id}))
        if document is None:
            raise BookNotFoundError(book_id)
        return self._document_to_book(document)

    async def add_book(self, book: Book) -> Book:
        now = datetime.now(timezone.utc)
        # The client id is never stored; MongoDB assigns _id
        document = {
            "name": book.name,
            "author": book.author,
            "created_at": now,
            "updated_at": now,
        }
        result = await self._run("add_book", self._collection().insert_one(document))
        book_id = str(result.inserted_id)
        logger.debug("Successfully inserted book", book_id=book_id, book_name=book.name)
        return Book(id=book_id, name=book.name, author=book.author, created_at=now, updated_at=now)

    async def update_book(self, book_id: str, book: Book) -> None:
        object_id = self._parse_id(book_id)
        result = await self._run(
            "update_book",
            self._collection().update_one(
                {"_id": object_id},
                {"$set": {
                    "name": book.name,
                    "author": book.author,
                    "updated_at": datetime.now(timezone.utc),
                }}
            )
        )
        if result.matched_count == 0:
            logger.warning("Book not found for update", book_id=book_id)
            raise BookNotFoundError(book_id)
        logger.debug("Successfully updated book", book_id=book_id)

    async def delete_book(self, book_id: str) -> None:
        object_id = self._parse_id(book_id)
        result = await self._run("delete_book", self._collection().delete_many({"_id": object_id}))
        if result.deleted_count == 0:
            logger.warning("Book not found for deletion", book_id=book_id)
            raise BookNotFoundError(book_id)
        logger.debug("Successfully deleted book", book_id=book_id)

    async def delete_all_books(self) -> None:
        result = await self._run("delete_all_books", self._collection().delete_many({}))
        logger.info("Deleted all books", count=result.deleted_count)

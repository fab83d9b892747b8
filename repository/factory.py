"""
Backend selection: resolves the configured database kind to one repository.
"""

from typing import Optional, Union

import structlog

from .base import BookRepository
from .models import DatabaseType
from .mongodb import MongoDBBookRepository
from .postgresql import PostgreSQLBookRepository

logger = structlog.get_logger(__name__)


def create_repository(
    db_type: Union[DatabaseType, str],
    conn_string: str,
    timeout: Optional[float] = None,
    database: Optional[str] = None,
    collection: Optional[str] = None
) -> BookRepository:
    """
    Build the repository for the configured backend.

    The repository is not connected yet; call ``connect()`` before use.

    Args:
        db_type: Backend kind ("postgresql" or "mongodb")
        conn_string: Connection string for the chosen database
        timeout: Per-call time limit; backend default when omitted
        database: Database name; backend default when omitted
        collection: MongoDB collection name; ignored for PostgreSQL

    Raises:
        ValueError: If db_type names an unknown backend
    """
    db_type = DatabaseType(db_type)
    logger.info("Creating book repository", db_type=db_type.value)

    if db_type is DatabaseType.POSTGRESQL:
        kwargs = {}
        if timeout is not None:
            kwargs["timeout"] = timeout
        if database:
            kwargs["database"] = database
        return PostgreSQLBookRepository(conn_string, **kwargs)

    kwargs = {}
    if timeout is not None:
        kwargs["timeout"] = timeout
    if database:
        kwargs["database_name"] = database
    if collection:
        kwargs["collection_name"] = collection
    return MongoDBBookRepository(conn_string, **kwargs)

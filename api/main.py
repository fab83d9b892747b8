"""
FastAPI main application for the Book CRUD API.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Optional

import structlog
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.config import config as api_config
from api.models import APIResponse, BookPayload, HealthResponse
from repository.base import BookRepository
from repository.errors import BookNotFoundError, RepositoryError
from repository.factory import create_repository
from utilities.config import config
from utilities.logger import RequestTimer

# Setup logging
logger = structlog.get_logger(__name__)

# Repository selected at startup; one backend for the lifetime of the process
book_repository: Optional[BookRepository] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    logger.info("Starting Book CRUD API", db_type=config.db_type)

    global book_repository
    repository = create_repository(
        config.db_type,
        config.conn_string,
        timeout=config.get_timeout(),
        database=config.get_database_name(),
        collection=config.mongodb_collection,
    )
    try:
        await repository.connect()
    except RepositoryError as e:
        logger.error("Failed to connect to database", db_type=config.db_type, error=str(e))
        raise
    book_repository = repository
    logger.info("Database connection established", db_type=config.db_type)

    yield

    # Shutdown
    logger.info("Shutting down Book CRUD API")
    await repository.disconnect()
    book_repository = None


# Create FastAPI application
app = FastAPI(
    title=api_config.api_title,
    description=api_config.api_description,
    version=api_config.api_version,
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=api_config.cors_origins,
    allow_credentials=api_config.cors_allow_credentials,
    allow_methods=api_config.cors_allow_methods,
    allow_headers=api_config.cors_allow_headers,
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log one line per request with its status and duration."""
    timer = RequestTimer(request.method, request.url.path)
    try:
        response = await call_next(request)
    except Exception as e:
        timer.log_failure(e)
        raise
    timer.log_response(response.status_code)
    return response


def success_response(data: Any = None, status_code: int = status.HTTP_200_OK, message: str = "") -> JSONResponse:
    """Wrap a payload in the success envelope."""
    return JSONResponse(
        status_code=status_code,
        content=APIResponse(error=False, message=message, data=data).render()
    )


def error_response(error: Any, status_code: int) -> JSONResponse:
    """Wrap an error message in the failure envelope."""
    return JSONResponse(
        status_code=status_code,
        content=APIResponse(error=True, message=str(error)).render()
    )


def no_content() -> Response:
    return Response(status_code=status.HTTP_204_NO_CONTENT)


def get_repository() -> BookRepository:
    if book_repository is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Database service not available"
        )
    return book_repository


# Exception handlers
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions, including unknown routes and methods."""
    return JSONResponse(
        status_code=exc.status_code,
        content=APIResponse(error=True, message=str(exc.detail)).render(),
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed or structurally wrong JSON bodies are client errors."""
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        message = f"{location}: {first.get('msg', 'invalid request')}"
    else:
        message = "invalid request"
    logger.warning("Malformed request", path=request.url.path, error=message)
    return error_response(message, status.HTTP_400_BAD_REQUEST)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions."""
    logger.error("Unhandled exception", error=str(exc), path=request.url.path)
    return error_response(
        str(exc) if api_config.debug else "Internal server error",
        status.HTTP_500_INTERNAL_SERVER_ERROR
    )


# Health check endpoint
@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Health check endpoint."""
    db_status = "unavailable"
    if book_repository is not None:
        health_info = await book_repository.health_check()
        db_status = health_info.get("status", "unknown")

    return HealthResponse(
        status="healthy" if db_status == "healthy" else "degraded",
        timestamp=datetime.now(timezone.utc),
        version=api_config.api_version,
        database_type=config.db_type,
        database_status=db_status
    )


# Books endpoints
@app.get("/book", tags=["Books"])
async def get_all_books():
    """List every stored book; the data array is empty when there are none."""
    repository = get_repository()
    try:
        books = await repository.get_all_books()
    except RepositoryError as e:
        logger.error("Failed to get books", error=str(e))
        return error_response(e, status.HTTP_500_INTERNAL_SERVER_ERROR)

    return success_response([book.to_public() for book in books])


@app.get("/book/{book_id}", tags=["Books"])
async def get_book(book_id: str):
    """
    Get a single book by ID.

    - **book_id**: integer id (PostgreSQL) or 24-character hex ObjectId (MongoDB)
    """
    repository = get_repository()
    try:
        book = await repository.get_book(book_id)
    except BookNotFoundError as e:
        return error_response(e, status.HTTP_404_NOT_FOUND)
    except RepositoryError as e:
        logger.error("Failed to get book", book_id=book_id, error=str(e))
        return error_response(e, status.HTTP_500_INTERNAL_SERVER_ERROR)

    return success_response(book.to_public())


@app.post("/book", status_code=status.HTTP_201_CREATED, tags=["Books"])
async def add_book(payload: BookPayload):
    """Create a book; the identifier is assigned by the database."""
    repository = get_repository()
    try:
        book = await repository.add_book(payload.to_book())
    except RepositoryError as e:
        logger.error("Failed to add book", book_name=payload.name, error=str(e))
        return error_response(e, status.HTTP_500_INTERNAL_SERVER_ERROR)

    logger.info("Book created", book_id=book.id)
    return success_response(book.to_public(), status.HTTP_201_CREATED)


@app.put("/book/{book_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["Books"])
async def update_book(book_id: str, payload: BookPayload):
    """Replace name and author of an existing book."""
    repository = get_repository()
    try:
        await repository.update_book(book_id, payload.to_book())
    except RepositoryError as e:
        logger.error("Failed to update book", book_id=book_id, error=str(e))
        return error_response(e, status.HTTP_500_INTERNAL_SERVER_ERROR)

    return no_content()


@app.delete("/book/{book_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["Books"])
async def delete_book(book_id: str):
    """Delete a single book."""
    repository = get_repository()
    try:
        await repository.delete_book(book_id)
    except BookNotFoundError as e:
        return error_response(e, status.HTTP_400_BAD_REQUEST)
    except RepositoryError as e:
        logger.error("Failed to delete book", book_id=book_id, error=str(e))
        return error_response(e, status.HTTP_500_INTERNAL_SERVER_ERROR)

    return no_content()


@app.delete("/book", status_code=status.HTTP_204_NO_CONTENT, tags=["Books"])
async def delete_all_books():
    """Delete every book; succeeds on an empty store."""
    repository = get_repository()
    try:
        await repository.delete_all_books()
    except RepositoryError as e:
        logger.error("Failed to delete all books", error=str(e))
        return error_response(e, status.HTTP_500_INTERNAL_SERVER_ERROR)

    return no_content()

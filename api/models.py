"""
API models and schemas for the FastAPI application.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from repository.models import Book


class BookPayload(BaseModel):
    """
    Request body for creating or replacing a book.

    Only the JSON structure is checked. A client-supplied id is accepted but
    storage always assigns its own.
    """
    id: Optional[str] = Field(None, description="Ignored; assigned by storage")
    name: str = Field("", description="Book title")
    author: str = Field("", description="Book author")

    model_config = ConfigDict(
        extra="ignore",
        json_schema_extra={
            "example": {
                "name": "Dune",
                "author": "Frank Herbert",
            }
        },
    )

    def to_book(self) -> Book:
        return Book(name=self.name, author=self.author)


class APIResponse(BaseModel):
    """Envelope wrapping every JSON response body."""
    error: bool = Field(..., description="Whether the request failed")
    message: str = Field("", description="Error description, empty on success")
    data: Optional[Any] = Field(None, description="Payload; omitted when absent")

    def render(self) -> dict:
        content = {"error": self.error, "message": self.message}
        if self.data is not None:
            content["data"] = self.data
        return content


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Check timestamp")
    version: str = Field(..., description="API version")
    database_type: str = Field(..., description="Active storage backend")
    database_status: str = Field(..., description="Database connection status")

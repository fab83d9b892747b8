"""
Pydantic models for the book entity.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class DatabaseType(str, Enum):
    """Storage backends a repository can be built for."""
    POSTGRESQL = "postgresql"
    MONGODB = "mongodb"


class Book(BaseModel):
    """
    Book entity shared by the HTTP layer and the storage adapters.

    The identifier is always assigned by storage. Timestamps are tracked by
    the document store only and are never serialized to clients.
    """
    id: Optional[str] = Field(None, description="Backend-assigned identifier")
    name: str = Field("", description="Title of the book")
    author: str = Field("", description="Author of the book")
    created_at: Optional[datetime] = Field(None, exclude=True, description="Creation timestamp")
    updated_at: Optional[datetime] = Field(None, exclude=True, description="Last update timestamp")

    model_config = ConfigDict(
        extra="ignore",
        json_schema_extra={
            "example": {
                "id": "1",
                "name": "Dune",
                "author": "Frank Herbert",
            }
        },
    )

    def to_public(self) -> Dict[str, Any]:
        """Client-facing representation; the id is omitted until assigned."""
        return self.model_dump(exclude_none=True)

"""Pydantic schemas for book API endpoints.

JSON field names are camelCase (``publishedYear``), matching the bulk
submission format.
"""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class BookCreate(CamelModel):
    """Request body for creating a single book."""

    title: str = Field(min_length=1)
    author: str = Field(min_length=1)
    isbn: str = Field(min_length=1)
    published_year: int | None = None
    genre: str | None = None
    description: str | None = None


class BookUpdate(CamelModel):
    """Request body for updating a book; only provided fields change."""

    title: str | None = Field(None, min_length=1)
    author: str | None = Field(None, min_length=1)
    isbn: str | None = None
    published_year: int | None = None
    genre: str | None = None
    description: str | None = None


class BookRead(CamelModel):
    """Book as returned by the API and stored in the list cache."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )

    id: UUID
    title: str
    author: str
    isbn: str | None
    published_year: int | None
    genre: str | None
    description: str | None
    user_id: str
    created_at: datetime
    updated_at: datetime


class BookResponse(CamelModel):
    message: str | None = None
    book: BookRead


class BooksListResponse(CamelModel):
    """Response schema for the book list; ``source`` tells cache hits apart."""

    source: Literal["cache", "database"]
    books: list[BookRead]

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "source": "database",
                    "books": [
                        {
                            "id": "123e4567-e89b-12d3-a456-426614174000",
                            "title": "The Left Hand of Darkness",
                            "author": "Ursula K. Le Guin",
                            "isbn": "9780441478125",
                            "publishedYear": 1969,
                            "genre": "Science Fiction",
                            "description": None,
                            "userId": "42",
                            "createdAt": "2025-10-06T10:30:00Z",
                            "updatedAt": "2025-10-06T10:30:00Z",
                        }
                    ],
                }
            ]
        },
    )


class BulkBooksRequest(CamelModel):
    """Books to queue for the ingestion job; entries are validated there."""

    books: list[dict[str, Any]] = Field(min_length=1)


class BulkAcceptedResponse(CamelModel):
    message: str
    queued: int
    pending: int


class MessageResponse(CamelModel):
    message: str

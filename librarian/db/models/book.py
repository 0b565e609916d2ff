"""Book model for catalog entries owned by a single user."""

from datetime import datetime, timezone
from uuid import UUID, uuid4

from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Book(SQLModel, table=True):
    """Book model representing one catalog entry.

    The ISBN, when present, is unique across the whole catalog rather than
    per user, so two users cannot both own the same ISBN.
    """

    __tablename__ = "books"

    id: UUID = Field(
        default_factory=uuid4,
        primary_key=True,
        nullable=False,
    )
    title: str = Field(nullable=False, index=True)
    author: str = Field(nullable=False, index=True)
    isbn: str | None = Field(default=None, unique=True)
    published_year: int | None = Field(default=None)
    genre: str | None = Field(default=None)
    description: str | None = Field(default=None)

    # Owner
    user_id: str = Field(nullable=False, index=True)

    # Timestamps
    created_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        index=True,
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
    )

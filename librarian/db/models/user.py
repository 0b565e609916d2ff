"""User model holding the contact address used for bulk reports."""

from datetime import datetime

from sqlmodel import Field, SQLModel

from librarian.db.models.book import utcnow


class User(SQLModel, table=True):
    """User record; ids are issued by the external auth provider."""

    __tablename__ = "users"

    id: str = Field(primary_key=True, nullable=False)
    email: str | None = Field(default=None, index=True)
    username: str | None = Field(default=None)
    created_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
    )

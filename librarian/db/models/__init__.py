"""Database models for Librarian."""

from librarian.db.models.book import Book
from librarian.db.models.user import User

__all__ = [
    "Book",
    "User",
]

"""Database repositories for Librarian."""

from librarian.db.repositories.base_repository import BaseRepository
from librarian.db.repositories.book_repository import BookRepository
from librarian.db.repositories.user_repository import UserRepository

__all__ = [
    "BaseRepository",
    "BookRepository",
    "UserRepository",
]

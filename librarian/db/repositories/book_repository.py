"""Book repository for database operations."""

from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from librarian.db.models.book import Book, utcnow
from librarian.db.repositories.base_repository import BaseRepository
from librarian.utils.exceptions import DuplicateIsbnError

UPDATABLE_FIELDS = ("title", "author", "isbn", "published_year", "genre", "description")


class BookRepository(BaseRepository[Book]):
    """Repository for Book model operations scoped to an owning user."""

    def __init__(self, session: AsyncSession):
        """Initialize book repository."""
        super().__init__(Book, session)

    def translate_integrity_error(self, error: IntegrityError, obj: Book) -> Exception:
        """Map a unique violation on the isbn column to DuplicateIsbnError."""
        if "isbn" in str(error.orig).lower():
            return DuplicateIsbnError(obj.isbn)
        return error

    async def create_book(
        self,
        user_id: str,
        title: str,
        author: str,
        isbn: str | None = None,
        published_year: int | None = None,
        genre: str | None = None,
        description: str | None = None,
    ) -> Book:
        """
        Create a new book record.

        Args:
            user_id: Owning user ID
            title: Book title
            author: Book author
            isbn: Optional ISBN, unique across the catalog
            published_year: Optional publication year
            genre: Optional genre
            description: Optional free-text description

        Returns:
            Created Book instance

        Raises:
            DuplicateIsbnError: If the ISBN is already in the catalog
        """
        book = Book(
            user_id=user_id,
            title=title,
            author=author,
            isbn=isbn,
            published_year=published_year,
            genre=genre,
            description=description,
        )
        return await self.save(book)

    async def list_books_for_user(self, user_id: str) -> list[Book]:
        """
        Get all books owned by a user, newest first.

        Args:
            user_id: Owning user ID

        Returns:
            List of Book instances
        """
        result = await self.session.execute(
            select(Book)
            .where(Book.user_id == user_id)  # type: ignore[arg-type]
            .order_by(Book.created_at.desc())  # type: ignore[attr-defined]
        )
        return list(result.scalars().all())

    async def get_book_for_user(self, book_id: UUID, user_id: str) -> Book | None:
        """
        Get a book by ID if it belongs to the user.

        Args:
            book_id: Book UUID
            user_id: Owning user ID

        Returns:
            Book instance or None
        """
        result = await self.session.execute(
            select(Book).where(
                Book.id == book_id,  # type: ignore[arg-type]
                Book.user_id == user_id,  # type: ignore[arg-type]
            )
        )
        return result.scalar_one_or_none()

    async def update_book_for_user(
        self, book_id: UUID, user_id: str, changes: dict[str, Any]
    ) -> Book | None:
        """
        Apply field changes to a user's book.

        Args:
            book_id: Book UUID
            user_id: Owning user ID
            changes: Field values to set; unknown fields are ignored

        Returns:
            Updated Book instance, or None if the user has no such book

        Raises:
            DuplicateIsbnError: If the new ISBN is already in the catalog
        """
        book = await self.get_book_for_user(book_id, user_id)
        if book is None:
            return None

        for field in UPDATABLE_FIELDS:
            if field in changes:
                setattr(book, field, changes[field])
        book.updated_at = utcnow()

        return await self.save(book)

    async def delete_book_for_user(self, book_id: UUID, user_id: str) -> Book | None:
        """
        Delete a user's book.

        Args:
            book_id: Book UUID
            user_id: Owning user ID

        Returns:
            The deleted Book instance, or None if the user has no such book
        """
        book = await self.get_book_for_user(book_id, user_id)
        if book is None:
            return None
        await self.delete(book)
        return book

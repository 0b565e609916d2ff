"""User repository for database operations."""

from sqlalchemy.ext.asyncio import AsyncSession

from librarian.db.models.user import User
from librarian.db.repositories.base_repository import BaseRepository


class UserRepository(BaseRepository[User]):
    """Repository for User model operations."""

    def __init__(self, session: AsyncSession):
        """Initialize user repository."""
        super().__init__(User, session)

    async def create_user(
        self, user_id: str, email: str | None, username: str | None = None
    ) -> User:
        """Create a user record with the given external ID."""
        return await self.save(User(id=user_id, email=email, username=username))

    async def get_email(self, user_id: str) -> str | None:
        """Return the user's email address, or None if unknown."""
        user = await self.get_by_id(user_id)
        if user is None or not user.email:
            return None
        return user.email

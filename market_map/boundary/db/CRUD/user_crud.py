"""
User CRUD operations.

Dependencies: sqlalchemy, market_map.boundary.db.models
System role: User persistence operations
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from market_map.boundary.db.CRUD.base_crud import BaseCRUD
from market_map.boundary.db.models.user_model import UserModel


class UserCRUD(BaseCRUD[UserModel]):
    """CRUD operations for UserModel with username lookups."""

    def __init__(self) -> None:
        super().__init__(UserModel)

    async def get_by_username(self, session: AsyncSession, username: str) -> UserModel | None:
        """
        Find a user by display username (exact match).

        Args:
            session: Async database session
            username: Display username

        Returns:
            UserModel if found, None otherwise
        """
        stmt = select(UserModel).where(UserModel.username == username)
        result = await session.execute(stmt)
        return result.scalars().first()

    async def get_by_username_key(self, session: AsyncSession, username_key: str) -> UserModel | None:
        """
        Find a user by normalized uniqueness key.

        Args:
            session: Async database session
            username_key: Lowercase normalized username

        Returns:
            UserModel if found, None otherwise
        """
        stmt = select(UserModel).where(UserModel.username_key == username_key)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()


user_crud = UserCRUD()

"""
Test suite for user persistence.

System role: Verification of username lookups and uniqueness
"""

import pytest
from sqlalchemy.exc import IntegrityError

from market_map.boundary.db.CRUD.user_crud import user_crud


class TestUserCRUD:
    """Test suite for UserCRUD."""

    @pytest.mark.asyncio
    async def test_lookups_by_username_and_key(self, test_async_db, make_user) -> None:
        # Arrange
        user = await make_user("atlas123")

        # Act
        by_name = await user_crud.get_by_username(test_async_db, "atlas123")
        by_key = await user_crud.get_by_username_key(test_async_db, "atlas123")

        # Assert
        assert by_name is not None and by_name.id == user.id
        assert by_key is not None and by_key.id == user.id
        assert user.created_at is not None

    @pytest.mark.asyncio
    async def test_unknown_username_returns_none(self, test_async_db) -> None:
        assert await user_crud.get_by_username(test_async_db, "ghost999") is None

    @pytest.mark.asyncio
    async def test_duplicate_key_should_violate_uniqueness(self, test_async_db, make_user) -> None:
        await make_user("atlas123")

        with pytest.raises(IntegrityError):
            await user_crud.create(test_async_db, username="atlas123", username_key="atlas123")

    @pytest.mark.asyncio
    async def test_delete_by_id(self, test_async_db, make_user) -> None:
        user = await make_user("atlas123")

        assert await user_crud.delete_by_id(test_async_db, user.id)
        assert await user_crud.get_by_id(test_async_db, user.id) is None

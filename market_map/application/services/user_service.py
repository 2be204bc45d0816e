"""
User service for signup, identity lookup and public profiles.

Dependencies: sqlalchemy, market_map.boundary.db.CRUD, market_map.core.usernames
System role: User lifecycle orchestration
"""

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from market_map.boundary.db.CRUD.research_session_crud import research_session_crud
from market_map.boundary.db.CRUD.user_crud import user_crud
from market_map.boundary.db.models.user_model import UserModel
from market_map.configs.research import ResearchSettings
from market_map.core.exceptions import UserNotFoundError, ValidationError
from market_map.core.usernames import agenerate_unique_username
from market_map.models.user import ProfileResponse, ProfileUser, SessionSummary

logger = logging.getLogger(__name__)


class UserService:
    """Signup and profile operations."""

    def __init__(self, db: AsyncSession, settings: ResearchSettings) -> None:
        """
        Initialize user service.

        Args:
            db: AsyncSession for database operations
            settings: Username and profile listing settings
        """
        self.db = db
        self.settings = settings

    async def signup(self, base_name: str | None) -> UserModel:
        """
        Create a user with a unique ``{name}{ddd}`` username.

        Args:
            base_name: Name typed on the signup form

        Returns:
            UserModel: Created user

        Raises:
            ValidationError: If no free username could be derived, or the
                chosen one was taken concurrently
        """
        async def is_taken(candidate: str) -> bool:
            return await user_crud.get_by_username_key(self.db, candidate) is not None

        username = await agenerate_unique_username(
            base_name,
            is_taken,
            attempts=self.settings.username_attempts,
        )
        if username is None:
            logger.info(f"{__name__}:signup - No free username for base={base_name!r}")
            raise ValidationError("Please enter a different name.", field="username")

        try:
            user = await user_crud.create(self.db, username=username, username_key=username)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(f"{__name__}:signup - Username collision on insert: {username}")
            raise ValidationError("Name already taken.", field="username") from e

        logger.info(f"{__name__}:signup - Created user username={username}")
        return user

    async def get_by_username(self, username: str | None) -> UserModel | None:
        """User for a cookie or path value, None when blank or unknown."""
        if not username:
            return None
        return await user_crud.get_by_username(self.db, username)

    async def profile(self, username: str) -> ProfileResponse:
        """
        Public profile with the newest sessions.

        Args:
            username: Display username

        Returns:
            ProfileResponse: User info and session summaries, newest first

        Raises:
            UserNotFoundError: If the user does not exist
        """
        user = await self.get_by_username(username)
        if user is None:
            raise UserNotFoundError(username)

        sessions = await research_session_crud.list_recent_for_user(
            self.db,
            user.id,
            limit=self.settings.profile_session_limit,
        )
        return ProfileResponse(
            user=ProfileUser.model_validate(user),
            sessions=[SessionSummary.model_validate(session) for session in sessions],
        )

"""
Research session CRUD operations.

Extends the generic CRUD with the per-user queries the turn state machine
and profile pages need: active session lookup, newest-N listing and
retention pruning.

Dependencies: sqlalchemy, market_map.boundary.db.models
System role: Research session persistence operations
"""

from typing import Sequence
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from market_map.boundary.db.CRUD.base_crud import BaseCRUD
from market_map.boundary.db.models.research_session_model import (
    ResearchSessionModel,
    SessionStatus,
)


class ResearchSessionCRUD(BaseCRUD[ResearchSessionModel]):
    """CRUD operations for ResearchSessionModel."""

    def __init__(self) -> None:
        """Initialize ResearchSessionCRUD with ResearchSessionModel."""
        super().__init__(ResearchSessionModel)

    def _newest_first(self, user_id: UUID):
        return (
            select(ResearchSessionModel)
            .where(ResearchSessionModel.user_id == user_id)
            .order_by(
                ResearchSessionModel.created_at.desc(),
                ResearchSessionModel.id.desc(),
            )
        )

    async def get_active_for_user(
        self,
        session: AsyncSession,
        user_id: UUID,
    ) -> ResearchSessionModel | None:
        """
        Newest session with status ACTIVE for the user.

        Args:
            session: Async database session
            user_id: Owning user UUID

        Returns:
            Active ResearchSessionModel, None if the user has none
        """
        stmt = (
            self._newest_first(user_id)
            .where(ResearchSessionModel.status == SessionStatus.ACTIVE)
            .limit(1)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_recent_for_user(
        self,
        session: AsyncSession,
        user_id: UUID,
        limit: int = 50,
    ) -> Sequence[ResearchSessionModel]:
        """
        Newest sessions for the user, newest first.

        Args:
            session: Async database session
            user_id: Owning user UUID
            limit: Maximum sessions returned

        Returns:
            Sequence of ResearchSessionModels
        """
        result = await session.execute(self._newest_first(user_id).limit(limit))
        return result.scalars().all()

    async def prune_for_user(
        self,
        session: AsyncSession,
        user_id: UUID,
        keep: int = 50,
    ) -> int:
        """
        Delete all but the newest ``keep`` sessions of the user.

        Args:
            session: Async database session
            user_id: Owning user UUID
            keep: Sessions retained

        Returns:
            int: Number of sessions deleted
        """
        keep_ids = (
            select(ResearchSessionModel.id)
            .where(ResearchSessionModel.user_id == user_id)
            .order_by(
                ResearchSessionModel.created_at.desc(),
                ResearchSessionModel.id.desc(),
            )
            .limit(keep)
        )
        stale = await session.execute(
            select(ResearchSessionModel.id).where(
                ResearchSessionModel.user_id == user_id,
                ResearchSessionModel.id.not_in(keep_ids),
            )
        )
        stale_ids = list(stale.scalars().all())
        if not stale_ids:
            return 0

        await session.execute(
            delete(ResearchSessionModel).where(ResearchSessionModel.id.in_(stale_ids))
        )
        return len(stale_ids)


research_session_crud = ResearchSessionCRUD()

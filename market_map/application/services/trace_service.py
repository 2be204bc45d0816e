"""
Trace service for session trace downloads.

Dependencies: sqlalchemy, market_map.boundary.db.CRUD
System role: Read side of the per-session trace documents
"""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from market_map.boundary.db.CRUD.research_session_crud import research_session_crud
from market_map.boundary.db.CRUD.user_crud import user_crud
from market_map.configs.research import ResearchSettings
from market_map.core.exceptions import SessionNotFoundError, UserNotFoundError

logger = logging.getLogger(__name__)


class TraceService:
    """Trace export for one session or for a user's recent sessions."""

    def __init__(self, db: AsyncSession, settings: ResearchSettings) -> None:
        self.db = db
        self.settings = settings

    async def session_trace(self, session_id: UUID) -> list[dict[str, Any]]:
        """
        Trace of one session as a download payload.

        Args:
            session_id: Research session UUID

        Returns:
            list: One-element list with the trace, empty if none was recorded

        Raises:
            SessionNotFoundError: If the session does not exist
        """
        session = await research_session_crud.get_by_id(self.db, session_id)
        if session is None:
            raise SessionNotFoundError(str(session_id))
        return [session.trace] if session.trace else []

    async def user_traces(self, username: str) -> list[dict[str, Any]]:
        """
        Traces of the user's newest sessions.

        Raises:
            UserNotFoundError: If the user does not exist
        """
        user = await user_crud.get_by_username(self.db, username)
        if user is None:
            raise UserNotFoundError(username)

        sessions = await research_session_crud.list_recent_for_user(
            self.db,
            user.id,
            limit=self.settings.profile_session_limit,
        )
        traces = [session.trace for session in sessions if session.trace]
        logger.info(f"{__name__}:user_traces - username={username} traces={len(traces)}")
        return traces

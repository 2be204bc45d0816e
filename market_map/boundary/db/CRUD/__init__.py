"""
CRUD operations for database models.

Exports base CRUD class and model-specific CRUD implementations
with pre-instantiated singletons for direct use.

Usage:
    from market_map.boundary.db.CRUD import research_session_crud, user_crud

    session = await research_session_crud.get_active_for_user(db, user.id)
"""

from market_map.boundary.db.CRUD.base_crud import BaseCRUD
from market_map.boundary.db.CRUD.research_session_crud import (
    ResearchSessionCRUD,
    research_session_crud,
)
from market_map.boundary.db.CRUD.user_crud import UserCRUD, user_crud

__all__ = [
    "BaseCRUD",
    "ResearchSessionCRUD",
    "research_session_crud",
    "UserCRUD",
    "user_crud",
]

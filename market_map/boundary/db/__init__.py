"""
Database boundary layer: ORM models, CRUD operations, and connection management.

Exports:
  - Base, UUIDMixin, TimestampMixin: Model building blocks
  - get_async_engine(), get_async_session_factory(), get_async_db(), create_tables()
  - UserModel, ResearchSessionModel and session state enums
  - user_crud, research_session_crud: CRUD operation singletons

Dependencies: sqlalchemy, market_map.configs
System role: Database adapter providing persistent storage for users and research sessions
"""

from market_map.boundary.db.base import Base, CreatedAtMixin, TimestampMixin, UUIDMixin
from market_map.boundary.db.connection import (
    create_tables,
    get_async_db,
    get_async_engine,
    get_async_session_factory,
)
from market_map.boundary.db.models import (
    PlanStatus,
    ResearchSessionModel,
    SessionPhase,
    SessionStatus,
    UserModel,
)
from market_map.boundary.db.CRUD import (
    BaseCRUD,
    ResearchSessionCRUD,
    UserCRUD,
    research_session_crud,
    user_crud,
)

__all__ = [
    # Base classes
    "Base",
    "CreatedAtMixin",
    "TimestampMixin",
    "UUIDMixin",
    # Connection
    "create_tables",
    "get_async_db",
    "get_async_engine",
    "get_async_session_factory",
    # Models
    "UserModel",
    "ResearchSessionModel",
    "SessionStatus",
    "SessionPhase",
    "PlanStatus",
    # CRUD
    "BaseCRUD",
    "ResearchSessionCRUD",
    "UserCRUD",
    "research_session_crud",
    "user_crud",
]

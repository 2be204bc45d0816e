"""
Database models package.

Exports:
  - UserModel: Signed-up user
  - ResearchSessionModel, SessionStatus, SessionPhase, PlanStatus: Research session and state enums

Dependencies: sqlalchemy, market_map.boundary.db.base
System role: Database model definitions for domain entities
"""

from market_map.boundary.db.models.research_session_model import (
    PlanStatus,
    ResearchSessionModel,
    SessionPhase,
    SessionStatus,
)
from market_map.boundary.db.models.user_model import UserModel

__all__ = [
    "UserModel",
    "ResearchSessionModel",
    "SessionStatus",
    "SessionPhase",
    "PlanStatus",
]

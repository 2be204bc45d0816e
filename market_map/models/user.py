"""
User and profile schemas.

Dependencies: pydantic
System role: Signup, identity and profile API contracts
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from market_map.boundary.db.models.research_session_model import SessionPhase, SessionStatus


class SignupRequest(BaseModel):
    """Signup form: the name the username is derived from."""

    username: str = Field(default="", max_length=200)


class UsernameResponse(BaseModel):
    """Assigned or current username."""

    username: str


class ProfileUser(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    username: str
    created_at: datetime


class SessionSummary(BaseModel):
    """
    Research session listing entry.

    Attributes:
        id: Session UUID
        status: active or complete
        phase: plan or result
        turn_count: Processed turns
        created_at: Creation timestamp
        updated_at: Last turn timestamp
    """

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    status: SessionStatus
    phase: SessionPhase
    turn_count: int
    created_at: datetime
    updated_at: datetime


class ProfileResponse(BaseModel):
    """Public profile with the newest sessions."""

    user: ProfileUser
    sessions: list[SessionSummary]

"""
User ORM model.

Dependencies: sqlalchemy, market_map.boundary.db.base
System role: Signed-up user persistence
"""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from market_map.boundary.db.base import Base, CreatedAtMixin, UUIDMixin


class UserModel(Base, UUIDMixin, CreatedAtMixin):
    """
    User created once at signup.

    Attributes:
        id: UUID primary key
        username: Display username (case preserved)
        username_key: Normalized lowercase key, unique
        created_at: Signup timestamp (UTC)
        sessions: Research sessions owned by this user (cascade delete)
    """

    __tablename__ = "users"

    username: Mapped[str] = mapped_column(String(64), nullable=False)
    username_key: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
        index=True,
    )

    sessions = relationship(
        "ResearchSessionModel",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

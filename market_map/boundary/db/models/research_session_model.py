"""
Research session ORM model.

One row per plan -> result conversational round, holding the chat history,
the working plan and the append-only trace for that round.

Dependencies: sqlalchemy, market_map.boundary.db.base
System role: Session state persistence for the turn state machine
"""

import enum
from uuid import UUID

from sqlalchemy import JSON, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from market_map.boundary.db.base import Base, TimestampMixin, UUIDMixin


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    return [member.value for member in enum_cls]


class SessionStatus(str, enum.Enum):
    """
    Session lifecycle.

    ACTIVE: Accepts more turns (at most one per user)
    COMPLETE: Result produced; immutable to chat, kept for traces
    """

    ACTIVE = "active"
    COMPLETE = "complete"


class SessionPhase(str, enum.Enum):
    """Conversation stage."""

    PLAN = "plan"
    RESULT = "result"


class PlanStatus(str, enum.Enum):
    """
    Working plan status.

    AWAITING_CLARIFICATION: Plan shown, clarifying question pending
    EXECUTED: Result produced from the plan
    """

    AWAITING_CLARIFICATION = "awaiting_clarification"
    EXECUTED = "executed"


class ResearchSessionModel(Base, UUIDMixin, TimestampMixin):
    """
    Research session row.

    Attributes:
        id: UUID primary key
        user_id: Owning user (cascade delete)
        username: Denormalized owner username
        status: ACTIVE or COMPLETE; active -> complete happens exactly once
        phase: PLAN or RESULT
        turn_count: Processed turns, +1 per turn
        chat_history: Ordered [{role, content}] list, append-only
        trace: Structured per-session trace document with turns[]
        root_trace_id: Langfuse trace id of the session root span
        root_span_id: Langfuse span id of the session root span
        root_span_token: Exportable "{trace_id}:{span_id}" token
        plan_text: Current working plan
        plan_questions: Clarifying questions returned with the plan
        plan_status: AWAITING_CLARIFICATION, EXECUTED or None
    """

    __tablename__ = "research_sessions"

    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    username: Mapped[str] = mapped_column(String(64), nullable=False)

    status: Mapped[SessionStatus] = mapped_column(
        Enum(SessionStatus, native_enum=False, values_callable=_enum_values),
        nullable=False,
        default=SessionStatus.ACTIVE,
    )
    phase: Mapped[SessionPhase] = mapped_column(
        Enum(SessionPhase, native_enum=False, values_callable=_enum_values),
        nullable=False,
        default=SessionPhase.PLAN,
    )
    turn_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    chat_history: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    trace: Mapped[dict | None] = mapped_column(JSON, nullable=True, default=None)

    root_trace_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    root_span_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    root_span_token: Mapped[str | None] = mapped_column(String(160), nullable=True)

    plan_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    plan_questions: Mapped[list | None] = mapped_column(JSON, nullable=True)
    plan_status: Mapped[PlanStatus | None] = mapped_column(
        Enum(PlanStatus, native_enum=False, values_callable=_enum_values),
        nullable=True,
        default=None,
    )

    user = relationship("UserModel", back_populates="sessions")

    @property
    def has_pending_plan(self) -> bool:
        """Plan shown and awaiting the user's clarification."""
        return (
            self.phase == SessionPhase.PLAN
            and self.plan_status == PlanStatus.AWAITING_CLARIFICATION
            and bool(self.plan_text)
        )

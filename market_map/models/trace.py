"""
Session trace schemas.

The trace is a per-session document stored on the session row and offered
as a JSON download. Turn entries are appended and never rewritten.

Dependencies: pydantic
System role: Trace document contract
"""

from typing import Any, Literal

from pydantic import BaseModel, Field

TRACE_VERSION = 2


class TraceSource(BaseModel):
    title: str
    url: str


class CitationCounts(BaseModel):
    valid: int = 0
    invalid: int = 0


class TurnEntry(BaseModel):
    """
    One processed turn.

    Attributes:
        turn: Turn number (1-based)
        user: User message as sent
        kind: plan, result or apology
        plan: Plan text (plan turns only)
        question: First clarifying question (plan turns only)
        response: Response text (result and apology turns)
        sources: Displayed sources
        citations: Valid/invalid counts from citation validation
        model: Model that answered
        model_attempts: Models tried in order
        latency_ms: Whole-turn latency
        llm_latency_ms: Main generation call latency
        tokens: Usage metadata when reported
    """

    turn: int
    user: str
    kind: Literal["plan", "result", "apology"]
    plan: str | None = None
    question: str | None = None
    response: str | None = None
    sources: list[TraceSource] = Field(default_factory=list)
    citations: CitationCounts = Field(default_factory=CitationCounts)
    model: str | None = None
    model_attempts: list[str] = Field(default_factory=list)
    latency_ms: int = 0
    llm_latency_ms: int | None = None
    tokens: dict[str, Any] | None = None


class TraceCorrelation(BaseModel):
    """External tracing correlation ids."""

    root_span: str | None = None
    root_trace_id: str | None = None
    root_span_id: str | None = None


class SessionTrace(BaseModel):
    """Per-session trace document."""

    version: int = TRACE_VERSION
    session_id: str
    username: str
    created_at: str
    observability: TraceCorrelation = Field(default_factory=TraceCorrelation)
    turns: list[TurnEntry] = Field(default_factory=list)

    def with_turn(self, entry: TurnEntry) -> "SessionTrace":
        """Copy of the trace with ``entry`` appended."""
        return self.model_copy(update={"turns": [*self.turns, entry]})

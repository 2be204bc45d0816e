"""
Turn outcome variants.

A turn is decided once into exactly one of Plan, Result or Apology; event
emission, span metadata and persistence then dispatch on the variant.

Dependencies: dataclasses, market_map.core.research_agent.schemas
System role: Explicit result type of the turn state machine
"""

from dataclasses import dataclass, field
from typing import Any

from market_map.core.research_agent.schemas import CitationOutcome, GenerationResult, PlanVerdict


@dataclass
class GenerationMeta:
    """Model bookkeeping recorded with every turn."""

    model: str | None = None
    attempts: list[str] = field(default_factory=list)
    usage: dict[str, Any] | None = None
    llm_latency_ms: int | None = None

    @classmethod
    def from_result(cls, result: GenerationResult, llm_latency_ms: int) -> "GenerationMeta":
        return cls(
            model=result.model,
            attempts=list(result.attempts),
            usage=result.usage,
            llm_latency_ms=llm_latency_ms,
        )


def _assessment_metadata(assessment: PlanVerdict | None) -> dict[str, Any]:
    if assessment is None:
        return {}
    return {
        "plan_assessment_action": assessment.action,
        "plan_assessment_reason": assessment.reason,
    }


@dataclass
class PlanOutcome:
    """Plan shown with its first clarifying question."""

    plan_text: str
    questions: list[str]
    ready_for_results: bool
    meta: GenerationMeta
    assessment: PlanVerdict | None = None

    kind = "plan"

    @property
    def question(self) -> str:
        return self.questions[0]

    @property
    def response(self) -> str:
        return f"### Plan\n{self.plan_text}\n\n**{self.question}**"

    def span_metadata(self) -> dict[str, Any]:
        return {
            "plan_ready": self.ready_for_results,
            "clarifying_questions_count": len(self.questions),
            **_assessment_metadata(self.assessment),
        }


@dataclass
class ResultOutcome:
    """Ranked result with attached citations."""

    body: str
    citations: CitationOutcome
    meta: GenerationMeta
    auto_advanced: bool = False
    assessment: PlanVerdict | None = None

    kind = "result"

    @property
    def response(self) -> str:
        return f"{self.body}\n\n{self.citations.markdown}"

    def span_metadata(self) -> dict[str, Any]:
        """Citation counts, validated URLs and how the shown sources were picked."""
        citations = self.citations
        return {
            "plan_auto_advance": self.auto_advanced,
            "citation_valid_count": citations.valid_count,
            "citation_invalid_count": citations.invalid_count,
            "citation_report": {
                "valid_urls": list(citations.valid_urls),
                "invalid_urls": list(citations.invalid_urls),
            },
            "citation_pipeline": citations.pipeline_metadata(),
            **_assessment_metadata(self.assessment),
        }


@dataclass
class ApologyOutcome:
    """
    Out-of-domain or unusable reply.

    Attributes:
        text: Apology shown to the user
        meta: Generation bookkeeping (empty for short-circuited input)
        reset_plan: Clear persisted plan fields
        recorded_kind: Kind written to the trace ("plan" for empty input)
        assessment: Classifier verdict when a pending plan was assessed
    """

    text: str
    meta: GenerationMeta
    reset_plan: bool = True
    recorded_kind: str = "apology"
    assessment: PlanVerdict | None = None

    kind = "apology"

    @property
    def response(self) -> str:
        return self.text

    def span_metadata(self) -> dict[str, Any]:
        return _assessment_metadata(self.assessment)


TurnOutcome = PlanOutcome | ResultOutcome | ApologyOutcome

"""
Research agent schemas.

Structured shapes exchanged between the generation client, the parsers,
the citation pipeline and the turn state machine.

Dependencies: pydantic
System role: Agent data contracts
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal
from urllib.parse import urlparse

from pydantic import BaseModel, Field, model_validator


class GenerationMode(str, Enum):
    """Kind of generation call, selects prompt and temperature."""

    PLAN = "plan"
    RESULT = "result"
    CLASSIFY = "classify"
    SOURCES = "sources"


def domain_of(url: str) -> str:
    """Host of ``url`` without a leading ``www.``; empty when unparseable."""
    try:
        host = urlparse(url).hostname or ""
    except ValueError:
        return ""
    return host[4:] if host.startswith("www.") else host


class Source(BaseModel):
    """Citation candidate. Domain is derived from the URL."""

    title: str
    url: str
    domain: str = ""

    @model_validator(mode="after")
    def _fill_domain(self) -> "Source":
        if not self.title:
            self.title = self.url
        if not self.domain:
            self.domain = domain_of(self.url)
        return self

    def as_reference(self) -> dict[str, str]:
        """{title, url} shape stored in trace entries."""
        return {"title": self.title, "url": self.url}


class PlanBlock(BaseModel):
    """Parsed plan-mode reply."""

    plan: str = ""
    clarifying_questions: list[str] = Field(default_factory=list)
    ready_for_results: bool = False
    activity: list[str] = Field(default_factory=list)
    apology: str = ""

    @property
    def first_question(self) -> str | None:
        return self.clarifying_questions[0] if self.clarifying_questions else None


@dataclass(frozen=True)
class ParseFailure:
    """Reply had no parseable structured block."""

    reason: str
    raw: str = ""


class PlanVerdict(BaseModel):
    """Turn classifier decision."""

    action: Literal["keep", "replan"] = "keep"
    reason: str | None = None


@dataclass
class GenerationResult:
    """
    Successful generation call.

    Attributes:
        text: Full response text
        usage: Token usage metadata, when reported
        grounding: Raw grounding metadata, when retrieval was enabled
        model: Model that produced the response
        attempts: Models tried in order, ending with ``model``
    """

    text: str
    model: str
    attempts: list[str] = field(default_factory=list)
    usage: dict[str, Any] | None = None
    grounding: Any = None


@dataclass
class ValidationReport:
    """Liveness partition of a candidate source list, input order preserved."""

    valid: list[Source] = field(default_factory=list)
    invalid: list[Source] = field(default_factory=list)


class CitationBasis(str, Enum):
    """Which list the displayed sources were drawn from."""

    VALID = "valid"
    INVALID = "invalid"
    REPAIRED = "repaired"
    RAW = "raw"
    NONE = "none"


@dataclass
class CitationOutcome:
    """
    Output of the citation pipeline for one result turn.

    Attributes:
        sources: Displayed sources (at most max_sources)
        markdown: Rendered sources line
        valid_count: Valid sources in the authoritative validation
        invalid_count: Invalid sources in the authoritative validation
        origin: "generated" or "grounding"
        basis: List the displayed sources came from
        unverified: Displayed sources did not pass validation
        generated_count: Sources returned by the primary generation call
        raw_count: Candidates validated in the first pass
        repaired_count: Sources returned by the repair call (0 if not run)
        repaired: Whether the repair pass ran
        valid_urls: URLs classified valid
        invalid_urls: URLs classified invalid
    """

    sources: list[Source]
    markdown: str
    valid_count: int
    invalid_count: int
    origin: str
    basis: CitationBasis
    unverified: bool = False
    generated_count: int = 0
    raw_count: int = 0
    repaired_count: int = 0
    repaired: bool = False
    valid_urls: list[str] = field(default_factory=list)
    invalid_urls: list[str] = field(default_factory=list)

    def pipeline_metadata(self) -> dict[str, Any]:
        """Trace metadata describing how sources were chosen."""
        return {
            "source_origin": self.origin,
            "generated_count": self.generated_count,
            "raw_count": self.raw_count,
            "valid_count": self.valid_count,
            "invalid_count": self.invalid_count,
            "repaired_count": self.repaired_count,
            "used_count": len(self.sources),
            "basis": self.basis.value,
            "unverified": self.unverified,
        }

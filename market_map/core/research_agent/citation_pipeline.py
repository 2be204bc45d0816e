"""
Citation pipeline.

Attaches verified sources to a result turn:

1. Generate sources for the result; fall back to grounding metadata when
   generation returns nothing.
2. Validate every candidate URL.
3. If any candidate is invalid, or fewer than ``min_valid`` are valid, run
   the repair pass exactly once and treat its validation as authoritative.
4. Show up to ``max_sources`` valid sources; with none valid, fall back to
   the repair pass's invalid list, then the unvalidated repair list, then
   the original candidates, and label the section unverified.

Dependencies: market_map.core.research_agent, market_map.boundary.web
System role: Citation integrity for result responses
"""

import logging
from collections.abc import Sequence
from typing import Any

from market_map.boundary.web.url_probe import SourceValidator
from market_map.core.research_agent.generation_client import extract_grounding_sources
from market_map.core.research_agent.schemas import CitationBasis, CitationOutcome, Source, ValidationReport
from market_map.core.research_agent.source_generator import SourceGenerator
from market_map.observability.trace_recorder import RootSpanRef, TraceRecorder

logger = logging.getLogger(__name__)

SOURCES_LABEL = "**Sources:**"
UNVERIFIED_LABEL = "**Sources (unverified):**"
UNAVAILABLE_MARKDOWN = f"{SOURCES_LABEL} (unavailable)"


def format_sources_markdown(sources: Sequence[Source], unverified: bool = False) -> str:
    """
    Render ``**Sources:** [title](url), ...``.

    Args:
        sources: Sources to render
        unverified: Use the unverified label

    Returns:
        str: Markdown line, the unavailable marker when ``sources`` is empty
    """
    if not sources:
        return UNAVAILABLE_MARKDOWN
    label = UNVERIFIED_LABEL if unverified else SOURCES_LABEL
    links = ", ".join(f"[{source.title or source.url}]({source.url})" for source in sources)
    return f"{label} {links}"


class CitationPipeline:
    """Generate, validate, repair once, select."""

    def __init__(
        self,
        generator: SourceGenerator,
        validator: SourceValidator,
        min_valid: int = 3,
        max_sources: int = 4,
    ) -> None:
        """
        Initialize pipeline.

        Args:
            generator: Source generator used for the primary and repair calls
            validator: URL liveness validator
            min_valid: Fewer valid sources than this triggers repair
            max_sources: Sources shown to the user
        """
        self.generator = generator
        self.validator = validator
        self.min_valid = min_valid
        self.max_sources = max_sources

    async def _validate(
        self,
        name: str,
        sources: list[Source],
        tracer: TraceRecorder | None,
        parent: RootSpanRef | None,
        input: dict[str, Any],
    ) -> ValidationReport:
        if tracer is None:
            return await self.validator.validate(sources)
        async with tracer.span(name, parent=parent, input=input) as span:
            report = await self.validator.validate(sources)
            span.log(output={
                "valid_count": len(report.valid),
                "invalid_count": len(report.invalid),
                "valid_urls": [s.url for s in report.valid],
                "invalid_urls": [s.url for s in report.invalid],
            })
            return report

    async def run(
        self,
        result_text: str,
        category: str,
        grounding: Any = None,
        tracer: TraceRecorder | None = None,
        parent: RootSpanRef | None = None,
    ) -> CitationOutcome:
        """
        Produce the sources shown with a result.

        Args:
            result_text: Cleaned result body
            category: Inferred research category
            grounding: Grounding metadata from the result call, if any
            tracer: Trace recorder for citation spans
            parent: Parent span ids

        Returns:
            CitationOutcome: Sources, rendered markdown and the citation report
        """
        generated = await self.generator.generate_for_result(category, result_text, tracer, parent)
        if generated:
            origin = "generated"
            raw = generated
        else:
            origin = "grounding"
            raw = extract_grounding_sources(grounding)

        report = await self._validate(
            "Citation check",
            raw,
            tracer,
            parent,
            {"source_origin": origin, "sources": [s.url for s in raw]},
        )

        repaired: list[Source] = []
        repair_ran = False
        if report.invalid or len(report.valid) < self.min_valid:
            repair_ran = True
            logger.info(
                f"{__name__}:run - Repairing sources valid={len(report.valid)} "
                f"invalid={len(report.invalid)}"
            )
            repaired = await self.generator.repair(category, tracer, parent)
            report = await self._validate(
                "Citation re-check",
                repaired,
                tracer,
                parent,
                {"sources": [s.url for s in repaired]},
            )

        sources = report.valid[: self.max_sources]
        basis = CitationBasis.VALID if sources else CitationBasis.NONE
        unverified = False
        if not sources:
            if report.invalid:
                fallback, basis = report.invalid, CitationBasis.INVALID
            elif repaired:
                fallback, basis = repaired, CitationBasis.REPAIRED
            else:
                fallback, basis = raw, CitationBasis.RAW
            sources = list(fallback[: self.max_sources])
            if sources:
                unverified = True
            else:
                basis = CitationBasis.NONE

        outcome = CitationOutcome(
            sources=sources,
            markdown=format_sources_markdown(sources, unverified=unverified),
            valid_count=len(report.valid),
            invalid_count=len(report.invalid),
            origin=origin,
            basis=basis,
            unverified=unverified,
            generated_count=len(generated),
            raw_count=len(raw),
            repaired_count=len(repaired),
            repaired=repair_ran,
            valid_urls=[s.url for s in report.valid],
            invalid_urls=[s.url for s in report.invalid],
        )
        logger.info(
            f"{__name__}:run - END origin={origin} basis={basis.value} "
            f"used={len(sources)} repaired={repair_ran}"
        )
        return outcome

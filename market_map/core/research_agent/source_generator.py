"""
Source generator.

Asks a grounded generation call for citation candidates, either tied to a
finished result (primary path) or to the category alone (repair path).
Failures never propagate: they yield an empty list.

Dependencies: market_map.core.research_agent
System role: Citation candidate supply for the citation pipeline
"""

import logging

from market_map.core.research_agent.generation_client import GenerationClient
from market_map.core.research_agent.parsing import parse_sources_payload
from market_map.core.research_agent.prompts import REPAIR_SOURCES_PROMPT, RESULT_SOURCES_PROMPT
from market_map.core.research_agent.schemas import GenerationMode, Source
from market_map.observability.trace_recorder import RootSpanRef, TraceRecorder

logger = logging.getLogger(__name__)


class SourceGenerator:
    """Grounded source generation for a research category."""

    def __init__(self, generation: GenerationClient, count: int = 4) -> None:
        """
        Initialize generator.

        Args:
            generation: Generation client (grounding-capable)
            count: Sources requested per call
        """
        self.generation = generation
        self.count = count

    async def generate_for_result(
        self,
        category: str,
        result_text: str,
        tracer: TraceRecorder | None = None,
        parent: RootSpanRef | None = None,
    ) -> list[Source]:
        """Sources backing the companies named in ``result_text``."""
        prompt = RESULT_SOURCES_PROMPT.format(count=self.count, category=category, result=result_text)
        return await self._generate("Generate sources", prompt, category, tracer, parent)

    async def repair(
        self,
        category: str,
        tracer: TraceRecorder | None = None,
        parent: RootSpanRef | None = None,
    ) -> list[Source]:
        """Fresh batch of sources for the category, used once per turn."""
        prompt = REPAIR_SOURCES_PROMPT.format(count=self.count, category=category)
        return await self._generate("Repair sources", prompt, category, tracer, parent)

    async def _generate(
        self,
        name: str,
        prompt: str,
        category: str,
        tracer: TraceRecorder | None,
        parent: RootSpanRef | None,
    ) -> list[Source]:
        try:
            if tracer is None:
                result = await self.generation.generate(GenerationMode.SOURCES, prompt, use_grounding=True)
                return parse_sources_payload(result.text)

            async with tracer.span(name, parent=parent, input={"category": category}) as span:
                result = await self.generation.generate(
                    GenerationMode.SOURCES,
                    prompt,
                    use_grounding=True,
                    tracer=tracer,
                    parent=span.ref,
                )
                sources = parse_sources_payload(result.text)
                span.log(output={"count": len(sources), "urls": [s.url for s in sources]})
                return sources
        except Exception as e:
            logger.warning(
                f"{__name__}:{name} - Source generation failed, using none: {type(e).__name__}: {e}"
            )
            return []

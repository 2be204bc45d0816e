"""
Plan-change classifier.

Decides whether a message sent while a plan awaits clarification merely
clarifies scope (keep the plan and advance to results) or changes it
(regenerate the plan). Ambiguous output favors keep.

Dependencies: market_map.core.research_agent
System role: Mode decision for turns with a pending plan
"""

import logging

from market_map.core.research_agent.generation_client import GenerationClient
from market_map.core.research_agent.parsing import parse_verdict
from market_map.core.research_agent.prompts import classifier_content
from market_map.core.research_agent.schemas import GenerationMode, PlanVerdict
from market_map.observability.trace_recorder import RootSpanRef, TraceRecorder

logger = logging.getLogger(__name__)


class TurnClassifier:
    """Single-shot keep/replan classifier on top of the generation client."""

    def __init__(self, generation: GenerationClient) -> None:
        self.generation = generation

    async def assess(
        self,
        plan_text: str | None,
        message: str,
        tracer: TraceRecorder | None = None,
        parent: RootSpanRef | None = None,
    ) -> PlanVerdict:
        """
        Classify a message against the pending plan.

        Args:
            plan_text: Pending plan
            message: New user message
            tracer: Trace recorder for the "Assess plan change" span
            parent: Parent span ids

        Returns:
            PlanVerdict: keep unless the model explicitly answered replan

        Raises:
            Exception: Generation failures after model fallback is exhausted
        """
        content = classifier_content(plan_text, message)
        if tracer is None:
            result = await self.generation.generate(GenerationMode.CLASSIFY, content)
            verdict = parse_verdict(result.text)
        else:
            async with tracer.span(
                "Assess plan change",
                parent=parent,
                input={"plan": plan_text, "message": message},
            ) as span:
                result = await self.generation.generate(
                    GenerationMode.CLASSIFY,
                    content,
                    tracer=tracer,
                    parent=span.ref,
                )
                verdict = parse_verdict(result.text)
                span.log(output=result.text, metadata={"action": verdict.action, "model": result.model})

        logger.info(f"{__name__}:assess - action={verdict.action} reason={verdict.reason}")
        return verdict

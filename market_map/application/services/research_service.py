"""
Research service for the plan -> clarify -> result conversation.

Owns the per-turn state machine: loads or opens the user's active session,
decides whether the turn produces a plan, a ranked result or an apology,
emits progress and content events, then persists history, trace and
session state in one update.

Dependencies: sqlalchemy, market_map.core.research_agent, market_map.observability
System role: Turn orchestration layer
"""

import asyncio
import logging
import time
import uuid
from collections.abc import AsyncGenerator
from typing import Any

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from market_map.application.events import EventChannel
from market_map.application.services.turn_outcome import (
    ApologyOutcome,
    GenerationMeta,
    PlanOutcome,
    ResultOutcome,
    TurnOutcome,
)
from market_map.boundary.db.base import utc_now
from market_map.boundary.db.CRUD.research_session_crud import research_session_crud
from market_map.boundary.db.models.research_session_model import (
    PlanStatus,
    ResearchSessionModel,
    SessionPhase,
    SessionStatus,
)
from market_map.boundary.db.models.user_model import UserModel
from market_map.configs.research import ResearchSettings
from market_map.core.client_errors import to_client_error
from market_map.core.research_agent.citation_pipeline import CitationPipeline
from market_map.core.research_agent.generation_client import GenerationClient
from market_map.core.research_agent.parsing import (
    is_refusal,
    parse_activity,
    parse_plan_block,
    strip_sources_section,
)
from market_map.core.research_agent.prompts import FALLBACK_APOLOGY
from market_map.core.research_agent.schemas import (
    GenerationMode,
    GenerationResult,
    ParseFailure,
)
from market_map.core.research_agent.turn_classifier import TurnClassifier
from market_map.core.usernames import infer_category
from market_map.models.streaming import StreamEvent
from market_map.models.trace import (
    CitationCounts,
    SessionTrace,
    TraceCorrelation,
    TraceSource,
    TurnEntry,
)
from market_map.observability.trace_recorder import RootSpanRef, TraceRecorder

logger = logging.getLogger(__name__)

# Turn tasks outlive a disconnected consumer; hold references until done.
_inflight_turns: set[asyncio.Task] = set()


class ResearchService:
    """
    Research conversation service.

    Each turn opens its own database session from the factory so that the
    turn can finish and persist after the HTTP client has gone away.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        generation: GenerationClient,
        classifier: TurnClassifier,
        citations: CitationPipeline,
        tracer: TraceRecorder,
        settings: ResearchSettings,
    ) -> None:
        """
        Initialize research service.

        Args:
            session_factory: Factory for per-turn AsyncSessions
            generation: Generation client with model fallback
            classifier: Keep/replan classifier for pending plans
            citations: Citation pipeline for result turns
            tracer: Trace recorder
            settings: Session lifecycle settings
        """
        self.session_factory = session_factory
        self.generation = generation
        self.classifier = classifier
        self.citations = citations
        self.tracer = tracer
        self.settings = settings

    async def stream_turn(
        self,
        user: UserModel,
        message: str,
    ) -> AsyncGenerator[StreamEvent, None]:
        """
        Stream the events of one chat turn.

        The turn runs as a background task feeding an EventChannel; closing
        this generator early does not cancel the task.

        Args:
            user: Signed-in user
            message: Raw chat message

        Yields:
            StreamEvent: activity*, token, then final or error
        """
        channel = EventChannel()
        task = asyncio.create_task(self._run_turn(user, message, channel))
        _inflight_turns.add(task)
        task.add_done_callback(_inflight_turns.discard)

        async for event in channel:
            yield event
        await task

    async def _run_turn(self, user: UserModel, message: str, channel: EventChannel) -> None:
        try:
            await self.process_turn(user, message, channel)
        except Exception as e:
            logger.exception(
                f"{__name__}:_run_turn - Turn failed: {type(e).__name__}: {e}",
                extra={"username": user.username},
            )
            if not channel.terminal_sent:
                client_error = to_client_error(e)
                channel.emit(StreamEvent.error(client_error.message, client_error.detail))
        finally:
            channel.close()

    async def process_turn(
        self,
        user: UserModel,
        message: str,
        channel: EventChannel,
    ) -> TurnOutcome:
        """
        Process one chat turn.

        Flow:
        1. Load the active session or open a new one
        2. Short-circuit empty input to the fixed apology
        3. Classify against a pending plan, then run plan or result mode
        4. Emit the content and terminal events
        5. Persist history, trace and session state

        Args:
            user: Signed-in user
            message: Raw chat message
            channel: Event channel the transport consumes

        Returns:
            TurnOutcome: The decided outcome

        Raises:
            Exception: Generation failures once model fallback is exhausted
        """
        started = time.monotonic()
        logger.info(f"{__name__}:process_turn - START username={user.username}")

        async with self.session_factory() as db:
            session = await self._open_session(db, user)
            turn_number = session.turn_count + 1
            history = list(session.chat_history or [])

            if not (message or "").strip():
                logger.info(f"{__name__}:process_turn - Empty message, replying with apology")
                outcome: TurnOutcome = ApologyOutcome(
                    text=FALLBACK_APOLOGY,
                    meta=GenerationMeta(model=self.generation.primary_model),
                    reset_plan=False,
                    recorded_kind="plan",
                )
                self._emit(channel, outcome)
                await self._persist(db, session, user, turn_number, message, history, outcome, started)
                return outcome

            root = await self._ensure_root(db, session, user)
            async with self.tracer.span(
                f"Turn {turn_number}",
                parent=root,
                input={
                    "message": message,
                    "chat_history": [*history, {"role": "user", "content": message}],
                },
            ) as turn_span:
                outcome = await self._decide(session, message, history, channel, turn_span.ref)
                turn_span.log(
                    output=outcome.response,
                    metadata={
                        "username": user.username,
                        "turn_number": turn_number,
                        "mode": outcome.kind,
                        "latency_ms": _elapsed_ms(started),
                        "llm_latency_ms": outcome.meta.llm_latency_ms,
                        "model": outcome.meta.model,
                        "token_counts": outcome.meta.usage,
                        **outcome.span_metadata(),
                    },
                )

            self._emit(channel, outcome)
            await self._persist(db, session, user, turn_number, message, history, outcome, started, root)

        logger.info(
            f"{__name__}:process_turn - END kind={outcome.kind} turn={turn_number}",
            extra={"latency_ms": _elapsed_ms(started)},
        )
        return outcome

    async def _open_session(self, db: AsyncSession, user: UserModel) -> ResearchSessionModel:
        """Active session of the user, or a fresh one with its root span."""
        session = await research_session_crud.get_active_for_user(db, user.id)
        if session is not None:
            return session

        session_id = uuid.uuid4()
        created_at = utc_now()
        root = self.tracer.start_root(f"Session {session_id}", str(session_id), user.username)
        trace = SessionTrace(
            session_id=str(session_id),
            username=user.username,
            created_at=created_at.isoformat(),
            observability=_correlation(root),
        )
        session = await research_session_crud.create(
            db,
            id=session_id,
            user_id=user.id,
            username=user.username,
            status=SessionStatus.ACTIVE,
            phase=SessionPhase.PLAN,
            turn_count=0,
            chat_history=[],
            trace=trace.model_dump(mode="json"),
            root_trace_id=root.trace_id if root else None,
            root_span_id=root.span_id if root else None,
            root_span_token=root.token if root else None,
            created_at=created_at,
            updated_at=created_at,
        )
        await db.commit()
        logger.info(f"{__name__}:_open_session - Created session_id={session_id}")
        return session

    async def _ensure_root(
        self,
        db: AsyncSession,
        session: ResearchSessionModel,
        user: UserModel,
    ) -> RootSpanRef | None:
        """Root span ids of the session, created once if tracing came up late."""
        existing = RootSpanRef.from_token(session.root_span_token)
        if existing is not None or self.tracer.disabled:
            return existing

        root = self.tracer.start_root(f"Session {session.id}", str(session.id), user.username)
        if root is None:
            return None

        trace = self._load_trace(session)
        trace = trace.model_copy(update={"observability": _correlation(root)})
        await research_session_crud.update_by_id(
            db,
            session.id,
            root_trace_id=root.trace_id,
            root_span_id=root.span_id,
            root_span_token=root.token,
            trace=trace.model_dump(mode="json"),
        )
        await db.commit()
        return root

    async def _decide(
        self,
        session: ResearchSessionModel,
        message: str,
        history: list[dict[str, Any]],
        channel: EventChannel,
        parent: RootSpanRef | None,
    ) -> TurnOutcome:
        mode = GenerationMode.RESULT if session.phase == SessionPhase.RESULT else GenerationMode.PLAN
        auto_advanced = False
        verdict = None

        if mode is GenerationMode.PLAN and session.has_pending_plan:
            verdict = await self.classifier.assess(session.plan_text, message, self.tracer, parent)
            if verdict.action == "keep":
                mode = GenerationMode.RESULT
                auto_advanced = True

        logger.info(
            f"{__name__}:_decide - mode={mode.value} auto_advanced={auto_advanced}",
            extra={"session_id": str(session.id)},
        )
        if mode is GenerationMode.RESULT:
            outcome = await self._result_turn(message, history, channel, parent, auto_advanced)
        else:
            outcome = await self._plan_turn(message, history, channel, parent)
        outcome.assessment = verdict
        return outcome

    async def _generate(
        self,
        mode: GenerationMode,
        message: str,
        history: list[dict[str, Any]],
        channel: EventChannel,
        parent: RootSpanRef | None,
    ) -> tuple[GenerationResult, int]:
        """Main generation call with fallback announcements; returns (result, latency_ms)."""
        label = mode.value
        channel.activity(label, [f"Calling {self.generation.primary_model}"])

        def announce_retry(failed_model: str, error: BaseException) -> None:
            next_model = self.generation.next_model(failed_model)
            if next_model:
                channel.activity(label, [f"Retrying {next_model}"])

        started = time.monotonic()
        result = await self.generation.generate(
            mode,
            message,
            history,
            use_grounding=mode is GenerationMode.RESULT,
            on_fallback=announce_retry,
            tracer=self.tracer,
            parent=parent,
        )
        return result, _elapsed_ms(started)

    async def _plan_turn(
        self,
        message: str,
        history: list[dict[str, Any]],
        channel: EventChannel,
        parent: RootSpanRef | None,
    ) -> TurnOutcome:
        result, llm_latency_ms = await self._generate(GenerationMode.PLAN, message, history, channel, parent)
        meta = GenerationMeta.from_result(result, llm_latency_ms)

        parsed = parse_plan_block(result.text)
        if isinstance(parsed, ParseFailure):
            logger.warning(
                f"{__name__}:_plan_turn - Unparseable plan reply: {parsed.reason}",
                extra={"model": result.model},
            )
            return ApologyOutcome(text=FALLBACK_APOLOGY, meta=meta)
        if parsed.apology:
            return ApologyOutcome(text=parsed.apology, meta=meta)

        channel.activity("plan", [f"{step} ({result.model})" for step in parsed.activity])

        if not parsed.plan or not parsed.first_question:
            logger.warning(f"{__name__}:_plan_turn - Plan or question missing, falling back to apology")
            return ApologyOutcome(text=FALLBACK_APOLOGY, meta=meta)

        return PlanOutcome(
            plan_text=parsed.plan,
            questions=parsed.clarifying_questions,
            ready_for_results=parsed.ready_for_results,
            meta=meta,
        )

    async def _result_turn(
        self,
        message: str,
        history: list[dict[str, Any]],
        channel: EventChannel,
        parent: RootSpanRef | None,
        auto_advanced: bool,
    ) -> TurnOutcome:
        result, llm_latency_ms = await self._generate(GenerationMode.RESULT, message, history, channel, parent)
        meta = GenerationMeta.from_result(result, llm_latency_ms)

        steps, body = parse_activity(result.text)
        channel.activity("result", [f"{step} ({result.model})" for step in steps])

        cleaned = strip_sources_section(body)
        if is_refusal(cleaned):
            logger.info(f"{__name__}:_result_turn - Model refused the category")
            return ApologyOutcome(text=cleaned, meta=meta, reset_plan=False)

        category = infer_category(message, history)
        citations = await self.citations.run(
            cleaned,
            category,
            grounding=result.grounding,
            tracer=self.tracer,
            parent=parent,
        )
        return ResultOutcome(body=cleaned, citations=citations, meta=meta, auto_advanced=auto_advanced)

    def _emit(self, channel: EventChannel, outcome: TurnOutcome) -> None:
        """Content event followed by the terminal event."""
        if isinstance(outcome, ResultOutcome):
            channel.emit(StreamEvent.token(outcome.body))
            channel.emit(StreamEvent.final(outcome.citations.markdown))
        else:
            channel.emit(StreamEvent.token(outcome.response))
            channel.emit(StreamEvent.final(""))

    def _load_trace(self, session: ResearchSessionModel) -> SessionTrace:
        if session.trace:
            try:
                return SessionTrace.model_validate(session.trace)
            except PydanticValidationError as e:
                logger.warning(f"{__name__}:_load_trace - Stored trace unreadable, starting over: {e}")
        return SessionTrace(
            session_id=str(session.id),
            username=session.username,
            created_at=session.created_at.isoformat(),
            observability=_correlation(RootSpanRef.from_token(session.root_span_token)),
        )

    async def _persist(
        self,
        db: AsyncSession,
        session: ResearchSessionModel,
        user: UserModel,
        turn_number: int,
        message: str,
        history: list[dict[str, Any]],
        outcome: TurnOutcome,
        started: float,
        root: RootSpanRef | None = None,
    ) -> None:
        """
        Write the turn to the session row; failures are logged, never raised.

        The response has already been streamed when this runs.
        """
        next_history = [
            *history,
            {"role": "user", "content": message},
            {"role": "assistant", "content": outcome.response},
        ]
        entry = _turn_entry(turn_number, message, outcome, _elapsed_ms(started))
        trace = self._load_trace(session).with_turn(entry)

        values: dict[str, Any] = {
            "chat_history": next_history,
            "trace": trace.model_dump(mode="json"),
            "turn_count": turn_number,
            "updated_at": utc_now(),
        }
        if isinstance(outcome, ResultOutcome):
            values.update(
                status=SessionStatus.COMPLETE,
                phase=SessionPhase.RESULT,
                plan_status=PlanStatus.EXECUTED,
            )
        elif isinstance(outcome, PlanOutcome):
            values.update(
                phase=SessionPhase.PLAN,
                plan_text=outcome.plan_text,
                plan_questions=outcome.questions,
                plan_status=PlanStatus.AWAITING_CLARIFICATION,
            )
        elif outcome.reset_plan:
            values.update(
                phase=SessionPhase.PLAN,
                plan_text=None,
                plan_questions=None,
                plan_status=None,
            )

        try:
            await research_session_crud.update_by_id(db, session.id, **values)
            if isinstance(outcome, ResultOutcome):
                pruned = await research_session_crud.prune_for_user(
                    db, user.id, keep=self.settings.session_retention
                )
                logger.info(f"{__name__}:_persist - Pruned {pruned} old sessions for {user.username}")
            await db.commit()
        except Exception as e:
            await db.rollback()
            logger.error(
                f"{__name__}:_persist - Failed to persist turn: {type(e).__name__}: {e}",
                extra={"session_id": str(session.id), "turn_number": turn_number},
            )
            return

        if isinstance(outcome, ResultOutcome):
            first_user = next((item["content"] for item in next_history if item["role"] == "user"), None)
            self.tracer.update_root(
                root,
                input={"first_msg": first_user},
                output={"final_response": outcome.response, "final_mode": outcome.kind},
                metadata={
                    "username": user.username,
                    "session_id": str(session.id),
                    "total_turns": turn_number,
                    "status": SessionStatus.COMPLETE.value,
                },
            )
        logger.info(f"{__name__}:_persist - Saved turn {turn_number} session_id={session.id}")


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


def _correlation(root: RootSpanRef | None) -> TraceCorrelation:
    if root is None:
        return TraceCorrelation()
    return TraceCorrelation(
        root_span=root.token,
        root_trace_id=root.trace_id,
        root_span_id=root.span_id,
    )


def _turn_entry(turn_number: int, message: str, outcome: TurnOutcome, latency_ms: int) -> TurnEntry:
    """Trace entry for a decided turn."""
    meta = outcome.meta
    entry = TurnEntry(
        turn=turn_number,
        user=message,
        kind=outcome.kind,
        model=meta.model,
        model_attempts=meta.attempts,
        latency_ms=latency_ms,
        llm_latency_ms=meta.llm_latency_ms,
        tokens=meta.usage,
    )
    if isinstance(outcome, PlanOutcome):
        entry.plan = outcome.plan_text
        entry.question = outcome.question
    elif isinstance(outcome, ResultOutcome):
        entry.response = outcome.response
        entry.sources = [TraceSource(**s.as_reference()) for s in outcome.citations.sources]
        entry.citations = CitationCounts(
            valid=outcome.citations.valid_count,
            invalid=outcome.citations.invalid_count,
        )
    else:
        entry.kind = outcome.recorded_kind
        entry.response = outcome.response
    return entry

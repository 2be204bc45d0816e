"""
Langfuse trace recorder.

Records one root span per research session and a child span per turn and
per external call (generation, classification, citation checks). Every
Langfuse call is guarded: failures are logged, fed to the failure-window
tracker and swallowed, and once the tracker trips the recorder turns into
a no-op for the rest of the process.

Dependencies: langfuse, market_map.observability.failure_window
System role: Session and turn tracing against the external observability backend
"""

import logging
import time
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

from langfuse import Langfuse

from market_map.configs.observability import ObservabilitySettings
from market_map.observability.failure_window import FailureWindowTracker

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RootSpanRef:
    """Correlation ids of a span, persisted on the session row."""

    trace_id: str
    span_id: str

    @property
    def token(self) -> str:
        """Exportable correlation token."""
        return f"{self.trace_id}:{self.span_id}"

    @classmethod
    def from_token(cls, token: str | None) -> "RootSpanRef | None":
        if not token or ":" not in token:
            return None
        trace_id, span_id = token.split(":", 1)
        if not trace_id or not span_id:
            return None
        return cls(trace_id=trace_id, span_id=span_id)


class TraceSpan:
    """Handle for an open span. Logging on a detached handle is a no-op."""

    def __init__(
        self,
        recorder: "TraceRecorder",
        span: Any | None,
        parent: RootSpanRef | None,
    ) -> None:
        self._recorder = recorder
        self._span = span
        self._parent = parent

    @property
    def ref(self) -> RootSpanRef | None:
        """Ids children should attach to; falls back to the parent when detached."""
        if self._span is None:
            return self._parent
        return RootSpanRef(trace_id=self._span.trace_id, span_id=self._span.id)

    def log(
        self,
        input: Any = None,
        output: Any = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Attach input/output/metadata to the span."""
        if self._span is None or self._recorder.disabled:
            return
        fields = {
            key: value
            for key, value in (("input", input), ("output", output), ("metadata", metadata))
            if value is not None
        }
        self._recorder._guard("span.update", lambda: self._span.update(**fields))


class TraceRecorder:
    """
    Guarded Langfuse integration.

    Attributes:
        tracker: Failure-window tracker deciding when tracing shuts off
    """

    def __init__(
        self,
        client: Langfuse | None,
        tracker: FailureWindowTracker,
        clock: Callable[[], float] | None = None,
    ) -> None:
        """
        Initialize recorder.

        Args:
            client: Langfuse client, or None to record nothing
            tracker: Failure-window tracker shared for the process lifetime
            clock: Millisecond clock, injectable for tests
        """
        self._client = client
        self.tracker = tracker
        self._clock = clock or (lambda: time.time() * 1000)

    @classmethod
    def from_settings(
        cls,
        settings: ObservabilitySettings,
        tracker: FailureWindowTracker,
    ) -> "TraceRecorder":
        """
        Build a recorder from settings; inactive when tracing is off or keys are missing.

        Args:
            settings: Observability settings
            tracker: Failure-window tracker

        Returns:
            TraceRecorder: Configured recorder
        """
        if not settings.enable_tracing:
            logger.info(f"{__name__}:from_settings - Langfuse tracing disabled")
            return cls(client=None, tracker=tracker)
        if not settings.has_credentials:
            logger.warning(f"{__name__}:from_settings - Langfuse keys not configured, tracing inactive")
            return cls(client=None, tracker=tracker)

        client = Langfuse(
            public_key=settings.public_key,
            secret_key=settings.secret_key,
            host=settings.host,
        )
        logger.info(f"{__name__}:from_settings - Langfuse tracing enabled host={settings.host}")
        return cls(client=client, tracker=tracker)

    @property
    def disabled(self) -> bool:
        return self._client is None or self.tracker.disabled

    def _guard(self, operation: str, func: Callable[[], Any]) -> Any:
        """Run a Langfuse call; failures are counted and swallowed."""
        if self.disabled:
            return None
        try:
            return func()
        except Exception as e:
            logger.warning(
                f"{__name__}:{operation} - Langfuse call failed: {type(e).__name__}: {e}"
            )
            self.tracker.record_failure(self._clock())
            return None

    def _start(self, name: str, parent: RootSpanRef | None, **fields) -> Any | None:
        kwargs: dict[str, Any] = {"name": name}
        kwargs.update({key: value for key, value in fields.items() if value is not None})
        if parent is not None:
            kwargs["trace_context"] = {
                "trace_id": parent.trace_id,
                "parent_span_id": parent.span_id,
            }
        return self._guard("start_span", lambda: self._client.start_span(**kwargs))

    def start_root(self, name: str, session_id: str, username: str) -> RootSpanRef | None:
        """
        Open and close the root span for a research session.

        Args:
            name: Span name
            session_id: Research session id (Langfuse session)
            username: Owning username (Langfuse user)

        Returns:
            RootSpanRef | None: Correlation ids, None when tracing is inactive
        """
        span = self._start(name, parent=None)
        if span is None:
            return None
        self._guard(
            "update_trace",
            lambda: span.update_trace(name=name, session_id=session_id, user_id=username),
        )
        ref = RootSpanRef(trace_id=span.trace_id, span_id=span.id)
        self._guard("span.end", span.end)
        return ref

    @asynccontextmanager
    async def span(
        self,
        name: str,
        parent: RootSpanRef | None,
        input: Any = None,
    ) -> AsyncIterator[TraceSpan]:
        """
        Run a block inside a child span of ``parent``.

        Exceptions raised by the block propagate after the span is marked
        as errored and ended.

        Args:
            name: Span name
            parent: Parent correlation ids (root or enclosing span)
            input: Span input payload

        Yields:
            TraceSpan: Handle for logging output and metadata
        """
        raw = self._start(name, parent=parent, input=input)
        handle = TraceSpan(self, raw, parent)
        try:
            yield handle
        except Exception as e:
            if raw is not None:
                self._guard(
                    "span.update",
                    lambda: raw.update(level="ERROR", status_message=f"{type(e).__name__}: {e}"),
                )
            raise
        finally:
            if raw is not None:
                self._guard("span.end", raw.end)

    def update_root(
        self,
        root: RootSpanRef | None,
        input: Any = None,
        output: Any = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """
        Annotate the session trace once the session completes.

        Args:
            root: Root correlation ids from the session row
            input: Trace-level input (first user message)
            output: Trace-level output (final response)
            metadata: Trace-level metadata
        """
        if root is None or self.disabled:
            return
        span = self._start("Session complete", parent=root)
        if span is None:
            return
        self._guard(
            "update_trace",
            lambda: span.update_trace(input=input, output=output, metadata=metadata),
        )
        self._guard("span.end", span.end)

    def flush(self) -> None:
        """Flush buffered events to Langfuse."""
        if self._client is None:
            return
        self._guard("flush", self._client.flush)

"""
Test suite for the Langfuse trace recorder.

The Langfuse client is a MagicMock; tests check span wiring, guarded
failure handling and the self-disabling behavior.

System role: Verification of session and turn tracing
"""

from unittest.mock import MagicMock

import pytest

from market_map.configs.observability import ObservabilitySettings
from market_map.observability.failure_window import FailureWindowTracker
from market_map.observability.trace_recorder import RootSpanRef, TraceRecorder


def make_span(trace_id: str = "trace-1", span_id: str = "span-1") -> MagicMock:
    span = MagicMock()
    span.trace_id = trace_id
    span.id = span_id
    return span


@pytest.fixture
def langfuse_client() -> MagicMock:
    client = MagicMock()
    client.start_span.return_value = make_span()
    return client


@pytest.fixture
def recorder(langfuse_client: MagicMock) -> TraceRecorder:
    clock = iter(range(0, 10_000_000, 1_000))
    return TraceRecorder(
        client=langfuse_client,
        tracker=FailureWindowTracker(window_ms=60_000, threshold=3),
        clock=lambda: next(clock),
    )


class TestRootSpanRef:
    """Test suite for RootSpanRef tokens."""

    def test_token_round_trip(self) -> None:
        ref = RootSpanRef(trace_id="t", span_id="s")
        assert ref.token == "t:s"
        assert RootSpanRef.from_token(ref.token) == ref

    @pytest.mark.parametrize("token", [None, "", "no-separator", ":s", "t:"])
    def test_from_token_rejects_partial(self, token: str | None) -> None:
        assert RootSpanRef.from_token(token) is None


class TestTraceRecorderSpans:
    """Test suite for root and child spans."""

    def test_start_root_should_tag_session_and_end(
        self, recorder: TraceRecorder, langfuse_client: MagicMock
    ) -> None:
        # Act
        ref = recorder.start_root("Session abc", "abc", "atlas123")

        # Assert
        assert ref == RootSpanRef(trace_id="trace-1", span_id="span-1")
        span = langfuse_client.start_span.return_value
        span.update_trace.assert_called_once_with(name="Session abc", session_id="abc", user_id="atlas123")
        span.end.assert_called_once()

    @pytest.mark.asyncio
    async def test_span_should_attach_to_parent_and_end(
        self, recorder: TraceRecorder, langfuse_client: MagicMock
    ) -> None:
        # Arrange
        parent = RootSpanRef(trace_id="trace-1", span_id="root")

        # Act
        async with recorder.span("Turn 1", parent=parent, input={"message": "CRM"}) as span:
            span.log(output="plan", metadata={"mode": "plan"})

        # Assert
        langfuse_client.start_span.assert_called_once_with(
            name="Turn 1",
            input={"message": "CRM"},
            trace_context={"trace_id": "trace-1", "parent_span_id": "root"},
        )
        raw = langfuse_client.start_span.return_value
        raw.update.assert_called_once_with(output="plan", metadata={"mode": "plan"})
        raw.end.assert_called_once()
        assert span.ref == RootSpanRef(trace_id="trace-1", span_id="span-1")

    @pytest.mark.asyncio
    async def test_span_should_mark_error_and_reraise(
        self, recorder: TraceRecorder, langfuse_client: MagicMock
    ) -> None:
        with pytest.raises(RuntimeError):
            async with recorder.span("LLM call", parent=None):
                raise RuntimeError("boom")

        raw = langfuse_client.start_span.return_value
        raw.update.assert_called_once_with(level="ERROR", status_message="RuntimeError: boom")
        raw.end.assert_called_once()

    def test_update_root_should_open_completion_span(
        self, recorder: TraceRecorder, langfuse_client: MagicMock
    ) -> None:
        root = RootSpanRef(trace_id="trace-1", span_id="root")

        recorder.update_root(root, input={"first_msg": "CRM"}, output={"final_response": "x"})

        assert langfuse_client.start_span.call_args.kwargs["name"] == "Session complete"
        langfuse_client.start_span.return_value.update_trace.assert_called_once_with(
            input={"first_msg": "CRM"}, output={"final_response": "x"}, metadata=None
        )


class TestTraceRecorderFailures:
    """Test suite for guarded calls and self-disabling."""

    @pytest.mark.asyncio
    async def test_failures_should_be_swallowed(
        self, recorder: TraceRecorder, langfuse_client: MagicMock
    ) -> None:
        # Arrange
        langfuse_client.start_span.side_effect = RuntimeError("langfuse down")
        parent = RootSpanRef(trace_id="t", span_id="s")

        # Act
        async with recorder.span("Turn 1", parent=parent) as span:
            span.log(output="ignored")

        # Assert
        assert span.ref == parent
        assert recorder.tracker.failure_count == 1

    def test_threshold_failures_should_disable_recorder(
        self, recorder: TraceRecorder, langfuse_client: MagicMock
    ) -> None:
        # Arrange
        langfuse_client.start_span.side_effect = RuntimeError("langfuse down")

        # Act
        for _ in range(3):
            assert recorder.start_root("Session", "id", "user") is None
        recorder.start_root("Session", "id", "user")

        # Assert
        assert recorder.disabled
        assert langfuse_client.start_span.call_count == 3

    def test_without_client_should_record_nothing(self) -> None:
        recorder = TraceRecorder(client=None, tracker=FailureWindowTracker())

        assert recorder.disabled
        assert recorder.start_root("Session", "id", "user") is None
        recorder.update_root(RootSpanRef("t", "s"), output="x")
        recorder.flush()


class TestTraceRecorderFromSettings:
    """Test suite for TraceRecorder.from_settings()."""

    def test_disabled_tracing_should_not_create_client(self) -> None:
        settings = ObservabilitySettings(enable_tracing=False, public_key="pk", secret_key="sk")

        recorder = TraceRecorder.from_settings(settings, FailureWindowTracker())

        assert recorder.disabled

    def test_missing_keys_should_not_create_client(self) -> None:
        settings = ObservabilitySettings(enable_tracing=True, public_key=None, secret_key=None)

        recorder = TraceRecorder.from_settings(settings, FailureWindowTracker())

        assert recorder.disabled

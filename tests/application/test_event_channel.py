"""
Test suite for EventChannel.

System role: Verification of per-turn event ordering rules
"""

import pytest

from market_map.application.events import EventChannel
from market_map.models.streaming import StreamEvent, StreamEventType


async def drain(channel: EventChannel) -> list[StreamEvent]:
    return [event async for event in channel]


class TestEventChannel:
    """Test suite for EventChannel."""

    @pytest.mark.asyncio
    async def test_should_yield_events_in_emit_order(self) -> None:
        # Arrange
        channel = EventChannel()

        # Act
        channel.activity("plan", ["Calling gemini-2.5-flash"])
        channel.emit(StreamEvent.token("### Plan"))
        channel.emit(StreamEvent.final(""))
        channel.close()
        events = await drain(channel)

        # Assert
        assert [e.event for e in events] == [
            StreamEventType.ACTIVITY,
            StreamEventType.TOKEN,
            StreamEventType.FINAL,
        ]
        assert events[0].data == {"mode": "plan", "steps": ["Calling gemini-2.5-flash"]}

    def test_empty_activity_is_skipped(self) -> None:
        channel = EventChannel()

        channel.activity("result", [])

        assert channel._queue.empty()

    def test_emit_after_terminal_should_raise(self) -> None:
        # Arrange
        channel = EventChannel()
        channel.emit(StreamEvent.error("Something went wrong."))

        # Act & Assert
        assert channel.terminal_sent
        with pytest.raises(RuntimeError):
            channel.emit(StreamEvent.token("late"))

    def test_emit_after_close_should_raise(self) -> None:
        channel = EventChannel()
        channel.close()

        with pytest.raises(RuntimeError):
            channel.emit(StreamEvent.token("late"))

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self) -> None:
        channel = EventChannel()

        channel.close()
        channel.close()

        assert channel.closed
        assert await drain(channel) == []

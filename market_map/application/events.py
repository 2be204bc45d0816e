"""
Event channel for one chat turn.

Ordered, one-way queue of StreamEvents between the turn state machine and
the transport. The producer emits and closes; the consumer iterates.

Dependencies: asyncio, market_map.models.streaming
System role: Transport-agnostic progress and content delivery
"""

import asyncio
from collections.abc import AsyncIterator

from market_map.models.streaming import StreamEvent


class EventChannel:
    """Single-producer, single-consumer queue of stream events."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[StreamEvent | None] = asyncio.Queue()
        self._closed = False
        self._terminal_sent = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def terminal_sent(self) -> bool:
        """Whether a final or error event was emitted."""
        return self._terminal_sent

    def emit(self, event: StreamEvent) -> None:
        """
        Enqueue an event.

        Raises:
            RuntimeError: If the channel is closed or a terminal event was already sent
        """
        if self._closed:
            raise RuntimeError("Event channel is closed")
        if self._terminal_sent:
            raise RuntimeError("Terminal event already sent for this turn")
        if event.event.is_terminal:
            self._terminal_sent = True
        self._queue.put_nowait(event)

    def activity(self, mode: str, steps: list[str]) -> None:
        """Emit an activity event; empty step lists are skipped."""
        if steps:
            self.emit(StreamEvent.activity(mode, steps))

    def close(self) -> None:
        """Mark the end of the stream. Idempotent."""
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(None)

    async def __aiter__(self) -> AsyncIterator[StreamEvent]:
        while True:
            event = await self._queue.get()
            if event is None:
                return
            yield event

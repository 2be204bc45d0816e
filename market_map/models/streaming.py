"""
Streaming event schemas for SSE chat.

Defines event types and payloads for one chat turn. Within a turn the
order is fixed: zero or more ``activity`` events, one ``token`` content
event, then one terminal ``final`` or ``error`` event.

Dependencies: pydantic
System role: Streaming protocol schemas
"""

import json
from enum import Enum
from typing import Any

from pydantic import BaseModel


class StreamEventType(str, Enum):
    """Server-to-client event types for streaming chat."""

    ACTIVITY = "activity"
    TOKEN = "token"
    FINAL = "final"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (StreamEventType.FINAL, StreamEventType.ERROR)


class StreamEvent(BaseModel):
    """
    Base streaming event model.

    Attributes:
        event: Event type identifier
        data: Event-specific payload
    """

    event: StreamEventType
    data: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {"event": self.event.value, "data": self.data}

    def to_sse(self) -> str:
        """Format as an SSE frame: ``event: {type}\\ndata: {json}\\n\\n``."""
        return f"event: {self.event.value}\ndata: {json.dumps(self.data, ensure_ascii=False)}\n\n"

    @classmethod
    def activity(cls, mode: str, steps: list[str]) -> "StreamEvent":
        return cls(event=StreamEventType.ACTIVITY, data={"mode": mode, "steps": steps})

    @classmethod
    def token(cls, text: str) -> "StreamEvent":
        return cls(event=StreamEventType.TOKEN, data={"text": text})

    @classmethod
    def final(cls, sources: str = "") -> "StreamEvent":
        return cls(event=StreamEventType.FINAL, data={"sources": sources})

    @classmethod
    def error(cls, message: str, detail: str | None = None) -> "StreamEvent":
        data: dict[str, Any] = {"message": message}
        if detail is not None:
            data["detail"] = detail
        return cls(event=StreamEventType.ERROR, data=data)

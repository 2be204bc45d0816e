"""
Chat request schemas.

Dependencies: pydantic
System role: Chat API request validation
"""

from pydantic import BaseModel, Field


class ChatRequest(BaseModel):
    """
    Chat message request.

    Attributes:
        message: User's message; empty or whitespace-only is accepted and
            answered with a fixed apology
    """

    message: str = Field(default="", max_length=20_000, description="User message")

"""
User-facing error categorization.

Maps any exception raised during a chat turn to a short categorized message.
Raw error text is only ever exposed as the detail of the catch-all category.

Dependencies: pydantic
System role: Error translation at the transport boundary
"""

from pydantic import BaseModel


class ClientError(BaseModel):
    """Error payload sent to the client in an ``error`` event."""

    message: str
    detail: str | None = None


_CATEGORIES: list[tuple[tuple[str, ...], str, str]] = [
    (
        ("overloaded", "unavailable", "503"),
        "The model is overloaded.",
        "Retried fallback models; all were unavailable.",
    ),
    (
        ("api key", "apikey", "api_key"),
        "Missing or invalid Gemini API key.",
        "Set GEMINI_API_KEY in your .env and restart the server.",
    ),
    (
        ("429", "rate"),
        "Rate limit reached.",
        "Please wait a moment and try again.",
    ),
    (
        ("401", "403"),
        "Authentication failed.",
        "Verify your Gemini API key and project access.",
    ),
    (
        ("enotfound", "econnrefused", "name resolution", "connection refused", "nodename nor servname"),
        "Network connection failed.",
        "Check your internet connection or outbound firewall.",
    ),
]


def to_client_error(exc: BaseException) -> ClientError:
    """
    Categorize an exception by substring matching on its message.

    Args:
        exc: Exception raised while processing a turn

    Returns:
        ClientError: Categorized message and detail
    """
    message = str(exc) or type(exc).__name__ or "Unknown error"
    lower = message.lower()
    for needles, client_message, detail in _CATEGORIES:
        if any(needle in lower for needle in needles):
            return ClientError(message=client_message, detail=detail)
    return ClientError(message="Something went wrong.", detail=message)

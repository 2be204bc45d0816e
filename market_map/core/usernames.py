"""
Username and conversation-text helpers.

Normalizes signup names, generates unique usernames with a 3-digit suffix,
recognizes short confirmation replies and infers the research category
from chat history.

Dependencies: re, random
System role: Pure helpers shared by user signup and the turn state machine
"""

import random
import re
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

_WHITESPACE = re.compile(r"\s+")
_NON_ALNUM = re.compile(r"[^a-z0-9]")
_WANTS_RESULT = re.compile(
    r"\b(yes|yep|yeah|ok|okay|go ahead|proceed|continue|do it|looks good|"
    r"sounds good|ready|generate|result|final|ship it)\b",
    re.IGNORECASE,
)

MAX_USERNAME_ATTEMPTS = 8
CONFIRMATION_MAX_WORDS = 4


def normalize_base_name(value: str | None) -> str:
    """
    Lowercase a signup name and keep only ASCII letters and digits.

    Args:
        value: Raw name typed by the user

    Returns:
        str: Normalized base, possibly empty
    """
    lowered = (value or "").strip().lower()
    return _NON_ALNUM.sub("", _WHITESPACE.sub("", lowered))


def random_digits(rng: random.Random | None = None) -> int:
    """Three-digit suffix in [100, 999]."""
    return (rng or random).randint(100, 999)


def generate_unique_username(
    base: str | None,
    is_taken: Callable[[str], bool],
    attempts: int = MAX_USERNAME_ATTEMPTS,
    rng: random.Random | None = None,
) -> str | None:
    """
    Build ``{base}{ddd}`` candidates until one is free.

    Args:
        base: Raw name typed by the user
        is_taken: Predicate telling whether a candidate already exists
        attempts: Maximum candidates tried
        rng: Random source, injectable for tests

    Returns:
        str | None: Free username, None if the base is empty or every attempt collided
    """
    normalized = normalize_base_name(base)
    if not normalized:
        return None
    for _ in range(attempts):
        candidate = f"{normalized}{random_digits(rng)}"
        if not is_taken(candidate):
            return candidate
    return None


async def agenerate_unique_username(
    base: str | None,
    is_taken: Callable[[str], Awaitable[bool]],
    attempts: int = MAX_USERNAME_ATTEMPTS,
    rng: random.Random | None = None,
) -> str | None:
    """Async variant of generate_unique_username for database-backed lookups."""
    normalized = normalize_base_name(base)
    if not normalized:
        return None
    for _ in range(attempts):
        candidate = f"{normalized}{random_digits(rng)}"
        if not await is_taken(candidate):
            return candidate
    return None


def wants_result(message: str | None) -> bool:
    """Whether the message contains an affirmation asking to proceed."""
    return bool(_WANTS_RESULT.search(message or ""))


def is_confirmation(message: str | None) -> bool:
    """
    Short affirmation such as "yes", "ok go ahead" or "sounds good".

    Args:
        message: User message

    Returns:
        bool: True for a non-empty affirmation of at most four words
    """
    trimmed = (message or "").strip()
    if not trimmed or not wants_result(trimmed):
        return False
    return len(trimmed.split()) <= CONFIRMATION_MAX_WORDS


def infer_category(message: str, chat_history: Sequence[dict[str, Any]]) -> str:
    """
    Category the user is researching.

    A confirmation reply points back to the most recent user message that
    was not itself a confirmation; anything else is the category verbatim.

    Args:
        message: Current user message
        chat_history: Prior [{role, content}] entries, oldest first

    Returns:
        str: Category text
    """
    if not is_confirmation(message):
        return message
    for entry in reversed(chat_history):
        if entry.get("role") != "user":
            continue
        content = entry.get("content")
        if isinstance(content, str) and content.strip() and not is_confirmation(content):
            return content
    return message

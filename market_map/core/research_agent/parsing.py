"""
Structured output parsing.

Model replies are free text that usually embeds a JSON object. Every
parser here either returns a typed value or an explicit failure variant;
malformed output never raises.

Dependencies: json, re, pydantic
System role: Tolerant parsing of generation output
"""

import json
import re
from typing import Any

from market_map.core.research_agent.prompts import REFUSAL_MARKER
from market_map.core.research_agent.schemas import ParseFailure, PlanBlock, PlanVerdict, Source

_SOURCES_SECTION = re.compile(r"\n{2,}(Sources|Source)\s*:\s*[\s\S]*$", re.IGNORECASE)
_EXTRA_BLANK_LINES = re.compile(r"\n{3,}")


def extract_json_block(text: str | None) -> str | None:
    """
    Slice from the first ``{`` to the last ``}``.

    Args:
        text: Model reply

    Returns:
        str | None: Candidate JSON text, None when braces are missing or inverted
    """
    if not text:
        return None
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end <= start:
        return None
    return text[start:end + 1]


def _load_object(text: str | None) -> dict[str, Any] | ParseFailure:
    block = extract_json_block(text)
    if block is None:
        return ParseFailure(reason="no JSON block", raw=text or "")
    try:
        parsed = json.loads(block)
    except json.JSONDecodeError as e:
        return ParseFailure(reason=f"invalid JSON: {e.msg}", raw=text or "")
    if not isinstance(parsed, dict):
        return ParseFailure(reason="JSON block is not an object", raw=text or "")
    return parsed


def _clean_strings(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


def collapse_blank_lines(text: str) -> str:
    """Collapse runs of 3+ newlines to a single blank line."""
    return _EXTRA_BLANK_LINES.sub("\n\n", text)


def parse_plan_block(text: str | None) -> PlanBlock | ParseFailure:
    """
    Parse a plan-mode reply.

    Strings are stripped, non-string list items dropped, and readiness is
    forced to False when no clarifying question survived.

    Args:
        text: Model reply

    Returns:
        PlanBlock | ParseFailure: Parsed block or the reason it could not be parsed
    """
    parsed = _load_object(text)
    if isinstance(parsed, ParseFailure):
        return parsed

    plan = parsed.get("plan")
    apology = parsed.get("apology")
    questions = _clean_strings(parsed.get("clarifying_questions"))
    return PlanBlock(
        plan=collapse_blank_lines(plan.strip()) if isinstance(plan, str) else "",
        clarifying_questions=questions,
        ready_for_results=bool(parsed.get("ready_for_results")) and bool(questions),
        activity=_clean_strings(parsed.get("activity")),
        apology=apology.strip() if isinstance(apology, str) else "",
    )


def parse_verdict(text: str | None) -> PlanVerdict:
    """
    Parse a classifier reply; anything but an explicit "replan" means keep.

    Args:
        text: Classifier reply

    Returns:
        PlanVerdict: Decision with the reason when one was given as a string
    """
    parsed = _load_object(text)
    if isinstance(parsed, ParseFailure):
        return PlanVerdict(action="keep", reason=None)
    reason = parsed.get("reason")
    return PlanVerdict(
        action="replan" if parsed.get("action") == "replan" else "keep",
        reason=reason if isinstance(reason, str) else None,
    )


def parse_activity(text: str | None) -> tuple[list[str], str]:
    """
    Split a result-mode reply into activity steps and body.

    Args:
        text: Result-mode reply

    Returns:
        tuple: (activity steps, body with the JSON block removed)
    """
    raw = text or ""
    block = extract_json_block(raw)
    if block is None:
        return [], raw
    try:
        parsed = json.loads(block)
    except json.JSONDecodeError:
        parsed = None
    steps = _clean_strings(parsed.get("activity")) if isinstance(parsed, dict) else []
    return steps, raw.replace(block, "", 1).strip()


def strip_sources_section(text: str) -> str:
    """Remove a trailing "Sources:" section the model added on its own."""
    return _SOURCES_SECTION.sub("", text).strip()


def is_refusal(text: str) -> bool:
    """Whether a result-mode body is an out-of-domain refusal."""
    lower = text.lower()
    return REFUSAL_MARKER in lower or lower.startswith("sorry")


def parse_sources_payload(text: str | None) -> list[Source]:
    """
    Parse ``{"sources": [{"title", "url"}]}`` replies.

    Entries without a string URL are dropped; a missing title defaults to the URL.

    Args:
        text: Source generation reply

    Returns:
        list[Source]: Parsed sources, empty on any malformed input
    """
    parsed = _load_object(text)
    if isinstance(parsed, ParseFailure):
        return []
    items = parsed.get("sources")
    if not isinstance(items, list):
        return []
    sources: list[Source] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        url = item.get("url")
        if not isinstance(url, str) or not url.strip():
            continue
        title = item.get("title")
        sources.append(Source(title=title if isinstance(title, str) and title else url, url=url.strip()))
    return sources

"""
Gemini generation client with ordered model fallback.

Wraps one logical "ask the model" operation. Models are tried strictly in
order; a transient failure (overload, unavailability, network, timeout)
advances to the next model and notifies an observer, any other failure
propagates immediately, and exhausting the list re-raises the last error.

Dependencies: google.genai, tenacity, httpx, market_map.observability
System role: Generation boundary for plan, result, classifier and source calls
"""

import asyncio
import logging
import re
from collections.abc import Callable, Iterable, Sequence
from typing import Any

import httpx
from google import genai
from google.genai import types
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt, wait_none

from market_map.core.exceptions import GenerationError
from market_map.core.research_agent.prompts import build_system_instruction
from market_map.core.research_agent.schemas import GenerationMode, GenerationResult, Source
from market_map.observability.trace_recorder import RootSpanRef, TraceRecorder

logger = logging.getLogger(__name__)

FallbackObserver = Callable[[str, BaseException], None]
TokenSink = Callable[[str], None]

_TRANSIENT_PATTERN = re.compile(
    r"overloaded|unavailable|503|fetch failed|sending request|econnreset|"
    r"etimedout|enotfound|network|timeout|timed out|connection reset|"
    r"name resolution|temporarily",
    re.IGNORECASE,
)

DEFAULT_TEMPERATURES: dict[GenerationMode, float] = {
    GenerationMode.PLAN: 0.2,
    GenerationMode.RESULT: 0.2,
    GenerationMode.CLASSIFY: 0.0,
    GenerationMode.SOURCES: 0.2,
}


def build_model_order(
    primary: str,
    default_fallbacks: Iterable[str] = (),
    extra_fallbacks: Iterable[str] = (),
) -> list[str]:
    """
    Primary, then default fallbacks, then extra fallbacks, first occurrence wins.

    Args:
        primary: Primary model
        default_fallbacks: Built-in fallbacks
        extra_fallbacks: Operator-configured fallbacks

    Returns:
        list[str]: Deduplicated model order
    """
    order: list[str] = []
    for model in [primary, *default_fallbacks, *extra_fallbacks]:
        if model and model not in order:
            order.append(model)
    return order


def is_transient_error(exc: BaseException) -> bool:
    """Whether a failed attempt should advance to the next model."""
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError, httpx.TransportError)):
        return True
    return bool(_TRANSIENT_PATTERN.search(str(exc)))


def to_contents(chat_history: Sequence[dict[str, Any]], message: str) -> list[types.Content]:
    """Map [{role, content}] history plus the new message to Gemini contents."""
    contents = [
        types.Content(
            role="model" if entry.get("role") == "assistant" else "user",
            parts=[types.Part(text=str(entry.get("content") or ""))],
        )
        for entry in chat_history
    ]
    contents.append(types.Content(role="user", parts=[types.Part(text=message)]))
    return contents


def _usage_to_dict(usage: Any) -> dict[str, Any] | None:
    if usage is None:
        return None
    if hasattr(usage, "model_dump"):
        return usage.model_dump(exclude_none=True, mode="json")
    if isinstance(usage, dict):
        return usage
    return None


def _grounding_of(response: Any) -> Any:
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return None
    return getattr(candidates[0], "grounding_metadata", None)


def _field(obj: Any, *names: str) -> Any:
    for name in names:
        value = obj.get(name) if isinstance(obj, dict) else getattr(obj, name, None)
        if value:
            return value
    return None


def extract_grounding_sources(grounding: Any) -> list[Source]:
    """
    Web sources listed in grounding metadata, deduplicated by URL.

    Accepts SDK objects or plain dicts in either naming convention.

    Args:
        grounding: Grounding metadata from a retrieval-augmented response

    Returns:
        list[Source]: Sources in chunk order
    """
    chunks = _field(grounding, "grounding_chunks", "groundingChunks") if grounding else None
    if not isinstance(chunks, list):
        return []
    seen: set[str] = set()
    sources: list[Source] = []
    for chunk in chunks:
        web = _field(chunk, "web", "web_source", "webSource", "source")
        if web is None:
            continue
        url = _field(web, "uri", "url")
        if not isinstance(url, str) or url in seen:
            continue
        seen.add(url)
        title = _field(web, "title", "name")
        sources.append(Source(title=title if isinstance(title, str) else url, url=url))
    return sources


class GenerationClient:
    """
    Gemini caller with ordered fallback across models.

    Attributes:
        model_order: Models tried in order for every call
        call_timeout: Optional per-attempt timeout in seconds
    """

    def __init__(
        self,
        client: genai.Client,
        model_order: Sequence[str],
        call_timeout: float | None = None,
        temperatures: dict[GenerationMode, float] | None = None,
    ) -> None:
        """
        Initialize generation client.

        Args:
            client: google-genai client
            model_order: Non-empty model order (see build_model_order)
            call_timeout: Optional per-attempt timeout; a timeout counts as transient
            temperatures: Temperature per generation mode

        Raises:
            ValueError: If model_order is empty
        """
        if not model_order:
            raise ValueError("model_order must contain at least one model")
        self._client = client
        self.model_order = list(model_order)
        self.call_timeout = call_timeout
        self._temperatures = {**DEFAULT_TEMPERATURES, **(temperatures or {})}

    @property
    def primary_model(self) -> str:
        return self.model_order[0]

    def next_model(self, failed_model: str) -> str | None:
        """Model tried after ``failed_model``, None when it was the last."""
        try:
            index = self.model_order.index(failed_model)
        except ValueError:
            return None
        return self.model_order[index + 1] if index + 1 < len(self.model_order) else None

    async def generate(
        self,
        mode: GenerationMode,
        message: str,
        chat_history: Sequence[dict[str, Any]] = (),
        use_grounding: bool = False,
        system_instruction: str | None = None,
        on_fallback: FallbackObserver | None = None,
        stream: bool = False,
        on_token: TokenSink | None = None,
        tracer: TraceRecorder | None = None,
        parent: RootSpanRef | None = None,
    ) -> GenerationResult:
        """
        Generate text, falling back across models on transient failures.

        Args:
            mode: Generation mode (selects default system instruction and temperature)
            message: Current user message
            chat_history: Prior [{role, content}] entries
            use_grounding: Enable Google Search retrieval augmentation
            system_instruction: Override of the mode's system instruction
            on_fallback: Called with (failed_model, error) before the next model is tried
            stream: Use the streaming API, forwarding chunks to on_token
            on_token: Receives text chunks when streaming
            tracer: Trace recorder for one "LLM call" span per attempt
            parent: Parent span ids for attempt spans

        Returns:
            GenerationResult: Text, usage, grounding, model used and models attempted

        Raises:
            Exception: The first non-transient error, or the last error once every model failed
        """
        contents = to_contents(chat_history, message)
        config = types.GenerateContentConfig(
            system_instruction=system_instruction or build_system_instruction(mode),
            temperature=self._temperatures[mode],
            tools=[types.Tool(google_search=types.GoogleSearch())] if use_grounding else None,
        )
        attempts: list[str] = []

        def _notify(retry_state: RetryCallState) -> None:
            failed_model = attempts[-1]
            error = retry_state.outcome.exception() if retry_state.outcome else None
            logger.warning(
                f"{__name__}:generate - Transient failure on {failed_model}, falling back",
                extra={"model": failed_model, "mode": mode.value, "error": str(error)},
            )
            if on_fallback is not None and error is not None:
                on_fallback(failed_model, error)

        retrying = AsyncRetrying(
            stop=stop_after_attempt(len(self.model_order)),
            retry=retry_if_exception(is_transient_error),
            wait=wait_none(),
            before_sleep=_notify,
            reraise=True,
        )

        async for attempt in retrying:
            with attempt:
                model = self.model_order[attempt.retry_state.attempt_number - 1]
                attempts.append(model)
                logger.info(f"{__name__}:generate - Calling {model} mode={mode.value} stream={stream}")
                result = await self._traced_attempt(
                    model, contents, config, mode, message, chat_history,
                    stream, on_token, tracer, parent,
                )

        result.attempts = list(attempts)
        logger.info(
            f"{__name__}:generate - END model={result.model} attempts={len(attempts)} "
            f"text_len={len(result.text)}"
        )
        return result

    async def _traced_attempt(
        self,
        model: str,
        contents: list[types.Content],
        config: types.GenerateContentConfig,
        mode: GenerationMode,
        message: str,
        chat_history: Sequence[dict[str, Any]],
        stream: bool,
        on_token: TokenSink | None,
        tracer: TraceRecorder | None,
        parent: RootSpanRef | None,
    ) -> GenerationResult:
        call = self._call_stream(model, contents, config, on_token) if stream else self._call(model, contents, config)
        if tracer is None:
            return await self._with_timeout(call)

        async with tracer.span(
            "LLM call",
            parent=parent,
            input={"mode": mode.value, "message": message, "chat_history": list(chat_history), "model": model},
        ) as span:
            result = await self._with_timeout(call)
            span.log(output=result.text, metadata={"model": model, "token_counts": result.usage})
            return result

    async def _with_timeout(self, call) -> GenerationResult:
        if self.call_timeout is None:
            return await call
        return await asyncio.wait_for(call, timeout=self.call_timeout)

    async def _call(
        self,
        model: str,
        contents: list[types.Content],
        config: types.GenerateContentConfig,
    ) -> GenerationResult:
        response = await self._client.aio.models.generate_content(
            model=model,
            contents=contents,
            config=config,
        )
        if response is None:
            raise GenerationError("Empty response from model", model=model)
        return GenerationResult(
            text=response.text or "",
            model=model,
            usage=_usage_to_dict(getattr(response, "usage_metadata", None)),
            grounding=_grounding_of(response),
        )

    async def _call_stream(
        self,
        model: str,
        contents: list[types.Content],
        config: types.GenerateContentConfig,
        on_token: TokenSink | None,
    ) -> GenerationResult:
        chunks: list[str] = []
        usage = None
        grounding = None
        stream = await self._client.aio.models.generate_content_stream(
            model=model,
            contents=contents,
            config=config,
        )
        async for chunk in stream:
            text = chunk.text or ""
            if text:
                chunks.append(text)
                if on_token is not None:
                    on_token(text)
            usage = getattr(chunk, "usage_metadata", None) or usage
            grounding = _grounding_of(chunk) or grounding
        return GenerationResult(
            text="".join(chunks),
            model=model,
            usage=_usage_to_dict(usage),
            grounding=grounding,
        )

"""
Chat API endpoint.

Routes:
- POST /api/chat - Process one research turn as a Server-Sent Events stream

Dependencies: market_map.application.services.research_service, market_map.models
System role: Chat streaming HTTP API
"""

import logging
from collections.abc import AsyncGenerator

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from market_map.api.deps import (
    get_research_service,
    get_settings_dependency,
    get_user_service,
)
from market_map.application.services.research_service import ResearchService
from market_map.application.services.user_service import UserService
from market_map.configs import Settings
from market_map.models.chat import ChatRequest
from market_map.models.streaming import StreamEvent

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["chat"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
}


def _single_event(event: StreamEvent) -> StreamingResponse:
    async def one() -> AsyncGenerator[str, None]:
        yield event.to_sse()

    return StreamingResponse(one(), media_type="text/event-stream", headers=SSE_HEADERS)


@router.post("/chat")
async def chat(
    payload: ChatRequest,
    request: Request,
    settings: Settings = Depends(get_settings_dependency),
    user_service: UserService = Depends(get_user_service),
    research_service: ResearchService | None = Depends(get_research_service),
) -> StreamingResponse:
    """
    Stream one research turn using Server-Sent Events (SSE).

    SSE Format:
        event: activity
        data: {"mode": "plan", "steps": [...]}

        event: token
        data: {"text": "..."}

        event: final
        data: {"sources": "..."}

        event: error
        data: {"message": "...", "detail": "..."}

    Args:
        payload: ChatRequest with message
        request: Incoming request (signup cookie)
        settings: Injected settings
        user_service: Injected UserService
        research_service: Injected ResearchService, None without an API key

    Returns:
        StreamingResponse: SSE stream of turn events
    """
    username = request.cookies.get(settings.research.cookie_name)
    user = await user_service.get_by_username(username)
    if user is None:
        logger.info(f"{__name__}:chat - Rejected, no signed-in user")
        return _single_event(StreamEvent.error("Please sign up first."))

    if research_service is None:
        logger.error(f"{__name__}:chat - GEMINI_API_KEY is not configured")
        return _single_event(
            StreamEvent.error(
                "Gemini API key is missing.",
                "Set GEMINI_API_KEY in .env and restart the server.",
            )
        )

    logger.info(f"{__name__}:chat - START username={user.username}")

    async def event_generator() -> AsyncGenerator[str, None]:
        """Format turn events as SSE frames."""
        async for event in research_service.stream_turn(user, payload.message):
            yield event.to_sse()
        logger.info(f"{__name__}:chat - Stream completed username={user.username}")

    return StreamingResponse(event_generator(), media_type="text/event-stream", headers=SSE_HEADERS)

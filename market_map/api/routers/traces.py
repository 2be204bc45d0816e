"""
Trace download endpoints.

Routes:
- GET /api/trace/{session_id} - One session trace as a JSON attachment
- GET /api/traces/{username} - Recent traces of a user as a JSON attachment

Dependencies: market_map.application.services.trace_service
System role: Trace export HTTP API
"""

import json
import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response

from market_map.api.deps import get_trace_service
from market_map.application.services.trace_service import TraceService
from market_map.core.exceptions import SessionNotFoundError, UserNotFoundError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["traces"])


def _attachment(payload: list[dict[str, Any]], filename: str) -> Response:
    return Response(
        content=json.dumps(payload, indent=2),
        media_type="application/json",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.get("/trace/{session_id}")
async def download_session_trace(
    session_id: UUID,
    trace_service: TraceService = Depends(get_trace_service),
) -> Response:
    """
    Download one session trace.

    Raises:
        HTTPException(404): Session not found
    """
    try:
        payload = await trace_service.session_trace(session_id)
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="Trace not found")
    return _attachment(payload, f"trace-{session_id}.json")


@router.get("/traces/{username}")
async def download_user_traces(
    username: str,
    trace_service: TraceService = Depends(get_trace_service),
) -> Response:
    """
    Download the traces of a user's newest sessions.

    Raises:
        HTTPException(404): User not found
    """
    try:
        payload = await trace_service.user_traces(username)
    except UserNotFoundError:
        raise HTTPException(status_code=404, detail="User not found")
    return _attachment(payload, f"traces-{username}.json")

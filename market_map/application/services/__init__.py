"""Service orchestrators."""

from .research_service import ResearchService
from .trace_service import TraceService
from .user_service import UserService

__all__ = [
    "ResearchService",
    "TraceService",
    "UserService",
]

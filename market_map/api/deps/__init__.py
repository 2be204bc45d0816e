"""API-specific dependencies."""

# Re-export common dependencies
from .dependencies import (
    ServiceCache,
    get_research_service,
    get_service_cache,
    get_session_factory,
    get_settings_dependency,
    get_trace_service,
    get_user_service,
)

__all__ = [
    "ServiceCache",
    "get_research_service",
    "get_service_cache",
    "get_session_factory",
    "get_settings_dependency",
    "get_trace_service",
    "get_user_service",
]

"""API routers."""

from .chat import router as chat_router
from .health import router as health_router
from .traces import router as traces_router
from .users import router as users_router

__all__ = [
    "chat_router",
    "health_router",
    "traces_router",
    "users_router",
]

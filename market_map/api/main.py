"""
FastAPI application with assembled routers.

Initializes the FastAPI app with all API routers, observability middleware
and the shared client cache, and configures the uvicorn server.

Dependencies: fastapi, uvicorn, python-dotenv, market_map.api.routers
System role: API entry point with router assembly and server launch
"""

import logging
from contextlib import asynccontextmanager

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from market_map.api.deps.dependencies import get_service_cache
from market_map.boundary.db import create_tables
from market_map.configs import get_settings
from market_map.observability.logger import configure_logging
from market_map.observability.middleware import CorrelationMiddleware, RequestLoggingMiddleware
from .routers import (
    chat_router,
    health_router,
    traces_router,
    users_router,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Handles startup and shutdown events.
    """
    logger = logging.getLogger("uvicorn")

    # Startup
    await create_tables()
    logger.info("Database tables ready")

    cache = get_service_cache()
    # Trigger property access so the failure window spans the process lifetime
    _ = cache.tracker
    _ = cache.tracer
    logger.info("Service cache pre-warmed")

    yield

    # Shutdown
    await cache.aclose()
    logger.info("Service cache cleared")


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render HTTP errors as {"error": message}."""
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


def create_app() -> FastAPI:
    """
    Create and configure FastAPI application with routers.

    Returns:
        FastAPI: Configured application instance with all routers registered
    """
    load_dotenv()
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Market Map API",
        description="Conversational software market research with verified citations",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.research.frontend_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add observability middleware
    app.add_middleware(CorrelationMiddleware)
    app.add_middleware(RequestLoggingMiddleware)

    app.add_exception_handler(StarletteHTTPException, http_error_handler)

    app.include_router(health_router)
    app.include_router(users_router)
    app.include_router(traces_router)
    app.include_router(chat_router)

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "market_map.api.main:app",
        host="0.0.0.0",
        port=8000,
    )

"""
Dependency injection container.

Factory functions for FastAPI dependencies. Long-lived clients (Gemini,
httpx, Langfuse) live in a process-wide ServiceCache; request-scoped
services are built per request around an AsyncSession.

Dependencies: market_map.configs, market_map.application, market_map.boundary
System role: DI container for service injection
"""

from fastapi import Depends
from google import genai
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from market_map.application.services import ResearchService, TraceService, UserService
from market_map.boundary.db import get_async_db, get_async_session_factory
from market_map.configs import Settings, get_settings
from market_map.core.exceptions import ConfigurationError


class ServiceCache:
    """Container for cached clients shared by all requests."""

    def __init__(self):
        self._tracker = None
        self._tracer = None
        self._genai_client = None
        self._generation_client = None
        self._http_client = None
        self._citation_pipeline = None
        self._classifier = None

    @property
    def tracker(self):
        """Get the process-wide failure-window tracker."""
        if self._tracker is None:
            from market_map.observability.failure_window import FailureWindowTracker

            observability = get_settings().observability
            self._tracker = FailureWindowTracker(
                window_ms=observability.error_window_ms,
                threshold=observability.error_threshold,
            )
        return self._tracker

    @property
    def tracer(self):
        """Get cached Langfuse trace recorder."""
        if self._tracer is None:
            from market_map.observability.trace_recorder import TraceRecorder

            self._tracer = TraceRecorder.from_settings(get_settings().observability, self.tracker)
        return self._tracer

    @property
    def genai_client(self) -> genai.Client:
        """
        Get cached google-genai client.

        Raises:
            ConfigurationError: If GEMINI_API_KEY is not set
        """
        if self._genai_client is None:
            api_key = get_settings().gemini.api_key
            if not api_key:
                raise ConfigurationError("GEMINI_API_KEY is not set")
            self._genai_client = genai.Client(api_key=api_key)
        return self._genai_client

    @property
    def generation_client(self):
        """Get cached generation client with the configured model order."""
        if self._generation_client is None:
            from market_map.core.research_agent.generation_client import GenerationClient
            from market_map.core.research_agent.schemas import GenerationMode

            gemini = get_settings().gemini
            self._generation_client = GenerationClient(
                client=self.genai_client,
                model_order=gemini.model_order,
                call_timeout=gemini.call_timeout_seconds,
                temperatures={
                    GenerationMode.PLAN: gemini.plan_temperature,
                    GenerationMode.RESULT: gemini.result_temperature,
                    GenerationMode.SOURCES: gemini.result_temperature,
                    GenerationMode.CLASSIFY: gemini.classifier_temperature,
                },
            )
        return self._generation_client

    @property
    def http_client(self):
        """Get cached httpx client used for URL liveness probes."""
        if self._http_client is None:
            import httpx

            self._http_client = httpx.AsyncClient()
        return self._http_client

    @property
    def classifier(self):
        """Get cached turn classifier."""
        if self._classifier is None:
            from market_map.core.research_agent.turn_classifier import TurnClassifier

            self._classifier = TurnClassifier(self.generation_client)
        return self._classifier

    @property
    def citation_pipeline(self):
        """Get cached citation pipeline."""
        if self._citation_pipeline is None:
            from market_map.boundary.web.url_probe import SourceValidator
            from market_map.core.research_agent.citation_pipeline import CitationPipeline
            from market_map.core.research_agent.source_generator import SourceGenerator

            citations = get_settings().citations
            self._citation_pipeline = CitationPipeline(
                generator=SourceGenerator(self.generation_client, count=citations.requested_sources),
                validator=SourceValidator(
                    self.http_client,
                    head_timeout=citations.head_timeout_seconds,
                    get_timeout=citations.get_timeout_seconds,
                    user_agent=citations.user_agent,
                ),
                min_valid=citations.min_valid_sources,
                max_sources=citations.max_sources,
            )
        return self._citation_pipeline

    async def aclose(self) -> None:
        """Close network clients and flush traces."""
        if self._http_client is not None:
            await self._http_client.aclose()
        if self._tracer is not None:
            self._tracer.flush()
        self.clear()

    def clear(self) -> None:
        """Clear all cached instances."""
        self._tracker = None
        self._tracer = None
        self._genai_client = None
        self._generation_client = None
        self._http_client = None
        self._citation_pipeline = None
        self._classifier = None


# Global service cache
_service_cache = ServiceCache()


def get_service_cache() -> ServiceCache:
    """Get service cache singleton."""
    return _service_cache


def get_settings_dependency() -> Settings:
    """Get settings singleton."""
    return get_settings()


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory for work that outlives the request scope."""
    return get_async_session_factory()


def get_user_service(
    db: AsyncSession = Depends(get_async_db),
    settings: Settings = Depends(get_settings_dependency),
) -> UserService:
    """
    Get user service instance.

    Args:
        db: Async database session (injected via Depends)
        settings: Application settings (injected via Depends)

    Returns:
        UserService: User service instance
    """
    return UserService(db=db, settings=settings.research)


def get_trace_service(
    db: AsyncSession = Depends(get_async_db),
    settings: Settings = Depends(get_settings_dependency),
) -> TraceService:
    """Get trace service instance."""
    return TraceService(db=db, settings=settings.research)


def get_research_service(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    settings: Settings = Depends(get_settings_dependency),
) -> ResearchService | None:
    """
    Get research service instance.

    The service opens its own database session per turn so a turn can
    finish and persist after the client disconnects.

    Args:
        session_factory: Async session factory (injected via Depends)
        settings: Application settings (injected via Depends)

    Returns:
        ResearchService | None: Service wired to the cached clients, None
            when no Gemini API key is configured
    """
    if not settings.gemini.api_key:
        return None

    cache = get_service_cache()
    return ResearchService(
        session_factory=session_factory,
        generation=cache.generation_client,
        classifier=cache.classifier,
        citations=cache.citation_pipeline,
        tracer=cache.tracer,
        settings=settings.research,
    )

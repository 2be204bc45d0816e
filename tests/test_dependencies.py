"""
Test suite for dependency injection container.

Tests factory functions for service creation and the cached client container.

System role: Verification of DI container
"""

from unittest.mock import AsyncMock, MagicMock, PropertyMock, patch

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from market_map.api.deps import (
    get_research_service,
    get_trace_service,
    get_user_service,
)
from market_map.api.deps.dependencies import ServiceCache
from market_map.application.services import ResearchService, TraceService, UserService
from market_map.configs import Settings
from market_map.configs.gemini import GeminiSettings
from market_map.core.exceptions import ConfigurationError


@pytest.fixture
def mock_db_session() -> AsyncSession:
    """Provide mock async database session."""
    return AsyncMock(spec=AsyncSession)


def settings_with_key(api_key: str | None) -> Settings:
    return Settings(gemini=GeminiSettings(api_key=api_key))


class TestRequestScopedServices:
    """Test suite for per-request service factories."""

    def test_get_user_service_should_bind_session_and_settings(self, mock_db_session) -> None:
        settings = Settings()

        service = get_user_service(db=mock_db_session, settings=settings)

        assert isinstance(service, UserService)
        assert service.db is mock_db_session
        assert service.settings is settings.research

    def test_get_trace_service_should_return_trace_service(self, mock_db_session) -> None:
        service = get_trace_service(db=mock_db_session, settings=Settings())

        assert isinstance(service, TraceService)


class TestGetResearchService:
    """Test suite for get_research_service factory."""

    def test_without_api_key_should_return_none(self) -> None:
        # Arrange
        cache = MagicMock(spec=ServiceCache)

        # Act
        with patch("market_map.api.deps.dependencies.get_service_cache", return_value=cache):
            service = get_research_service(session_factory=MagicMock(), settings=settings_with_key(None))

        # Assert
        assert service is None
        cache.generation_client.assert_not_called()

    def test_with_api_key_should_wire_cached_clients(self) -> None:
        # Arrange
        cache = MagicMock(spec=ServiceCache)
        session_factory = MagicMock()

        # Act
        with patch("market_map.api.deps.dependencies.get_service_cache", return_value=cache):
            service = get_research_service(session_factory=session_factory, settings=settings_with_key("k"))

        # Assert
        assert isinstance(service, ResearchService)
        assert service.session_factory is session_factory
        assert service.generation is cache.generation_client
        assert service.citations is cache.citation_pipeline
        assert service.tracer is cache.tracer


class TestServiceCache:
    """Test suite for ServiceCache."""

    def test_genai_client_without_key_should_raise(self) -> None:
        cache = ServiceCache()

        with patch("market_map.api.deps.dependencies.get_settings", return_value=settings_with_key(None)):
            with pytest.raises(ConfigurationError):
                _ = cache.genai_client

    def test_tracker_should_be_reused(self) -> None:
        cache = ServiceCache()

        with patch("market_map.api.deps.dependencies.get_settings", return_value=Settings()):
            first = cache.tracker
            second = cache.tracker

        assert first is second

    @pytest.mark.asyncio
    async def test_aclose_should_close_http_client_and_clear(self) -> None:
        # Arrange
        cache = ServiceCache()
        http_client = AsyncMock()
        tracer = MagicMock()
        cache._http_client = http_client
        cache._tracer = tracer

        # Act
        await cache.aclose()

        # Assert
        http_client.aclose.assert_awaited_once()
        tracer.flush.assert_called_once()
        assert cache._http_client is None
        assert cache._tracer is None

    def test_generation_client_should_use_configured_model_order(self) -> None:
        # Arrange
        cache = ServiceCache()
        gemini = GeminiSettings(
            api_key="k",
            model="primary",
            default_fallbacks="fallback-a,primary",
            fallback_models=" fallback-b , fallback-a ",
        )

        # Act
        with patch("market_map.api.deps.dependencies.get_settings", return_value=Settings(gemini=gemini)):
            with patch.object(ServiceCache, "genai_client", new_callable=PropertyMock, return_value=MagicMock()):
                client = cache.generation_client

        # Assert
        assert client.model_order == gemini.model_order
        assert client.model_order == ["primary", "fallback-a", "fallback-b"]


class TestGeminiModelOrder:
    """Test suite for GeminiSettings.model_order."""

    def test_should_put_primary_first_and_drop_duplicates(self) -> None:
        gemini = GeminiSettings(
            model="m1",
            default_fallbacks="m2,m3",
            fallback_models="m3,m1,m4",
        )

        assert gemini.model_order == ["m1", "m2", "m3", "m4"]

    def test_empty_fallbacks_should_leave_primary_only(self) -> None:
        gemini = GeminiSettings(model="m1", default_fallbacks="", fallback_models="")

        assert gemini.model_order == ["m1"]

"""
Unified application settings.

Aggregates all configuration modules into a single Settings class.
Provides dependency injection factory for FastAPI.

Dependencies: All config modules
System role: Central configuration aggregator for the application
"""

from functools import lru_cache

from market_map.configs.base import BaseSettings
from market_map.configs.citations import CitationSettings
from market_map.configs.database import DatabaseSettings
from market_map.configs.gemini import GeminiSettings
from market_map.configs.observability import ObservabilitySettings
from market_map.configs.research import ResearchSettings


class Settings(BaseSettings):
    """Unified application settings aggregating all config modules."""

    # Aggregated settings
    database: DatabaseSettings = DatabaseSettings()
    gemini: GeminiSettings = GeminiSettings()
    citations: CitationSettings = CitationSettings()
    research: ResearchSettings = ResearchSettings()
    observability: ObservabilitySettings = ObservabilitySettings()


@lru_cache
def get_settings() -> Settings:
    """
    Get application settings singleton.

    Returns Settings instance, cached for dependency injection.
    Environment variables loaded once at startup.

    Returns:
        Settings: Application settings instance

    Usage:
        from market_map.configs import get_settings
        settings = get_settings()
    """
    return Settings()

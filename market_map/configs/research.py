"""
Research session settings.

Session retention, profile listing limits and signup cookie options.

Dependencies: pydantic, pydantic_settings
System role: Conversation lifecycle configuration
"""

from pydantic import Field
from pydantic_settings import SettingsConfigDict

from market_map.configs.base import BaseSettings


class ResearchSettings(BaseSettings):
    """Session lifecycle and user cookie configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="RESEARCH_",
        case_sensitive=False,
        extra="ignore",
    )

    session_retention: int = Field(
        default=50,
        ge=1,
        description="Newest sessions kept per user after a session completes",
    )
    profile_session_limit: int = Field(default=50, ge=1)
    cookie_name: str = Field(default="mm_user")
    cookie_max_age_days: int = Field(default=365, ge=1)
    cookie_domain: str | None = Field(default=None)
    cookie_secure: bool = Field(default=False)
    frontend_origins: str = Field(
        default="",
        description="Comma-separated origins allowed to call the API with credentials",
    )
    username_attempts: int = Field(default=8, ge=1)

    @property
    def frontend_origin_list(self) -> list[str]:
        """Allowed CORS origins."""
        return [item.strip() for item in self.frontend_origins.split(",") if item.strip()]

    @property
    def cookie_max_age_seconds(self) -> int:
        """Signup cookie lifetime in seconds."""
        return self.cookie_max_age_days * 24 * 60 * 60

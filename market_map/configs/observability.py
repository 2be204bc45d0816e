"""
Observability configuration settings.

Settings for Langfuse tracing and the tracing failure-window breaker.

Dependencies: pydantic_settings
System role: Observability configuration for tracing and logging
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ObservabilitySettings(BaseSettings):
    """Observability configuration for Langfuse and logging."""

    model_config = SettingsConfigDict(
        env_prefix="LANGFUSE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    public_key: str | None = Field(
        default=None,
        description="Langfuse public key for tracing",
    )
    secret_key: str | None = Field(
        default=None,
        description="Langfuse secret key for tracing",
    )
    host: str = Field(
        default="https://cloud.langfuse.com",
        description="Langfuse server host URL",
    )
    enable_tracing: bool = Field(
        default=True,
        description="Enable Langfuse tracing",
    )
    error_window_ms: int = Field(
        default=60_000,
        ge=1,
        description="Rolling window for counting tracing failures (milliseconds)",
    )
    error_threshold: int = Field(
        default=3,
        ge=1,
        description="Tracing failures within one window that disable tracing",
    )

    @property
    def has_credentials(self) -> bool:
        """Whether both Langfuse keys are configured."""
        return bool(self.public_key and self.secret_key)

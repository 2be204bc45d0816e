"""
Gemini generation settings.

Model identifiers, fallback chain configuration and sampling temperatures
for every generation call the research agent makes.

Dependencies: pydantic, pydantic_settings
System role: Generation model configuration
"""

from pydantic import Field
from pydantic_settings import SettingsConfigDict

from market_map.configs.base import BaseSettings


class GeminiSettings(BaseSettings):
    """Gemini API and model fallback configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="GEMINI_",
        case_sensitive=False,
        extra="ignore",
    )

    api_key: str | None = Field(default=None, description="Gemini API key")
    model: str = Field(
        default="gemini-3-flash-preview",
        description="Primary generation model",
    )
    default_fallbacks: str = Field(
        default="gemini-2.5-flash,gemini-2.5-flash-lite",
        description="Built-in fallback models, comma-separated",
    )
    fallback_models: str = Field(
        default="",
        description="Extra fallback models appended after the defaults, comma-separated",
    )
    plan_temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    result_temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    classifier_temperature: float = Field(default=0.0, ge=0.0, le=2.0)
    call_timeout_seconds: float | None = Field(
        default=None,
        gt=0,
        description="Per-attempt timeout; a timed-out attempt advances to the next model",
    )

    @staticmethod
    def _split(value: str) -> list[str]:
        return [item.strip() for item in value.split(",") if item.strip()]

    @property
    def default_fallback_list(self) -> list[str]:
        """Built-in fallback models in order."""
        return self._split(self.default_fallbacks)

    @property
    def extra_fallback_list(self) -> list[str]:
        """Operator-configured fallback models in order."""
        return self._split(self.fallback_models)

    @property
    def model_order(self) -> list[str]:
        """Primary model, then default and extra fallbacks, deduplicated."""
        from market_map.core.research_agent.generation_client import build_model_order

        return build_model_order(self.model, self.default_fallback_list, self.extra_fallback_list)

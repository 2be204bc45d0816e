"""
Citation pipeline settings.

Probe timeouts and source-count thresholds for citation validation and repair.

Dependencies: pydantic, pydantic_settings
System role: Citation pipeline configuration
"""

from pydantic import Field
from pydantic_settings import SettingsConfigDict

from market_map.configs.base import BaseSettings


class CitationSettings(BaseSettings):
    """URL probe and source selection configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="CITATION_",
        case_sensitive=False,
        extra="ignore",
    )

    head_timeout_seconds: float = Field(default=5.0, gt=0, description="HEAD probe timeout")
    get_timeout_seconds: float = Field(default=7.0, gt=0, description="GET probe timeout")
    user_agent: str = Field(default="Mozilla/5.0", description="User-Agent for the GET probe")
    min_valid_sources: int = Field(
        default=3,
        ge=0,
        description="Fewer valid sources than this triggers the repair pass",
    )
    max_sources: int = Field(default=4, ge=1, description="Sources shown to the user")
    requested_sources: int = Field(default=4, ge=1, description="Sources asked from the model")

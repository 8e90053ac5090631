"""Pydantic v2 settings models for feedpublish.

These models provide:
- Type-safe settings loading
- Automatic validation
- Default values
- Environment variable override support
"""

from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings

from feedpublish import __version__

DEFAULT_CONFIG_DIR = Path.home() / ".config" / "feedpublish"


class SourcesConfig(BaseModel):
    """Remembered feed sources, most recently used first."""

    items: list[str] = Field(
        default_factory=list,
        description="Feed source URLs, most recent first",
    )
    active: str | None = Field(
        default=None,
        description="Source selected by default for the next publish",
    )
    max_items: int = Field(
        default=5,
        ge=1,
        description="Maximum number of remembered sources",
    )

    @field_validator("items")
    @classmethod
    def drop_blank_items(cls, v: list[str]) -> list[str]:
        return [item.strip() for item in v if item and item.strip()]


class HttpConfig(BaseModel):
    """Transport settings for the HTTP upload channels."""

    timeout_seconds: int = Field(
        default=100,
        ge=1,
        description="Socket timeout for upload requests",
    )
    user_agent: str = Field(
        default=f"feedpublish/{__version__}",
        description="User-Agent header sent with every request",
    )
    chunk_size: int = Field(
        default=64 * 1024,
        ge=1024,
        description="Bytes sent per write while streaming the package",
    )


class FeedPublishSettings(BaseSettings):
    """Root settings model.

    Supports environment variable overrides with FEEDPUBLISH_ prefix.
    Example: FEEDPUBLISH_HTTP__TIMEOUT_SECONDS=300
    """

    use_v1_protocol: bool = Field(
        default=True,
        description="Protocol used by default for new publish sessions",
    )
    sources: SourcesConfig = Field(default_factory=SourcesConfig)
    http: HttpConfig = Field(default_factory=HttpConfig)
    credentials_file: Path = Field(
        default_factory=lambda: DEFAULT_CONFIG_DIR / "credentials.yml",
        description="YAML file holding one API key per feed source",
    )

    model_config = {
        "env_prefix": "FEEDPUBLISH_",
        "env_nested_delimiter": "__",
    }

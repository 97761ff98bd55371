"""Application settings loaded from the environment."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration; every field can be set via an env variable."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Model API
    anthropic_api_key: str | None = None
    anthropic_model: str = "claude-3-haiku-20240307"
    anthropic_base_url: str = "https://api.anthropic.com"
    anthropic_version: str = "2023-06-01"

    # Network timeouts (seconds)
    fetch_timeout: float = 10.0
    anthropic_timeout: float = 60.0

    # Prompt budgets
    html_prefix_chars: int = 15000
    comments_text_chars: int = 8000
    extraction_max_tokens: int = 4000
    comments_max_tokens: int = 500

    rate_limit: str = "30/minute"


@lru_cache
def get_settings() -> Settings:
    return Settings()

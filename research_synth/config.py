# =============================================================================
# Application Configuration — Pydantic Settings
# =============================================================================
#
# All provider credentials, base URLs and pipeline knobs live here and are
# loaded from environment variables (or a .env file) at startup.
#
# HOW IT WORKS:
# Pydantic Settings loads values in this priority order (highest first):
#   1. Environment variables (e.g., `LLM_API_KEY=...`)
#   2. Values from the .env file
#   3. Default values defined below
#
# DESIGN DECISION: Settings are read once, but providers receive explicit
# constructor arguments that merely DEFAULT to these values. Tests and the
# CLI can build providers with their own keys and URLs without touching
# process-wide state.
#
# USAGE:
#   from research_synth.config import settings
#   print(settings.llm_model)
# =============================================================================

import logging
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Only the LLM API key is mandatory; everything else has a default that
    works against the public OpenRouter and Semantic Scholar endpoints.
    """

    # -------------------------------------------------------------------------
    # Application
    # -------------------------------------------------------------------------
    app_name: str = "Research Synthesis Service"
    app_version: str = "0.1.0"
    environment: str = "development"  # "development" or "production"
    debug: bool = False
    log_level: str = "INFO"

    # -------------------------------------------------------------------------
    # LLM Configuration — Multi-Provider
    # -------------------------------------------------------------------------
    # Two provider types are supported:
    #   - "openai_compatible": any OpenAI-style /chat/completions API.
    #     Defaults to OpenRouter.
    #   - "anthropic": Claude via the native Anthropic SDK
    #
    # LLM_API_KEY is the mandatory key. OPENROUTER_API_KEY and
    # ANTHROPIC_API_KEY are accepted as provider-specific fallbacks.
    # -------------------------------------------------------------------------
    llm_provider: str = "openai_compatible"
    llm_base_url: str | None = "https://openrouter.ai/api/v1"
    llm_api_key: str | None = None
    openrouter_api_key: str = ""
    anthropic_api_key: str = ""
    llm_model: str = "openai/gpt-4o-mini"
    llm_temperature: float = 0.1
    llm_max_tokens: int = 4000

    # Sent to OpenRouter for attribution on its dashboards
    llm_app_referer: str = "https://financial-analyzer.com"
    llm_app_title: str = "Financial Analysis App"

    # Retries applied by the review pipeline around each completion.
    # The /analyze path never retries (rate limits surface as 429).
    completion_max_retries: int = 3

    # -------------------------------------------------------------------------
    # Search Provider — Semantic Scholar Graph API
    # -------------------------------------------------------------------------
    # The API works without a key at a lower rate limit. A 429 response is
    # retried after a flat delay, at most search_max_rate_limit_retries
    # times (unset = retry until success or abort).
    # -------------------------------------------------------------------------
    search_base_url: str = "https://api.semanticscholar.org/graph/v1"
    search_api_key: str | None = None
    search_timeout_seconds: float = 30.0
    search_rate_limit_delay: float = 5.0
    search_max_rate_limit_retries: int | None = 12

    # -------------------------------------------------------------------------
    # Review Pipeline
    # -------------------------------------------------------------------------
    review_default_limit: int = 5

    # -------------------------------------------------------------------------
    # File Upload (/analyze-file)
    # -------------------------------------------------------------------------
    upload_dir: str | None = None  # None = system temp directory
    max_upload_bytes: int = 10 * 1024 * 1024  # 10MB
    allowed_upload_extensions: tuple[str, ...] = (".csv", ".json")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


@lru_cache
def get_settings() -> Settings:
    """
    Create and cache a Settings instance.

    In tests, patch individual fields on the shared instance:
        patch.object(settings, "environment", "production")
    """
    return Settings()


settings = get_settings()


def configure_logging(level: str | None = None) -> None:
    """Configure root logging once for the service or the CLI."""
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

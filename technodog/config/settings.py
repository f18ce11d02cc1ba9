"""Application settings loaded from environment variables via pydantic-settings.

Values come from two sources (highest priority first):

  1. Environment variables, e.g. ``OPENAI_API_KEY=sk-...``
  2. A ``.env`` file in the working directory

Field ``openai_api_key`` maps to env var ``OPENAI_API_KEY``.  An empty
string means "not configured": providers raise
:class:`~technodog.utils.errors.CredentialMissingError` before any network
call when their key is empty.

A single ``Settings`` instance is built at process start and handed to
every provider, store and agent; nothing reads ``os.environ`` afterwards.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """techno.dog agent settings."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === AI providers ===
    openai_api_key: str = ""
    openai_model: str = "gpt-4o"
    openai_base_url: str = ""
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    gemini_api_key: str = ""
    gemini_model: str = "gemini-1.5-flash"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    groq_api_key: str = ""
    groq_model: str = "llama-3.1-70b-versatile"
    groq_base_url: str = "https://api.groq.com/openai/v1"
    # Upper bound for one provider call, applied by the orchestrator.
    provider_timeout_seconds: float = 25.0

    # === Scraping / data services ===
    firecrawl_api_key: str = ""
    firecrawl_base_url: str = "https://api.firecrawl.dev/v1"
    youtube_api_key: str = ""
    youtube_base_url: str = "https://www.googleapis.com/youtube/v3"
    youtube_channel_handle: str = "@lapipaislapipa"
    openlibrary_base_url: str = "https://openlibrary.org"

    # === Persistence ===
    database_path: str = "data/technodog.db"
    # A running agent run with no heartbeat for this long reads as stale.
    stale_run_minutes: int = 30

    # === Agent tunables ===
    book_research_delay_seconds: float = 1.0
    config_path: str = "config/config.yaml"

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"

    def get_available_llm_providers(self) -> list[str]:
        """Return the LLM provider names that have non-empty API keys configured."""
        providers: list[str] = []
        if self.openai_api_key:
            providers.append("openai")
        if self.anthropic_api_key:
            providers.append("anthropic")
        if self.gemini_api_key:
            providers.append("gemini")
        if self.groq_api_key:
            providers.append("groq")
        return providers

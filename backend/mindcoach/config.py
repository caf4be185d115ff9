"""Application configuration loaded from environment variables."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── Persistent store ─────────────────────────────────────────────────────
    # Key-value table for chats/projects/user context. SQLite for local dev.
    DATABASE_URL: str = "sqlite:///./mindcoach.db"
    STORE_CHATS_KEY: str = "mindcoach-chats"
    STORE_PROJECTS_KEY: str = "mindcoach-projects"
    STORE_CONTEXT_KEY: str = "mindcoach-context"
    # Empty project chats older than this are pruned by housekeeping.
    CHAT_STALENESS_MINUTES: int = 5

    # ── Anthropic (LLM provider) ─────────────────────────────────────────────
    ANTHROPIC_API_KEY: str = ""
    ANTHROPIC_MODEL: str = "claude-3-5-haiku-20241022"
    LLM_TIMEOUT_SECONDS: float = 60.0

    # ── Exa (web search provider) ────────────────────────────────────────────
    EXA_API_KEY: str = ""
    EXA_BASE_URL: str = "https://api.exa.ai"
    SEARCH_TIMEOUT_SECONDS: float = 15.0

    # ── Discover feed / image provider ───────────────────────────────────────
    FEED_TIMEOUT_SECONDS: float = 10.0
    POLLINATIONS_BASE_URL: str = "https://image.pollinations.ai/prompt"

    # ── Retry discipline for provider calls ──────────────────────────────────
    RETRY_ATTEMPTS: int = 3
    RETRY_BASE_DELAY_SECONDS: float = 1.0

    # ── HTTP surface ─────────────────────────────────────────────────────────
    # Comma-separated list of allowed origins, "*" for any.
    ALLOWED_ORIGINS: str = "*"
    RATE_LIMIT_DEFAULT: str = "60/minute"
    RATE_LIMIT_ENABLED: bool = True

    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()

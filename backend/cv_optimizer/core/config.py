from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App
    APP_NAME: str = "CV Optimizer"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Storage
    DATA_DIR: str = "./data"
    CONVERSATIONS_DIR: str = "./data/conversations"
    # Learned preferences live in a small table (SQLite by default)
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/preferences.db"

    # LLM provider: anthropic, groq, deepseek, openai, gemini
    AI_PROVIDER: str = "anthropic"
    ANTHROPIC_API_KEY: Optional[str] = None
    ANTHROPIC_MODEL: str = "claude-sonnet-4-20250514"
    GROQ_API_KEY: Optional[str] = None
    GROQ_MODEL: str = "llama-3.3-70b-versatile"
    DEEPSEEK_API_KEY: Optional[str] = None
    DEEPSEEK_MODEL: str = "deepseek-chat"
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_MODEL: str = "gpt-4o"
    OPENAI_BASE_URL: Optional[str] = None
    GEMINI_API_KEY: Optional[str] = None
    GEMINI_MODEL: str = "gemini-2.0-flash"

    LLM_MAX_TOKENS: int = 4096
    PREFERENCE_MAX_TOKENS: int = 200
    MAX_HISTORY_PAIRS: int = 5

    # Uploads
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024  # 10 MB

    # PDF rendering
    PDF_FORMAT: str = "A4"
    RENDER_TIMEOUT_MS: int = 30000

    # CORS
    CORS_ORIGINS: list[str] = [
        "http://localhost:3055",
        "http://127.0.0.1:3055",
    ]

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings validated via Pydantic.

    Values are loaded from environment variables and/or a .env file.
    Each provider has a base key slot plus numbered alternates ``_2`` .. ``_5``
    which together form that provider's credential pool.
    """

    # Gemini keys
    gemini_api_key: str = ""
    gemini_api_key_2: str = ""
    gemini_api_key_3: str = ""
    gemini_api_key_4: str = ""
    gemini_api_key_5: str = ""

    # OpenAI keys
    openai_api_key: str = ""
    openai_api_key_2: str = ""
    openai_api_key_3: str = ""
    openai_api_key_4: str = ""
    openai_api_key_5: str = ""

    # Claude keys
    claude_api_key: str = ""
    claude_api_key_2: str = ""
    claude_api_key_3: str = ""
    claude_api_key_4: str = ""
    claude_api_key_5: str = ""

    # Models
    default_ai_provider: str = "gemini"
    gemini_model: str = "gemini-1.5-flash"
    openai_model: str = "gpt-4o-mini"
    llm_model: str = "claude-sonnet-4-20250514"

    # Storage
    storage_backend: str = "json"
    data_dir: str = "data"
    supabase_url: str = ""
    supabase_key: str = ""

    # Orchestration
    operation_timeout_seconds: float = 120.0
    outer_max_attempts: int = 3
    rotation_delay_seconds: float = 2.0
    ask_backoff_seconds: float = 15.0
    analyze_backoff_seconds: float = 15.0
    extract_backoff_seconds: float = 30.0

    # Heuristic extractor thresholds
    heuristic_min_score: int = 1
    heuristic_medium_threshold: int = 4
    heuristic_high_threshold: int = 6
    heuristic_max_tasks: int = 8

    # App config
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance.

    Gracefully handles missing .env files (e.g. in CI/testing) by falling
    back to environment variables and defaults.
    """
    try:
        return Settings()
    except Exception:
        # If .env is missing or unreadable, build settings from env vars only.
        return Settings(_env_file=None)  # type: ignore[call-arg]


settings = get_settings()

from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Application
    app_name: str = "Quick Worksheet Generator"
    debug: bool = False

    # OpenAI (the bearer token itself lives in the session)
    openai_model: str = "gpt-4o"
    openai_temperature: float = 0.7
    openai_max_tokens: int = 4000

    # Per-session admission control
    max_calls_per_session: int = 5
    call_cooldown_seconds: float = 10.0

    # Delay before the opposite-view artifact is produced
    export_followup_delay: float = 0.5

    # Idle sessions are closed and dropped after this many seconds
    session_ttl_seconds: float = 3600.0

    # CORS
    frontend_url: str = "http://localhost:5173"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    return Settings()

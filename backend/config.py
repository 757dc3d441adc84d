from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List


class Settings(BaseSettings):
    # Authoritative game backend (JSON over HTTPS)
    api_base_url: str = "https://monstercatch-production.up.railway.app"
    # Opaque bearer credential issued to this player; never decoded here
    api_token: str = ""
    request_timeout_s: float = 10.0

    # Round timeline
    timer_tick_ms: int = 100
    default_round_duration_ms: int = 60_000  # used when /game/start omits roundDurationMs
    bonus_kind: str = "epic"                 # kind counted into epicCount on finish

    # Background polling cadences
    tournament_poll_interval_s: float = 15.0
    profile_poll_interval_s: float = 10.0

    # CORS origins for the UI shell — set ALLOWED_ORIGINS env var (JSON list) in production
    allowed_origins: List[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
        "http://127.0.0.1:5173",
    ]
    debug: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
    )


settings = Settings()

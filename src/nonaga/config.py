from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "info"

    # AI opponent
    ai_think_delay_min: float = 0.8
    ai_think_delay_max: float = 1.5
    ai_jitter: float = 3.0

    # Game storage
    room_code_length: int = 6
    game_ttl_seconds: int = 60 * 60 * 24

    model_config = SettingsConfigDict(
        env_prefix="NONAGA_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )


settings = Settings()

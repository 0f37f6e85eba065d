from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # --- Basic Info ---
    APP_NAME: str = "enhanced-fetch"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    PROFILES_PATH: Path = BASE_DIR / "config" / "profiles.yaml"

    # --- HTTP Client Configuration ---
    USER_AGENT: str = "enhanced-fetch/0.1.0"
    FOLLOW_REDIRECTS: bool = True
    VERIFY_SSL: bool = True

    # --- Retry Policy Configuration ---
    # Значения по умолчанию для RequestConfig (все в миллисекундах).
    RETRIES: int = 3
    RETRY_DELAY_MS: float = 1000.0
    # 0 или пусто -> таймаут отключен
    TIMEOUT_MS: Optional[float] = 8000.0

    model_config = SettingsConfigDict(
        env_prefix="FETCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()

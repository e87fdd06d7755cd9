"""Application configuration loaded from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All configuration is loaded from environment variables (or .env file)."""

    # --- App ---
    app_name: str = "SafeLink"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"
    environment: str = "development"  # development | kiosk | production

    # --- Offline storage ---
    storage_backend: str = "sqlite"  # memory | sqlite | postgres
    store_name: str = "safelink_data"
    storage_path: str = "data/safelink.db"  # sqlite only
    database_url: str = ""  # postgres only, asyncpg DSN
    storage_quota_bytes: int = 0  # memory backend; 0 = unlimited

    # --- CORS ---
    cors_origins: list[str] = ["http://localhost:5173"]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    return Settings()

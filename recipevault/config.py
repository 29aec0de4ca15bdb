"""
Application settings loaded from environment variables (or .env).
"""

from functools import lru_cache
from typing import Literal
from urllib.parse import urlparse

from pydantic_settings import BaseSettings, SettingsConfigDict

APP_NAME = "RecipeVault"
VERSION = "1.0.0"

PLACEHOLDER_MARKERS = (
    "your_supabase_project_url",
    "your_supabase_anon_key",
    "your-project-id",
    "your-anon-key",
)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Supabase project
    supabase_url: str = ""
    supabase_anon_key: str = ""

    # HTTP client
    request_timeout: float = 10.0
    http_retries: int = 2  # connection failures only

    # Legacy local storage
    legacy_db_path: str = "recipevault.db"
    redis_url: str = ""

    migration_max_attempts: int = 5

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    @property
    def rest_url(self) -> str:
        return f"{self.supabase_url.rstrip('/')}/rest/v1"

    @property
    def auth_url(self) -> str:
        return f"{self.supabase_url.rstrip('/')}/auth/v1"

    @property
    def is_configured(self) -> bool:
        """False when Supabase credentials are missing, placeholders, or not an http(s) URL."""
        url, key = self.supabase_url, self.supabase_anon_key
        if not url or not key:
            return False
        for value in (url, key):
            if any(marker in value for marker in PLACEHOLDER_MARKERS):
                return False
        parsed = urlparse(url)
        return parsed.scheme in ("http", "https") and bool(parsed.netloc)


@lru_cache
def get_settings() -> Settings:
    """Get cached Settings instance."""
    return Settings()

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment with defaults.

    Environment variable mapping follows pydantic's rules (e.g., APP_NAME, DEBUG,
    API_BASE_URL, PAGE_SIZE, CLOSE_DELAY_SECONDS).
    """

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Basic app metadata
    app_name: str = "Expense Desk"
    debug: bool = True
    version: str = "0.1.0"

    # Remote expense store
    api_base_url: str = "http://localhost:5001/api"
    http_timeout_seconds: float = 10.0
    http_retries: int = 2  # GET only; mutations are never retried
    http_backoff_seconds: float = 0.5

    # Workflow behaviour
    page_size: int = 15
    close_delay_seconds: float = 2.0
    session_idle_seconds: float = 1800.0  # unused sessions are evicted after this

    # Fallback bearer token for sessions opened without one (scripted use)
    api_token: Optional[str] = None

    def init_post_load(self) -> None:
        """Finalize derived fields and validate ranges."""
        self.api_base_url = normalize_api_url(self.api_base_url)
        if self.page_size <= 0:
            raise ValueError(f"page_size must be positive, got {self.page_size}")
        if self.close_delay_seconds < 0:
            raise ValueError(
                f"close_delay_seconds cannot be negative, got {self.close_delay_seconds}"
            )
        if self.session_idle_seconds <= 0:
            raise ValueError(
                f"session_idle_seconds must be positive, got {self.session_idle_seconds}"
            )
        if self.http_retries < 0:
            raise ValueError(f"http_retries cannot be negative, got {self.http_retries}")


def normalize_api_url(url: str) -> str:
    """Return the store base URL guaranteed to end with ``/api``."""
    url = url.rstrip("/")
    if url.endswith("/api"):
        return url
    return f"{url}/api"


@lru_cache
def get_settings() -> Settings:
    settings = Settings()
    settings.init_post_load()
    return settings

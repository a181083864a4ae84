"""Client configuration."""
import logging
from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Console settings."""

    # App
    APP_NAME: str = "Personnel_Console"
    ENV: str = "development"
    DEBUG: bool = False

    # Personnel API
    API_BASE_URL: str = "http://localhost:8000/api"
    # None waits until the transport itself gives up.
    HTTP_TIMEOUT_SECONDS: float | None = None

    # Directory list
    DIRECTORY_PAGE_SIZE: int = 15
    ACTIVITY_LOG_PAGE_SIZE: int = 20
    # 0 disables debouncing: every search keystroke fetches.
    SEARCH_DEBOUNCE_SECONDS: float = 0.0

    # Login suggestions
    LOGIN_CANDIDATE_COUNT: int = 5
    LOGIN_NAME_MIN_LENGTH: int = 2

    # Notifications kept before the oldest is dropped
    NOTIFICATION_LIMIT: int = 20

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def api_base_url(self) -> str:
        """Base URL without trailing slash."""
        return self.API_BASE_URL.rstrip("/")


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()


def configure_logging(level: str | None = None) -> None:
    """Apply LOG_LEVEL to the root logger."""
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

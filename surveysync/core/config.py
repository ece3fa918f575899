"""Application configuration."""
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    # Backend
    API_BASE_URL: str = "http://localhost:5000"
    API_TOKEN: Optional[str] = None
    HTTP_TIMEOUT_SECONDS: float = 60.0  # uploads can be large videos

    # Local queue storage
    QUEUE_DATABASE_URL: str = "sqlite:///./offline_queue.db"
    QUEUE_STORAGE_KEY: str = "offline_queue_v1"

    # Connectivity detection
    CONNECTIVITY_CHECK_URL: str = "https://clients3.google.com/generate_204"
    # Anything else (portal redirect, login page) means no internet
    CONNECTIVITY_CHECK_EXPECTED_STATUS: int = 204
    CONNECTIVITY_CHECK_HOST: str = "8.8.8.8"
    CONNECTIVITY_CHECK_PORT: int = 53
    CONNECTIVITY_CHECK_TIMEOUT_SECONDS: float = 3.0
    CONNECTIVITY_POLL_SECONDS: float = 10.0

    # Sync
    SYNC_GC_RESOLVED_MEDIA: bool = False

    # Environment
    ENVIRONMENT: str = "development"

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    @property
    def api_base_url(self) -> str:
        """Base URL without trailing slashes."""
        return self.API_BASE_URL.rstrip("/")


settings = Settings()

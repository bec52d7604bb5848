"""Client settings using pydantic-settings.

Loads configuration from environment variables with .env file support.
All variables use the ``NOTEBOOKLM_`` prefix.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Client configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="NOTEBOOKLM_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Credentials
    auth_token: SecretStr = Field(
        default=SecretStr(""),
        description="CSRF token ('at' form field) scraped from the NotebookLM page",
    )
    cookies: SecretStr = Field(
        default=SecretStr(""),
        description="Primary-domain cookie header (notebooklm.google.com)",
    )
    secondary_cookies: SecretStr = Field(
        default=SecretStr(""),
        description="Secondary-domain cookie header (google.com), merged before the primary",
    )
    authuser: str = Field(default="0", description="Google account index")

    # Endpoint
    base_url: str = Field(default="https://notebooklm.google.com")
    build_label: str = Field(
        default="boq_labs-tailwind-frontend_20260101.17_p0",
        description="Front-end build label ('bl' query parameter)",
    )
    session_id: str = Field(
        default="-7958112141384765164",
        description="Front-end session id ('f.sid' query parameter)",
    )
    language: str = Field(default="en", description="'hl' query parameter")

    # Timeouts (seconds)
    request_timeout: float = Field(default=30.0, gt=0)
    stream_timeout: float = Field(default=120.0, gt=0)
    media_timeout: float = Field(default=30.0, gt=0)
    priming_timeout: float = Field(default=5.0, gt=0)

    # Retry policy for RPC calls
    max_retries: int = Field(default=1, ge=0, le=10)
    retry_delay: float = Field(default=1.0, ge=0)
    retry_max_delay: float = Field(default=5.0, ge=0)

    # Media redirects
    max_redirect_hops: int = Field(default=10, ge=1, le=50)

    # Quota
    quota_enabled: bool = False
    quota_plan: Literal["standard", "plus", "pro", "ultra"] = "standard"
    quota_state_path: Path | None = Field(
        default=None,
        description="Optional JSON file used to persist quota usage between runs",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings instance (cached after first call)
    """
    return Settings()

import logging
import os
from functools import lru_cache

from pydantic import AliasChoices, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "http://localhost:3001/api"
DEFAULT_POLL_INTERVAL_MS = 15000

_KNOWN_PORTFOLIO_ENV_KEYS = {
    "PORTFOLIO_API_BASE_URL",
    "PORTFOLIO_REQUEST_TIMEOUT_SECONDS",
    "PORTFOLIO_POLL_INTERVAL_MS",
    "PORTFOLIO_LOG_LEVEL",
}

_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


def _warn_unknown_prefixed_env(prefix: str, known_keys: set[str]) -> None:
    unknown = sorted(key for key in os.environ if key.startswith(prefix) and key not in known_keys)
    if unknown:
        logger.warning("Unknown %s env vars ignored: %s", prefix, ", ".join(unknown))


class Settings(BaseSettings):
    """Dashboard engine settings sourced from environment variables."""

    api_base_url: str = Field(
        default=DEFAULT_API_BASE_URL,
        validation_alias=AliasChoices(
            "api_base_url",
            "API_BASE_URL",
            "portfolio_api_base_url",
            "PORTFOLIO_API_BASE_URL",
            "NEXT_PUBLIC_API_BASE_URL",
        ),
    )
    request_timeout_seconds: float = Field(
        default=10,
        ge=1,
        validation_alias=AliasChoices(
            "request_timeout_seconds", "REQUEST_TIMEOUT_SECONDS", "PORTFOLIO_REQUEST_TIMEOUT_SECONDS"
        ),
    )
    poll_interval_ms: int = Field(
        default=DEFAULT_POLL_INTERVAL_MS,
        validation_alias=AliasChoices(
            "poll_interval_ms", "POLL_INTERVAL_MS", "PORTFOLIO_POLL_INTERVAL_MS", "AUTO_REFRESH_INTERVAL"
        ),
    )
    log_level: str = Field(
        default="INFO",
        validation_alias=AliasChoices("log_level", "LOG_LEVEL", "PORTFOLIO_LOG_LEVEL"),
    )

    @field_validator("api_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.strip().rstrip("/")

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in _LOG_LEVELS:
            logger.warning("LOG_LEVEL=%s is not recognised; falling back to INFO", value)
            return "INFO"
        return level

    @model_validator(mode="after")
    def _warn_on_unusual_values(self) -> "Settings":
        if self.poll_interval_ms <= 0:
            logger.info("Auto refresh disabled (poll_interval_ms=%s)", self.poll_interval_ms)
        if not self.api_base_url.startswith(("http://", "https://")):
            logger.warning("API_BASE_URL does not look like an HTTP URL: %s", self.api_base_url)

        _warn_unknown_prefixed_env("PORTFOLIO_", _KNOWN_PORTFOLIO_ENV_KEYS)
        return self

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", env_prefix="", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """Cached accessor so we only load settings once per process."""
    return Settings()

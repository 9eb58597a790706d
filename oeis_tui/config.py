"""Application configuration loaded from environment variables."""

import logging

from pydantic import ValidationInfo, field_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Central configuration — reads from environment / .env file."""

    # Remote service
    base_url: str = "https://oeis.org"
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 6.1; WOW64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.6050.0 Safari/537.36"
    )
    request_timeout_seconds: int = 30

    # Local store
    data_dir: str = ""
    cache_max_age_days: int = 30

    # Lists shown by the presentation layer
    results_per_page: int = 15
    recent_limit: int = 8
    history_limit: int = 20

    # Render loop cadence (milliseconds)
    frame_ms: int = 60
    fast_frame_ms: int = 24

    log_level: str = "INFO"

    model_config = {"env_prefix": "OEIS_", "env_file": ".env", "env_file_encoding": "utf-8"}

    @field_validator(
        "request_timeout_seconds",
        "cache_max_age_days",
        "results_per_page",
        "recent_limit",
        "history_limit",
        "frame_ms",
        "fast_frame_ms",
        mode="before",
    )
    @classmethod
    def _positive_or_default(cls, value, info: ValidationInfo) -> int:
        """Fall back to the field default instead of rejecting bad input."""
        default = cls.model_fields[info.field_name].default
        try:
            number = int(value)
        except (TypeError, ValueError):
            logger.warning("Invalid %s=%r, using default %d", info.field_name, value, default)
            return default
        if number <= 0:
            logger.warning("Non-positive %s=%r, using default %d", info.field_name, value, default)
            return default
        return number

    @field_validator("log_level", mode="before")
    @classmethod
    def _known_log_level(cls, value, info: ValidationInfo) -> str:
        default = cls.model_fields[info.field_name].default
        level = str(value).strip().upper()
        # getLevelName maps a known name to its int and anything else to a string.
        if not isinstance(logging.getLevelName(level), int):
            logger.warning("Unknown %s=%r, using default %s", info.field_name, value, default)
            return default
        return level

    @property
    def has_custom_data_dir(self) -> bool:
        return bool(self.data_dir)


settings = Settings()

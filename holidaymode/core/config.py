import logging

from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import Optional

class Settings(BaseSettings):
    # Environment
    ENV: str = "development"
    CONFIG_STRICT: bool = False

    # Database
    DATABASE_URL: Optional[str] = None
    TEST_DATABASE_URL: Optional[str] = None
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30  # seconds to wait for a pooled connection
    DB_POOL_RECYCLE: int = 3600
    DB_STATEMENT_TIMEOUT_MS: int = 5000  # postgres only; 0 disables

    # Calendar used when the caller does not send X-Timezone
    DEFAULT_TIMEZONE: str = "UTC"

    # Holiday allowances (free plan; premium is unlimited)
    HOLIDAY_FREE_PERIODS_PER_YEAR: int = 2
    HOLIDAY_FREE_MAX_DURATION_DAYS: int = 14
    HOLIDAY_REASON_MAX_LENGTH: int = 200

    # CORS
    CORS_ALLOWED_ORIGINS: str = "http://localhost:8081"  # comma-separated

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )
settings = Settings()


def validate_config(strict: Optional[bool] = None, settings_obj: Optional[Settings] = None, logger: Optional[logging.Logger] = None) -> bool:
    """Validate required configuration.

    In strict mode raise RuntimeError; otherwise emit warnings only.
    Secrets are not logged, only missing keys.
    """
    cfg = settings_obj or settings
    log = logger or logging.getLogger("holidaymode")
    strict_mode = strict if strict is not None else getattr(cfg, "CONFIG_STRICT", False)

    required_keys = [
        "DATABASE_URL",
    ]

    missing = [key for key in required_keys if not getattr(cfg, key, None)]
    if missing:
        message = f"Missing required configuration: {', '.join(missing)}"
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)

    free_periods = getattr(cfg, "HOLIDAY_FREE_PERIODS_PER_YEAR", 0)
    free_days = getattr(cfg, "HOLIDAY_FREE_MAX_DURATION_DAYS", 0)
    if free_periods < 0 or free_days < 1:
        message = "Holiday allowances must be non-negative (max duration at least 1 day)"
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)

    return True

import logging

from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import List, Optional


class Settings(BaseSettings):
    ENV: str = "development"
    CONFIG_STRICT: bool = False
    LOG_LEVEL: str = "INFO"

    DATABASE_URL: Optional[str] = None
    TEST_DATABASE_URL: Optional[str] = None

    JWT_SECRET: Optional[str] = None
    JWT_ALGORITHM: str = "HS256"
    ALLOW_HEADER_AUTH: bool = True  # X-User-Id fallback, dev/test only

    # Challenge lifecycle
    DEFAULT_CHALLENGE_DAYS: int = 21
    DEFAULT_CHALLENGE_LEVEL: str = "Soft"
    PURGE_PROGRESS_ON_DIFFICULTY_CHANGE: bool = True
    AUTO_START_CHALLENGE: bool = True

    MAX_PHOTO_BYTES: int = 5 * 1024 * 1024

    CORS_ORIGINS: str = "http://localhost:3000"  # comma-separated

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def cors_origin_list(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


settings = Settings()

REQUIRED_KEYS = ("DATABASE_URL", "JWT_SECRET")


def validate_config(strict: Optional[bool] = None, settings_obj: Optional[Settings] = None, logger: Optional[logging.Logger] = None) -> bool:
    """Report missing configuration.

    Strict mode raises RuntimeError; otherwise each gap is logged as a warning.
    Only key names are logged, never values.
    """
    cfg = settings_obj or settings
    log = logger or logging.getLogger("stayhard")
    strict_mode = strict if strict is not None else getattr(cfg, "CONFIG_STRICT", False)

    missing = [key for key in REQUIRED_KEYS if not getattr(cfg, key, None)]
    if not missing:
        return True

    message = f"Missing required configuration: {', '.join(missing)}"
    if strict_mode:
        raise RuntimeError(message)
    log.warning(message)
    if "JWT_SECRET" in missing and getattr(cfg, "ALLOW_HEADER_AUTH", False):
        log.warning("JWT_SECRET unset: only X-User-Id header auth will work")
    return True

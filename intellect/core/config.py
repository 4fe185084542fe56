import logging

from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import Optional

class Settings(BaseSettings):
    # Environment
    ENV: str = "development"
    CONFIG_STRICT: bool = False
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: Optional[str] = None
    TEST_DATABASE_URL: Optional[str] = None

    # Text generation (Groq)
    GROQ_API_KEY: Optional[str] = None
    GROQ_MODEL: str = "llama-3.1-8b-instant"
    GENERATION_TEMPERATURE: float = 0.8
    GENERATION_MAX_TOKENS: int = 2000
    MATCH_DEFAULT_CONFIDENCE: int = 75

    # Advocate directory preloaded into the in-memory store (no DATABASE_URL)
    ADVOCATES_FILE: Optional[str] = None

    # Image generation (Stability)
    STABILITY_API_KEY: Optional[str] = None
    STABILITY_API_URL: str = "https://api.stability.ai/v2beta/stable-image/generate/core"
    IMAGE_SIZE: int = 512
    IMAGE_TIMEOUT_SECONDS: float = 60.0

    # Usage gate: enforcement search
    ENFORCEMENT_QUOTA_POLICY: str = "rolling_window"  # rolling_window | fixed_counter
    ENFORCEMENT_DAILY_LIMIT: int = 2
    ENFORCEMENT_WINDOW_HOURS: int = 24

    # Usage gate: image generation
    IMAGE_QUOTA_POLICY: str = "fixed_counter"
    IMAGE_DAILY_LIMIT: int = 2
    IMAGE_COOLDOWN_HOURS: int = 24

    # What the gate does when the usage store is down
    USAGE_FAIL_MODE: str = "closed"  # closed | open

    # CORS (comma-separated)
    CORS_ALLOWED_ORIGINS: str = "http://localhost:3000"

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
    log = logger or logging.getLogger("intellect")
    strict_mode = strict if strict is not None else getattr(cfg, "CONFIG_STRICT", False)

    required_keys = [
        "DATABASE_URL",
        "GROQ_API_KEY",
        "STABILITY_API_KEY",
    ]

    missing = [key for key in required_keys if not getattr(cfg, key, None)]
    if missing:
        message = f"Missing required configuration: {', '.join(missing)}"
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)

    fail_mode = (getattr(cfg, "USAGE_FAIL_MODE", "closed") or "closed").lower()
    if fail_mode not in {"open", "closed"}:
        message = f"USAGE_FAIL_MODE must be 'open' or 'closed', got {fail_mode!r}"
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)

    return True

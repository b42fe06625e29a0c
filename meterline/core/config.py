import logging

from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import List, Optional

from meterline.core.logging import LOGGER_NAME


DEFAULT_REGISTRY_API_BASE_URL = "https://api.lavapayments.com/v1"


class Settings(BaseSettings):
    # Environment
    ENV: str = "development"
    CONFIG_STRICT: bool = False

    # Remote registry / payments API
    REGISTRY_SECRET_KEY: Optional[str] = None
    REGISTRY_PRODUCT_SECRET: Optional[str] = None
    REGISTRY_API_BASE_URL: str = DEFAULT_REGISTRY_API_BASE_URL
    REGISTRY_TIMEOUT_SECONDS: float = 30.0

    # Plans ($10 and $20 monthly)
    PLAN_STARTER10_SUBSCRIPTION_CONFIG_ID: str = ""
    PLAN_PRO20_SUBSCRIPTION_CONFIG_ID: str = ""

    # Checkout
    ORIGIN_URL: str = "http://localhost:5050"

    # Identity file
    AUTH_TABLE_PATH: str = "auth-users.json"

    # Relaxed candidate matching for demo accounts (comma-separated emails)
    DEMO_FALLBACK_EMAILS: str = ""

    # HTTP
    CORS_ALLOW_ORIGINS: str = "*"  # comma-separated
    PORT: int = 3001

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def registry_base_url(self) -> str:
        return str(self.REGISTRY_API_BASE_URL or DEFAULT_REGISTRY_API_BASE_URL).rstrip("/")

    @property
    def demo_fallback_emails(self) -> List[str]:
        return [item.strip().lower() for item in self.DEMO_FALLBACK_EMAILS.split(",") if item.strip()]

    @property
    def cors_origins(self) -> List[str]:
        return [item.strip() for item in self.CORS_ALLOW_ORIGINS.split(",") if item.strip()]


settings = Settings()


def validate_config(strict: Optional[bool] = None, settings_obj: Optional[Settings] = None, logger: Optional[logging.Logger] = None) -> bool:
    """Validate required configuration.

    In strict mode raise RuntimeError; otherwise emit warnings only.
    Secrets are not logged, only missing keys.
    """
    cfg = settings_obj or settings
    log = logger or logging.getLogger(LOGGER_NAME)
    strict_mode = strict if strict is not None else getattr(cfg, "CONFIG_STRICT", False)

    required_keys = [
        "REGISTRY_SECRET_KEY",
        "REGISTRY_PRODUCT_SECRET",
        "PLAN_STARTER10_SUBSCRIPTION_CONFIG_ID",
        "PLAN_PRO20_SUBSCRIPTION_CONFIG_ID",
    ]

    missing = [key for key in required_keys if not getattr(cfg, key, None)]
    if missing:
        message = f"Missing required configuration: {', '.join(missing)}"
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)

    return True

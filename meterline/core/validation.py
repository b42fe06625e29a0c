"""
Startup environment checks.

Production refuses to boot without registry credentials and plan mapping,
and with the demo fallback policy switched on. Every problem is collected
and reported in one error. Tests bypass the checks with SKIP_ENV_VALIDATION=1.
"""

import os
from typing import List, Optional
from urllib.parse import urlparse

from meterline.core.config import settings

PRODUCTION_REQUIRED = (
    "REGISTRY_SECRET_KEY",
    "REGISTRY_PRODUCT_SECRET",
    "PLAN_STARTER10_SUBSCRIPTION_CONFIG_ID",
    "PLAN_PRO20_SUBSCRIPTION_CONFIG_ID",
)


class EnvValidationError(RuntimeError):
    """Raised when environment validation fails."""

    def __init__(self, problems: List[str]):
        super().__init__("; ".join(problems))
        self.problems = problems


def _is_http_url(url: str) -> bool:
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def environment_problems(cfg, mode: str) -> List[str]:
    problems: List[str] = []
    base_url = getattr(cfg, "REGISTRY_API_BASE_URL", None)
    if base_url and not _is_http_url(base_url):
        problems.append("REGISTRY_API_BASE_URL must be a valid http(s) URL")

    if mode == "production":
        problems.extend(f"{key} is required in production" for key in PRODUCTION_REQUIRED if not getattr(cfg, key, None))
        if getattr(cfg, "DEMO_FALLBACK_EMAILS", ""):
            problems.append("DEMO_FALLBACK_EMAILS must not be set in production")
    return problems


def validate_env(env: Optional[str] = None, settings_obj=None) -> bool:
    """Validate environment configuration.

    Args:
        env: Override environment name (defaults to settings.ENV)
        settings_obj: Override settings object (defaults to meterline.core.config.settings)

    Raises:
        EnvValidationError listing every violated rule.
    """
    if os.getenv("SKIP_ENV_VALIDATION") == "1":
        return True

    cfg = settings_obj or settings
    mode = str(env or getattr(cfg, "ENV", None) or "development").lower()
    problems = environment_problems(cfg, mode)
    if problems:
        raise EnvValidationError(problems)
    return True

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from dotenv import load_dotenv
from fastapi import FastAPI
from starlette.exceptions import HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

# Load env from the working directory's .env before settings are read
if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv()

from meterline.core.config import Settings, settings, validate_config
from meterline.core.logging import LOGGER_NAME, configure_logging
from meterline.core.middleware.metrics import MetricsMiddleware
from meterline.core.middleware.request_id import RequestIdMiddleware
from meterline.core.validation import validate_env
from meterline.core.errors import (
    AppError,
    app_error_handler,
    http_error_handler,
    request_validation_handler,
    unhandled_exception_handler,
)
from meterline.api import auth, billing, checkout, health, proxy
from meterline.features.auth.sessions import SessionStore
from meterline.features.auth.store import IdentityStore
from meterline.features.billing.candidates import CandidateResolver
from meterline.features.billing.checkout import CheckoutService
from meterline.features.billing.registry import RegistryClient
from meterline.features.billing.service import BillingSessionManager, DemoFallbackPolicy
from meterline.features.proxy.forward_token import ForwardTokenIssuer
from meterline.features.proxy.gateway import ProxyGateway
from meterline.models.plan import build_plan_catalog


def create_app(settings_obj: Optional[Settings] = None, *, http_client: Optional[httpx.AsyncClient] = None) -> FastAPI:
    """Build the service with one set of collaborators held on app.state.

    http_client is injectable so tests can route registry traffic through
    httpx.MockTransport; when omitted the app owns (and closes) its client.
    """
    cfg = settings_obj or settings
    owns_client = http_client is None
    client = http_client or httpx.AsyncClient(timeout=cfg.REGISTRY_TIMEOUT_SECONDS)

    plans = build_plan_catalog(cfg)
    identity_store = IdentityStore(cfg.AUTH_TABLE_PATH)
    sessions = SessionStore(identity_store)
    registry = RegistryClient(client, cfg.registry_base_url, cfg.REGISTRY_SECRET_KEY)
    forward_tokens = ForwardTokenIssuer(cfg.REGISTRY_SECRET_KEY, cfg.REGISTRY_PRODUCT_SECRET)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger = logging.getLogger(LOGGER_NAME)
        await identity_store.ensure_ready()
        logger.info("=======================================")
        logger.info("Meterline backend starting (registry: %s)", registry.base_url)
        logger.info("Auth table: %s", identity_store.path)
        logger.info("Plans configured:")
        for plan in plans:
            logger.info(
                "- %s: $%s/month %s",
                plan.plan_id,
                plan.amount_usd,
                "(ready)" if plan.is_configured else "(missing subscription_config_id)",
            )
        logger.info("=======================================")
        try:
            yield
        finally:
            if owns_client:
                await client.aclose()
            logger.info("Stopping Meterline backend...")

    app = FastAPI(title="Meterline - billing gateway", lifespan=lifespan)

    app.state.settings = cfg
    app.state.plans = plans
    app.state.identity_store = identity_store
    app.state.sessions = sessions
    app.state.registry = registry
    app.state.forward_tokens = forward_tokens
    app.state.billing_sessions = BillingSessionManager(
        registry,
        identity_store,
        plans,
        resolver=CandidateResolver(plans),
        fallback_policy=DemoFallbackPolicy.from_emails(cfg.demo_fallback_emails, plans.default_plan_id),
    )
    app.state.checkout = CheckoutService(registry, plans, cfg.ORIGIN_URL)
    app.state.proxy = ProxyGateway(client, sessions, forward_tokens, registry.url("/forward"))

    # Middlewares
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors_origins or ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(HTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
    app.include_router(checkout.router, prefix="/api/checkout", tags=["checkout"])
    app.include_router(billing.router, prefix="/api/billing", tags=["billing"])
    app.include_router(proxy.router, prefix="/api", tags=["proxy"])
    app.include_router(health.root_router, tags=["health"])
    return app


configure_logging(settings.ENV)
validate_env()
validate_config(strict=getattr(settings, "CONFIG_STRICT", False))

app = create_app()

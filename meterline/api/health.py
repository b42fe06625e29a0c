"""
Health and diagnostics API.

Lightweight endpoints for operational monitoring without exposing secrets:
liveness, readiness and a Prometheus-text metrics export.
"""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response

from meterline.core.logging import LOGGER_NAME
from meterline.core.metrics import METRICS

logger = logging.getLogger(LOGGER_NAME)

root_router = APIRouter(tags=["health"])


@root_router.get("/healthz")
def healthz():
    """Lightweight liveness check (no deps)."""
    return {"status": "ok"}


@root_router.get("/readyz")
async def readyz(request: Request):
    """Readiness check: identity file usable + registry credentials configured."""
    state = request.app.state
    try:
        ready = await state.identity_store.ensure_ready()
    except OSError as exc:
        logger.error("readyz.identity_store_failed", exc_info=True)
        return JSONResponse(status_code=503, content={"status": "error", "detail": f"identity store unavailable: {exc.__class__.__name__}"})

    if not ready:
        return JSONResponse(status_code=503, content={"status": "error", "detail": "identity store unavailable"})
    if not state.settings.REGISTRY_SECRET_KEY:
        return JSONResponse(status_code=503, content={"status": "error", "detail": "registry secret key not configured"})

    return {"status": "ok", "plans": {plan.plan_id: plan.is_configured for plan in state.plans}}


@root_router.get("/metrics")
def metrics_endpoint():
    """Prometheus text export of the in-process counters."""
    return Response(content=METRICS.export_prometheus(), media_type="text/plain")

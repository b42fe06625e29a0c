"""
Billing API routes.

- GET  /api/billing/session: Restore (or reconcile) the caller's billing session
- POST /api/billing/session: Save the caller's billing session
- GET  /api/billing/cycle-credits: Remaining credit for the current cycle
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from meterline.api.checkout import default_connection_id
from meterline.core.auth import require_auth
from meterline.core.errors import upstream_context
from meterline.features.auth.sessions import ResolvedAuth
from meterline.features.billing.credits import fetch_cycle_credits
from meterline.features.billing.service import BillingSessionManager
from meterline.models.user import CamelModel

router = APIRouter()


class BillingSessionIn(CamelModel):
    plan: str = ""
    connection_id: str = ""
    wallet_id: Optional[str] = None


def get_billing_sessions(request: Request) -> BillingSessionManager:
    return request.app.state.billing_sessions


@router.get("/session")
async def get_session(
    manager: BillingSessionManager = Depends(get_billing_sessions),
    auth: ResolvedAuth = Depends(require_auth),
):
    """
    Restore the caller's billing session.

    Returns:
        {"plan", "connectionId", "connectionSecret", "walletId", "updatedAt"}

    Errors:
        404: No connection in the registry matches the caller
        4xx/5xx: Registry failure, forwarded with its status and body as details
    """
    with upstream_context("Failed to restore billing session"):
        session = await manager.resolve(auth.user)
    return session.model_dump(by_alias=True)


@router.post("/session")
async def save_session(
    data: BillingSessionIn,
    manager: BillingSessionManager = Depends(get_billing_sessions),
    auth: ResolvedAuth = Depends(require_auth),
):
    await manager.set(auth.user, data.plan, data.connection_id, data.wallet_id)
    return {"ok": True}


@router.get("/cycle-credits")
async def cycle_credits(
    request: Request,
    connection_id: Optional[str] = Query(None, alias="connectionId"),
    auth: ResolvedAuth = Depends(require_auth),
):
    with upstream_context("Failed to fetch cycle credits"):
        report = await fetch_cycle_credits(request.app.state.registry, default_connection_id(auth, connection_id))
    return report.model_dump(by_alias=True)

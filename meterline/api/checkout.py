"""
Checkout API routes.

- POST /api/checkout/create-session                 (optional auth)
- GET  /api/checkout/credit-bundles                 (auth)
- POST /api/checkout/create-credit-bundle-session   (auth)
- POST /api/checkout/resolve-connection             (auth)

connectionId defaults to the caller's cached billing connection where noted.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from meterline.core.auth import optional_auth, require_auth
from meterline.core.errors import upstream_context
from meterline.features.auth.sessions import ResolvedAuth
from meterline.features.billing.checkout import CheckoutService
from meterline.models.user import CamelModel

router = APIRouter()


class CreateSessionIn(CamelModel):
    plan: str = ""
    connection_id: Optional[str] = None


class CreditBundleSessionIn(CamelModel):
    connection_id: Optional[str] = None
    credit_bundle_id: Optional[str] = None


class ResolveConnectionIn(CamelModel):
    connection_id: Optional[str] = None


def get_checkout(request: Request) -> CheckoutService:
    return request.app.state.checkout


def default_connection_id(auth: ResolvedAuth, requested: Optional[str]) -> str:
    requested = str(requested or "").strip()
    if requested:
        return requested
    billing = auth.user.billing
    return billing.connection_id.strip() if billing else ""


@router.post("/create-session")
async def create_session(
    data: CreateSessionIn,
    checkout: CheckoutService = Depends(get_checkout),
    auth: Optional[ResolvedAuth] = Depends(optional_auth),
):
    with upstream_context("Failed to create checkout session"):
        return await checkout.create_subscription_session(
            data.plan,
            data.connection_id,
            user_email=auth.user.email if auth else None,
            authenticated=auth is not None,
        )


@router.get("/credit-bundles")
async def credit_bundles(
    connection_id: Optional[str] = Query(None, alias="connectionId"),
    checkout: CheckoutService = Depends(get_checkout),
    auth: ResolvedAuth = Depends(require_auth),
):
    with upstream_context("Failed to fetch credit bundles"):
        result = await checkout.list_credit_bundles(default_connection_id(auth, connection_id))
    return result.model_dump(by_alias=True)


@router.post("/create-credit-bundle-session")
async def create_credit_bundle_session(
    data: CreditBundleSessionIn,
    checkout: CheckoutService = Depends(get_checkout),
    auth: ResolvedAuth = Depends(require_auth),
):
    with upstream_context("Failed to create credit bundle checkout session"):
        return await checkout.create_credit_bundle_session(
            default_connection_id(auth, data.connection_id),
            data.credit_bundle_id,
        )


@router.post("/resolve-connection", dependencies=[Depends(require_auth)])
async def resolve_connection(
    data: ResolveConnectionIn,
    checkout: CheckoutService = Depends(get_checkout),
):
    with upstream_context("Failed to resolve connection"):
        return await checkout.resolve_connection(data.connection_id)

"""
Checkout orchestration against the registry's hosted checkout.

Payment instruments are never handled here: the registry returns a session
id/token pair that the embedded checkout consumes.
"""
from typing import Any, Dict, Optional

from meterline.core.errors import AuthError, NotFoundError, UpstreamError, ValidationError
from meterline.core.logging import log_event
from meterline.features.billing.candidates import pick, text
from meterline.features.billing.provider import ConnectionRegistry
from meterline.models.billing import CreditBundle, CreditBundleList
from meterline.models.plan import PlanCatalog


class CheckoutService:
    def __init__(self, registry: ConnectionRegistry, plans: PlanCatalog, origin_url: str):
        self.registry = registry
        self.plans = plans
        self.origin_url = origin_url

    async def create_subscription_session(
        self,
        plan_id: str,
        connection_id: Optional[str] = None,
        *,
        user_email: Optional[str] = None,
        authenticated: bool = False,
    ) -> Dict[str, Any]:
        """Subscription checkout for a new customer, or for an existing connection."""
        plan_id = str(plan_id or "")
        connection_id = str(connection_id or "").strip()
        plan = self.plans.get(plan_id)
        if plan is None:
            raise ValidationError("Unknown plan")
        if not plan.is_configured:
            raise ValidationError(
                f'Plan "{plan_id}" is not configured yet. Set its subscription config ID in env.'
            )
        if connection_id and not authenticated:
            raise AuthError("Authentication required for existing connection checkout")

        log_event(
            "info",
            f"Creating subscription checkout for {user_email or 'guest'} on {plan_id}"
            f"{' (existing connection)' if connection_id else ' (new customer flow)'}",
            event_type="checkout_create",
        )

        body: Dict[str, Any] = {
            "checkout_mode": "subscription",
            "origin_url": self.origin_url,
            "subscription_config_id": plan.subscription_config_id,
        }
        if connection_id:
            body["connection_id"] = connection_id

        session = await self.registry.create_checkout_session(body)
        return {
            "sessionId": session.checkout_session_id,
            "sessionToken": session.checkout_session_token,
            "plan": plan_id,
        }

    async def list_credit_bundles(self, connection_id: str) -> CreditBundleList:
        connection_id = _require_connection_id(connection_id)
        subscription_payload = await self.registry.get_connection_subscription(connection_id)
        subscription = pick(subscription_payload, "subscription") or {}
        subscription_config_id = text(pick(subscription, "subscription_config_id", "subscriptionConfigId"))
        if not subscription_config_id:
            raise NotFoundError("No subscription configuration found for this connection")

        config_payload = await self.registry.get_subscription_config(subscription_config_id)
        config = pick(config_payload, "subscription_config") or config_payload or {}
        raw_bundles = config.get("credit_bundles") if isinstance(config, dict) else None

        bundles = []
        for raw in raw_bundles if isinstance(raw_bundles, list) else []:
            bundle = CreditBundle(
                credit_bundle_id=text(pick(raw, "credit_bundle_id", "creditBundleId")),
                name=text(pick(raw, "name")),
                cost=text(pick(raw, "cost")),
                credit_amount=text(pick(raw, "credit_amount", "creditAmount")),
            )
            if bundle.credit_bundle_id:
                bundles.append(bundle)

        return CreditBundleList(
            connection_id=connection_id,
            subscription_config_id=subscription_config_id,
            credit_bundles=bundles,
        )

    async def create_credit_bundle_session(self, connection_id: str, credit_bundle_id: str) -> Dict[str, Any]:
        connection_id = _require_connection_id(connection_id)
        credit_bundle_id = str(credit_bundle_id or "").strip()
        if not credit_bundle_id:
            raise ValidationError("Missing creditBundleId")

        session = await self.registry.create_checkout_session(
            {
                "checkout_mode": "credit_bundle",
                "origin_url": self.origin_url,
                "connection_id": connection_id,
                "credit_bundle_id": credit_bundle_id,
            }
        )
        return {
            "sessionId": session.checkout_session_id,
            "sessionToken": session.checkout_session_token,
            "connectionId": connection_id,
            "creditBundleId": credit_bundle_id,
        }

    async def resolve_connection(self, connection_id: str) -> Dict[str, str]:
        """Exchange a connection id (from checkout completion) for its secret."""
        connection_id = _require_connection_id(connection_id)
        record = await self.registry.get_connection(connection_id)
        connection_secret = text(pick(record, "connection_secret", "connectionSecret"))
        if not connection_secret:
            raise UpstreamError("Connection resolved without connection_secret", status_code=502)
        return {
            "connectionId": text(pick(record, "connection_id", "connectionId")) or connection_id,
            "connectionSecret": connection_secret,
        }


def _require_connection_id(connection_id: Optional[str]) -> str:
    connection_id = str(connection_id or "").strip()
    if not connection_id:
        raise ValidationError("Missing connectionId")
    return connection_id

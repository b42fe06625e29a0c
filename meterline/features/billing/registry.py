"""
HTTP implementation of the connection registry (httpx).

All requests carry the platform secret key as bearer credential. Failures
surface the remote status and body verbatim as UpstreamError.
"""
import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from meterline.core.errors import UpstreamError, ValidationError
from meterline.core.logging import LOGGER_NAME
from meterline.core.metrics import registry_requests_total
from meterline.features.billing.provider import (
    LIST_PAGE_SIZE,
    CheckoutSession,
    ConnectionPage,
)

logger = logging.getLogger(LOGGER_NAME)


def _require_id(value: Optional[str], name: str) -> str:
    normalized = str(value or "").strip()
    if not normalized:
        raise ValidationError(f"Missing {name}")
    return normalized


class RegistryClient:
    """ConnectionRegistry over HTTP."""

    def __init__(self, http_client: httpx.AsyncClient, base_url: str, secret_key: Optional[str]):
        self._http = http_client
        self.base_url = str(base_url).rstrip("/")
        self._secret_key = secret_key or ""

    def url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._secret_key}",
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        *,
        failure_message: str,
        params: Optional[Dict[str, str]] = None,
        json_body: Optional[Dict[str, Any]] = None,
    ) -> Any:
        response = await self._http.request(
            method,
            self.url(path),
            headers=self._headers(),
            params=params,
            json=json_body,
        )
        registry_requests_total.inc(labels={"operation": operation, "status": str(response.status_code)})
        if not response.is_success:
            error_text = response.text
            logger.warning(
                "registry.error",
                extra={"operation": operation, "status": response.status_code},
            )
            raise UpstreamError(
                error_text or failure_message,
                status_code=response.status_code,
                details=error_text or failure_message,
            )
        return response.json()

    async def get_connection(self, connection_id: str) -> Dict[str, Any]:
        connection_id = _require_id(connection_id, "connectionId")
        return await self._request(
            "get_connection",
            "GET",
            f"/connections/{quote(connection_id, safe='')}",
            failure_message="Failed to resolve connection",
        )

    async def get_connection_subscription(self, connection_id: str) -> Dict[str, Any]:
        connection_id = _require_id(connection_id, "connectionId")
        return await self._request(
            "get_connection_subscription",
            "GET",
            f"/connections/{quote(connection_id, safe='')}/subscription",
            failure_message="Failed to fetch connection subscription",
        )

    async def get_subscription_config(self, subscription_config_id: str) -> Dict[str, Any]:
        subscription_config_id = _require_id(subscription_config_id, "subscriptionConfigId")
        return await self._request(
            "get_subscription_config",
            "GET",
            f"/subscription_configs/{quote(subscription_config_id, safe='')}",
            failure_message="Failed to fetch subscription config",
        )

    async def list_connections(self, cursor: Optional[str] = None) -> ConnectionPage:
        params = {"limit": str(LIST_PAGE_SIZE)}
        if cursor:
            params["cursor"] = cursor
        payload = await self._request(
            "list_connections",
            "GET",
            "/connections",
            params=params,
            failure_message="Failed to list connections",
        )
        payload = payload if isinstance(payload, dict) else {}
        data = payload.get("data")
        return ConnectionPage(
            items=data if isinstance(data, list) else [],
            has_more=bool(payload.get("has_more")),
            next_cursor=payload.get("next_cursor") or None,
        )

    async def create_checkout_session(self, body: Dict[str, Any]) -> CheckoutSession:
        payload = await self._request(
            "create_checkout_session",
            "POST",
            "/checkout_sessions",
            json_body=body,
            failure_message="Failed to create checkout session",
        )
        payload = payload if isinstance(payload, dict) else {}
        session_id = payload.get("checkout_session_id")
        session_token = payload.get("checkout_session_token")
        if not session_id or not session_token:
            raise UpstreamError("Registry returned no checkout session")
        logger.info("Checkout session created: %s", session_id)
        return CheckoutSession(checkout_session_id=str(session_id), checkout_session_token=str(session_token))

# meterline/conftest.py
import json
import os
from typing import Any, Dict, List, Optional

import httpx
import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("SKIP_ENV_VALIDATION", "1")

from meterline.core.config import Settings
from meterline.core.metrics import METRICS
from meterline.main import create_app

REGISTRY_BASE = "https://registry.test/v1"
STARTER_CONFIG = "sc_starter"
PRO_CONFIG = "sc_pro"


def make_connection(
    connection_id: str,
    email: str,
    *,
    secret: Optional[str] = None,
    config_id: Optional[str] = STARTER_CONFIG,
    status: str = "active",
    created_at: str = "2024-01-01T00:00:00Z",
    wallet_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Raw registry connection record in the registry's snake_case shape."""
    record: Dict[str, Any] = {
        "connection_id": connection_id,
        "connection_secret": secret if secret is not None else f"cs_{connection_id}",
        "customer": {"email": email},
        "subscription": {"subscription_config_id": config_id, "status": status},
        "created_at": created_at,
    }
    if wallet_id:
        record["wallet_id"] = wallet_id
    return record


class FakeRegistry:
    """
    In-memory stand-in for the remote registry, served through httpx.MockTransport.

    Every request is appended to .calls so tests can assert on exact call counts.
    """

    def __init__(self):
        self.pages: List[List[Dict[str, Any]]] = [[]]
        self.connections: Dict[str, Dict[str, Any]] = {}
        self.subscriptions: Dict[str, Dict[str, Any]] = {}
        self.subscription_configs: Dict[str, Dict[str, Any]] = {}
        self.checkout_bodies: List[Dict[str, Any]] = []
        self.calls: List[httpx.Request] = []
        self.failures: Dict[str, httpx.Response] = {}
        self.forward_handler = None

    def add_connection(self, record: Dict[str, Any], page: int = 0) -> Dict[str, Any]:
        while len(self.pages) <= page:
            self.pages.append([])
        self.pages[page].append(record)
        self.connections[record["connection_id"]] = record
        return record

    def fail(self, path: str, status_code: int, text: str) -> None:
        self.failures[path] = httpx.Response(status_code, text=text)

    def calls_to(self, path: str) -> List[httpx.Request]:
        return [call for call in self.calls if call.url.path == f"/v1{path}"]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        path = request.url.path[len("/v1"):]
        if path in self.failures:
            return self.failures[path]

        if path == "/forward":
            return await self.forward_handler(request)
        if path == "/connections":
            cursor = request.url.params.get("cursor")
            index = int(cursor) if cursor else 0
            has_more = index + 1 < len(self.pages)
            return httpx.Response(200, json={
                "data": self.pages[index],
                "has_more": has_more,
                "next_cursor": str(index + 1) if has_more else None,
            })
        if path == "/checkout_sessions":
            body = json.loads(request.content)
            self.checkout_bodies.append(body)
            return httpx.Response(200, json={
                "checkout_session_id": f"cs_{len(self.checkout_bodies)}",
                "checkout_session_token": f"tok_{len(self.checkout_bodies)}",
            })
        if path.startswith("/subscription_configs/"):
            config_id = path.rsplit("/", 1)[-1]
            if config_id not in self.subscription_configs:
                return httpx.Response(404, text="subscription config not found")
            return httpx.Response(200, json=self.subscription_configs[config_id])
        if path.startswith("/connections/") and path.endswith("/subscription"):
            connection_id = path.split("/")[2]
            return httpx.Response(200, json=self.subscriptions.get(connection_id, {"subscription": None}))
        if path.startswith("/connections/"):
            connection_id = path.split("/")[2]
            if connection_id not in self.connections:
                return httpx.Response(404, text="connection not found")
            return httpx.Response(200, json=self.connections[connection_id])
        return httpx.Response(404, text="unknown path")


@pytest.fixture(autouse=True)
def reset_metrics():
    METRICS.reset()
    yield
    METRICS.reset()


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        _env_file=None,
        ENV="test",
        REGISTRY_SECRET_KEY="sk_test",
        REGISTRY_PRODUCT_SECRET="ps_test",
        REGISTRY_API_BASE_URL=REGISTRY_BASE,
        PLAN_STARTER10_SUBSCRIPTION_CONFIG_ID=STARTER_CONFIG,
        PLAN_PRO20_SUBSCRIPTION_CONFIG_ID=PRO_CONFIG,
        ORIGIN_URL="http://localhost:5050",
        AUTH_TABLE_PATH=str(tmp_path / "auth-users.json"),
        DEMO_FALLBACK_EMAILS="demo@example.com",
    )


@pytest.fixture
def registry():
    return FakeRegistry()


@pytest.fixture
def app(test_settings, registry):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(registry.handler))
    return create_app(test_settings, http_client=http_client)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def signup(client):
    """Create an account through the API and return (token, user)."""

    def _signup(email: str = "a@b.com", password: str = "secret1", name: str = "A"):
        resp = client.post("/api/auth/signup", json={"email": email, "password": password, "name": name})
        assert resp.status_code == 201, resp.text
        body = resp.json()
        return body["token"], body["user"]

    return _signup


def auth_headers(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(name="auth_headers")
def auth_headers_fixture():
    return auth_headers


@pytest.fixture(name="make_connection")
def make_connection_fixture():
    return make_connection

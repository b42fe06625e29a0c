from meterline.core.metrics import (
    billing_resolutions_total,
    http_requests_total,
    normalize_path,
    registry_requests_total,
)


def test_normalize_path_collapses_ids():
    assert normalize_path("/api/billing/session") == "/api/billing/session"
    assert normalize_path("/connections/conn_9f8e7d") == "/connections/:id"
    assert normalize_path("/users/123/") == "/users/:id"


def test_requests_are_counted_and_exported(client, registry):
    client.get("/healthz")
    client.post("/api/checkout/create-session", json={"plan": "starter10"})

    assert http_requests_total.value({"method": "GET", "path": "/healthz", "status": "200"}) == 1
    assert "# HELP registry_requests_total" in client.get("/metrics").text
    assert registry_requests_total.value({"operation": "create_checkout_session", "status": "200"}) == 1

    text = client.get("/metrics").text
    assert "# TYPE http_requests_total counter" in text
    assert 'registry_requests_total{operation="create_checkout_session",status="200"} 1.0' in text


def test_resolution_outcomes_are_counted(client, registry, signup, auth_headers, make_connection):
    registry.add_connection(make_connection("c_1", "a@b.com"))
    token, _ = signup(email="a@b.com")

    client.get("/api/billing/session", headers=auth_headers(token))
    client.get("/api/billing/session", headers=auth_headers(token))

    assert billing_resolutions_total.value({"outcome": "scan"}) == 1
    assert billing_resolutions_total.value({"outcome": "cache_hit"}) == 1

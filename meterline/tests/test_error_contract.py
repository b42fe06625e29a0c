"""Every failure carries the same JSON envelope and the request id."""

import logging


def test_app_error_has_standard_shape(client):
    resp = client.get("/api/auth/me")
    assert resp.status_code == 401
    body = resp.json()
    rid = resp.headers.get("x-request-id")
    assert rid
    assert body["error"]["code"] == "unauthorized"
    assert body["error"]["message"] == "Authentication required"
    assert body["error"]["request_id"] == rid
    assert body["detail"] == "Authentication required"


def test_incoming_request_id_is_echoed(client):
    resp = client.get("/api/auth/me", headers={"x-request-id": "req-123"})
    assert resp.headers["x-request-id"] == "req-123"
    assert resp.json()["error"]["request_id"] == "req-123"


def test_unknown_route_is_normalized(client):
    resp = client.get("/api/nope")
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "not_found"


def test_malformed_body_is_validation_error(client):
    resp = client.post("/api/auth/signup", content="{not json", headers={"Content-Type": "application/json"})
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "validation_error"


def test_upstream_error_includes_details(client, registry):
    registry.fail("/checkout_sessions", 500, "registry exploded")
    resp = client.post("/api/checkout/create-session", json={"plan": "starter10"})
    assert resp.status_code == 500
    body = resp.json()
    assert body["error"]["code"] == "upstream_error"
    assert body["details"] == "registry exploded"


def test_request_id_in_logs(client, caplog):
    with caplog.at_level(logging.INFO, logger="meterline"):
        response = client.get("/healthz")
    rid = response.headers.get("x-request-id")
    records = [r for r in caplog.records if getattr(r, "request_id", None) == rid]
    assert records, "Expected logs to contain request_id from response"

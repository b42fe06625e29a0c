"""Billing session and cycle credit routes."""


def test_save_then_restore_uses_cache(client, registry, signup, auth_headers, make_connection):
    registry.add_connection(make_connection("c_1", "someone@else.com"))
    token, _ = signup()

    saved = client.post(
        "/api/billing/session",
        json={"plan": "starter10", "connectionId": "c_1"},
        headers=auth_headers(token),
    )
    assert saved.status_code == 200
    assert saved.json() == {"ok": True}

    resp = client.get("/api/billing/session", headers=auth_headers(token))
    assert resp.status_code == 200
    body = resp.json()
    assert body["plan"] == "starter10"
    assert body["connectionId"] == "c_1"
    assert body["connectionSecret"] == "cs_c_1"
    assert body["updatedAt"]
    assert len(registry.calls) == 1


def test_restore_scans_registry(client, registry, signup, auth_headers, make_connection):
    registry.add_connection(make_connection("c_mine", "a@b.com", config_id="sc_pro"))
    token, _ = signup(email="a@b.com")

    resp = client.get("/api/billing/session", headers=auth_headers(token))

    assert resp.status_code == 200
    assert resp.json()["plan"] == "pro20"
    assert resp.json()["connectionId"] == "c_mine"


def test_restore_with_numeric_wallet_id(client, registry, signup, auth_headers, make_connection):
    record = make_connection("c_wallet", "a@b.com")
    record["wallet_id"] = 12345
    registry.add_connection(record)
    token, _ = signup(email="a@b.com")

    first = client.get("/api/billing/session", headers=auth_headers(token))
    cached = client.get("/api/billing/session", headers=auth_headers(token))

    assert first.status_code == 200
    assert first.json()["walletId"] == "12345"
    assert cached.status_code == 200
    assert cached.json()["walletId"] == "12345"


def test_restore_without_match_is_404(client, signup, auth_headers):
    token, _ = signup()

    resp = client.get("/api/billing/session", headers=auth_headers(token))

    assert resp.status_code == 404
    assert resp.json()["detail"] == "No existing billing session"


def test_restore_forwards_registry_status(client, registry, signup, auth_headers):
    registry.fail("/connections", 403, "forbidden key")
    token, _ = signup()

    resp = client.get("/api/billing/session", headers=auth_headers(token))

    assert resp.status_code == 403
    body = resp.json()
    assert body["error"]["message"] == "Failed to restore billing session"
    assert body["details"] == "forbidden key"


def test_save_validates_input(client, signup, auth_headers):
    token, _ = signup()

    unknown = client.post("/api/billing/session", json={"plan": "gold", "connectionId": "c_1"}, headers=auth_headers(token))
    missing = client.post("/api/billing/session", json={"plan": "starter10"}, headers=auth_headers(token))

    assert unknown.status_code == 400
    assert unknown.json()["detail"] == "Unknown plan"
    assert missing.status_code == 400
    assert missing.json()["detail"] == "Missing connectionId"


def test_billing_routes_require_auth(client):
    assert client.get("/api/billing/session").status_code == 401
    assert client.post("/api/billing/session", json={}).status_code == 401
    assert client.get("/api/billing/cycle-credits").status_code == 401


def test_cycle_credits_report(client, registry, signup, auth_headers):
    registry.subscriptions["c_1"] = {
        "subscription": {
            "status": "active",
            "cycle_end_at": "2024-07-01T00:00:00Z",
            "plan": {"included_credit": "10.00"},
            "credits": {"total_remaining": "7.5", "cycle_remaining": "6.25", "bundle_remaining": "1.25"},
        }
    }
    token, _ = signup()

    resp = client.get("/api/billing/cycle-credits", params={"connectionId": "c_1"}, headers=auth_headers(token))

    assert resp.status_code == 200
    body = resp.json()
    assert body["connectionId"] == "c_1"
    assert body["status"] == "active"
    assert body["cycleEndAt"] == "2024-07-01T00:00:00Z"
    credits = body["cycleCredits"]
    assert credits["included"] == "10.00"
    assert credits["remaining"] == "7.5"
    assert credits["cycleRemaining"] == "6.25"
    assert credits["bundleRemaining"] == "1.25"
    assert credits["used"] == "3.750000000000"


def test_cycle_credits_defaults_to_cached_connection(client, registry, signup, auth_headers):
    registry.subscriptions["c_cached"] = {
        "subscription": {"plan": {"included_credit": "5"}, "credits": {"cycle_remaining": "5"}},
    }
    token, _ = signup()
    client.post("/api/billing/session", json={"plan": "starter10", "connectionId": "c_cached"}, headers=auth_headers(token))

    resp = client.get("/api/billing/cycle-credits", headers=auth_headers(token))

    assert resp.status_code == 200
    assert resp.json()["connectionId"] == "c_cached"
    assert resp.json()["cycleCredits"]["used"] == "0.000000000000"
    assert resp.json()["cycleCredits"]["bundleRemaining"] == "0"


def test_cycle_credits_errors(client, registry, signup, auth_headers):
    token, _ = signup()
    registry.subscriptions["c_partial"] = {"subscription": {"plan": {}, "credits": {}}}

    no_connection = client.get("/api/billing/cycle-credits", headers=auth_headers(token))
    no_subscription = client.get("/api/billing/cycle-credits", params={"connectionId": "c_none"}, headers=auth_headers(token))
    partial = client.get("/api/billing/cycle-credits", params={"connectionId": "c_partial"}, headers=auth_headers(token))

    assert no_connection.status_code == 400
    assert no_subscription.status_code == 404
    assert no_subscription.json()["detail"] == "No active subscription for this connection"
    assert partial.status_code == 502
    assert partial.json()["detail"] == "Failed to fetch cycle credits"

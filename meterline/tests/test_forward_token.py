import base64
import json

import pytest

from meterline.core.errors import ValidationError
from meterline.features.proxy.forward_token import (
    ForwardToken,
    ForwardTokenIssuer,
    InvalidConnectionSecretError,
)


def test_issue_encodes_all_three_secrets():
    token = ForwardTokenIssuer("sk_test", "ps_test").issue(" cs_1 ")

    payload = json.loads(base64.b64decode(token.value))
    assert payload == {"secret_key": "sk_test", "connection_secret": "cs_1", "meter_secret": "ps_test"}
    assert ForwardToken.decode(token.value).connection_secret == "cs_1"
    assert token.bearer() == f"Bearer {token.value}"


@pytest.mark.parametrize("secret", ["", "undefined", "null", None])
def test_issue_rejects_invalid_secret(secret):
    with pytest.raises(InvalidConnectionSecretError, match="Missing connectionSecret"):
        ForwardTokenIssuer("sk_test", "ps_test").issue(secret)


def test_token_text_is_redacted():
    token = ForwardTokenIssuer("sk_test", "ps_test").issue("cs_1")
    assert token.value not in str(token)
    assert token.value not in repr(token)


def test_decode_rejects_garbage():
    with pytest.raises(ValidationError):
        ForwardToken.decode("%%%not-base64%%%")


def test_create_forward_token_route(client, signup, auth_headers):
    token, _ = signup()

    resp = client.post("/api/create-forward-token", json={"connectionSecret": "cs_1"}, headers=auth_headers(token))
    assert resp.status_code == 200
    forward_token = resp.json()["forwardToken"]
    assert ForwardToken.decode(forward_token).meter_secret == "ps_test"

    missing = client.post("/api/create-forward-token", json={"connectionSecret": "null"}, headers=auth_headers(token))
    assert missing.status_code == 400
    assert missing.json()["detail"] == "Missing connectionSecret"

    anonymous = client.post("/api/create-forward-token", json={"connectionSecret": "cs_1"})
    assert anonymous.status_code == 401

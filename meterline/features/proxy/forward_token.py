"""
Forward tokens: capability credentials for proxied upstream calls.

A forward token is base64-encoded JSON of the platform secret key, one
connection secret and the product/meter secret. It is encoded, NOT signed:
anyone holding it can read its payload, so it is a bearer secret with the
same sensitivity as the connection secret itself. It is kept as its own type
so that signing or expiry can be added here without touching callers.
"""
from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass, field

from meterline.core.errors import ValidationError
from meterline.features.billing.candidates import is_valid_connection_secret


class InvalidConnectionSecretError(ValidationError):
    pass


@dataclass(frozen=True)
class ForwardTokenPayload:
    secret_key: str = field(repr=False)
    connection_secret: str = field(repr=False)
    meter_secret: str = field(repr=False)


@dataclass(frozen=True)
class ForwardToken:
    """Opaque, unsigned capability string. Never log .value."""
    value: str = field(repr=False)

    def __str__(self) -> str:
        return "ForwardToken(<redacted>)"

    def bearer(self) -> str:
        return f"Bearer {self.value}"

    @staticmethod
    def decode(value: str) -> ForwardTokenPayload:
        try:
            data = json.loads(base64.b64decode(value.encode("ascii"), validate=True))
        except (binascii.Error, UnicodeError, ValueError) as exc:
            raise ValidationError("Malformed forward token") from exc
        if not isinstance(data, dict):
            raise ValidationError("Malformed forward token")
        return ForwardTokenPayload(
            secret_key=str(data.get("secret_key") or ""),
            connection_secret=str(data.get("connection_secret") or ""),
            meter_secret=str(data.get("meter_secret") or ""),
        )


class ForwardTokenIssuer:
    def __init__(self, secret_key: str, product_secret: str):
        self._secret_key = secret_key or ""
        self._product_secret = product_secret or ""

    def issue(self, connection_secret: str) -> ForwardToken:
        if not is_valid_connection_secret(connection_secret):
            raise InvalidConnectionSecretError("Missing connectionSecret")
        payload = {
            "secret_key": self._secret_key,
            "connection_secret": str(connection_secret).strip(),
            "meter_secret": self._product_secret,
        }
        encoded = json.dumps(payload, separators=(",", ":")).encode("utf-8")
        return ForwardToken(base64.b64encode(encoded).decode("ascii"))

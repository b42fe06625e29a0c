"""
Candidate normalization and ranking.

The registry is inconsistent about casing (snake_case vs camelCase), so raw
connection records are normalized here, at the single ingress point, into
one canonical Candidate. Nothing downstream branches on field-name variants.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Iterable, List, Mapping, Optional

from meterline.models.plan import PlanCatalog
from meterline.models.user import normalize_email


_PLACEHOLDER_SECRETS = {"undefined", "null"}


def is_valid_connection_secret(value: Any) -> bool:
    """Non-empty and not one of the registry's placeholder strings."""
    if value is None:
        return False
    normalized = str(value).strip()
    return bool(normalized) and normalized not in _PLACEHOLDER_SECRETS


def pick(record: Any, *keys: str) -> Any:
    """First truthy value among keys of a mapping."""
    if not isinstance(record, Mapping):
        return None
    for key in keys:
        value = record.get(key)
        if value:
            return value
    return None


def text(value: Any) -> str:
    return str(value or "").strip()


def parse_timestamp_ms(value: Any) -> int:
    """Milliseconds since epoch; unparseable values sort as 0."""
    if value is None or value == "":
        return int(time.time() * 1000)
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return int(value)
    raw = str(value).strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return 0
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp() * 1000)


@dataclass(frozen=True)
class Candidate:
    connection_id: str
    connection_secret: str
    customer_email: str
    plan_id: Optional[str]
    wallet_id: Optional[str]
    created_at_ms: int
    active: bool

    def __repr__(self) -> str:
        return (
            f"Candidate(connection_id={self.connection_id!r}, plan_id={self.plan_id!r}, "
            f"active={self.active}, created_at_ms={self.created_at_ms})"
        )

    def with_plan(self, plan_id: Optional[str]) -> "Candidate":
        return replace(self, plan_id=plan_id)


class CandidateResolver:
    def __init__(self, plans: PlanCatalog):
        self.plans = plans

    def normalize(self, raw: Any, default_connection_id: Optional[str] = None) -> Optional[Candidate]:
        """Canonical candidate for one raw registry record, or None if unusable.

        default_connection_id fills in records fetched by id that omit their own id.
        """
        if not isinstance(raw, Mapping):
            return None
        subscription = raw.get("subscription") if isinstance(raw.get("subscription"), Mapping) else {}
        customer = raw.get("customer") if isinstance(raw.get("customer"), Mapping) else {}

        connection_id = text(pick(raw, "connection_id", "connectionId") or default_connection_id)
        connection_secret = text(pick(raw, "connection_secret", "connectionSecret"))
        if not connection_id or not is_valid_connection_secret(connection_secret):
            return None

        subscription_config_id = text(pick(subscription, "subscription_config_id", "subscriptionConfigId"))
        return Candidate(
            connection_id=connection_id,
            connection_secret=connection_secret,
            customer_email=normalize_email(pick(customer, "email") or raw.get("customerEmail")),
            plan_id=self.plans.plan_for_subscription_config(subscription_config_id),
            wallet_id=text(pick(raw, "wallet_id", "walletId")) or None,
            created_at_ms=parse_timestamp_ms(pick(raw, "created_at", "createdAt")),
            active=text(subscription.get("status")) == "active",
        )


def rank_candidates(candidates: Iterable[Candidate]) -> List[Candidate]:
    """Active before inactive, then newest first; ties keep input order."""
    return sorted(candidates, key=lambda c: (not c.active, -c.created_at_ms))

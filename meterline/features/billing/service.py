"""
Billing session reconciliation.

Answers "which connection and plan does this user currently have" by
combining the pointer cached on the user record with a bounded scan of the
remote registry:

1. Cache hit: the cached pointer names a known plan and a connection id, and
   the registry still returns a valid secret for that connection.
2. Scan: up to MAX_SCAN_PAGES pages of connections, normalized into
   candidates; email matches with a resolvable plan win, otherwise the demo
   fallback policy may apply.
3. Rank (active first, newest first), persist the winner, return it.

Registry failures are not caught here; they reach the route with their status.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, List, Optional

from meterline.core.errors import NotFoundError, ValidationError
from meterline.core.logging import log_event
from meterline.core.metrics import billing_resolutions_total
from meterline.features.auth.store import IdentityStore
from meterline.features.billing.candidates import Candidate, CandidateResolver, rank_candidates
from meterline.features.billing.provider import ConnectionRegistry
from meterline.models.billing import BillingSession
from meterline.models.plan import PlanCatalog
from meterline.models.user import StoredBilling, User, normalize_email, utc_now_iso


MAX_SCAN_PAGES = 5


@dataclass(frozen=True)
class DemoFallbackPolicy:
    """
    Relaxed matching for designated demo accounts.

    When a listed account has no email match, any structurally valid candidate
    is accepted and an unmapped plan defaults to default_plan_id.
    """
    emails: FrozenSet[str] = field(default_factory=frozenset)
    default_plan_id: Optional[str] = None

    @classmethod
    def from_emails(cls, emails: Iterable[str], default_plan_id: Optional[str]) -> "DemoFallbackPolicy":
        return cls(emails=frozenset(normalize_email(e) for e in emails if normalize_email(e)), default_plan_id=default_plan_id)

    def applies_to(self, email: str) -> bool:
        return normalize_email(email) in self.emails

    def fill(self, candidates: Iterable[Candidate]) -> List[Candidate]:
        filled = [c.with_plan(c.plan_id or self.default_plan_id) for c in candidates]
        return [c for c in filled if c.plan_id]


class BillingSessionManager:
    def __init__(
        self,
        registry: ConnectionRegistry,
        identity_store: IdentityStore,
        plans: PlanCatalog,
        resolver: Optional[CandidateResolver] = None,
        fallback_policy: Optional[DemoFallbackPolicy] = None,
    ):
        self.registry = registry
        self.identity_store = identity_store
        self.plans = plans
        self.resolver = resolver or CandidateResolver(plans)
        self.fallback_policy = fallback_policy or DemoFallbackPolicy(default_plan_id=plans.default_plan_id)

    async def resolve(self, user: User) -> BillingSession:
        cached = await self._revalidate_cached(user)
        if cached is not None:
            billing_resolutions_total.inc(labels={"outcome": "cache_hit"})
            return cached

        matching, fallback, pages = await self._scan(normalize_email(user.email))
        if matching:
            chosen = matching
        elif self.fallback_policy.applies_to(user.email):
            chosen = self.fallback_policy.fill(fallback)
        else:
            chosen = []

        log_event(
            "info",
            "billing.scan",
            user_id=user.id,
            event_type="billing_scan",
            extra={"pages": pages, "matching": len(matching), "fallback": len(fallback), "chosen": len(chosen)},
        )
        if not chosen:
            billing_resolutions_total.inc(labels={"outcome": "not_found"})
            raise NotFoundError("No existing billing session")

        selected = rank_candidates(chosen)[0]
        stored = StoredBilling(
            plan=selected.plan_id,
            connection_id=selected.connection_id,
            wallet_id=selected.wallet_id,
            updated_at=utc_now_iso(),
        )
        await self.identity_store.set_billing(user.id, stored)
        billing_resolutions_total.inc(labels={"outcome": "fallback" if not matching else "scan"})
        return BillingSession(
            plan=stored.plan,
            connection_id=selected.connection_id,
            connection_secret=selected.connection_secret,
            wallet_id=selected.wallet_id,
            updated_at=stored.updated_at,
        )

    async def set(self, user: User, plan: str, connection_id: str, wallet_id: Optional[str] = None) -> StoredBilling:
        plan = str(plan or "").strip()
        connection_id = str(connection_id or "").strip()
        if plan not in self.plans:
            raise ValidationError("Unknown plan")
        if not connection_id:
            raise ValidationError("Missing connectionId")

        stored = StoredBilling(
            plan=plan,
            connection_id=connection_id,
            wallet_id=wallet_id or None,
            updated_at=utc_now_iso(),
        )
        await self.identity_store.set_billing(user.id, stored)
        log_event("info", "billing.saved", user_id=user.id, event_type="billing_saved", extra={"plan": plan})
        return stored

    async def _revalidate_cached(self, user: User) -> Optional[BillingSession]:
        cached = user.billing
        if cached is None or cached.plan not in self.plans or not cached.connection_id.strip():
            return None

        record = await self.registry.get_connection(cached.connection_id)
        live = self.resolver.normalize(record, default_connection_id=cached.connection_id)
        if live is None:
            return None

        log_event("info", "billing.cache_hit", user_id=user.id, event_type="billing_cache_hit")
        return BillingSession(
            plan=cached.plan,
            connection_id=live.connection_id,
            connection_secret=live.connection_secret,
            wallet_id=live.wallet_id or cached.wallet_id,
            updated_at=cached.updated_at,
        )

    async def _scan(self, email: str):
        matching: List[Candidate] = []
        fallback: List[Candidate] = []
        cursor: Optional[str] = None
        pages = 0

        for _ in range(MAX_SCAN_PAGES):
            page = await self.registry.list_connections(cursor)
            pages += 1
            for raw in page.items:
                candidate = self.resolver.normalize(raw)
                if candidate is None:
                    continue
                fallback.append(candidate)
                if candidate.customer_email == email and candidate.plan_id:
                    matching.append(candidate)

            if not page.has_more or not page.next_cursor:
                break
            cursor = page.next_cursor

        return matching, fallback, pages

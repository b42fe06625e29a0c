"""Cycle credit reporting from the registry's subscription view."""
import math
from typing import Optional

from meterline.core.errors import NotFoundError, UpstreamError, ValidationError
from meterline.features.billing.candidates import pick, text
from meterline.features.billing.provider import ConnectionRegistry
from meterline.models.billing import CycleCredits, CycleCreditsReport


def _to_number(value: str) -> Optional[float]:
    try:
        number = float(value)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def compute_used(included: str, cycle_remaining: str) -> Optional[str]:
    """max(0, included - cycle_remaining) with 12 decimals, or None if not numeric."""
    included_number = _to_number(included)
    remaining_number = _to_number(cycle_remaining)
    if included_number is None or remaining_number is None:
        return None
    return f"{max(0.0, included_number - remaining_number):.12f}"


async def fetch_cycle_credits(registry: ConnectionRegistry, connection_id: str) -> CycleCreditsReport:
    connection_id = str(connection_id or "").strip()
    if not connection_id:
        raise ValidationError("Missing connectionId")

    payload = await registry.get_connection_subscription(connection_id)
    subscription = pick(payload, "subscription")
    if not subscription:
        raise NotFoundError("No active subscription for this connection")

    included = text(pick(pick(subscription, "plan"), "included_credit", "includedCredit"))
    credits = pick(subscription, "credits") or {}
    total_remaining = text(pick(credits, "total_remaining", "totalRemaining"))
    cycle_remaining = text(pick(credits, "cycle_remaining", "cycleRemaining"))
    bundle_remaining = text(pick(credits, "bundle_remaining", "bundleRemaining"))
    remaining = total_remaining or cycle_remaining

    if not included or not remaining:
        raise UpstreamError("Subscription is missing cycle credit data", status_code=502)

    return CycleCreditsReport(
        connection_id=connection_id,
        status=pick(subscription, "status") or None,
        cycle_end_at=pick(subscription, "cycle_end_at", "cycleEndAt") or None,
        cycle_credits=CycleCredits(
            included=included,
            total_remaining=remaining,
            cycle_remaining=cycle_remaining or remaining,
            bundle_remaining=bundle_remaining or "0",
            remaining=remaining,
            used=compute_used(included, cycle_remaining or remaining),
        ),
    )

"""
meterline/models/plan.py

Static plan configuration, loaded once at startup.
"""

from typing import Dict, Iterable, Iterator, Optional
from pydantic import BaseModel, ConfigDict


class Plan(BaseModel):
    """
    A subscription tier sold through the registry's checkout.

    A plan with an empty subscription_config_id is known but not yet
    configured: it cannot be checked out and never matches a registry record.
    """
    model_config = ConfigDict(frozen=True)

    plan_id: str
    amount_usd: int
    subscription_config_id: str = ""

    @property
    def is_configured(self) -> bool:
        return bool(self.subscription_config_id)


class PlanCatalog:
    """Ordered, read-only set of plans with a subscriptionConfigId -> planId table."""

    def __init__(self, plans: Iterable[Plan]):
        self._plans: Dict[str, Plan] = {}
        for plan in plans:
            self._plans[plan.plan_id] = plan
        self._by_subscription_config = {
            plan.subscription_config_id: plan.plan_id
            for plan in self._plans.values()
            if plan.is_configured
        }

    def __contains__(self, plan_id: object) -> bool:
        return plan_id in self._plans

    def __iter__(self) -> Iterator[Plan]:
        return iter(self._plans.values())

    def __len__(self) -> int:
        return len(self._plans)

    def get(self, plan_id: Optional[str]) -> Optional[Plan]:
        if not plan_id:
            return None
        return self._plans.get(plan_id)

    def plan_for_subscription_config(self, subscription_config_id: Optional[str]) -> Optional[str]:
        if not subscription_config_id:
            return None
        return self._by_subscription_config.get(subscription_config_id)

    @property
    def default_plan_id(self) -> Optional[str]:
        return next(iter(self._plans), None)


def build_plan_catalog(settings) -> PlanCatalog:
    """Plans sold by this service: $10 starter and $20 pro."""
    return PlanCatalog([
        Plan(
            plan_id="starter10",
            amount_usd=10,
            subscription_config_id=(settings.PLAN_STARTER10_SUBSCRIPTION_CONFIG_ID or "").strip(),
        ),
        Plan(
            plan_id="pro20",
            amount_usd=20,
            subscription_config_id=(settings.PLAN_PRO20_SUBSCRIPTION_CONFIG_ID or "").strip(),
        ),
    ])

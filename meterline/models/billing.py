"""
Billing shapes returned to clients.
"""

from typing import List, Optional
from pydantic import Field

from meterline.models.user import CamelModel


class BillingSession(CamelModel):
    """Authoritative reconciliation result for one user."""
    plan: str
    connection_id: str
    connection_secret: str = Field(repr=False)
    wallet_id: Optional[str] = None
    updated_at: Optional[str] = None


class CreditBundle(CamelModel):
    credit_bundle_id: str
    name: str = ""
    cost: str = ""
    credit_amount: str = ""


class CreditBundleList(CamelModel):
    connection_id: str
    subscription_config_id: str
    credit_bundles: List[CreditBundle] = []


class CycleCredits(CamelModel):
    included: str
    total_remaining: str
    cycle_remaining: str
    bundle_remaining: str
    remaining: str
    used: Optional[str] = None


class CycleCreditsReport(CamelModel):
    connection_id: str
    status: Optional[str] = None
    cycle_end_at: Optional[str] = None
    cycle_credits: CycleCredits

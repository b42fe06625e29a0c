"""
meterline/models/user.py

User record as persisted in the identity file, plus its cached billing pointer.
Field names on disk and on the wire are camelCase.
"""

from datetime import datetime, timezone
from typing import List, Optional
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


def utc_now_iso() -> str:
    """Timezone-aware UTC timestamp in ISO-8601 with a Z suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StoredBilling(CamelModel):
    """Cached reconciliation pointer kept on the user record (no secrets)."""
    plan: str
    connection_id: str
    wallet_id: Optional[str] = None
    updated_at: str


class User(CamelModel):
    id: str
    email: str
    name: str
    password_hash: str
    created_at: str
    billing: Optional[StoredBilling] = None

    def to_public(self) -> "PublicUser":
        return PublicUser(id=self.id, email=self.email, name=self.name, created_at=self.created_at)


class PublicUser(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    email: str
    name: str
    created_at: str


class AuthTable(BaseModel):
    users: List[User] = []


def normalize_email(value: Optional[str]) -> str:
    return str(value or "").strip().lower()

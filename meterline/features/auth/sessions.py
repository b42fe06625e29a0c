"""
In-memory auth sessions.

Sessions live only in process memory: they carry no expiry and a restart
invalidates all of them. One SessionStore is built per application and shared
through app.state.
"""
from __future__ import annotations

import secrets
from dataclasses import dataclass
from typing import Dict, Optional

from meterline.features.auth.store import IdentityStore
from meterline.models.user import User, utc_now_iso


SESSION_TOKEN_BYTES = 24


@dataclass(frozen=True)
class AuthSession:
    token: str
    user_id: str
    created_at: str


@dataclass(frozen=True)
class ResolvedAuth:
    token: str
    user: User


class SessionStore:
    def __init__(self, identity_store: IdentityStore):
        self._identity_store = identity_store
        self._sessions: Dict[str, AuthSession] = {}

    def issue(self, user: User) -> str:
        token = secrets.token_hex(SESSION_TOKEN_BYTES)
        self._sessions[token] = AuthSession(token=token, user_id=user.id, created_at=utc_now_iso())
        return token

    async def resolve(self, token: Optional[str]) -> Optional[ResolvedAuth]:
        """Return the live session for token, evicting it if its user is gone."""
        if not token:
            return None
        session = self._sessions.get(token)
        if session is None:
            return None
        user = await self._identity_store.find_by_id(session.user_id)
        if user is None:
            self._sessions.pop(token, None)
            return None
        return ResolvedAuth(token=token, user=user)

    def revoke(self, token: str) -> None:
        self._sessions.pop(token, None)

    def clear(self) -> None:
        self._sessions.clear()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, token: object) -> bool:
        return token in self._sessions

"""
Auth dependencies for the HTTP routes.

Bearer tokens are opaque session tokens minted at signup/login and held in
the app's SessionStore.
"""
from typing import Optional

from fastapi import Request

from meterline.core.errors import AuthError
from meterline.features.auth.sessions import ResolvedAuth, SessionStore


def get_bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    if not header.startswith("Bearer "):
        return None
    return header[len("Bearer "):].strip() or None


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.sessions


async def require_auth(request: Request) -> ResolvedAuth:
    """Resolve the caller's session or fail with 401."""
    auth = await get_session_store(request).resolve(get_bearer_token(request))
    if auth is None:
        raise AuthError("Authentication required")
    request.state.user_id = auth.user.id
    return auth


async def optional_auth(request: Request) -> Optional[ResolvedAuth]:
    auth = await get_session_store(request).resolve(get_bearer_token(request))
    if auth is not None:
        request.state.user_id = auth.user.id
    return auth

import pytest

from meterline.features.auth.sessions import SessionStore
from meterline.features.auth.store import IdentityStore


@pytest.mark.asyncio
async def test_issue_and_resolve(tmp_path):
    store = IdentityStore(tmp_path / "auth-users.json")
    sessions = SessionStore(store)
    user = await store.create("a@b.com", "hash", "A")

    token = sessions.issue(user)
    resolved = await sessions.resolve(token)

    assert resolved.token == token
    assert resolved.user.id == user.id
    assert len(token) == 48


@pytest.mark.asyncio
async def test_unknown_and_empty_tokens_resolve_to_none(tmp_path):
    sessions = SessionStore(IdentityStore(tmp_path / "auth-users.json"))

    assert await sessions.resolve(None) is None
    assert await sessions.resolve("") is None
    assert await sessions.resolve("deadbeef") is None


@pytest.mark.asyncio
async def test_session_for_missing_user_is_evicted(tmp_path):
    sessions = SessionStore(IdentityStore(tmp_path / "auth-users.json"))
    other_store = IdentityStore(tmp_path / "other.json")
    ghost = await other_store.create("ghost@b.com", "hash", "Ghost")

    token = sessions.issue(ghost)
    assert token in sessions

    assert await sessions.resolve(token) is None
    assert token not in sessions


@pytest.mark.asyncio
async def test_revoke_and_clear(tmp_path):
    store = IdentityStore(tmp_path / "auth-users.json")
    sessions = SessionStore(store)
    user = await store.create("a@b.com", "hash", "A")
    first = sessions.issue(user)
    second = sessions.issue(user)

    sessions.revoke(first)
    assert await sessions.resolve(first) is None
    assert (await sessions.resolve(second)).user.id == user.id

    sessions.clear()
    assert len(sessions) == 0

"""
Identity store backed by a single JSON file.

File format (UTF-8):
    {"users": [{"id", "email", "name", "passwordHash", "createdAt", "billing"?}]}

The table is loaded lazily on first access. A missing file is initialized
empty; a file without a "users" array is reset to empty and the anomaly is
logged. Every mutation runs under the store's lock and rewrites the whole
file atomically, so overlapping writers are applied one after another.
"""
from __future__ import annotations

import asyncio
import json
import logging
import os
import secrets
import tempfile
from pathlib import Path
from typing import Callable, List, Optional

from pydantic import ValidationError as ModelValidationError

from meterline.core.errors import ConflictError, NotFoundError
from meterline.core.logging import LOGGER_NAME
from meterline.models.user import AuthTable, StoredBilling, User, normalize_email, utc_now_iso

logger = logging.getLogger(LOGGER_NAME)


class UserAlreadyExistsError(ConflictError):
    pass


def new_user_id() -> str:
    return f"usr_{secrets.token_hex(8)}"


class IdentityStore:
    """Repository of user records keyed by id, unique by case-insensitive email."""

    def __init__(self, path: str | os.PathLike):
        self.path = Path(path)
        self._table: Optional[AuthTable] = None
        self._lock = asyncio.Lock()

    async def create(self, email: str, password_hash: str, name: str) -> User:
        normalized = normalize_email(email)
        async with self._lock:
            table = self._ensure_loaded()
            if any(entry.email == normalized for entry in table.users):
                raise UserAlreadyExistsError("User already exists")
            user = User(
                id=new_user_id(),
                email=normalized,
                name=name.strip(),
                password_hash=password_hash,
                created_at=utc_now_iso(),
            )
            table.users.append(user)
            self._write(table)
            return user.model_copy(deep=True)

    async def find_by_email(self, email: str) -> Optional[User]:
        normalized = normalize_email(email)
        async with self._lock:
            table = self._ensure_loaded()
            for entry in table.users:
                if entry.email == normalized:
                    return entry.model_copy(deep=True)
        return None

    async def find_by_id(self, user_id: str) -> Optional[User]:
        async with self._lock:
            table = self._ensure_loaded()
            for entry in table.users:
                if entry.id == user_id:
                    return entry.model_copy(deep=True)
        return None

    async def persist(self, user: User) -> None:
        """Overwrite the whole record with the same id (idempotent)."""
        await self._mutate(user.id, lambda _current: user.model_copy(deep=True))

    async def set_billing(self, user_id: str, billing: Optional[StoredBilling]) -> User:
        """Replace the cached billing pointer wholesale."""

        def apply(current: User) -> User:
            return current.model_copy(update={"billing": billing}, deep=True)

        return await self._mutate(user_id, apply)

    async def list_users(self) -> List[User]:
        async with self._lock:
            table = self._ensure_loaded()
            return [entry.model_copy(deep=True) for entry in table.users]

    async def ensure_ready(self) -> bool:
        """Load (or initialize) the table; True once the file exists."""
        async with self._lock:
            self._ensure_loaded()
        return self.path.exists()

    async def _mutate(self, user_id: str, change: Callable[[User], User]) -> User:
        async with self._lock:
            table = self._ensure_loaded()
            for index, entry in enumerate(table.users):
                if entry.id == user_id:
                    updated = change(entry)
                    table.users[index] = updated
                    self._write(table)
                    return updated.model_copy(deep=True)
        raise NotFoundError("User not found")

    def _ensure_loaded(self) -> AuthTable:
        if self._table is None:
            self._table = self._load()
        return self._table

    def _load(self) -> AuthTable:
        try:
            parsed = json.loads(self.path.read_text(encoding="utf-8"))
            if not isinstance(parsed, dict) or not isinstance(parsed.get("users"), list):
                raise ValueError("Invalid auth table format")
        except FileNotFoundError:
            return self._reset()
        # UnicodeDecodeError and JSONDecodeError are both ValueErrors
        except (OSError, ValueError) as exc:
            logger.error("Failed to read auth table, resetting: %s", exc, extra={"path": str(self.path)})
            return self._reset()

        users: List[User] = []
        for entry in parsed["users"]:
            try:
                users.append(User.model_validate(entry))
            except ModelValidationError as exc:
                logger.warning("Skipping malformed user record: %s", exc.errors()[0].get("msg"))
        return AuthTable(users=users)

    def _reset(self) -> AuthTable:
        table = AuthTable(users=[])
        self._write(table)
        return table

    def _write(self, table: AuthTable) -> None:
        payload = {"users": [entry.model_dump(by_alias=True, exclude_none=True) for entry in table.users]}
        text = json.dumps(payload, indent=2) + "\n"
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=str(self.path.parent), prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(text)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

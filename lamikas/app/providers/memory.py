"""In-memory identity store for testing and local development.

This store simulates the identity provider without making external calls.

Enable by setting environment variable:
    MOCK_PROVIDER=true
"""

import secrets
import uuid
from copy import deepcopy
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional

from lamikas.app.providers.base import ProviderError
from lamikas.app.providers.identity import IdentityStore


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class InMemoryIdentityStore(IdentityStore):
    """Identity store that keeps users, sessions and profiles in dicts.

    Features:
    - Enforces one profile per identity id and unique emails
    - Returns copies so callers cannot mutate stored state
    - ``fail_operations`` makes named operations raise ProviderError, for
      exercising error paths (e.g. ``{"insert_profile"}``)
    """

    name = "memory"

    def __init__(self, fail_operations: Optional[Iterable[str]] = None):
        self.users: Dict[str, Dict[str, Any]] = {}
        self.passwords: Dict[str, str] = {}
        self.sessions: Dict[str, str] = {}
        self.profiles: Dict[str, Dict[str, Any]] = {}
        self.fail_operations = set(fail_operations or ())
        self.signed_out: list[str] = []

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.fail_operations:
            raise ProviderError(self.name, 500, f"{operation} failed")

    def _user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        email = email.lower()
        for user in self.users.values():
            if user["email"] == email:
                return user
        return None

    def create_user(
        self,
        email: str,
        password: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Create an identity directly, bypassing sign-up checks."""
        user_id = str(uuid.uuid4())
        user = {
            "id": user_id,
            "email": email.lower(),
            "user_metadata": dict(metadata or {}),
            "created_at": _now(),
        }
        self.users[user_id] = user
        self.passwords[user_id] = password
        return deepcopy(user)

    def issue_token(self, user_id: str) -> str:
        token = secrets.token_urlsafe(24)
        self.sessions[token] = user_id
        return token

    async def get_user(self, access_token: str) -> Dict[str, Any]:
        self._maybe_fail("get_user")
        user_id = self.sessions.get(access_token)
        if user_id is None or user_id not in self.users:
            raise ProviderError(self.name, 401, "invalid JWT")
        return deepcopy(self.users[user_id])

    async def sign_in_with_password(self, email: str, password: str) -> Dict[str, Any]:
        self._maybe_fail("sign_in_with_password")
        user = self._user_by_email(email)
        if user is None or self.passwords.get(user["id"]) != password:
            raise ProviderError(self.name, 400, "Invalid login credentials")
        token = self.issue_token(user["id"])
        return {
            "access_token": token,
            "token_type": "bearer",
            "expires_in": 3600,
            "refresh_token": secrets.token_urlsafe(24),
            "user": deepcopy(user),
        }

    async def sign_up(
        self, email: str, password: str, metadata: Dict[str, Any]
    ) -> Dict[str, Any]:
        self._maybe_fail("sign_up")
        if self._user_by_email(email) is not None:
            raise ProviderError(self.name, 422, "User already registered")
        return self.create_user(email, password, metadata)

    async def sign_out(self, access_token: str) -> None:
        self._maybe_fail("sign_out")
        self.sessions.pop(access_token, None)
        self.signed_out.append(access_token)

    async def delete_user(self, user_id: str) -> None:
        self._maybe_fail("delete_user")
        if self.users.pop(user_id, None) is None:
            raise ProviderError(self.name, 404, "User not found")
        self.passwords.pop(user_id, None)
        for token in [t for t, uid in self.sessions.items() if uid == user_id]:
            del self.sessions[token]

    async def get_profile(
        self, user_id: str, access_token: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        self._maybe_fail("get_profile")
        profile = self.profiles.get(user_id)
        return deepcopy(profile) if profile is not None else None

    async def insert_profile(self, profile: Dict[str, Any]) -> Dict[str, Any]:
        self._maybe_fail("insert_profile")
        user_id = profile.get("id")
        if not user_id:
            raise ProviderError(self.name, 400, "profile id is required")
        if user_id in self.profiles:
            raise ProviderError(self.name, 409, "duplicate key value violates unique constraint")
        stored = deepcopy(profile)
        stored.setdefault("created_at", _now())
        self.profiles[user_id] = stored
        return deepcopy(stored)

    async def update_profile(
        self,
        user_id: str,
        fields: Dict[str, Any],
        access_token: Optional[str] = None,
    ) -> Dict[str, Any]:
        self._maybe_fail("update_profile")
        profile = self.profiles.get(user_id)
        if profile is None:
            raise ProviderError(self.name, 406, "update matched no profile")
        profile.update(deepcopy(fields))
        return deepcopy(profile)

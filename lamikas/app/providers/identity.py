"""Identity & profile store interface.

The store is authoritative for identities and profiles. Implementations
raise ProviderError for any failure; callers never cache their state beyond
the current request.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional


class IdentityStore(ABC):
    """Capabilities the auth handler needs from the identity provider."""

    @abstractmethod
    async def get_user(self, access_token: str) -> Dict[str, Any]:
        """Verify a bearer token and return the user it belongs to."""

    @abstractmethod
    async def sign_in_with_password(self, email: str, password: str) -> Dict[str, Any]:
        """Sign in and return the session (tokens plus user)."""

    @abstractmethod
    async def sign_up(
        self, email: str, password: str, metadata: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Create an identity with user metadata and return the user."""

    @abstractmethod
    async def sign_out(self, access_token: str) -> None:
        """Revoke the session behind a bearer token."""

    @abstractmethod
    async def delete_user(self, user_id: str) -> None:
        """Remove an identity. Used to undo a half-finished registration."""

    @abstractmethod
    async def get_profile(
        self, user_id: str, access_token: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        """Read a profile by identity id; None when it does not exist."""

    @abstractmethod
    async def insert_profile(self, profile: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a profile row and return it as stored."""

    @abstractmethod
    async def update_profile(
        self,
        user_id: str,
        fields: Dict[str, Any],
        access_token: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Update the profile of ``user_id`` and return it as stored."""

    async def close(self) -> None:
        """Release resources held by the store."""

"""Supabase identity store: GoTrue auth endpoints and the PostgREST profile table."""

from typing import Any, Dict, Optional

import httpx

from lamikas.app.providers.base import BaseProvider, ProviderError
from lamikas.app.providers.identity import IdentityStore


class SupabaseIdentityStore(BaseProvider, IdentityStore):
    """Supabase auth (GoTrue) and PostgREST profile table over httpx.

    The service role key is used for privileged calls (token verification,
    sign-in, sign-up, profile insert, admin delete). User scoped calls
    (profile read and update) use the anon key plus the caller's own bearer
    token so row level security applies.
    """

    name = "supabase"

    def __init__(
        self,
        base_url: str,
        service_role_key: str,
        anon_key: str,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
        profiles_table: str = "users",
    ):
        super().__init__(base_url, http_client, timeout)
        self.service_role_key = service_role_key
        self.anon_key = anon_key
        self.profiles_table = profiles_table

    def _service_headers(self) -> Dict[str, str]:
        return {
            "apikey": self.service_role_key,
            "Authorization": f"Bearer {self.service_role_key}",
            "Content-Type": "application/json",
        }

    def _user_headers(self, access_token: str) -> Dict[str, str]:
        return {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }

    def _headers_for(self, access_token: Optional[str]) -> Dict[str, str]:
        if access_token:
            return self._user_headers(access_token)
        return self._service_headers()

    async def get_user(self, access_token: str) -> Dict[str, Any]:
        headers = {
            "apikey": self.service_role_key,
            "Authorization": f"Bearer {access_token}",
        }
        resp = await self._request("GET", "/auth/v1/user", headers)
        user = resp.json()
        if not isinstance(user, dict) or not user.get("id"):
            raise ProviderError(self.name, resp.status_code, "token resolved to no user")
        return user

    async def sign_in_with_password(self, email: str, password: str) -> Dict[str, Any]:
        resp = await self._request(
            "POST",
            "/auth/v1/token",
            self._service_headers(),
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        return resp.json()

    async def sign_up(
        self, email: str, password: str, metadata: Dict[str, Any]
    ) -> Dict[str, Any]:
        resp = await self._request(
            "POST",
            "/auth/v1/signup",
            self._service_headers(),
            json={"email": email, "password": password, "data": metadata},
        )
        payload = resp.json()
        # With auto-confirm enabled the response is a session wrapping the user
        user = payload.get("user") if "access_token" in payload else payload
        if not isinstance(user, dict) or not user.get("id"):
            raise ProviderError(self.name, resp.status_code, "sign up returned no user")
        return user

    async def sign_out(self, access_token: str) -> None:
        await self._request("POST", "/auth/v1/logout", self._user_headers(access_token))

    async def delete_user(self, user_id: str) -> None:
        await self._request(
            "DELETE", f"/auth/v1/admin/users/{user_id}", self._service_headers()
        )

    def _table_endpoint(self) -> str:
        return f"/rest/v1/{self.profiles_table}"

    async def get_profile(
        self, user_id: str, access_token: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        resp = await self._request(
            "GET",
            self._table_endpoint(),
            self._headers_for(access_token),
            params={"id": f"eq.{user_id}", "select": "*"},
        )
        rows = resp.json()
        return rows[0] if rows else None

    async def insert_profile(self, profile: Dict[str, Any]) -> Dict[str, Any]:
        headers = self._service_headers()
        headers["Prefer"] = "return=representation"
        resp = await self._request("POST", self._table_endpoint(), headers, json=[profile])
        rows = resp.json()
        if not rows:
            raise ProviderError(self.name, resp.status_code, "insert returned no rows")
        return rows[0]

    async def update_profile(
        self,
        user_id: str,
        fields: Dict[str, Any],
        access_token: Optional[str] = None,
    ) -> Dict[str, Any]:
        headers = self._headers_for(access_token)
        headers["Prefer"] = "return=representation"
        resp = await self._request(
            "PATCH",
            self._table_endpoint(),
            headers,
            params={"id": f"eq.{user_id}"},
            json=fields,
        )
        rows = resp.json()
        if not rows:
            raise ProviderError(self.name, resp.status_code, "update matched no profile")
        return rows[0]

"""Shared plumbing for providers called over HTTP.

Providers use the pooled client from the lifespan when one is set, else a
short-lived client per call. Failures surface as ProviderError; nothing retries.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

import httpx


class ProviderError(Exception):
    """A call to an external provider failed.

    ``detail`` is the provider's own message and must only be logged.
    """

    def __init__(self, provider: str, status_code: int | None, detail: str):
        self.provider = provider
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"{provider} error ({status_code}): {detail}")


class BaseProvider:
    """Base class for HTTP providers.

    Subclasses can accept an external httpx.AsyncClient for connection pooling,
    or create their own per call if not provided. Calls are never retried;
    failures surface immediately as ProviderError.
    """

    name = "provider"

    def __init__(
        self,
        base_url: str,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0
    ):
        """Initialize the provider.

        Args:
            base_url: The API base URL
            http_client: Optional shared HTTP client for connection pooling
            timeout: Request timeout in seconds
        """
        self._http_client = http_client
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout

    @property
    def http_client(self) -> Optional[httpx.AsyncClient]:
        """Get the HTTP client, if one was provided."""
        return self._http_client

    def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is not None:
            return self._http_client
        return httpx.AsyncClient(timeout=self.timeout)

    @asynccontextmanager
    async def _client_context(self) -> AsyncIterator[httpx.AsyncClient]:
        """Yield the shared client, or a per-call client that is closed after."""
        client = self._get_client()
        is_shared = self._http_client is not None
        try:
            yield client
        finally:
            if not is_shared:
                await client.aclose()

    def _get_endpoint_url(self, endpoint: str) -> str:
        return f"{self.base_url}{endpoint}"

    async def _request(
        self,
        method: str,
        endpoint: str,
        headers: Dict[str, str],
        **kwargs: Any,
    ) -> httpx.Response:
        """Send one request and raise ProviderError on transport or HTTP errors."""
        url = self._get_endpoint_url(endpoint)
        try:
            async with self._client_context() as client:
                resp = await client.request(
                    method, url, headers=headers, timeout=self.timeout, **kwargs
                )
        except httpx.HTTPError as e:
            raise ProviderError(self.name, None, f"{type(e).__name__}: {e}") from e

        if resp.is_error:
            raise ProviderError(self.name, resp.status_code, _error_detail(resp))
        return resp


def _error_detail(resp: httpx.Response) -> str:
    try:
        payload = resp.json()
    except ValueError:
        return resp.text[:500]
    if isinstance(payload, dict):
        for key in ("msg", "message", "error_description", "error", "name"):
            if payload.get(key):
                return str(payload[key])
    return str(payload)[:500]

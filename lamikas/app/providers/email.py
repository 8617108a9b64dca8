"""Transactional email providers."""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import httpx

from lamikas.app.providers.base import BaseProvider, ProviderError


@dataclass(frozen=True)
class EmailMessage:
    """One outgoing email."""
    sender: str
    to: str
    subject: str
    html: str
    text: str
    headers: Dict[str, str] = field(default_factory=dict)


class EmailProvider(ABC):
    """Sends an email and returns the provider's message id."""

    @abstractmethod
    async def send(self, message: EmailMessage) -> str:
        """Deliver ``message``; raise ProviderError on failure."""


class ResendEmailProvider(BaseProvider, EmailProvider):
    """Resend REST API provider."""

    name = "resend"

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.resend.com",
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ):
        super().__init__(base_url, http_client, timeout)
        self.api_key = api_key

    async def send(self, message: EmailMessage) -> str:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        payload = {
            "from": message.sender,
            "to": [message.to],
            "subject": message.subject,
            "html": message.html,
            "text": message.text,
        }
        if message.headers:
            payload["headers"] = message.headers

        resp = await self._request("POST", "/emails", headers, json=payload)
        message_id = resp.json().get("id")
        if not message_id:
            raise ProviderError(self.name, resp.status_code, "response carried no message id")
        return message_id


class InMemoryEmailProvider(EmailProvider):
    """Records messages instead of sending them (tests and local development)."""

    def __init__(self, fail: bool = False):
        self.outbox: List[EmailMessage] = []
        self.fail = fail

    async def send(self, message: EmailMessage) -> str:
        if self.fail:
            raise ProviderError("memory", 500, "email delivery failed")
        self.outbox.append(message)
        return str(uuid.uuid4())

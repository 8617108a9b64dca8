"""Sends the six-digit email verification code to a new account."""

import re
import secrets
import string
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from lamikas.app.core.config import Settings, settings as default_settings
from lamikas.app.core.logging import get_log_context, get_logger
from lamikas.app.exceptions import MethodNotAllowedError, UpstreamError, ValidationError
from lamikas.app.providers.base import ProviderError
from lamikas.app.providers.email import EmailMessage, EmailProvider
from lamikas.app.services.auth_handler import AuthResponse, ClientRequest, HttpMethod
from lamikas.app.services.email_templates import display_name, render_verification_email

logger = get_logger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
CODE_PATTERN = re.compile(r"^\d{6}$")

REF_ID_HEADER = "X-Entity-Ref-ID"
_REF_ALPHABET = string.ascii_lowercase + string.digits


def _epoch_ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def entity_ref_id(now: datetime) -> str:
    """Per-message reference id, e.g. ``verification-1718000000000-k3j9x0a1b``."""
    suffix = "".join(secrets.choice(_REF_ALPHABET) for _ in range(9))
    return f"verification-{_epoch_ms(now)}-{suffix}"


class VerificationEmailSender:
    """Validates a send request and hands the rendered email to the provider."""

    def __init__(
        self,
        email_provider: EmailProvider,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.email_provider = email_provider
        self.settings = settings or default_settings
        self.clock = clock

    async def handle(self, request: ClientRequest) -> AuthResponse:
        if request.method != HttpMethod.POST.value:
            raise MethodNotAllowedError(request.method)

        try:
            body = request.json()
        except ValueError:
            raise ValidationError("Invalid JSON format")
        if not isinstance(body, dict):
            raise ValidationError("Invalid JSON format")

        email = body.get("email")
        code = body.get("code")
        if not email or not code:
            raise ValidationError("Email and verification code are required")
        email, code = str(email), str(code)
        if not EMAIL_PATTERN.match(email):
            raise ValidationError("Invalid email format")
        if not CODE_PATTERN.match(code):
            raise ValidationError("Invalid verification code format")

        now = self.clock()
        ttl = self.settings.verification_code_ttl_minutes
        expires_at = now + timedelta(minutes=ttl)
        content = render_verification_email(
            email=email,
            code=code,
            name=display_name(body.get("firstName"), body.get("lastName")),
            generated_at=now,
            expires_at=expires_at,
            ttl_minutes=ttl,
            support_email=self.settings.support_email,
        )
        message = EmailMessage(
            sender=self.settings.email_from,
            to=email,
            subject=content.subject,
            html=content.html,
            text=content.text,
            headers={REF_ID_HEADER: entity_ref_id(now)},
        )

        context = get_log_context(client_ip=request.client_ip, action="send_verification_email")
        try:
            email_id = await self.email_provider.send(message)
        except ProviderError as e:
            logger.error(f"Verification email delivery failed: {e}", extra=context)
            raise UpstreamError("Failed to send verification email", detail=e.detail)

        logger.info(f"Verification email sent, message id {email_id}", extra=context)
        return AuthResponse(
            status_code=200,
            body={
                "success": True,
                "message": "Verification email sent successfully",
                "emailId": email_id,
                "expiresAt": _epoch_ms(expires_at),
            },
        )

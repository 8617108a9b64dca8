"""Provider construction from settings."""

from typing import Optional

import httpx

from lamikas.app.core.config import Settings, settings as default_settings
from lamikas.app.core.logging import get_logger
from lamikas.app.providers.email import (
    EmailProvider,
    InMemoryEmailProvider,
    ResendEmailProvider,
)
from lamikas.app.providers.identity import IdentityStore
from lamikas.app.providers.memory import InMemoryIdentityStore
from lamikas.app.providers.supabase import SupabaseIdentityStore

logger = get_logger(__name__)


def create_identity_store(
    http_client: Optional[httpx.AsyncClient] = None,
    settings: Optional[Settings] = None,
) -> IdentityStore:
    """Build the identity store configured by settings.

    Raises:
        RuntimeError: If Supabase is selected but not configured.
    """
    settings = settings or default_settings
    if settings.mock_provider:
        logger.warning("Using in-memory identity store (MOCK_PROVIDER=true)")
        return InMemoryIdentityStore()

    missing = [
        name for name in ("supabase_url", "supabase_service_role_key", "supabase_anon_key")
        if not getattr(settings, name)
    ]
    if missing:
        raise RuntimeError(
            f"Missing Supabase configuration: {', '.join(m.upper() for m in missing)}"
        )

    return SupabaseIdentityStore(
        base_url=settings.supabase_url,
        service_role_key=settings.supabase_service_role_key,
        anon_key=settings.supabase_anon_key,
        http_client=http_client,
        timeout=settings.supabase_timeout,
        profiles_table=settings.profiles_table,
    )


def create_email_provider(
    http_client: Optional[httpx.AsyncClient] = None,
    settings: Optional[Settings] = None,
) -> EmailProvider:
    """Build the email provider configured by settings.

    A missing Resend key is not fatal at startup; the verification endpoint
    fails with a 500 until it is configured.
    """
    settings = settings or default_settings
    if settings.mock_provider:
        logger.warning("Using in-memory email outbox (MOCK_PROVIDER=true)")
        return InMemoryEmailProvider()

    if not settings.resend_api_key:
        logger.warning("RESEND_API_KEY is not set; verification emails will fail")

    return ResendEmailProvider(
        api_key=settings.resend_api_key,
        base_url=settings.resend_base_url,
        http_client=http_client,
        timeout=settings.supabase_timeout,
    )

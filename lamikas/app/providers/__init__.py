"""External collaborators: identity/profile store and email delivery."""

from lamikas.app.providers.base import BaseProvider, ProviderError
from lamikas.app.providers.email import (
    EmailMessage,
    EmailProvider,
    InMemoryEmailProvider,
    ResendEmailProvider,
)
from lamikas.app.providers.factory import create_email_provider, create_identity_store
from lamikas.app.providers.identity import IdentityStore
from lamikas.app.providers.memory import InMemoryIdentityStore
from lamikas.app.providers.supabase import SupabaseIdentityStore

__all__ = [
    "BaseProvider",
    "ProviderError",
    "EmailMessage",
    "EmailProvider",
    "InMemoryEmailProvider",
    "ResendEmailProvider",
    "IdentityStore",
    "InMemoryIdentityStore",
    "SupabaseIdentityStore",
    "create_email_provider",
    "create_identity_store",
]

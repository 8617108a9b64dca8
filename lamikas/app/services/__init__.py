"""Request handling services for the account functions."""

from lamikas.app.services.auth_handler import (
    AuthAction,
    AuthRequestHandler,
    AuthResponse,
    ClientRequest,
)
from lamikas.app.services.verification_email import VerificationEmailSender

__all__ = [
    "AuthAction",
    "AuthRequestHandler",
    "AuthResponse",
    "ClientRequest",
    "VerificationEmailSender",
]

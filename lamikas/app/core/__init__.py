"""Core utilities for the account functions."""

from lamikas.app.core.config import settings
from lamikas.app.core.logging import get_logger, setup_logging
from lamikas.app.core.security import (
    generate_csrf_token,
    sanitize_input,
    sanitize_object,
    validate_csrf_token,
    validate_email,
    validate_phone,
)

__all__ = [
    "settings",
    "get_logger",
    "setup_logging",
    "generate_csrf_token",
    "sanitize_input",
    "sanitize_object",
    "validate_csrf_token",
    "validate_email",
    "validate_phone",
]

"""Input sanitizing, field validation and CSRF helpers."""

import re
import secrets
from typing import Any, Iterable, Mapping, Optional

import nh3
import phonenumbers
from email_validator import EmailNotValidError
from email_validator import validate_email as _validate_email_syntax

from lamikas.app.core.config import settings

# Elements whose text content is dropped along with the markup
_CLEAN_CONTENT_TAGS = {"script", "style", "textarea", "option", "noscript"}

_PHONE_STRIP = re.compile(r"[^\d]")

# Shortest national number accepted, excluding country code
MIN_NATIONAL_DIGITS = 7


def sanitize_input(value: Any) -> Any:
    """Strip all HTML from a string and trim surrounding whitespace.

    Non-string values are returned unchanged.

    Example:
        >>> sanitize_input("<script>x</script>hello ")
        'hello'
    """
    if not isinstance(value, str):
        return value
    cleaned = nh3.clean(
        value,
        tags=set(),
        clean_content_tags=_CLEAN_CONTENT_TAGS,
        attributes={},
        link_rel=None,
    )
    return cleaned.strip()


def sanitize_object(obj: Mapping[str, Any]) -> dict[str, Any]:
    """Recursively sanitize every string field of a mapping.

    Nested mappings are rebuilt rather than modified, lists are walked
    element by element, and numbers, booleans and None are left untouched.
    """
    return {key: _sanitize_value(value) for key, value in obj.items()}


def _sanitize_value(value: Any) -> Any:
    if isinstance(value, str):
        return sanitize_input(value)
    if isinstance(value, Mapping):
        return sanitize_object(value)
    if isinstance(value, list):
        return [_sanitize_value(item) for item in value]
    return value


def validate_email(value: Any) -> bool:
    """Check email syntax. No DNS or deliverability lookups are made."""
    if not isinstance(value, str) or not value:
        return False
    try:
        _validate_email_syntax(value, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def normalize_phone(value: str) -> str:
    """Keep digits and a single leading ``+``."""
    stripped = value.strip()
    digits = _PHONE_STRIP.sub("", stripped)
    if stripped.startswith("+") and digits:
        return f"+{digits}"
    return digits


def validate_phone(value: Any, regions: Optional[Iterable[str]] = None) -> bool:
    """Check that a value is a plausible phone number.

    Numbers with a leading ``+`` are parsed in international form. Local
    numbers are tried against ``regions`` (default: the configured phone
    regions). A number must be a fully possible number for its region, not a
    local-only dialing form, and carry at least ``MIN_NATIONAL_DIGITS`` digits.
    """
    if not isinstance(value, str):
        return False
    candidate = normalize_phone(value)
    if not candidate.lstrip("+"):
        return False

    if candidate.startswith("+"):
        regions = [None]
    elif regions is None:
        regions = settings.phone_regions
    for region in regions:
        try:
            number = phonenumbers.parse(candidate, region)
        except phonenumbers.NumberParseException:
            continue
        if _is_plausible(number):
            return True
    return False


def _is_plausible(number: phonenumbers.PhoneNumber) -> bool:
    if len(str(number.national_number)) < MIN_NATIONAL_DIGITS:
        return False
    reason = phonenumbers.is_possible_number_with_reason(number)
    return reason == phonenumbers.ValidationResult.IS_POSSIBLE


def generate_csrf_token(nbytes: int = 32) -> str:
    """Generate a CSRF token: ``nbytes`` random bytes, hex encoded."""
    return secrets.token_hex(nbytes)


def validate_csrf_token(token: str | None, stored_token: str | None) -> bool:
    """Return True iff both tokens are present and equal."""
    if not token or not stored_token:
        return False
    return secrets.compare_digest(token.encode("utf-8"), stored_token.encode("utf-8"))


def extract_cookie(cookie_header: str | None, name: str) -> str | None:
    """Read one cookie value from a raw ``Cookie`` header."""
    if not cookie_header:
        return None
    for part in cookie_header.split(";"):
        key, sep, value = part.strip().partition("=")
        if sep and key == name and value:
            return value
    return None


def extract_bearer_token(authorization: str | None) -> str | None:
    """Return the token from an ``Authorization: Bearer <token>`` header."""
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer":
        return None
    token = token.strip()
    return token or None

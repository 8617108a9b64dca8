"""CORS and security headers shared by every account function response."""

from typing import Any, Mapping, Optional

from fastapi.responses import JSONResponse, Response

from lamikas.app.core.config import settings

CONTENT_SECURITY_POLICY = (
    "default-src 'self'; "
    "script-src 'self' 'unsafe-inline'; "
    "style-src 'self' 'unsafe-inline';"
)


def security_headers(include_csp: bool = True) -> dict[str, str]:
    """Fixed header set; ``Access-Control-Allow-Origin`` echoes the one configured origin."""
    headers = {
        "Access-Control-Allow-Origin": settings.allowed_origins,
        "Access-Control-Allow-Headers": f"Content-Type, Authorization, {settings.csrf_header_name}",
        "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
        "Access-Control-Allow-Credentials": "true",
        "Content-Type": "application/json",
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
        "X-XSS-Protection": "1; mode=block",
        "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
        "Referrer-Policy": "strict-origin-when-cross-origin",
    }
    if include_csp:
        headers["Content-Security-Policy"] = CONTENT_SECURITY_POLICY
    return headers


def json_response(
    status_code: int,
    body: Any = None,
    *,
    include_csp: bool = True,
    extra_headers: Optional[Mapping[str, str]] = None,
) -> Response:
    """Build a response carrying the security headers.

    A ``None`` body yields an empty response (used for preflight).
    """
    headers = security_headers(include_csp)
    if extra_headers:
        headers.update(extra_headers)
    if body is None:
        return Response(status_code=status_code, headers=headers)
    return JSONResponse(status_code=status_code, content=body, headers=headers)

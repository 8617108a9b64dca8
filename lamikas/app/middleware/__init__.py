"""Middleware package for the account functions."""

from lamikas.app.middleware.rate_limit import RateLimiter, login_key
from lamikas.app.middleware.request_id import RequestIdMiddleware, get_request_id
from lamikas.app.middleware.request_size import RequestSizeLimitMiddleware

__all__ = [
    "RateLimiter",
    "login_key",
    "RequestIdMiddleware",
    "RequestSizeLimitMiddleware",
    "get_request_id",
]

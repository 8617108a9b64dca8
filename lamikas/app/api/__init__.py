"""HTTP routes for the account functions."""

from lamikas.app.api.auth import router as auth_router
from lamikas.app.api.verification import router as verification_router

__all__ = ["auth_router", "verification_router"]

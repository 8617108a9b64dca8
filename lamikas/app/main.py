from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.responses import Response

from lamikas.app.api import auth_router, verification_router
from lamikas.app.api.auth import AUTH_PATH
from lamikas.app.api.responses import json_response
from lamikas.app.core.config import settings
from lamikas.app.core.http_client import init_http_client
from lamikas.app.core.logging import get_logger, setup_logging
from lamikas.app.exceptions import PortalException
from lamikas.app.middleware.rate_limit import (
    RateLimiter,
    create_general_limiter,
    create_login_limiter,
)
from lamikas.app.middleware.request_id import RequestIdMiddleware, get_request_id
from lamikas.app.middleware.request_size import RequestSizeLimitMiddleware
from lamikas.app.providers import (
    EmailProvider,
    IdentityStore,
    create_email_provider,
    create_identity_store,
)
from lamikas.app.services.auth_handler import AuthRequestHandler
from lamikas.app.services.verification_email import VerificationEmailSender


def create_app(
    identity_store: Optional[IdentityStore] = None,
    email_provider: Optional[EmailProvider] = None,
    rate_limiter: Optional[RateLimiter] = None,
    login_rate_limiter: Optional[RateLimiter] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Collaborators that are not passed in are built from settings at startup.

    Returns:
        Configured FastAPI application instance
    """
    setup_logging()
    logger = get_logger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Owns the shared HTTP pool, providers and rate limiters."""
        async with init_http_client() as http_client:
            store = identity_store or create_identity_store(http_client)
            mailer = email_provider or create_email_provider(http_client)
            general = rate_limiter or create_general_limiter()
            login = login_rate_limiter or create_login_limiter()

            app.state.identity_store = store
            app.state.email_provider = mailer
            app.state.rate_limiters = (general, login)
            app.state.auth_handler = AuthRequestHandler(store, general, login)
            app.state.verification_sender = VerificationEmailSender(mailer)

            logger.info(
                "Application startup complete",
                extra={
                    "identity_store": type(store).__name__,
                    "email_provider": type(mailer).__name__,
                    "debug_mode": settings.debug,
                },
            )

            yield

            for limiter in (general, login):
                await limiter.close()
            await store.close()

        logger.info("Application shutdown complete")

    app = FastAPI(
        title="LAMIKAS Account Functions",
        description="Authentication, registration and profile endpoints for the LAMIKAS portal",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Order matters: last added = first executed
    app.add_middleware(RequestSizeLimitMiddleware, max_body_size=settings.max_body_size)
    app.add_middleware(RequestIdMiddleware)

    app.include_router(auth_router)
    app.include_router(verification_router)

    @app.get("/health")
    async def health(request: Request) -> dict[str, Any]:
        """Liveness plus which collaborators are configured."""
        state = request.app.state
        return {
            "status": "ok",
            "components": {
                "identity_store": type(state.identity_store).__name__,
                "email_provider": type(state.email_provider).__name__,
                "rate_limiter": type(state.rate_limiters[0].backend).__name__,
            },
        }

    @app.exception_handler(PortalException)
    async def portal_exception_handler(request: Request, exc: PortalException) -> Response:
        """Render every domain error as ``{"error": message}`` with the security headers."""
        if exc.status_code >= 500:
            logger.error(
                f"{type(exc).__name__}: {exc.message}",
                extra={
                    "request_id": get_request_id(request),
                    "path": request.url.path,
                    "status_code": exc.status_code,
                    "detail": getattr(exc, "detail", None),
                },
            )
        return json_response(
            exc.status_code,
            {"error": exc.message},
            include_csp=request.url.path == AUTH_PATH,
            extra_headers=exc.headers,
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> Response:
        """Global exception handler for unhandled exceptions.

        The traceback is logged server-side and never returned to the client.
        """
        request_id = get_request_id(request)
        logger.exception(
            f"Unhandled exception [request_id={request_id}]",
            extra={
                "request_id": request_id,
                "path": request.url.path,
                "exception_type": type(exc).__name__,
            },
        )
        return json_response(
            500,
            {"error": "Internal server error"},
            include_csp=request.url.path == AUTH_PATH,
        )

    return app


# Create the application instance
app = create_app()

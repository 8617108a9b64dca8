"""Auth request handling: profile fetch, login, registration, logout, update.

Each request is handled independently. The only shared mutable state is the
pair of rate limiters injected at construction.

Flow: OPTIONS short-circuit -> general rate limit -> method dispatch ->
(POST) CSRF check -> JSON parse -> sanitize -> action dispatch -> identity
store call -> response.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Union

from lamikas.app.core.config import Settings, settings as default_settings
from lamikas.app.core.logging import get_log_context, get_logger
from lamikas.app.core.security import (
    extract_bearer_token,
    extract_cookie,
    sanitize_object,
    validate_csrf_token,
    validate_email,
    validate_phone,
)
from lamikas.app.exceptions import (
    AuthenticationError,
    AuthorizationError,
    MethodNotAllowedError,
    NotFoundError,
    RateLimitError,
    UnknownActionError,
    UpstreamError,
    ValidationError,
)
from lamikas.app.middleware.rate_limit import RateLimiter, login_key
from lamikas.app.providers.base import ProviderError
from lamikas.app.providers.identity import IdentityStore
from lamikas.app.services.profiles import (
    Registration,
    TrialWindow,
    default_profile,
    profile_update_fields,
)

logger = get_logger(__name__)

UNKNOWN_CLIENT = "unknown"


class HttpMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    OPTIONS = "OPTIONS"


class AuthAction(str, Enum):
    LOGIN = "login"
    REGISTER = "register"
    LOGOUT = "logout"


@dataclass(frozen=True)
class ClientRequest:
    """An inbound request; header names are matched case-insensitively."""
    method: str
    headers: Mapping[str, str]
    body: Union[str, bytes, None] = None

    @classmethod
    def build(
        cls,
        method: str,
        headers: Optional[Mapping[str, str]] = None,
        body: Union[str, bytes, None] = None,
    ) -> "ClientRequest":
        lowered = {k.lower(): v for k, v in (headers or {}).items()}
        return cls(method=method.upper(), headers=MappingProxyType(lowered), body=body)

    def header(self, name: str) -> Optional[str]:
        return self.headers.get(name.lower())

    def json(self, default: str = "") -> Any:
        """Decode the body as strict UTF-8 JSON; raises ValueError otherwise."""
        raw = self.body or default
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return json.loads(raw)

    @property
    def client_ip(self) -> str:
        """``client-ip`` header, else first ``x-forwarded-for`` hop, else "unknown"."""
        direct = (self.header("client-ip") or "").strip()
        if direct:
            return direct
        forwarded = self.header("x-forwarded-for") or ""
        first_hop = forwarded.split(",")[0].strip()
        return first_hop or UNKNOWN_CLIENT

    @property
    def bearer_token(self) -> Optional[str]:
        return extract_bearer_token(self.header("authorization"))


@dataclass
class AuthResponse:
    """Status, JSON body (None for an empty body) and extra headers."""
    status_code: int
    body: Any = None
    headers: Dict[str, str] = field(default_factory=dict)


Handler = Callable[[ClientRequest], Awaitable[AuthResponse]]
ActionHandler = Callable[[ClientRequest, Dict[str, Any]], Awaitable[AuthResponse]]


class AuthRequestHandler:
    """Dispatches auth requests to the identity store.

    Args:
        identity_store: Authoritative identity and profile store
        rate_limiter: General limiter keyed by client IP
        login_rate_limiter: Login limiter keyed by ``login_<ip>``
        settings: Settings override, mainly for tests
        clock: Returns the current UTC time, mainly for tests
    """

    def __init__(
        self,
        identity_store: IdentityStore,
        rate_limiter: RateLimiter,
        login_rate_limiter: RateLimiter,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.identity_store = identity_store
        self.rate_limiter = rate_limiter
        self.login_rate_limiter = login_rate_limiter
        self.settings = settings or default_settings
        self.clock = clock

        self._method_handlers: Dict[HttpMethod, Handler] = {
            HttpMethod.GET: self._fetch_profile,
            HttpMethod.POST: self._dispatch_action,
            HttpMethod.PUT: self._update_profile,
        }
        self._action_handlers: Dict[AuthAction, ActionHandler] = {
            AuthAction.LOGIN: self._login,
            AuthAction.REGISTER: self._register,
            AuthAction.LOGOUT: self._logout,
        }
        missing = set(AuthAction) - set(self._action_handlers)
        if missing:
            raise RuntimeError(f"No handler for actions: {sorted(a.value for a in missing)}")

    async def handle(self, request: ClientRequest) -> AuthResponse:
        """Handle one request.

        Raises:
            PortalException: subclasses map to the error responses
        """
        if request.method == HttpMethod.OPTIONS.value:
            return AuthResponse(status_code=200)

        if not await self.rate_limiter.try_consume(request.client_ip):
            logger.warning(
                "General rate limit exceeded",
                extra=get_log_context(client_ip=request.client_ip),
            )
            raise RateLimitError(retry_after=self.rate_limiter.retry_after)

        try:
            method = HttpMethod(request.method)
        except ValueError:
            raise MethodNotAllowedError(request.method)

        handler = self._method_handlers.get(method)
        if handler is None:
            raise MethodNotAllowedError(request.method)
        return await handler(request)

    # -- shared steps -----------------------------------------------------

    def _check_csrf(self, request: ClientRequest) -> None:
        header_token = request.header(self.settings.csrf_header_name)
        cookie_token = extract_cookie(
            request.header("cookie"), self.settings.csrf_cookie_name
        )
        if not validate_csrf_token(header_token, cookie_token):
            logger.warning(
                "CSRF token mismatch",
                extra=get_log_context(client_ip=request.client_ip, method=request.method),
            )
            raise AuthorizationError("Invalid CSRF token")

    @staticmethod
    def _parse_body(request: ClientRequest) -> Dict[str, Any]:
        try:
            body = request.json(default="{}")
        except ValueError:
            raise ValidationError("Invalid JSON format")
        if not isinstance(body, dict):
            raise ValidationError("Invalid JSON format")
        return sanitize_object(body)

    async def _authenticate(self, request: ClientRequest) -> tuple[Dict[str, Any], str]:
        token = request.bearer_token
        if not token:
            raise AuthenticationError("No authorization token")
        try:
            user = await self.identity_store.get_user(token)
        except ProviderError as e:
            if e.status_code is None or e.status_code >= 500:
                logger.error(
                    f"Token verification failed upstream: {e}",
                    extra=get_log_context(client_ip=request.client_ip),
                )
                raise UpstreamError(detail=e.detail)
            raise AuthenticationError("Invalid token")
        return user, token

    # -- GET: fetch profile -----------------------------------------------

    async def _load_profile(
        self, user_id: str, token: str, context: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Read the caller's profile.

        Raises:
            NotFoundError: No profile row exists yet
            UpstreamError: The store could not be read
        """
        try:
            profile = await self.identity_store.get_profile(user_id, token)
        except ProviderError as e:
            logger.error(f"Profile lookup failed: {e}", extra=context)
            raise UpstreamError(detail=e.detail)
        if profile is None:
            raise NotFoundError("Profile")
        return profile

    async def _fetch_profile(self, request: ClientRequest) -> AuthResponse:
        user, token = await self._authenticate(request)
        context = get_log_context(client_ip=request.client_ip, user_id=user["id"])

        try:
            profile = await self._load_profile(user["id"], token, context)
        except NotFoundError:
            try:
                profile = await self.identity_store.insert_profile(
                    default_profile(user, self.clock())
                )
            except ProviderError as e:
                logger.error(f"Profile auto-creation failed: {e}", extra=context)
                raise UpstreamError("Failed to create profile", detail=e.detail)
            logger.info("Created profile on first login", extra=context)

        return AuthResponse(status_code=200, body={"user": user, "profile": profile})

    # -- POST: actions ----------------------------------------------------

    async def _dispatch_action(self, request: ClientRequest) -> AuthResponse:
        self._check_csrf(request)
        body = self._parse_body(request)

        try:
            action = AuthAction(body.get("action"))
        except (ValueError, TypeError):
            raise UnknownActionError(body.get("action"))

        return await self._action_handlers[action](request, body)

    async def _login(self, request: ClientRequest, body: Dict[str, Any]) -> AuthResponse:
        email = body.get("email")
        password = body.get("password")
        if not email or not password or not isinstance(password, str):
            raise ValidationError("Email and password required")
        if not validate_email(email):
            raise ValidationError("Invalid email format")

        if not await self.login_rate_limiter.try_consume(login_key(request.client_ip)):
            logger.warning(
                "Login rate limit exceeded",
                extra=get_log_context(client_ip=request.client_ip, action="login"),
            )
            raise RateLimitError(
                retry_after=self.login_rate_limiter.retry_after,
                message="Too many login attempts. Please try again later.",
            )

        try:
            session = await self.identity_store.sign_in_with_password(email, password)
        except ProviderError as e:
            # Same answer for unknown email, wrong password and provider trouble
            logger.info(
                f"Login failed (provider status {e.status_code})",
                extra=get_log_context(client_ip=request.client_ip, action="login"),
            )
            raise AuthenticationError("Invalid credentials")

        return AuthResponse(status_code=200, body={"session": session})

    async def _register(self, request: ClientRequest, body: Dict[str, Any]) -> AuthResponse:
        form = Registration.parse(
            body,
            min_password_length=self.settings.min_password_length,
            phone_regions=self.settings.phone_regions,
        )

        trial = TrialWindow.starting(self.clock(), self.settings.trial_days)
        context = get_log_context(client_ip=request.client_ip, action="register")

        try:
            user = await self.identity_store.sign_up(
                form.email, form.password, form.identity_metadata(trial)
            )
        except ProviderError as e:
            logger.warning(f"Sign up rejected: {e}", extra=context)
            raise ValidationError("Registration failed. Please try again.")

        context["user_id"] = user["id"]
        try:
            await self.identity_store.insert_profile(form.profile_record(user["id"], trial))
        except ProviderError as e:
            logger.error(f"Profile creation error: {e}", extra=context)
            await self._discard_identity(user["id"], context)
            raise UpstreamError("Failed to create user profile", detail=e.detail)

        logger.info("Registered new account", extra=context)
        return AuthResponse(
            status_code=201,
            body={
                "user": user,
                "message": "Registration successful!",
                "autoLogin": True,
            },
        )

    async def _discard_identity(self, user_id: str, context: Dict[str, Any]) -> None:
        """Delete an identity whose profile could not be created."""
        try:
            await self.identity_store.delete_user(user_id)
        except ProviderError as e:
            logger.error(f"Could not remove orphaned identity: {e}", extra=context)
        else:
            logger.info("Removed identity after failed profile creation", extra=context)

    async def _logout(self, request: ClientRequest, body: Dict[str, Any]) -> AuthResponse:
        token = request.bearer_token
        if token:
            try:
                await self.identity_store.sign_out(token)
            except ProviderError as e:
                logger.warning(
                    f"Sign out failed: {e}",
                    extra=get_log_context(client_ip=request.client_ip, action="logout"),
                )
        return AuthResponse(status_code=200, body={"success": True})

    # -- PUT: update profile ----------------------------------------------

    async def _update_profile(self, request: ClientRequest) -> AuthResponse:
        if self.settings.csrf_protect_all_mutations:
            self._check_csrf(request)

        user, token = await self._authenticate(request)
        body = self._parse_body(request)

        if body.get("phone") and not validate_phone(body["phone"], self.settings.phone_regions):
            raise ValidationError("Invalid phone number format")

        fields = profile_update_fields(body, self.clock())
        try:
            profile = await self.identity_store.update_profile(user["id"], fields, token)
        except ProviderError as e:
            logger.error(
                f"Profile update failed: {e}",
                extra=get_log_context(client_ip=request.client_ip, user_id=user["id"]),
            )
            raise UpstreamError("Failed to update profile", detail=e.detail)

        return AuthResponse(status_code=200, body=profile)

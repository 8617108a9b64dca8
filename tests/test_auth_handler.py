"""Tests for the auth request handler, called directly."""

import json
from datetime import datetime, timezone

import pytest

from lamikas.app.core.config import Settings
from lamikas.app.exceptions import (
    AuthenticationError,
    AuthorizationError,
    MethodNotAllowedError,
    RateLimitError,
    UnknownActionError,
    UpstreamError,
    ValidationError,
)
from lamikas.app.middleware.rate_limit import InMemoryRateLimiter, RateLimiter
from lamikas.app.providers import InMemoryIdentityStore
from lamikas.app.services.auth_handler import (
    AuthAction,
    AuthRequestHandler,
    ClientRequest,
)

NOW = datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc)
CSRF = {"X-CSRF-Token": "tok-123", "Cookie": "csrf_token=tok-123"}


def _limiter(requests: int = 1000, retry_after: int = 60) -> RateLimiter:
    backend = InMemoryRateLimiter(
        requests=requests, window_seconds=1, retry_after=retry_after, clock=lambda: 100.0
    )
    return RateLimiter(retry_after=retry_after, backend=backend)


def _handler(store=None, settings=None, general=None, login=None) -> AuthRequestHandler:
    return AuthRequestHandler(
        identity_store=store or InMemoryIdentityStore(),
        rate_limiter=general or _limiter(),
        login_rate_limiter=login or _limiter(retry_after=300),
        settings=settings or Settings(_env_file=None),
        clock=lambda: NOW,
    )


def _post(body, headers=None) -> ClientRequest:
    merged = dict(CSRF)
    merged.update(headers or {})
    raw = body if isinstance(body, str) else json.dumps(body)
    return ClientRequest.build("POST", merged, raw)


REGISTRATION = {
    "action": "register",
    "email": "jane@lamikas.com",
    "password": "s3cret-pass",
    "firstName": "Jane",
    "lastName": "Wanjiru",
    "selectedPlan": "professional",
    "paymentType": "free-trial",
    "phone": "+254712345678",
}


class TestClientRequest:
    def test_headers_are_case_insensitive(self):
        request = ClientRequest.build("post", {"Authorization": "Bearer abc"})
        assert request.method == "POST"
        assert request.header("authorization") == "Bearer abc"
        assert request.bearer_token == "abc"

    def test_client_ip_prefers_client_ip_header(self):
        request = ClientRequest.build(
            "GET", {"client-ip": "198.51.100.1", "X-Forwarded-For": "203.0.113.7"}
        )
        assert request.client_ip == "198.51.100.1"

    def test_client_ip_uses_first_forwarded_hop(self):
        request = ClientRequest.build("GET", {"X-Forwarded-For": "203.0.113.7, 10.0.0.1"})
        assert request.client_ip == "203.0.113.7"

    def test_client_ip_unknown(self):
        assert ClientRequest.build("GET").client_ip == "unknown"


class TestDispatch:
    def test_every_action_has_a_handler(self):
        handler = _handler()
        assert set(handler._action_handlers) == set(AuthAction)

    @pytest.mark.asyncio
    async def test_options_short_circuits(self):
        general = _limiter(requests=1)
        handler = _handler(general=general)

        for _ in range(3):
            response = await handler.handle(ClientRequest.build("OPTIONS"))
            assert response.status_code == 200
            assert response.body is None

        # Preflights consumed nothing
        assert await general.try_consume("unknown") is True

    @pytest.mark.asyncio
    async def test_general_rate_limit(self):
        handler = _handler(general=_limiter(requests=10))
        request = ClientRequest.build("DELETE", {"client-ip": "203.0.113.7"})

        for _ in range(10):
            with pytest.raises(MethodNotAllowedError):
                await handler.handle(request)

        with pytest.raises(RateLimitError) as exc_info:
            await handler.handle(request)
        assert exc_info.value.headers == {"Retry-After": "60"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method", ["DELETE", "PATCH", "HEAD", "TRACE"])
    async def test_unsupported_methods(self, method):
        with pytest.raises(MethodNotAllowedError):
            await _handler().handle(ClientRequest.build(method))

    @pytest.mark.asyncio
    async def test_post_requires_csrf(self):
        request = ClientRequest.build("POST", {}, json.dumps({"action": "logout"}))
        with pytest.raises(AuthorizationError):
            await _handler().handle(request)

    @pytest.mark.asyncio
    async def test_post_csrf_mismatch(self):
        request = ClientRequest.build(
            "POST",
            {"X-CSRF-Token": "a", "Cookie": "csrf_token=b"},
            json.dumps({"action": "logout"}),
        )
        with pytest.raises(AuthorizationError):
            await _handler().handle(request)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "headers",
        [{}, {"X-CSRF-Token": "a", "Cookie": "csrf_token=b"}],
    )
    async def test_csrf_checked_before_body_is_parsed(self, headers):
        request = ClientRequest.build("POST", headers, "{oops")
        with pytest.raises(AuthorizationError):
            await _handler().handle(request)

    @pytest.mark.asyncio
    async def test_body_must_be_utf8(self):
        request = ClientRequest.build("POST", CSRF, b'{"action": "logout", "note": "\xff"}')
        with pytest.raises(ValidationError) as exc_info:
            await _handler().handle(request)
        assert exc_info.value.message == "Invalid JSON format"

    @pytest.mark.asyncio
    async def test_utf8_bytes_body_is_accepted(self):
        body = json.dumps({"action": "logout", "note": "Wanjirũ"}, ensure_ascii=False)
        response = await _handler().handle(ClientRequest.build("POST", CSRF, body.encode("utf-8")))
        assert response.body == {"success": True}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", ["{not json", "[1, 2]", '"login"'])
    async def test_invalid_json(self, raw):
        with pytest.raises(ValidationError) as exc_info:
            await _handler().handle(_post(raw))
        assert exc_info.value.message == "Invalid JSON format"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("action", ["delete_account", None, 5])
    async def test_unknown_action(self, action):
        with pytest.raises(UnknownActionError):
            await _handler().handle(_post({"action": action}))


class TestLogin:
    @pytest.mark.asyncio
    async def test_success_returns_session(self):
        store = InMemoryIdentityStore()
        store.create_user("jane@lamikas.com", "s3cret-pass")

        response = await _handler(store).handle(
            _post({"action": "login", "email": "jane@lamikas.com", "password": "s3cret-pass"})
        )

        assert response.status_code == 200
        assert response.body["session"]["access_token"] in store.sessions

    @pytest.mark.asyncio
    async def test_missing_fields(self):
        with pytest.raises(ValidationError) as exc_info:
            await _handler().handle(_post({"action": "login", "email": "jane@lamikas.com"}))
        assert exc_info.value.message == "Email and password required"

    @pytest.mark.asyncio
    async def test_invalid_email(self):
        with pytest.raises(ValidationError) as exc_info:
            await _handler().handle(_post({"action": "login", "email": "jane", "password": "x"}))
        assert exc_info.value.message == "Invalid email format"

    @pytest.mark.asyncio
    async def test_wrong_password_is_generic(self):
        store = InMemoryIdentityStore()
        store.create_user("jane@lamikas.com", "s3cret-pass")

        with pytest.raises(AuthenticationError) as exc_info:
            await _handler(store).handle(
                _post({"action": "login", "email": "jane@lamikas.com", "password": "wrong"})
            )
        assert exc_info.value.message == "Invalid credentials"

    @pytest.mark.asyncio
    async def test_provider_outage_is_generic(self):
        store = InMemoryIdentityStore(fail_operations={"sign_in_with_password"})

        with pytest.raises(AuthenticationError):
            await _handler(store).handle(
                _post({"action": "login", "email": "jane@lamikas.com", "password": "x"})
            )

    @pytest.mark.asyncio
    async def test_login_rate_limit(self):
        handler = _handler(login=_limiter(requests=2, retry_after=300))
        body = {"action": "login", "email": "jane@lamikas.com", "password": "wrong"}
        headers = {"client-ip": "203.0.113.7"}

        for _ in range(2):
            with pytest.raises(AuthenticationError):
                await handler.handle(_post(body, headers))

        with pytest.raises(RateLimitError) as exc_info:
            await handler.handle(_post(body, headers))
        assert exc_info.value.message == "Too many login attempts. Please try again later."
        assert exc_info.value.headers == {"Retry-After": "300"}

        # Another client is unaffected
        with pytest.raises(AuthenticationError):
            await handler.handle(_post(body, {"client-ip": "198.51.100.1"}))


class TestRegister:
    @pytest.mark.asyncio
    async def test_creates_identity_and_profile(self):
        store = InMemoryIdentityStore()

        response = await _handler(store).handle(_post(REGISTRATION))

        assert response.status_code == 201
        assert response.body["message"] == "Registration successful!"
        assert response.body["autoLogin"] is True
        user_id = response.body["user"]["id"]

        metadata = store.users[user_id]["user_metadata"]
        assert metadata["email_verified"] is False
        assert metadata["max_properties"] == 50

        profile = store.profiles[user_id]
        assert profile["max_properties"] == 50
        assert profile["current_properties"] == 0
        assert profile["trial_active"] is True
        assert profile["is_active"] is True
        assert profile["trial_start"] == metadata["trial_start"]
        assert profile["trial_end"] == metadata["trial_end"]

    @pytest.mark.asyncio
    async def test_fields_are_sanitized(self):
        store = InMemoryIdentityStore()
        body = dict(REGISTRATION, firstName="<script>alert(1)</script>Jane", lastName="<b>Wanjiru</b>")

        response = await _handler(store).handle(_post(body))

        profile = store.profiles[response.body["user"]["id"]]
        assert profile["first_name"] == "Jane"
        assert profile["full_name"] == "Jane Wanjiru"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("missing", ["email", "password", "firstName", "lastName", "selectedPlan"])
    async def test_required_fields(self, missing):
        body = {k: v for k, v in REGISTRATION.items() if k != missing}
        with pytest.raises(ValidationError) as exc_info:
            await _handler().handle(_post(body))
        assert exc_info.value.message == "Required fields missing"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("phone", ["call me", "12", "000", "12345"])
    async def test_invalid_phone(self, phone):
        store = InMemoryIdentityStore()
        with pytest.raises(ValidationError) as exc_info:
            await _handler(store).handle(_post(dict(REGISTRATION, phone=phone)))
        assert exc_info.value.message == "Invalid phone number format"
        assert store.users == {}

    @pytest.mark.asyncio
    async def test_non_text_name_is_missing(self):
        with pytest.raises(ValidationError) as exc_info:
            await _handler().handle(_post(dict(REGISTRATION, firstName=["Jane"])))
        assert exc_info.value.message == "Required fields missing"

    @pytest.mark.asyncio
    async def test_short_password(self):
        store = InMemoryIdentityStore()
        with pytest.raises(ValidationError) as exc_info:
            await _handler(store).handle(_post(dict(REGISTRATION, password="short")))
        assert exc_info.value.message == "Password must be at least 8 characters long"
        assert store.users == {}

    @pytest.mark.asyncio
    async def test_duplicate_email_is_generic(self):
        store = InMemoryIdentityStore()
        store.create_user("jane@lamikas.com", "s3cret-pass")

        with pytest.raises(ValidationError) as exc_info:
            await _handler(store).handle(_post(REGISTRATION))
        assert exc_info.value.message == "Registration failed. Please try again."

    @pytest.mark.asyncio
    async def test_profile_failure_removes_identity(self):
        store = InMemoryIdentityStore(fail_operations={"insert_profile"})

        with pytest.raises(UpstreamError) as exc_info:
            await _handler(store).handle(_post(REGISTRATION))

        assert exc_info.value.message == "Failed to create user profile"
        assert store.users == {}

    @pytest.mark.asyncio
    async def test_profile_failure_with_failed_cleanup(self):
        store = InMemoryIdentityStore(fail_operations={"insert_profile", "delete_user"})

        with pytest.raises(UpstreamError):
            await _handler(store).handle(_post(REGISTRATION))

        assert len(store.users) == 1


class TestLogout:
    @pytest.mark.asyncio
    async def test_signs_out_token(self):
        store = InMemoryIdentityStore()
        user = store.create_user("jane@lamikas.com", "s3cret-pass")
        token = store.issue_token(user["id"])

        response = await _handler(store).handle(
            _post({"action": "logout"}, {"Authorization": f"Bearer {token}"})
        )

        assert response.status_code == 200
        assert response.body == {"success": True}
        assert store.signed_out == [token]
        assert token not in store.sessions

    @pytest.mark.asyncio
    async def test_without_token(self):
        response = await _handler().handle(_post({"action": "logout"}))
        assert response.body == {"success": True}

    @pytest.mark.asyncio
    async def test_sign_out_failure_still_succeeds(self):
        store = InMemoryIdentityStore(fail_operations={"sign_out"})

        response = await _handler(store).handle(
            _post({"action": "logout"}, {"Authorization": "Bearer tok"})
        )

        assert response.status_code == 200


class TestFetchProfile:
    @pytest.mark.asyncio
    async def test_requires_token(self):
        with pytest.raises(AuthenticationError) as exc_info:
            await _handler().handle(ClientRequest.build("GET"))
        assert exc_info.value.message == "No authorization token"

    @pytest.mark.asyncio
    async def test_invalid_token(self):
        with pytest.raises(AuthenticationError) as exc_info:
            await _handler().handle(ClientRequest.build("GET", {"Authorization": "Bearer nope"}))
        assert exc_info.value.message == "Invalid token"

    @pytest.mark.asyncio
    async def test_verification_outage_is_500(self):
        store = InMemoryIdentityStore(fail_operations={"get_user"})
        with pytest.raises(UpstreamError):
            await _handler(store).handle(ClientRequest.build("GET", {"Authorization": "Bearer t"}))

    @pytest.mark.asyncio
    async def test_returns_existing_profile(self):
        store = InMemoryIdentityStore()
        user = store.create_user("jane@lamikas.com", "s3cret-pass")
        token = store.issue_token(user["id"])
        store.profiles[user["id"]] = {"id": user["id"], "plan_type": "business"}

        response = await _handler(store).handle(
            ClientRequest.build("GET", {"Authorization": f"Bearer {token}"})
        )

        assert response.status_code == 200
        assert response.body["user"]["id"] == user["id"]
        assert response.body["profile"] == {"id": user["id"], "plan_type": "business"}

    @pytest.mark.asyncio
    async def test_provisions_missing_profile_once(self):
        store = InMemoryIdentityStore()
        user = store.create_user("jane@lamikas.com", "s3cret-pass", {"full_name": "Jane W"})
        token = store.issue_token(user["id"])
        handler = _handler(store)
        request = ClientRequest.build("GET", {"Authorization": f"Bearer {token}"})

        first = await handler.handle(request)
        second = await handler.handle(request)

        assert first.body["profile"]["full_name"] == "Jane W"
        assert first.body["profile"]["max_properties"] == 5
        assert second.body["profile"] == first.body["profile"]
        assert list(store.profiles) == [user["id"]]

    @pytest.mark.asyncio
    async def test_provision_failure(self):
        store = InMemoryIdentityStore(fail_operations={"insert_profile"})
        user = store.create_user("jane@lamikas.com", "s3cret-pass")
        token = store.issue_token(user["id"])

        with pytest.raises(UpstreamError) as exc_info:
            await _handler(store).handle(
                ClientRequest.build("GET", {"Authorization": f"Bearer {token}"})
            )
        assert exc_info.value.message == "Failed to create profile"


class TestUpdateProfile:
    @staticmethod
    def _store_with_profile():
        store = InMemoryIdentityStore()
        user = store.create_user("jane@lamikas.com", "s3cret-pass")
        token = store.issue_token(user["id"])
        store.profiles[user["id"]] = {"id": user["id"], "email": "jane@lamikas.com"}
        return store, user, token

    @pytest.mark.asyncio
    async def test_updates_own_profile(self):
        store, user, token = self._store_with_profile()
        request = ClientRequest.build(
            "PUT",
            {"Authorization": f"Bearer {token}"},
            json.dumps({"id": "someone-else", "email": "x@acme.io", "company_name": "<i>Acme</i>"}),
        )

        response = await _handler(store).handle(request)

        assert response.status_code == 200
        assert response.body["id"] == user["id"]
        assert response.body["email"] == "jane@lamikas.com"
        assert response.body["company_name"] == "Acme"
        assert response.body["updated_at"] == NOW.isoformat()
        assert "someone-else" not in store.profiles

    @pytest.mark.asyncio
    async def test_requires_token(self):
        with pytest.raises(AuthenticationError):
            await _handler().handle(ClientRequest.build("PUT", {}, "{}"))

    @pytest.mark.asyncio
    async def test_invalid_phone(self):
        store, _, token = self._store_with_profile()
        request = ClientRequest.build(
            "PUT", {"Authorization": f"Bearer {token}"}, json.dumps({"phone": "phone"})
        )
        with pytest.raises(ValidationError):
            await _handler(store).handle(request)

    @pytest.mark.asyncio
    async def test_write_failure(self):
        store = InMemoryIdentityStore()
        user = store.create_user("jane@lamikas.com", "s3cret-pass")
        token = store.issue_token(user["id"])

        with pytest.raises(UpstreamError) as exc_info:
            await _handler(store).handle(
                ClientRequest.build("PUT", {"Authorization": f"Bearer {token}"}, "{}")
            )
        assert exc_info.value.message == "Failed to update profile"

    @pytest.mark.asyncio
    async def test_csrf_not_required_by_default(self):
        store, _, token = self._store_with_profile()
        response = await _handler(store).handle(
            ClientRequest.build("PUT", {"Authorization": f"Bearer {token}"}, "{}")
        )
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_csrf_enforced_when_configured(self):
        store, _, token = self._store_with_profile()
        settings = Settings(_env_file=None, csrf_protect_all_mutations=True)
        handler = _handler(store, settings=settings)

        with pytest.raises(AuthorizationError):
            await handler.handle(
                ClientRequest.build("PUT", {"Authorization": f"Bearer {token}"}, "{}")
            )

        headers = dict(CSRF, Authorization=f"Bearer {token}")
        response = await handler.handle(ClientRequest.build("PUT", headers, "{}"))
        assert response.status_code == 200

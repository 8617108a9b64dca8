"""Custom exceptions for the account functions.

Every exception maps to one HTTP status. Messages are safe to show to the
client; provider detail is kept on the exception for server-side logging only.
"""


class PortalException(Exception):
    """Base class for account function exceptions with HTTP status code.

    All custom exceptions should inherit from this class and define
    their specific status_code for consistent HTTP response handling.
    """
    status_code: int = 500

    def __init__(self, message: str = "Internal server error"):
        self.message = message
        super().__init__(message)

    @property
    def headers(self) -> dict[str, str]:
        """Extra response headers for this error."""
        return {}


class ValidationError(PortalException):
    """Malformed email, phone, JSON body, password or missing fields.

    Maps to HTTP 400 Bad Request.
    """
    status_code = 400


class UnknownActionError(ValidationError):
    """Raised for a POST action outside the supported set.

    Maps to HTTP 400 Bad Request.
    """

    def __init__(self, action: object = None):
        self.action = action
        super().__init__("Invalid action")


class AuthenticationError(PortalException):
    """Raised when a bearer token or credentials are missing or invalid.

    Maps to HTTP 401 Unauthorized. The message is always generic.
    """
    status_code = 401

    def __init__(self, detail: str = "Invalid credentials"):
        self.detail = detail
        super().__init__(detail)


class AuthorizationError(PortalException):
    """Raised when the CSRF header and cookie tokens do not match.

    Maps to HTTP 403 Forbidden.
    """
    status_code = 403

    def __init__(self, detail: str = "Invalid CSRF token"):
        self.detail = detail
        super().__init__(detail)


class NotFoundError(PortalException):
    """Raised when a record does not exist.

    Maps to HTTP 404 Not Found. A missing profile on GET is handled by
    auto-provisioning and never reaches the client as a 404.
    """
    status_code = 404

    def __init__(self, resource: str = "Resource"):
        self.resource = resource
        super().__init__(f"{resource} not found")


class MethodNotAllowedError(PortalException):
    """Maps to HTTP 405 Method Not Allowed."""
    status_code = 405

    def __init__(self, method: str | None = None):
        self.method = method
        super().__init__("Method not allowed")


class RateLimitError(PortalException):
    """Raised when a rate limit window is exhausted.

    Maps to HTTP 429 Too Many Requests with a Retry-After header.
    """
    status_code = 429

    def __init__(
        self,
        retry_after: int = 60,
        message: str = "Too many requests. Please try again later.",
    ):
        self.retry_after = retry_after
        super().__init__(message)

    @property
    def headers(self) -> dict[str, str]:
        return {"Retry-After": str(self.retry_after)}


class UpstreamError(PortalException):
    """Raised when the identity store or email provider fails.

    Maps to HTTP 500. ``detail`` holds the provider message for operators and
    is never sent to the client.
    """
    status_code = 500

    def __init__(
        self,
        message: str = "Internal server error",
        detail: str | None = None,
    ):
        self.detail = detail
        super().__init__(message)

"""Error taxonomy shared by the request handler and domain services."""


class SlackMCPError(Exception):
    """Base class for errors raised inside tool operations."""

    category = "unknown_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(SlackMCPError):
    """Tool arguments failed schema checks."""

    category = "validation_error"


class AuthorizationError(SlackMCPError):
    """A required token or capability is not configured."""

    category = "authorization_error"


class ApiError(SlackMCPError):
    """Slack answered with a business-level failure (ok: false)."""

    category = "api_error"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.code = code


class RateLimitError(SlackMCPError):
    """Slack throttled the call and the retry policy gave up or was disabled."""

    category = "rate_limit_error"

    def __init__(self, message: str, retry_after: float | None = None):
        super().__init__(message)
        self.retry_after = retry_after


class NotFoundError(SlackMCPError):
    """The requested entity does not exist or is not visible to the token."""

    category = "not_found_error"


class UnknownError(SlackMCPError):
    """Anything unexpected, wrapped so it can still be reported."""

    category = "unknown_error"

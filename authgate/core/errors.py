"""API error classes.

HTTP status codes and machine-readable error codes for every failure the
auth workflow can surface.

WHY CUSTOM ERROR CLASSES:
- Consistent error response format across all endpoints
- Easy to map to HTTP status codes in exception handlers
- Type-safe error handling in services/repositories
"""


class APIError(Exception):
    """Base class for API errors.

    All API errors have a code, message, and HTTP status.
    Subclasses set default status_code.

    Attributes:
        code: Machine-readable error code (e.g., "INVALID_TOKEN").
        message: Human-readable error message.
        status_code: HTTP status code to return.
        details: Optional list of additional error details.
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: list[dict] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class ValidationError(APIError):
    """Field validation failed (400).

    Use for request body validation errors, password rules, etc.
    """

    def __init__(
        self,
        message: str,
        details: list[dict] | None = None,
    ) -> None:
        super().__init__(
            code="VALIDATION_ERROR",
            message=message,
            status_code=400,
            details=details,
        )


class ConflictError(APIError):
    """Duplicate or conflicting resource (400).

    Accepts custom code for specific conflict types. Reported as 400 so a
    duplicate registration looks like any other rejected form submission.
    """

    def __init__(
        self,
        code: str,
        message: str,
        details: list[dict] | None = None,
    ) -> None:
        super().__init__(
            code=code,
            message=message,
            status_code=400,
            details=details,
        )


class EmailTakenError(ConflictError):
    """Registration with an email that already belongs to an account."""

    def __init__(self) -> None:
        super().__init__(
            code="EMAIL_TAKEN",
            message="User with this email already exists",
        )


# =============================================================================
# Single-use token errors (400)
# =============================================================================


class TokenError(APIError):
    """Base for token rejections. Always 400."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(code=code, message=message, status_code=400)


class InvalidTokenError(TokenError):
    """Email-verification token does not exist (or was already used)."""

    def __init__(self) -> None:
        super().__init__(code="INVALID_TOKEN", message="Invalid verification token")


class ExpiredTokenError(TokenError):
    """Email-verification token existed but was past its expiry."""

    def __init__(self) -> None:
        super().__init__(
            code="EXPIRED_TOKEN", message="Verification token has expired"
        )


class InvalidOrExpiredTokenError(TokenError):
    """Password-reset token rejected.

    Security: one message for both unknown and expired reset tokens.
    """

    def __init__(self) -> None:
        super().__init__(
            code="INVALID_OR_EXPIRED_TOKEN",
            message="Invalid or expired reset token",
        )


class TokenTransitionError(TokenError):
    """Token was valid but the account it points at could not be updated.

    The token is left in place so the user can retry.
    """

    def __init__(self) -> None:
        super().__init__(
            code="TOKEN_TRANSITION_FAILED",
            message="The account for this token could not be updated",
        )


# =============================================================================
# Authentication errors (401/403)
# =============================================================================


class UnauthorizedError(APIError):
    """Authentication required (401).

    Use when no valid auth credentials provided.
    """

    def __init__(
        self,
        message: str = "Authentication required",
        code: str = "UNAUTHORIZED",
    ) -> None:
        super().__init__(
            code=code,
            message=message,
            status_code=401,
        )


class InvalidCredentialsError(UnauthorizedError):
    """Unknown email or wrong password.

    Security: both cases share this class so the payload is byte-identical.
    """

    def __init__(self) -> None:
        super().__init__(
            message="Invalid email or password",
            code="INVALID_CREDENTIALS",
        )


class OAuthOnlyAccountError(UnauthorizedError):
    """Account exists but has no password (created through an OAuth provider)."""

    def __init__(self) -> None:
        super().__init__(
            message=(
                "This account was created with an OAuth provider. "
                "Please sign in with that provider."
            ),
            code="OAUTH_ONLY_ACCOUNT",
        )


class EmailNotVerifiedError(UnauthorizedError):
    """Credential account whose email has not been verified yet."""

    def __init__(self) -> None:
        super().__init__(
            message="Please verify your email before signing in",
            code="EMAIL_NOT_VERIFIED",
        )


class ForbiddenError(APIError):
    """Not allowed to access resource (403).

    Use when auth is valid but user lacks permission.
    """

    def __init__(self, message: str = "Access denied") -> None:
        super().__init__(
            code="FORBIDDEN",
            message=message,
            status_code=403,
        )


class AdminRequiredError(ForbiddenError):
    """Admin access required (403).

    Raised by the require_admin dependency when the session role is not ADMIN.
    """

    def __init__(self) -> None:
        APIError.__init__(
            self,
            code="ADMIN_REQUIRED",
            message="Admin access required",
            status_code=403,
        )


# =============================================================================
# Server-side failures (500)
# =============================================================================


class NotificationError(APIError):
    """Notification sink failed to deliver a token email (500).

    Token state has already been committed when this is raised; delivery
    is not retried.
    """

    def __init__(self, message: str = "Failed to send email") -> None:
        super().__init__(
            code="NOTIFICATION_FAILED",
            message=message,
            status_code=500,
        )


class InternalError(APIError):
    """Unexpected server error (500).

    Use for unhandled exceptions. Never expose stack traces to clients.
    """

    def __init__(self, message: str = "An unexpected error occurred") -> None:
        super().__init__(
            code="INTERNAL_ERROR",
            message=message,
            status_code=500,
        )

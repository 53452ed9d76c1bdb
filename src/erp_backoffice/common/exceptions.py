"""ERP back-office exception hierarchy.

Services raise these; only the application boundary turns a ``code`` into an
HTTP status.
"""


class BackofficeError(Exception):
    """Base exception for all back-office errors."""

    def __init__(self, message: str = "", code: str = "BACKOFFICE_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class NotFoundError(BackofficeError):
    def __init__(self, message: str = "Data not found"):
        super().__init__(message, code="NOT_FOUND")


class InvalidInputError(BackofficeError):
    def __init__(self, message: str = "Invalid input"):
        super().__init__(message, code="INVALID_INPUT")


class ConflictError(BackofficeError):
    """Raised when a write collides with a unique constraint or existing state."""

    def __init__(self, message: str = "Data already exists"):
        super().__init__(message, code="CONFLICT")


class ForbiddenError(BackofficeError):
    def __init__(self, message: str = "You do not have permission to perform this action"):
        super().__init__(message, code="FORBIDDEN")


class AuthenticationRequiredError(BackofficeError):
    def __init__(self, message: str = "Missing access token"):
        super().__init__(message, code="UNAUTHENTICATED")


# ── Credentials ──


class InvalidCredentialsError(BackofficeError):
    def __init__(self, message: str = "Invalid password"):
        super().__init__(message, code="INVALID_CREDENTIALS")


class InactiveAccountError(BackofficeError):
    def __init__(self, message: str = "User is not active"):
        super().__init__(message, code="INACTIVE_ACCOUNT")


class TwoFactorRequiredError(BackofficeError):
    def __init__(self, message: str = "two-factor authentication is required"):
        super().__init__(message, code="TWO_FACTOR_REQUIRED")


class InvalidOtpError(BackofficeError):
    def __init__(self, message: str = "Invalid OTP"):
        super().__init__(message, code="INVALID_OTP")


# ── Tokens ──


class InvalidTokenError(BackofficeError):
    """Malformed token or bad signature."""

    def __init__(self, message: str = "Invalid token"):
        super().__init__(message, code="INVALID_TOKEN")


class TokenAlgorithmError(BackofficeError):
    """Token signed with an algorithm other than the one the verifier accepts."""

    def __init__(self, message: str = "Invalid token signing algorithm"):
        super().__init__(message, code="INVALID_TOKEN_ALGORITHM")


class ExpiredTokenError(BackofficeError):
    def __init__(self, message: str = "Token has expired"):
        super().__init__(message, code="EXPIRED_TOKEN")


class UsedTokenError(BackofficeError):
    def __init__(self, message: str = "Token has already been used"):
        super().__init__(message, code="USED_TOKEN")


# ── Workflow / integrity ──


class StaleApprovalStateError(BackofficeError):
    """The approval stream moved on before this action could be appended."""

    def __init__(self, message: str = "Approval state has changed, reload and try again"):
        super().__init__(message, code="STALE_APPROVAL_STATE")


class DataIntegrityError(BackofficeError):
    def __init__(self, message: str = "Stored data violates an integrity rule"):
        super().__init__(message, code="DATA_INTEGRITY")


class ExternalServiceError(BackofficeError):
    """An outbound call (SMTP, catalog fetch) failed; ``operation`` names the step."""

    def __init__(self, operation: str, message: str = "External service call failed"):
        self.operation = operation
        super().__init__(f"{operation}: {message}", code="EXTERNAL_SERVICE")

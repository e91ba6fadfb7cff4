# backend/app/core/exceptions.py
"""
Typed failures raised by the credential, token and MFA services.

Each exception carries the HTTP status and the public message the API layer
renders. Authentication and MFA failures share one message so a caller cannot
tell a wrong email from a wrong proof or a wrong second factor. Lockout is
reported explicitly.
"""
from fastapi import status

GENERIC_AUTH_FAILURE = "Invalid email, master password or verification code"


class CustosError(Exception):
    """Base class for all domain failures."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    detail: str = "Request failed"
    headers: dict | None = None

    def __init__(self, detail: str | None = None):
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)


class InvalidCredentials(CustosError):
    status_code = status.HTTP_401_UNAUTHORIZED
    detail = GENERIC_AUTH_FAILURE


class InvalidMfaCode(CustosError):
    status_code = status.HTTP_401_UNAUTHORIZED
    detail = GENERIC_AUTH_FAILURE


class AccountLocked(CustosError):
    status_code = status.HTTP_423_LOCKED
    detail = (
        "Account is locked after too many failed sign-in attempts. "
        "Please contact support to unlock it."
    )


class Conflict(CustosError):
    status_code = status.HTTP_409_CONFLICT
    detail = "An account with this email already exists"


class InvalidToken(CustosError):
    """Refresh token is unknown, expired, revoked or already rotated."""

    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Invalid token"


class Unauthorized(CustosError):
    """Bearer token missing, malformed, expired or revoked."""

    status_code = status.HTTP_401_UNAUTHORIZED
    detail = "Could not validate credentials"
    headers = {"WWW-Authenticate": "Bearer"}


class AlreadyEnabled(CustosError):
    detail = "Two-factor authentication is already enabled"


class NotEnabled(CustosError):
    detail = "Two-factor authentication is not enabled"


class MfaSetupMissing(CustosError):
    detail = "No pending two-factor setup found. Request a new setup first."


class RefreshTokenReused(InvalidToken):
    """An already rotated refresh token was presented again."""

    def __init__(self, account_id: int):
        self.account_id = account_id
        super().__init__()

"""
auth/errors.py -- Closed taxonomy of authentication and authorization failures.

Every failure the auth core can produce is one ErrorKind member. Each kind
carries exactly one HTTP status, one machine-readable code, and one
human-readable message, so the same condition always looks the same to a
caller no matter where it was detected (login vs. per-request gate).

Services (PrincipalStore, CredentialIssuer) raise AuthError(kind). The Guard
returns Rejected(kind, ...) instead of raising; auth/dependencies.py turns a
Rejected into an AuthError at the FastAPI boundary. api/main.py renders every
AuthError with the standard error envelope.

Layer rule: no imports from api/ or products/.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(Enum):
    """(status, code, message) per failure kind."""

    CONFLICT = (409, "conflict", "A user with this email or username already exists.")
    INVALID_CREDENTIALS = (401, "invalid_credentials", "Invalid credentials.")
    NOT_APPROVED = (403, "not_approved", "Account not approved.")
    UNAUTHENTICATED = (401, "unauthenticated", "Authentication required.")
    # Issuer-level only; the Guard reports every token failure as UNAUTHENTICATED.
    INVALID_TOKEN = (401, "invalid_token", "Invalid or expired token.")
    MISSING_PERMISSION = (403, "missing_permission", "Access denied. Required permission is missing.")
    MASTER_ADMIN_REQUIRED = (403, "master_admin_required", "Master admin access required.")
    CANNOT_MODIFY_MASTER_ADMIN = (403, "cannot_modify_master_admin", "Cannot modify master admin permissions.")
    INVALID_OR_EXPIRED_TOKEN = (400, "invalid_or_expired_token", "Invalid or expired reset token.")
    NOT_FOUND = (404, "not_found", "Resource not found.")
    CURRENT_PASSWORD_INCORRECT = (400, "current_password_incorrect", "Current password is incorrect.")
    UNKNOWN_PERMISSION = (400, "unknown_permission", "Unknown permission identifier.")
    NOTIFICATION_FAILED = (502, "notification_failed", "Password reset failed.")

    def __init__(self, status: int, code: str, message: str) -> None:
        self.status = status
        self.code = code
        self.message = message


class AuthError(Exception):
    """Raised by the auth services; rendered by the API exception handler.

    detail is optional extra context that is safe to show the caller, e.g.
    the missing permission name or the unknown identifiers in an assignment.
    It never carries internal validation reasons for tokens or credentials.
    """

    def __init__(self, kind: ErrorKind, detail: str | None = None) -> None:
        super().__init__(kind.message)
        self.kind = kind
        self.detail = detail

    @property
    def status(self) -> int:
        return self.kind.status

    def to_dict(self) -> dict:
        return {"code": self.kind.code, "message": self.kind.message, "detail": self.detail}

"""
auth/issuer.py -- Credential verification, session tokens, and password reset.

CredentialIssuer is built once at startup from explicit inputs: the
PrincipalStore, an IssuerConfig holding the signing key and lifetimes, a
Notifier, and a clock. It holds no other state, so one instance serves every
request.

Anti-enumeration rules:
  - authenticate() raises the same InvalidCredentials (same kind, same
    message) for an unknown login and for a wrong secret, and pays for one
    bcrypt round either way.
  - request_password_reset() returns the same acknowledgment whether or not
    the email belongs to an account.

Layer rule: no imports from api/ or products/. Engine and timestamp helpers
come from core/db.py.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from auth.errors import AuthError, ErrorKind
from auth.models import Principal
from auth.notifier import Notifier
from auth.store import PrincipalStore
from auth.tokens import decode_session_token, encode_session_token, generate_reset_token, utcnow
from core.db import to_iso

logger = logging.getLogger("gatekeeper.auth.issuer")

RESET_ACKNOWLEDGMENT = "If email exists, reset instructions sent"

_RESET_SUBJECT = "Password Reset Request"
_RESET_BODY = """\
<h2>Password Reset Request</h2>
<p>You requested a password reset. Follow the link below to choose a new password:</p>
<p><a href="{reset_url}">Reset Password</a></p>
<p>If you didn't request this, please ignore this email.</p>
<p>This link expires in {minutes} minutes.</p>
"""


@dataclass(frozen=True)
class IssuerConfig:
    """Process-wide issuer settings, read-only after startup."""

    secret_key: str
    token_ttl_seconds: int = 8 * 3600
    reset_ttl_seconds: int = 3600
    frontend_url: str = "http://localhost:3000"


class CredentialIssuer:
    def __init__(
        self,
        store: PrincipalStore,
        config: IssuerConfig,
        notifier: Notifier,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.config = config
        self.notifier = notifier
        self.clock = clock

    # ------------------------------------------------------------------
    # Registration and login
    # ------------------------------------------------------------------

    def register(
        self,
        username: str,
        email: str,
        password: str,
        first_name: str = "",
        last_name: str = "",
    ) -> Principal:
        """Create an unapproved principal with no permissions."""
        principal_id = self.store.create(
            Principal(username=username, email=email, first_name=first_name, last_name=last_name),
            password,
        )
        logger.info("Registered user id=%s awaiting approval", principal_id)
        return self.store.get_by_id(principal_id)

    def authenticate(self, login: str, raw_secret: str) -> tuple[Principal, str]:
        """Verify credentials and return (principal, session token).

        Raises AuthError(INVALID_CREDENTIALS) for an unknown login or wrong
        secret, AuthError(NOT_APPROVED) for a correct secret on an account
        that is neither approved nor master admin.
        """
        principal = self.store.find_by_login_identifier(login)
        if not self.store.verify_credential(principal, raw_secret):
            logger.info("Failed login attempt")
            raise AuthError(ErrorKind.INVALID_CREDENTIALS)
        if not principal.approved and not principal.is_master_admin:
            raise AuthError(ErrorKind.NOT_APPROVED)

        now = self.clock()
        self.store.update_last_login(principal.id, now)
        principal.last_login = to_iso(now)
        return principal, self.issue_token(principal.id)

    # ------------------------------------------------------------------
    # Session tokens
    # ------------------------------------------------------------------

    def issue_token(self, principal_id: int) -> str:
        return encode_session_token(principal_id, self.config.secret_key, self.config.token_ttl_seconds, self.clock())

    def validate_token(self, token: str) -> int:
        """Return the embedded principal id or raise AuthError(INVALID_TOKEN).

        A token is valid strictly before its expiry instant.
        """
        principal_id = decode_session_token(token, self.config.secret_key, self.clock())
        if principal_id is None:
            raise AuthError(ErrorKind.INVALID_TOKEN)
        return principal_id

    # ------------------------------------------------------------------
    # Password management
    # ------------------------------------------------------------------

    def request_password_reset(self, email: str) -> str:
        """Start a reset for the matching active principal, if any.

        Always returns RESET_ACKNOWLEDGMENT. If sending the email fails the
        stored token is cleared first, then AuthError(NOTIFICATION_FAILED)
        is raised, chained to the transport error.
        """
        principal = self.store.get_active_by_email(email)
        if principal is None:
            return RESET_ACKNOWLEDGMENT

        token = generate_reset_token()
        expires = self.clock() + timedelta(seconds=self.config.reset_ttl_seconds)
        self.store.set_reset_token(principal.id, token, expires)

        body = _RESET_BODY.format(
            reset_url=f"{self.config.frontend_url.rstrip('/')}/reset-password/{token}",
            minutes=self.config.reset_ttl_seconds // 60,
        )
        try:
            self.notifier.send(principal.email, _RESET_SUBJECT, body)
        except Exception as exc:
            self.store.clear_reset_token(principal.id)
            logger.error("Reset email dispatch failed for user id=%s: %s", principal.id, exc)
            raise AuthError(ErrorKind.NOTIFICATION_FAILED) from exc

        logger.info("Password reset issued for user id=%s", principal.id)
        return RESET_ACKNOWLEDGMENT

    def consume_reset_token(self, token: str, new_secret: str) -> None:
        """Set a new credential using a reset token. Single use.

        Raises AuthError(INVALID_OR_EXPIRED_TOKEN) unless an active principal
        holds exactly this token with an expiry still in the future.
        """
        if not self.store.consume_reset_token(token, new_secret, self.clock()):
            raise AuthError(ErrorKind.INVALID_OR_EXPIRED_TOKEN)

    def change_password(self, principal: Principal, current_secret: str, new_secret: str) -> None:
        """Self-service change. Requires the current secret."""
        fresh = self.store.get_active_by_id(principal.id)
        if fresh is None:
            raise AuthError(ErrorKind.NOT_FOUND, "User not found.")
        if not self.store.verify_credential(fresh, current_secret):
            raise AuthError(ErrorKind.CURRENT_PASSWORD_INCORRECT)
        self.store.set_credential(fresh.id, new_secret)

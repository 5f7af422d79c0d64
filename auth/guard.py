"""
auth/guard.py -- Request-time authorization decisions as plain values.

Nothing in this module raises for an authorization failure. Each check
returns either Granted(principal) or Rejected(kind, permission), where kind
is one ErrorKind from the closed taxonomy in auth/errors.py. The FastAPI
layer (auth/dependencies.py) is the only place a Rejected becomes an HTTP
error, which keeps every rule here testable without a request object.

Decision order for a permission-gated call:
  1. no bearer token                      -> UNAUTHENTICATED
  2. token fails validation (any reason)  -> UNAUTHENTICATED
  3. principal missing or inactive        -> UNAUTHENTICATED
  4. principal not approved               -> NOT_APPROVED
  5. permission absent, not master admin  -> MISSING_PERMISSION(name)

The master-admin gate is separate and strict: is_master_admin must be True.
Holding any named permission does not satisfy it.

Layer rule: no imports from api/ or products/.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Union

from auth.errors import AuthError, ErrorKind
from auth.issuer import CredentialIssuer
from auth.models import Principal
from auth.store import PrincipalStore


class _HasPermissions(Protocol):
    is_master_admin: bool
    permissions: frozenset[str]


@dataclass(frozen=True)
class Granted:
    principal: Principal


@dataclass(frozen=True)
class Rejected:
    kind: ErrorKind
    permission: str | None = None

    def to_error(self) -> AuthError:
        detail = f"Required permission: {self.permission}" if self.permission else None
        return AuthError(self.kind, detail)


GuardResult = Union[Granted, Rejected]


def has_permission(principal: _HasPermissions, permission: str) -> bool:
    """Pure check: master admin holds everything, others exactly their stored set."""
    return principal.is_master_admin or permission in principal.permissions


def extract_bearer_token(authorization: str | None) -> str | None:
    """Return the token from an "Authorization: Bearer <token>" header value."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def resolve_principal(store: PrincipalStore, issuer: CredentialIssuer, authorization: str | None) -> GuardResult:
    """Steps 1-3: header -> token -> active principal.

    Malformed, expired, and badly signed tokens all collapse to the same
    UNAUTHENTICATED result.
    """
    token = extract_bearer_token(authorization)
    if token is None:
        return Rejected(ErrorKind.UNAUTHENTICATED)
    try:
        principal_id = issuer.validate_token(token)
    except AuthError:
        return Rejected(ErrorKind.UNAUTHENTICATED)
    principal = store.get_active_by_id(principal_id)
    if principal is None:
        return Rejected(ErrorKind.UNAUTHENTICATED)
    return Granted(principal)


def check_permission(principal: Principal | None, permission: str) -> GuardResult:
    """Steps 4-5 for an already-resolved principal."""
    if principal is None:
        return Rejected(ErrorKind.UNAUTHENTICATED)
    if not principal.approved and not principal.is_master_admin:
        return Rejected(ErrorKind.NOT_APPROVED)
    if not has_permission(principal, permission):
        return Rejected(ErrorKind.MISSING_PERMISSION, permission)
    return Granted(principal)


def check_master_admin(principal: Principal | None) -> GuardResult:
    if principal is None:
        return Rejected(ErrorKind.UNAUTHENTICATED)
    if not principal.is_master_admin:
        return Rejected(ErrorKind.MASTER_ADMIN_REQUIRED)
    return Granted(principal)

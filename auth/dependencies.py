"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

This is the enforcement boundary: auth/guard.py decides, this module turns a
Rejected decision into an AuthError before any route code runs. A request
either passes every step and reaches the handler, or is rejected here.

get_current_principal()    -- 401 unless a valid bearer token resolves to an
                              active principal; stores it on request.state.
require_permission(name)   -- dependency factory; adds the approval and
                              named-permission checks.
require_master_admin()     -- strict master-admin gate, no permission fallback.

Usage:
    @router.delete("/products/{product_id}")
    def delete_product(principal: Principal = Depends(require_permission("product:delete"))): ...

Layer rule: auth/dependencies.py may import from fastapi (Request) because it
is part of the FastAPI dependency injection system. No imports from api/.
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import Depends, Request

from auth.guard import Rejected, check_master_admin, check_permission, resolve_principal
from auth.models import Principal


def get_current_principal(request: Request) -> Principal:
    """Require a valid bearer token for an active principal.

    The resolved principal is attached to request.state.principal so
    middleware and handlers further down can read it without another lookup.
    """
    result = resolve_principal(
        request.app.state.principal_store,
        request.app.state.issuer,
        request.headers.get("Authorization"),
    )
    if isinstance(result, Rejected):
        raise result.to_error()
    request.state.principal = result.principal
    return result.principal


def require_permission(permission: str) -> Callable[..., Principal]:
    """Return a dependency that requires an approved principal holding `permission`.

    The returned callable carries `required_permission` so tests and docs can
    read which identifier a route declares.
    """

    def _checker(principal: Principal = Depends(get_current_principal)) -> Principal:
        result = check_permission(principal, permission)
        if isinstance(result, Rejected):
            raise result.to_error()
        return result.principal

    _checker.required_permission = permission  # type: ignore[attr-defined]
    return _checker


def require_master_admin(principal: Principal = Depends(get_current_principal)) -> Principal:
    """Require is_master_admin exactly. Named permissions do not count."""
    result = check_master_admin(principal)
    if isinstance(result, Rejected):
        raise result.to_error()
    return result.principal

"""
api/routes/v1/users.py -- Principal management and self-service profile endpoints.

Routes:
  GET    /api/v1/users                    -- list active principals (master admin)
  GET    /api/v1/users/profile            -- own profile (authenticated)
  PUT    /api/v1/users/profile            -- update own names/email/avatar reference
  PUT    /api/v1/users/change-password    -- change own password (needs current one)
  GET    /api/v1/users/{id}               -- one principal (user:read)
  PUT    /api/v1/users/{id}/approve       -- approve a registration (master admin)
  PUT    /api/v1/users/{id}/permissions   -- replace permission set (master admin)
  DELETE /api/v1/users/{id}               -- soft-delete (user:delete)

Master-admin routes use require_master_admin, which does not fall back to a
named permission: holding user:update does not let anyone approve accounts.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from api.models import (
    ChangePasswordRequest,
    MessageResponse,
    PermissionAssignment,
    PrincipalResponse,
    ProfileUpdate,
    UserEnvelope,
    UserListResponse,
)
from auth.catalog import PermissionCatalog
from auth.dependencies import get_current_principal, require_master_admin, require_permission
from auth.errors import AuthError, ErrorKind
from auth.issuer import CredentialIssuer
from auth.models import Principal
from auth.store import PrincipalStore

logger = logging.getLogger("gatekeeper.api.users")

router = APIRouter()


# ---------------------------------------------------------------------------
# Master admin only
# ---------------------------------------------------------------------------


@router.get("/users", response_model=UserListResponse)
def list_users(request: Request, admin: Principal = Depends(require_master_admin)) -> UserListResponse:
    """List every active principal, newest first."""
    store: PrincipalStore = request.app.state.principal_store
    return UserListResponse(users=[PrincipalResponse.from_principal(p) for p in store.list_active()])


# ---------------------------------------------------------------------------
# Self-service (any authenticated principal)
# ---------------------------------------------------------------------------


@router.get("/users/profile", response_model=UserEnvelope)
def get_profile(current: Principal = Depends(get_current_principal)) -> UserEnvelope:
    return UserEnvelope(user=PrincipalResponse.from_principal(current))


@router.put("/users/profile", response_model=UserEnvelope)
def update_profile(
    request: Request,
    body: ProfileUpdate,
    current: Principal = Depends(get_current_principal),
) -> UserEnvelope:
    """Update own first/last name, email, or avatar reference.

    409 conflict if the new email belongs to another account, including a
    deactivated one.
    """
    store: PrincipalStore = request.app.state.principal_store
    updated = store.update_profile(
        current.id,
        first_name=body.first_name,
        last_name=body.last_name,
        email=body.email,
        profile_photo_url=body.profile_photo_url,
    )
    return UserEnvelope(message="Profile updated successfully", user=PrincipalResponse.from_principal(updated))


@router.put("/users/change-password", response_model=MessageResponse)
def change_password(
    request: Request,
    body: ChangePasswordRequest,
    current: Principal = Depends(get_current_principal),
) -> MessageResponse:
    issuer: CredentialIssuer = request.app.state.issuer
    issuer.change_password(current, body.current_password, body.new_password)
    return MessageResponse(message="Password changed successfully")


# ---------------------------------------------------------------------------
# Per-principal operations
# ---------------------------------------------------------------------------


@router.get("/users/{user_id}", response_model=UserEnvelope)
def get_user(
    request: Request,
    user_id: int,
    current: Principal = Depends(require_permission("user:read")),
) -> UserEnvelope:
    store: PrincipalStore = request.app.state.principal_store
    target = store.get_active_by_id(user_id)
    if target is None:
        raise AuthError(ErrorKind.NOT_FOUND, "User not found.")
    return UserEnvelope(user=PrincipalResponse.from_principal(target))


@router.put("/users/{user_id}/approve", response_model=UserEnvelope)
def approve_user(
    request: Request,
    user_id: int,
    admin: Principal = Depends(require_master_admin),
) -> UserEnvelope:
    store: PrincipalStore = request.app.state.principal_store
    approved = store.approve(user_id)
    logger.info("User id=%s approved by id=%s", user_id, admin.id)
    return UserEnvelope(message="User approved successfully", user=PrincipalResponse.from_principal(approved))


@router.put("/users/{user_id}/permissions", response_model=UserEnvelope)
def assign_permissions(
    request: Request,
    user_id: int,
    body: PermissionAssignment,
    admin: Principal = Depends(require_master_admin),
) -> UserEnvelope:
    """Replace the target's permission set with exactly `permissions`.

    403 cannot_modify_master_admin when the target is a master admin, for
    any list, the empty list included. 400 unknown_permission when a listed
    identifier is not in the catalog.
    """
    store: PrincipalStore = request.app.state.principal_store
    catalog: PermissionCatalog = request.app.state.catalog

    target = store.get_active_by_id(user_id)
    if target is None:
        raise AuthError(ErrorKind.NOT_FOUND, "User not found.")
    if target.is_master_admin:
        raise AuthError(ErrorKind.CANNOT_MODIFY_MASTER_ADMIN)

    unknown = sorted(set(body.permissions) - catalog.names())
    if unknown:
        raise AuthError(ErrorKind.UNKNOWN_PERMISSION, ", ".join(unknown))

    updated = store.assign_permissions(user_id, body.permissions)
    logger.info("Permissions for user id=%s set to %s by id=%s", user_id, sorted(updated.permissions), admin.id)
    return UserEnvelope(message="Permissions updated successfully", user=PrincipalResponse.from_principal(updated))


@router.delete("/users/{user_id}", response_model=MessageResponse)
def delete_user(
    request: Request,
    user_id: int,
    current: Principal = Depends(require_permission("user:delete")),
) -> MessageResponse:
    """Soft-delete a principal. The row stays; lookups and login stop seeing it.

    A master admin cannot be deactivated through this route, and nobody can
    deactivate themselves.
    """
    store: PrincipalStore = request.app.state.principal_store
    target = store.get_active_by_id(user_id)
    if target is None:
        raise AuthError(ErrorKind.NOT_FOUND, "User not found.")
    if target.is_master_admin:
        raise AuthError(ErrorKind.CANNOT_MODIFY_MASTER_ADMIN)
    if target.id == current.id:
        raise HTTPException(
            status_code=400,
            detail={"code": "self_deactivation", "message": "You cannot delete your own account."},
        )
    store.deactivate(user_id)
    logger.info("User id=%s deactivated by id=%s", user_id, current.id)
    return MessageResponse(message="User deleted successfully")

"""
api/routes/v1/permissions.py -- Read-only views of the permission catalog.

Routes:
  GET /api/v1/permissions            -- flat list ordered by (module, model, action)
  GET /api/v1/permissions/by-module  -- grouped by module label

Both require permission:read. The catalog is seeded at startup and never
written through the API.
"""

from fastapi import APIRouter, Depends, Request

from api.models import PermissionGroupsResponse, PermissionListResponse, PermissionResponse
from auth.catalog import PermissionCatalog
from auth.dependencies import require_permission

# Auth policy:
# - GET /api/v1/permissions, /api/v1/permissions/by-module: permission:read
# Router-level dependency enforces the gate; handlers do not repeat it.
router = APIRouter(dependencies=[Depends(require_permission("permission:read"))])


@router.get("/permissions", response_model=PermissionListResponse)
def list_permissions(request: Request) -> PermissionListResponse:
    catalog: PermissionCatalog = request.app.state.catalog
    return PermissionListResponse(permissions=[PermissionResponse.from_permission(p) for p in catalog.list_all()])


@router.get("/permissions/by-module", response_model=PermissionGroupsResponse)
def list_permissions_by_module(request: Request) -> PermissionGroupsResponse:
    catalog: PermissionCatalog = request.app.state.catalog
    grouped = catalog.list_grouped_by_module()
    return PermissionGroupsResponse(
        permissions={
            module: [PermissionResponse.from_permission(p) for p in perms] for module, perms in grouped.items()
        }
    )

"""
api/routes/v1/dashboard.py -- Summary figures for the admin dashboard.

Returns product inventory aggregates plus the caller's own effective
permissions, which the client uses to decide which navigation entries to
show. A master admin additionally sees how many registrations await approval.

This is a read-only aggregate route -- no mutations here.
"""

from fastapi import APIRouter, Depends, Request

from api.limiter import limiter
from api.models import DashboardResponse
from auth.catalog import PermissionCatalog
from auth.dependencies import require_permission
from auth.models import Principal
from auth.store import PrincipalStore
from products.store import ProductStore

router = APIRouter()


@router.get("/dashboard", response_model=DashboardResponse)
@limiter.limit("60/minute")
def get_dashboard(
    request: Request,
    current: Principal = Depends(require_permission("dashboard:read")),
) -> DashboardResponse:
    """Response:
    total_products / total_stock / inventory_value / categories / low_stock
        -- aggregates over active products
    pending_approvals -- unapproved active accounts (master admin only, else null)
    your_permissions  -- the caller's effective permission identifiers, sorted
    """
    products: ProductStore = request.app.state.product_store
    principals: PrincipalStore = request.app.state.principal_store
    catalog: PermissionCatalog = request.app.state.catalog

    stats = products.get_stats()
    if current.is_master_admin:
        # ALL_PERMISSIONS is a membership sentinel; list what the catalog actually defines.
        effective = sorted(catalog.names())
        pending = principals.count_pending_approval()
    else:
        effective = sorted(principals.effective_permissions(current))
        pending = None

    return DashboardResponse(**stats, pending_approvals=pending, your_permissions=effective)

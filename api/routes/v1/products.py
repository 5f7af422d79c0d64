"""
api/routes/v1/products.py -- Product CRUD behind named permissions.

Routes:
  GET    /api/v1/products         -- list active products   (product:read)
  GET    /api/v1/products/{id}    -- one active product      (product:read)
  POST   /api/v1/products         -- create                  (product:create)
  PUT    /api/v1/products/{id}    -- partial update          (product:update)
  DELETE /api/v1/products/{id}    -- soft delete             (product:delete)

Each handler declares exactly one permission through require_permission().
A deleted product returns 404 on every later read or write; the row stays
in the table.
"""

from fastapi import APIRouter, Depends, HTTPException, Request

from api.models import (
    MessageResponse,
    ProductCreate,
    ProductEnvelope,
    ProductListResponse,
    ProductResponse,
    ProductUpdate,
)
from auth.dependencies import require_permission
from auth.errors import AuthError, ErrorKind
from auth.models import Principal
from products.models import Product
from products.store import ProductStore

router = APIRouter()


def _not_found() -> AuthError:
    return AuthError(ErrorKind.NOT_FOUND, "Product not found.")


@router.get("/products", response_model=ProductListResponse)
def list_products(
    request: Request,
    current: Principal = Depends(require_permission("product:read")),
) -> ProductListResponse:
    store: ProductStore = request.app.state.product_store
    return ProductListResponse(products=[ProductResponse.from_product(p) for p in store.list_products()])


@router.get("/products/{product_id}", response_model=ProductEnvelope)
def get_product(
    request: Request,
    product_id: int,
    current: Principal = Depends(require_permission("product:read")),
) -> ProductEnvelope:
    store: ProductStore = request.app.state.product_store
    product = store.get_product(product_id)
    if product is None:
        raise _not_found()
    return ProductEnvelope(product=ProductResponse.from_product(product))


@router.post("/products", response_model=ProductEnvelope, status_code=201)
def create_product(
    request: Request,
    body: ProductCreate,
    current: Principal = Depends(require_permission("product:create")),
) -> ProductEnvelope:
    store: ProductStore = request.app.state.product_store
    product_id = store.create_product(
        Product(
            name=body.name,
            description=body.description,
            price=body.price,
            category=body.category,
            stock=body.stock,
            image_url=body.image_url,
            created_by=current.id,
        )
    )
    created = store.get_product(product_id)
    if created is None:
        raise HTTPException(
            status_code=500,
            detail={"code": "internal_error", "message": "Product not found after write."},
        )
    return ProductEnvelope(message="Product created successfully", product=ProductResponse.from_product(created))


@router.put("/products/{product_id}", response_model=ProductEnvelope)
def update_product(
    request: Request,
    product_id: int,
    body: ProductUpdate,
    current: Principal = Depends(require_permission("product:update")),
) -> ProductEnvelope:
    store: ProductStore = request.app.state.product_store
    if store.get_product(product_id) is None:
        raise _not_found()

    updates = body.model_dump(exclude_none=True)
    if updates and not store.update_product(product_id, **updates):
        raise _not_found()

    updated = store.get_product(product_id)
    if updated is None:
        raise _not_found()
    return ProductEnvelope(message="Product updated successfully", product=ProductResponse.from_product(updated))


@router.delete("/products/{product_id}", response_model=MessageResponse)
def delete_product(
    request: Request,
    product_id: int,
    current: Principal = Depends(require_permission("product:delete")),
) -> MessageResponse:
    store: ProductStore = request.app.state.product_store
    if not store.delete_product(product_id):
        raise _not_found()
    return MessageResponse(message="Product deleted successfully")

"""
API request and response models for Gatekeeper REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
products/models.py, which own the internal domain representation. Route
handlers map between the two.

No response model has a field for the credential hash or the reset token, so
neither can leak through serialization.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from auth.models import Permission, Principal
from auth.tokens import MAX_PASSWORD_BYTES
from products.models import Product

# ---------------------------------------------------------------------------
# Shared
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str


# ---------------------------------------------------------------------------
# Auth -- requests
# ---------------------------------------------------------------------------


def _fits_bcrypt(value: str) -> str:
    if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"password must be at most {MAX_PASSWORD_BYTES} bytes in UTF-8")
    return value


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register."""

    model_config = ConfigDict(str_strip_whitespace=True)

    # No "@": a username must never be mistaken for an email at login.
    username: str = Field(min_length=3, max_length=30, pattern=r"^[A-Za-z0-9_.-]+$")
    email: EmailStr
    password: str = Field(min_length=6, max_length=72)
    first_name: str = Field(default="", max_length=50)
    last_name: str = Field(default="", max_length=50)

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, value: str) -> str:
        return value.lower()

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return _fits_bcrypt(value)


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login. `login` is a username or an email."""

    login: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=128)

    @field_validator("login")
    @classmethod
    def strip_login(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("login must not be blank")
        return value


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    password: str = Field(min_length=6, max_length=72)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return _fits_bcrypt(value)


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(min_length=1, max_length=128)
    new_password: str = Field(min_length=6, max_length=72)

    @field_validator("new_password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return _fits_bcrypt(value)


class ProfileUpdate(BaseModel):
    """Request body for PUT /api/v1/users/profile. Omitted fields are unchanged."""

    model_config = ConfigDict(str_strip_whitespace=True)

    first_name: Optional[str] = Field(default=None, max_length=50)
    last_name: Optional[str] = Field(default=None, max_length=50)
    email: Optional[EmailStr] = None
    profile_photo_url: Optional[str] = Field(default=None, max_length=500)


class PermissionAssignment(BaseModel):
    """Request body for PUT /api/v1/users/{id}/permissions. Replaces the whole set."""

    permissions: list[str] = Field(max_length=200)


# ---------------------------------------------------------------------------
# Auth -- responses
# ---------------------------------------------------------------------------


class PrincipalResponse(BaseModel):
    """Public view of a principal. Never includes credential or reset-token fields."""

    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    email: str
    first_name: str
    last_name: str
    display_name: str
    profile_photo_url: str
    permissions: list[str]
    is_master_admin: bool
    approved: bool
    created_at: str
    last_login: Optional[str] = None

    @classmethod
    def from_principal(cls, principal: Principal) -> "PrincipalResponse":
        return cls(
            id=principal.id,
            username=principal.username,
            email=principal.email,
            first_name=principal.first_name,
            last_name=principal.last_name,
            display_name=principal.display_name,
            profile_photo_url=principal.profile_photo_url,
            permissions=sorted(principal.permissions),
            is_master_admin=principal.is_master_admin,
            approved=principal.approved,
            created_at=principal.created_at,
            last_login=principal.last_login,
        )


class RegisterResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    user_id: int


class LoginResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str = "Login successful"
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: PrincipalResponse


class UserEnvelope(BaseModel):
    """Response for GET /auth/me, GET/PUT /users/profile and admin mutations."""

    model_config = ConfigDict(frozen=True)

    message: Optional[str] = None
    user: PrincipalResponse


class UserListResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    users: list[PrincipalResponse]


# ---------------------------------------------------------------------------
# Permissions
# ---------------------------------------------------------------------------


class PermissionResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    model: str
    action: str
    description: str
    module: str

    @classmethod
    def from_permission(cls, permission: Permission) -> "PermissionResponse":
        return cls(
            name=permission.name,
            model=permission.model,
            action=permission.action,
            description=permission.description,
            module=permission.module,
        )


class PermissionListResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    permissions: list[PermissionResponse]


class PermissionGroupsResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    permissions: dict[str, list[PermissionResponse]]


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------


class ProductCreate(BaseModel):
    """Request body for POST /api/v1/products."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=100)
    description: str = Field(min_length=1, max_length=500)
    price: float = Field(ge=0)
    category: str = Field(min_length=1, max_length=50)
    stock: int = Field(ge=0)
    image_url: str = Field(default="", max_length=500)


class ProductUpdate(BaseModel):
    """Request body for PUT /api/v1/products/{id}. Omitted fields are unchanged."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, min_length=1, max_length=500)
    price: Optional[float] = Field(default=None, ge=0)
    category: Optional[str] = Field(default=None, min_length=1, max_length=50)
    stock: Optional[int] = Field(default=None, ge=0)
    image_url: Optional[str] = Field(default=None, max_length=500)


class ProductResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    description: str
    price: float
    category: str
    stock: int
    image_url: str
    created_by: Optional[int]
    created_at: str
    updated_at: str

    @classmethod
    def from_product(cls, product: Product) -> "ProductResponse":
        return cls(
            id=product.id,
            name=product.name,
            description=product.description,
            price=product.price,
            category=product.category,
            stock=product.stock,
            image_url=product.image_url,
            created_by=product.created_by,
            created_at=product.created_at,
            updated_at=product.updated_at,
        )


class ProductEnvelope(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: Optional[str] = None
    product: ProductResponse


class ProductListResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    products: list[ProductResponse]


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------


class DashboardResponse(BaseModel):
    """Response for GET /api/v1/dashboard."""

    model_config = ConfigDict(frozen=True)

    total_products: int
    total_stock: int
    inventory_value: float
    categories: int
    low_stock: int
    pending_approvals: Optional[int] = None  # only reported to a master admin
    your_permissions: list[str]

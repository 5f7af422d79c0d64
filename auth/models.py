"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, near-zero logic). Stores and the
issuer do the work; these classes own the domain shape.

Layer rule: no imports from api/ or products/.
"""

from __future__ import annotations

from dataclasses import dataclass, field


class _AllPermissions(frozenset):
    """Sentinel permission set that contains every identifier.

    Returned by effective_permissions() for a master admin. Membership is
    always True, so callers can write `perm in effective` without special-
    casing the master admin, while `is ALL_PERMISSIONS` still identifies it.

    Truthiness follows membership. len() and iteration stay empty, so code
    that needs the actual names must expand it through the permission catalog.
    """

    def __contains__(self, item: object) -> bool:
        return True

    def __bool__(self) -> bool:
        return True

    # An empty frozenset must not compare equal to "everything".
    def __eq__(self, other: object) -> bool:
        return other is self

    def __ne__(self, other: object) -> bool:
        return other is not self

    def __hash__(self) -> int:
        return id(self)

    def __repr__(self) -> str:
        return "ALL_PERMISSIONS"


ALL_PERMISSIONS: frozenset = _AllPermissions()


@dataclass
class Principal:
    """An account that can authenticate.

    permissions is only meaningful when is_master_admin is False. A master
    admin's stored permission list is never evaluated and never edited.

    hashed_password is the bcrypt hash. The raw credential never lives on
    this object; PrincipalStore re-hashes whenever a new secret is set.

    reset_token / reset_token_expires are both None outside a password-reset
    flow.

    id is None before the record is written to the database.
    """

    username: str
    email: str
    hashed_password: str = ""
    first_name: str = ""
    last_name: str = ""
    profile_photo_url: str = ""
    permissions: frozenset[str] = field(default_factory=frozenset)
    is_master_admin: bool = False
    approved: bool = False
    is_active: bool = True
    reset_token: str | None = None
    reset_token_expires: str | None = None  # ISO 8601 UTC
    last_login: str | None = None
    created_at: str = ""
    updated_at: str = ""
    id: int | None = None

    @property
    def display_name(self) -> str:
        if self.first_name and self.last_name:
            return f"{self.first_name} {self.last_name}"
        return self.username


@dataclass(frozen=True)
class Permission:
    """One catalog entry. name is always f"{model}:{action}"."""

    name: str
    model: str
    action: str  # "create" | "read" | "update" | "delete"
    description: str
    module: str

"""
auth/catalog.py -- The permission catalog: definitions, seeding, and grouping.

Every protected operation names one identifier of the form "resource:action".
DEFAULT_PERMISSIONS is the list the application ships with; seed() upserts it
by name on every startup. Seeding is additive: a definition dropped from the
list stays in the table so principals that already hold it keep a valid
reference.

After seeding, the catalog is read-only to request handling.

Layer rule: no imports from api/ or products/. Engine and timestamp helpers
come from core/db.py.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime, timezone

from sqlalchemy import Column, Index, Integer, MetaData, String, Table, Text, select
from sqlalchemy.engine import Engine

from auth.models import Permission
from core.db import make_engine, to_iso

logger = logging.getLogger("gatekeeper.auth.catalog")

ACTIONS: tuple[str, ...] = ("create", "read", "update", "delete")


def _perm(model: str, action: str, description: str, module: str) -> Permission:
    return Permission(name=f"{model}:{action}", model=model, action=action, description=description, module=module)


DEFAULT_PERMISSIONS: tuple[Permission, ...] = (
    # User Management
    _perm("user", "create", "Create new users", "User Management"),
    _perm("user", "read", "View users", "User Management"),
    _perm("user", "update", "Update user information", "User Management"),
    _perm("user", "delete", "Delete users", "User Management"),
    # Product Management
    _perm("product", "create", "Create new products", "Product Management"),
    _perm("product", "read", "View products", "Product Management"),
    _perm("product", "update", "Update product information", "Product Management"),
    _perm("product", "delete", "Delete products", "Product Management"),
    # Permission Management
    _perm("permission", "read", "View permissions", "Permission Management"),
    # Dashboard
    _perm("dashboard", "read", "View dashboard", "Dashboard"),
)

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_permissions = Table(
    "permissions",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(100), nullable=False, unique=True),
    Column("model", String(50), nullable=False),
    Column("action", String(10), nullable=False),
    Column("description", Text, nullable=False),
    Column("module", String(100), nullable=False),
    Column("created_at", String(40), nullable=False),
    Column("updated_at", String(40), nullable=False),
)

Index("ix_permissions_model_action", _permissions.c.model, _permissions.c.action)


def validate_definition(definition: Permission) -> None:
    """Reject a definition whose name does not match its model and action."""
    if definition.action not in ACTIONS:
        raise ValueError(f"Unsupported action {definition.action!r} in {definition.name!r}")
    if definition.name != f"{definition.model}:{definition.action}":
        raise ValueError(f"Permission name {definition.name!r} must be '{definition.model}:{definition.action}'")


class PermissionCatalog:
    """Repository for the permissions table.

    Usage:
        catalog = PermissionCatalog("sqlite:///gatekeeper.db")
        catalog.seed(DEFAULT_PERMISSIONS)
        grouped = catalog.list_grouped_by_module()
    """

    def __init__(self, db_url: str) -> None:
        self.engine: Engine = make_engine(db_url)
        _metadata.create_all(self.engine)

    def seed(self, definitions: Iterable[Permission] = DEFAULT_PERMISSIONS) -> int:
        """Upsert each definition by name. Returns the number of new rows.

        Existing rows get their model/action/description/module refreshed.
        Rows absent from `definitions` are left alone.
        """
        created = 0
        now = to_iso(datetime.now(timezone.utc))
        with self.engine.connect() as conn:
            for definition in definitions:
                validate_definition(definition)
                values = {
                    "model": definition.model,
                    "action": definition.action,
                    "description": definition.description,
                    "module": definition.module,
                    "updated_at": now,
                }
                result = conn.execute(
                    _permissions.update().where(_permissions.c.name == definition.name).values(**values)
                )
                if result.rowcount == 0:
                    conn.execute(_permissions.insert().values(name=definition.name, created_at=now, **values))
                    created += 1
            conn.commit()
        logger.info("Permission catalog seeded (%d new)", created)
        return created

    def list_all(self) -> list[Permission]:
        """All permissions ordered by (module, model, action)."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _permissions.select().order_by(_permissions.c.module, _permissions.c.model, _permissions.c.action)
            ).fetchall()
        return [_row_to_permission(r) for r in rows]

    def list_grouped_by_module(self) -> dict[str, list[Permission]]:
        """Partition by module label; each partition ordered by (model, action)."""
        grouped: dict[str, list[Permission]] = {}
        for permission in self.list_all():
            grouped.setdefault(permission.module, []).append(permission)
        return grouped

    def names(self) -> frozenset[str]:
        with self.engine.connect() as conn:
            rows = conn.execute(select(_permissions.c.name)).fetchall()
        return frozenset(r.name for r in rows)

    def close(self) -> None:
        self.engine.dispose()


def _row_to_permission(row) -> Permission:
    return Permission(
        name=row.name,
        model=row.model,
        action=row.action,
        description=row.description,
        module=row.module,
    )

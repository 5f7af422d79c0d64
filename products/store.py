"""
products/store.py -- SQLAlchemy-backed persistence for products.

Pattern: Repository + Data Mapper, same shape as auth/store.py. The engine
comes from core/db.make_engine(), shared with the principal store.

Soft delete: delete_product() sets is_active=0. Every read in this class
filters on is_active=1, so a deleted product disappears from list and detail
results while the row stays in the table for audit.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = ProductStore("sqlite:///gatekeeper.db")
    product_id = store.create_product(Product(name="Pear", description="Green", price=1.5, category="fruit"))
    store.delete_product(product_id)
    store.close()
"""

from typing import Optional

from sqlalchemy import Column, Float, Integer, MetaData, String, Table, func, select
from sqlalchemy.engine import Engine

from core.db import make_engine, now_iso
from products.models import Product

# Stock at or below this level counts as "low" on the dashboard.
LOW_STOCK_THRESHOLD = 10

# Fields update_product() will write. Anything else is a programming error.
_MUTABLE_FIELDS = frozenset({"name", "description", "price", "category", "stock", "image_url"})

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_products = Table(
    "products",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(100), nullable=False),
    Column("description", String(500), nullable=False),
    Column("price", Float, nullable=False),
    Column("category", String(50), nullable=False),
    Column("stock", Integer, nullable=False, server_default="0"),
    Column("image_url", String(500), nullable=False, server_default=""),
    Column("created_by", Integer),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("created_at", String(40), nullable=False),
    Column("updated_at", String(40), nullable=False),
)


class ProductStore:
    """Repository for Product records."""

    def __init__(self, db_url: str) -> None:
        self.engine: Engine = make_engine(db_url)
        metadata.create_all(self.engine)

    def create_product(self, product: Product) -> int:
        """Insert a new product and return its assigned database ID."""
        now = now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _products.insert().values(
                    name=product.name,
                    description=product.description,
                    price=float(product.price),
                    category=product.category,
                    stock=int(product.stock),
                    image_url=product.image_url or "",
                    created_by=product.created_by,
                    is_active=1,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_product(self, product_id: int) -> Optional[Product]:
        """Fetch an active product by ID. Returns None if missing or deleted."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _products.select().where((_products.c.id == product_id) & (_products.c.is_active == 1))
            ).fetchone()
        return _row_to_product(row) if row is not None else None

    def list_products(self) -> list[Product]:
        """Return active products, newest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _products.select()
                .where(_products.c.is_active == 1)
                .order_by(_products.c.created_at.desc(), _products.c.id.desc())
            ).fetchall()
        return [_row_to_product(r) for r in rows]

    def update_product(self, product_id: int, **fields) -> bool:
        """Update mutable fields on an active product.

        Accepts any subset of: name, description, price, category, stock,
        image_url. Returns True if a row was updated, False if product_id was
        not found or is soft-deleted.
        """
        unknown = set(fields) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown product fields: {unknown!r}")
        fields["updated_at"] = now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _products.update()
                .where((_products.c.id == product_id) & (_products.c.is_active == 1))
                .values(**fields)
            )
            conn.commit()
        return result.rowcount > 0

    def delete_product(self, product_id: int) -> bool:
        """Soft-delete. Returns False if the product is missing or already deleted."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _products.update()
                .where((_products.c.id == product_id) & (_products.c.is_active == 1))
                .values(is_active=0, updated_at=now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    def get_row_any_state(self, product_id: int) -> Optional[Product]:
        """Fetch a product regardless of is_active. For audit and tests only."""
        with self.engine.connect() as conn:
            row = conn.execute(_products.select().where(_products.c.id == product_id)).fetchone()
        return _row_to_product(row) if row is not None else None

    def get_stats(self) -> dict:
        """Aggregate figures over active products in a single query."""
        active = _products.c.is_active == 1
        stmt = select(
            func.count(_products.c.id).label("total"),
            func.coalesce(func.sum(_products.c.stock), 0).label("stock"),
            func.coalesce(func.sum(_products.c.stock * _products.c.price), 0.0).label("value"),
            func.count(func.distinct(_products.c.category)).label("categories"),
        ).where(active)
        low_stmt = select(func.count(_products.c.id)).where(active & (_products.c.stock <= LOW_STOCK_THRESHOLD))
        with self.engine.connect() as conn:
            row = conn.execute(stmt).fetchone()
            low = conn.execute(low_stmt).scalar()
        return {
            "total_products": row.total,
            "total_stock": int(row.stock),
            "inventory_value": round(float(row.value), 2),
            "categories": row.categories,
            "low_stock": low or 0,
        }

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _row_to_product(row) -> Product:
    return Product(
        id=row.id,
        name=row.name,
        description=row.description,
        price=row.price,
        category=row.category,
        stock=row.stock,
        image_url=row.image_url or "",
        created_by=row.created_by,
        is_active=bool(row.is_active),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )

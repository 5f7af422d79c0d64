"""
products/models.py -- Domain dataclass for the product catalogue.

Pure data container. Soft-delete state and timestamps are owned by
products/store.py; route handlers never flip is_active directly.

Layer rule: products/ does not import from api/ or auth/.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class Product:
    """A sellable item managed through the admin panel.

    created_by is the id of the principal that created the record. It is a
    plain integer reference, not a foreign key, because principals live in
    the auth store.

    id is None before the record is written to the database.
    """

    name: str
    description: str
    price: float
    category: str
    stock: int = 0
    image_url: str = ""
    created_by: Optional[int] = None
    is_active: bool = True
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""
    id: Optional[int] = None

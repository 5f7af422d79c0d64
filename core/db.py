"""
core/db.py -- Engine construction and timestamp helpers shared by every store.

auth/store.py, auth/catalog.py and products/store.py all build their engine
through make_engine(), so the SQLite connection settings live in one place.

Timestamps are ISO 8601 UTC with fixed microsecond precision. Stored values
compare correctly as plain strings, which the reset-token expiry check in
auth/store.py relies on.

Layer rule: core/ is the kernel. This module may not import from api/,
auth/, or products/.
"""

from datetime import datetime, timezone

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked during writes.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def make_engine(db_url: str) -> Engine:
    """Create an Engine with the SQLite settings every store in this app uses."""
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    return engine


def to_iso(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat(timespec="microseconds")


def now_iso() -> str:
    """Current UTC time as a stored timestamp string."""
    return to_iso(datetime.now(timezone.utc))

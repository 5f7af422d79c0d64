"""
auth/store.py -- SQLAlchemy Core persistence layer for principals.

Pattern: Repository + Data Mapper. PrincipalStore is the repository;
_row_to_principal is the mapper. Route and issuer code never touches SQL.

Invariants enforced here (not in routes):
  - username and email are unique across active AND inactive rows. A
    deactivated account keeps blocking reuse of its username/email. The
    pre-insert check gives a clean Conflict; the UNIQUE constraints catch the
    race where two requests pass the check together.
  - email is stored trimmed and lowercased; lookups lowercase their input.
  - no username equals another row's email (case-insensitively) and no email
    equals another row's username, so a login identifier names one account.
  - the credential is hashed on every write path (create, set_credential,
    consume_reset_token). No method accepts or returns a raw secret.
  - a master admin's permission list is never written.
  - deactivated principals are invisible to every lookup except get_by_id.

Security:
  All queries use bound parameters. No f-strings in SQL.

  Timestamps are ISO 8601 UTC with fixed microsecond precision so the reset
  expiry comparison in SQL is a plain string comparison.

Layer rule: no imports from api/ or products/. Engine and timestamp helpers
come from core/db.py.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from datetime import datetime

from sqlalchemy import Column, Index, Integer, MetaData, String, Table, Text, func, or_, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.errors import AuthError, ErrorKind
from auth.models import ALL_PERMISSIONS, Principal
from auth.tokens import burn_verification, hash_password, verify_password
from core.db import make_engine, now_iso, to_iso

logger = logging.getLogger("gatekeeper.auth.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(30), nullable=False, unique=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("first_name", String(50), nullable=False, server_default=""),
    Column("last_name", String(50), nullable=False, server_default=""),
    Column("profile_photo_url", Text, nullable=False, server_default=""),
    Column("permissions", Text, nullable=False, server_default="[]"),  # JSON array, sorted
    Column("is_master_admin", Integer, nullable=False, server_default="0"),
    Column("approved", Integer, nullable=False, server_default="0"),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("reset_token", String(64)),
    Column("reset_token_expires", String(40)),
    Column("last_login", String(40)),
    Column("created_at", String(40), nullable=False),
    Column("updated_at", String(40), nullable=False),
)

Index("ix_users_reset_token", _users.c.reset_token)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _dump_permissions(permissions: Iterable[str]) -> str:
    return json.dumps(sorted({p.strip() for p in permissions if p and p.strip()}))


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class PrincipalStore:
    """Repository for Principal records.

    Usage:
        store = PrincipalStore("sqlite:///gatekeeper.db")
        pid = store.create(Principal(username="alice", email="a@x.com"), "secret1")
        alice = store.find_by_login_identifier("alice")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        self.engine: Engine = make_engine(db_url)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create(self, candidate: Principal, password: str) -> int:
        """Insert a new principal and return its id.

        approved and is_master_admin are taken from the candidate, which
        defaults both to False. Only ensure_master_admin() passes True.

        Raises AuthError(CONFLICT) if the username or email is already taken
        by any principal, active or not.
        """
        username = candidate.username.strip()
        email = normalize_email(candidate.email)
        if self._identity_taken(username, email):
            raise AuthError(ErrorKind.CONFLICT)

        now = now_iso()
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _users.insert().values(
                        username=username,
                        email=email,
                        hashed_password=hash_password(password),
                        first_name=candidate.first_name or "",
                        last_name=candidate.last_name or "",
                        profile_photo_url=candidate.profile_photo_url or "",
                        permissions=_dump_permissions(candidate.permissions),
                        is_master_admin=1 if candidate.is_master_admin else 0,
                        approved=1 if candidate.approved else 0,
                        is_active=1 if candidate.is_active else 0,
                        created_at=now,
                        updated_at=now,
                    )
                )
                conn.commit()
                new_id = result.inserted_primary_key[0]
        except IntegrityError as exc:
            # A concurrent insert won the race between the check and the write.
            raise AuthError(ErrorKind.CONFLICT) from exc
        return new_id

    def _identity_taken(self, username: str, email: str) -> bool:
        # Login accepts either identifier, so a username may not equal any
        # stored email and an email may not equal any stored username.
        with self.engine.connect() as conn:
            row = conn.execute(
                select(_users.c.id)
                .where(
                    or_(
                        _users.c.username == username,
                        _users.c.email == email,
                        _users.c.email == normalize_email(username),
                        func.lower(_users.c.username) == email,
                    )
                )
                .limit(1)
            ).fetchone()
        return row is not None

    def has_master_admin(self) -> bool:
        """True if any master admin row exists, active or not."""
        with self.engine.connect() as conn:
            row = conn.execute(select(_users.c.id).where(_users.c.is_master_admin == 1).limit(1)).fetchone()
        return row is not None

    def ensure_master_admin(
        self,
        username: str,
        email: str,
        password: str,
        first_name: str = "System",
        last_name: str = "Administrator",
    ) -> bool:
        """Create the bootstrap master admin unless one already exists.

        Idempotent: safe to call on every startup. Returns True only when a
        new master admin was written.
        """
        if self.has_master_admin():
            return False
        self.create(
            Principal(
                username=username,
                email=email,
                first_name=first_name,
                last_name=last_name,
                is_master_admin=True,
                approved=True,
            ),
            password,
        )
        logger.warning("Master admin '%s' created. Change the default password after first login.", username)
        return True

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_by_id(self, principal_id: int) -> Principal | None:
        """Look up by primary key regardless of is_active. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == principal_id)).fetchone()
        return _row_to_principal(row) if row is not None else None

    def get_active_by_id(self, principal_id: int) -> Principal | None:
        with self.engine.connect() as conn:
            row = conn.execute(
                _users.select().where((_users.c.id == principal_id) & (_users.c.is_active == 1))
            ).fetchone()
        return _row_to_principal(row) if row is not None else None

    def get_active_by_email(self, email: str) -> Principal | None:
        with self.engine.connect() as conn:
            row = conn.execute(
                _users.select().where((_users.c.email == normalize_email(email)) & (_users.c.is_active == 1))
            ).fetchone()
        return _row_to_principal(row) if row is not None else None

    def find_by_login_identifier(self, login: str) -> Principal | None:
        """Match login against username OR email among active principals.

        Username match is exact (after trimming); email match is
        case-insensitive because stored emails are lowercased.
        """
        login = login.strip()
        with self.engine.connect() as conn:
            row = conn.execute(
                _users.select()
                .where(or_(_users.c.username == login, _users.c.email == normalize_email(login)))
                .where(_users.c.is_active == 1)
                .limit(1)
            ).fetchone()
        return _row_to_principal(row) if row is not None else None

    def list_active(self) -> list[Principal]:
        """Return all active principals, newest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _users.select().where(_users.c.is_active == 1).order_by(_users.c.created_at.desc(), _users.c.id.desc())
            ).fetchall()
        return [_row_to_principal(r) for r in rows]

    def count_pending_approval(self) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(
                select(func.count())
                .select_from(_users)
                .where((_users.c.is_active == 1) & (_users.c.approved == 0) & (_users.c.is_master_admin == 0))
            ).scalar()
        return result or 0

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    @staticmethod
    def verify_credential(principal: Principal | None, raw_secret: str) -> bool:
        """Constant-cost credential check.

        A None principal still pays for one bcrypt round against the dummy
        hash, so "no such user" and "wrong secret" take the same time.
        """
        if principal is None or not principal.hashed_password:
            burn_verification(raw_secret)
            return False
        return verify_password(raw_secret, principal.hashed_password)

    def set_credential(self, principal_id: int, raw_secret: str) -> bool:
        """Re-hash and replace the stored credential. Returns False if not found."""
        return self._update(principal_id, hashed_password=hash_password(raw_secret))

    @staticmethod
    def effective_permissions(principal: Principal) -> frozenset:
        """ALL_PERMISSIONS for a master admin, otherwise exactly the stored set."""
        if principal.is_master_admin:
            return ALL_PERMISSIONS
        return frozenset(principal.permissions)

    # ------------------------------------------------------------------
    # Administrative mutations
    # ------------------------------------------------------------------

    def approve(self, principal_id: int) -> Principal:
        """Mark an active principal approved. Raises AuthError(NOT_FOUND)."""
        if self.get_active_by_id(principal_id) is None:
            raise AuthError(ErrorKind.NOT_FOUND, "User not found.")
        self._update(principal_id, approved=1)
        return self.get_active_by_id(principal_id)

    def assign_permissions(self, principal_id: int, permissions: Iterable[str]) -> Principal:
        """Replace a principal's permission set (last writer wins).

        Raises AuthError(NOT_FOUND) for a missing/inactive principal and
        AuthError(CANNOT_MODIFY_MASTER_ADMIN) for a master admin, whatever
        the requested list contains -- the empty list included.
        """
        target = self.get_active_by_id(principal_id)
        if target is None:
            raise AuthError(ErrorKind.NOT_FOUND, "User not found.")
        if target.is_master_admin:
            raise AuthError(ErrorKind.CANNOT_MODIFY_MASTER_ADMIN)
        self._update(principal_id, permissions=_dump_permissions(permissions))
        return self.get_active_by_id(principal_id)

    def update_profile(
        self,
        principal_id: int,
        first_name: str | None = None,
        last_name: str | None = None,
        email: str | None = None,
        profile_photo_url: str | None = None,
    ) -> Principal:
        """Apply self-service profile changes. None means "leave unchanged".

        Raises AuthError(CONFLICT) if the new email belongs to, or is the
        username of, another principal (active or not).
        """
        current = self.get_active_by_id(principal_id)
        if current is None:
            raise AuthError(ErrorKind.NOT_FOUND, "User not found.")

        fields: dict = {}
        if email is not None and normalize_email(email) != current.email:
            new_email = normalize_email(email)
            with self.engine.connect() as conn:
                clash = conn.execute(
                    select(_users.c.id).where(
                        or_(_users.c.email == new_email, func.lower(_users.c.username) == new_email)
                        & (_users.c.id != principal_id)
                    )
                ).fetchone()
            if clash is not None:
                raise AuthError(ErrorKind.CONFLICT, "Email already in use.")
            fields["email"] = new_email
        if first_name is not None:
            fields["first_name"] = first_name
        if last_name is not None:
            fields["last_name"] = last_name
        if profile_photo_url is not None:
            fields["profile_photo_url"] = profile_photo_url

        if fields:
            try:
                self._update(principal_id, **fields)
            except IntegrityError as exc:
                raise AuthError(ErrorKind.CONFLICT, "Email already in use.") from exc
        return self.get_active_by_id(principal_id)

    def update_last_login(self, principal_id: int, moment: datetime) -> None:
        """Stamp last_login; called on every successful authentication."""
        self._update(principal_id, last_login=to_iso(moment))

    def deactivate(self, principal_id: int) -> bool:
        """Soft-delete. Returns False if the principal is missing or already inactive."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update()
                .where((_users.c.id == principal_id) & (_users.c.is_active == 1))
                .values(is_active=0, updated_at=now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Reset tokens
    # ------------------------------------------------------------------

    def set_reset_token(self, principal_id: int, token: str, expires: datetime) -> None:
        self._update(principal_id, reset_token=token, reset_token_expires=to_iso(expires))

    def clear_reset_token(self, principal_id: int) -> None:
        self._update(principal_id, reset_token=None, reset_token_expires=None)

    def consume_reset_token(self, token: str, raw_secret: str, now: datetime) -> bool:
        """Replace the credential and clear the reset token in one statement.

        The WHERE clause carries the whole validity check (exact token,
        expiry in the future, active principal), so two concurrent resets
        with the same token cannot both succeed: the first UPDATE clears the
        token and the second matches zero rows.
        """
        if not token:
            return False
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update()
                .where(
                    (_users.c.reset_token == token)
                    & (_users.c.reset_token_expires > to_iso(now))
                    & (_users.c.is_active == 1)
                )
                .values(
                    hashed_password=hash_password(raw_secret),
                    reset_token=None,
                    reset_token_expires=None,
                    updated_at=now_iso(),
                )
            )
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------

    def _update(self, principal_id: int, **fields) -> bool:
        fields["updated_at"] = now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == principal_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_principal(row) -> Principal:
    return Principal(
        id=row.id,
        username=row.username,
        email=row.email,
        hashed_password=row.hashed_password,
        first_name=row.first_name or "",
        last_name=row.last_name or "",
        profile_photo_url=row.profile_photo_url or "",
        permissions=frozenset(json.loads(row.permissions or "[]")),
        is_master_admin=bool(row.is_master_admin),
        approved=bool(row.approved),
        is_active=bool(row.is_active),
        reset_token=row.reset_token,
        reset_token_expires=row.reset_token_expires,
        last_login=row.last_login,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )

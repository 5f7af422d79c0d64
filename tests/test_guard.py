"""Unit tests for auth/guard.py -- authorization decisions as values.

Covers:
- has_permission for master admin vs. stored set
- effective_permissions sentinel semantics
- bearer header parsing
- resolve_principal collapses every token failure to UNAUTHENTICATED
- check_permission order: approval before permission; master admin exempt
- check_master_admin ignores named permissions
"""

import pytest

from auth.errors import ErrorKind
from auth.guard import (
    Granted,
    Rejected,
    check_master_admin,
    check_permission,
    extract_bearer_token,
    has_permission,
    resolve_principal,
)
from auth.models import ALL_PERMISSIONS, Principal
from auth.store import PrincipalStore
from conftest import make_principal


def _principal(**kwargs) -> Principal:
    defaults = {"username": "p", "email": "p@acme.io", "approved": True, "id": 1}
    defaults.update(kwargs)
    return Principal(**defaults)


class TestHasPermission:
    def test_master_admin_holds_everything(self) -> None:
        admin = _principal(is_master_admin=True)
        assert has_permission(admin, "product:delete")
        assert has_permission(admin, "made:up")

    def test_regular_principal_holds_exactly_stored_set(self) -> None:
        user = _principal(permissions=frozenset({"product:read"}))
        assert has_permission(user, "product:read")
        assert not has_permission(user, "product:delete")

    def test_empty_set_holds_nothing(self) -> None:
        assert not has_permission(_principal(), "dashboard:read")


class TestEffectivePermissions:
    def test_master_admin_gets_sentinel(self) -> None:
        effective = PrincipalStore.effective_permissions(_principal(is_master_admin=True))
        assert effective is ALL_PERMISSIONS
        assert "anything:at-all" in effective

    def test_master_admin_stored_list_is_ignored(self) -> None:
        admin = _principal(is_master_admin=True, permissions=frozenset({"product:read"}))
        assert PrincipalStore.effective_permissions(admin) is ALL_PERMISSIONS

    def test_sentinel_is_not_equal_to_empty_set(self) -> None:
        assert ALL_PERMISSIONS != frozenset()
        assert frozenset() != ALL_PERMISSIONS

    def test_sentinel_is_truthy(self) -> None:
        effective = PrincipalStore.effective_permissions(_principal(is_master_admin=True))
        assert bool(effective) is True
        assert (effective or {"fallback"}) is ALL_PERMISSIONS

    def test_regular_principal_gets_stored_set(self) -> None:
        user = _principal(permissions=frozenset({"user:read", "product:read"}))
        assert PrincipalStore.effective_permissions(user) == frozenset({"user:read", "product:read"})


class TestExtractBearerToken:
    @pytest.mark.parametrize(
        "header, expected",
        [
            ("Bearer abc.def.ghi", "abc.def.ghi"),
            ("bearer abc", "abc"),
            (None, None),
            ("", None),
            ("Basic dXNlcjpwYXNz", None),
            ("Bearer ", None),
            ("Bearer", None),
        ],
    )
    def test_parsing(self, header, expected) -> None:
        assert extract_bearer_token(header) == expected


class TestResolvePrincipal:
    def test_missing_header(self, store, issuer) -> None:
        assert resolve_principal(store, issuer, None) == Rejected(ErrorKind.UNAUTHENTICATED)

    def test_garbage_token(self, store, issuer) -> None:
        assert resolve_principal(store, issuer, "Bearer garbage") == Rejected(ErrorKind.UNAUTHENTICATED)

    def test_expired_token(self, store, issuer, clock) -> None:
        pid = make_principal(store, "olga")
        token = issuer.issue_token(pid)
        clock.advance(3600)
        assert resolve_principal(store, issuer, f"Bearer {token}") == Rejected(ErrorKind.UNAUTHENTICATED)

    def test_deactivated_principal(self, store, issuer) -> None:
        pid = make_principal(store, "pete")
        token = issuer.issue_token(pid)
        store.deactivate(pid)
        assert resolve_principal(store, issuer, f"Bearer {token}") == Rejected(ErrorKind.UNAUTHENTICATED)

    def test_valid_token_resolves_current_record(self, store, issuer) -> None:
        pid = make_principal(store, "quinn")
        token = issuer.issue_token(pid)
        store.assign_permissions(pid, ["product:read"])

        result = resolve_principal(store, issuer, f"Bearer {token}")

        assert isinstance(result, Granted)
        assert result.principal.id == pid
        assert result.principal.permissions == frozenset({"product:read"})


class TestCheckPermission:
    def test_unapproved_is_rejected_before_permission_check(self) -> None:
        user = _principal(approved=False, permissions=frozenset({"product:read"}))
        assert check_permission(user, "product:read") == Rejected(ErrorKind.NOT_APPROVED)

    def test_missing_permission_names_it(self) -> None:
        result = check_permission(_principal(), "product:delete")
        assert result == Rejected(ErrorKind.MISSING_PERMISSION, "product:delete")
        assert result.to_error().detail == "Required permission: product:delete"

    def test_held_permission_granted(self) -> None:
        user = _principal(permissions=frozenset({"product:delete"}))
        assert isinstance(check_permission(user, "product:delete"), Granted)

    def test_master_admin_granted_even_if_not_flagged_approved(self) -> None:
        admin = _principal(is_master_admin=True, approved=False)
        assert isinstance(check_permission(admin, "user:delete"), Granted)

    def test_none_principal_unauthenticated(self) -> None:
        assert check_permission(None, "product:read") == Rejected(ErrorKind.UNAUTHENTICATED)


class TestCheckMasterAdmin:
    def test_named_permissions_do_not_count(self) -> None:
        user = _principal(permissions=frozenset({"user:read", "user:update", "user:delete"}))
        assert check_master_admin(user) == Rejected(ErrorKind.MASTER_ADMIN_REQUIRED)

    def test_master_admin_granted(self) -> None:
        assert isinstance(check_master_admin(_principal(is_master_admin=True)), Granted)

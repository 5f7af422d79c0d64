"""Unit tests for auth/store.py -- PrincipalStore.

Covers:
- uniqueness of username and email, including deactivated accounts
- usernames and emails never collide across accounts (login accepts either)
- email normalization on write and lookup
- ensure_master_admin() idempotency
- assign_permissions() replace semantics and the master-admin refusal
- soft delete hides principals from every active lookup
- profile update conflicts and pending-approval counting
"""

import pytest

from auth.errors import AuthError, ErrorKind
from conftest import make_principal


class TestUniqueness:
    def test_duplicate_username_conflicts(self, store) -> None:
        make_principal(store, "alice")
        with pytest.raises(AuthError) as exc_info:
            make_principal(store, "alice", email="alice2@acme.io")
        assert exc_info.value.kind is ErrorKind.CONFLICT

    def test_duplicate_email_conflicts_case_insensitively(self, store) -> None:
        make_principal(store, "alice", email="alice@acme.io")
        with pytest.raises(AuthError) as exc_info:
            make_principal(store, "alice2", email="ALICE@acme.io")
        assert exc_info.value.kind is ErrorKind.CONFLICT

    def test_deactivated_account_still_blocks_reuse(self, store) -> None:
        pid = make_principal(store, "alice")
        store.deactivate(pid)
        with pytest.raises(AuthError) as exc_info:
            make_principal(store, "alice")
        assert exc_info.value.kind is ErrorKind.CONFLICT

    def test_email_stored_lowercased(self, store) -> None:
        pid = make_principal(store, "bob", email="  Bob@Acme.IO ")
        assert store.get_by_id(pid).email == "bob@acme.io"

    def test_username_equal_to_existing_email_conflicts(self, store) -> None:
        make_principal(store, "carol", email="carol@acme.io")
        with pytest.raises(AuthError) as exc_info:
            make_principal(store, "Carol@Acme.io", email="mallory@acme.io")
        assert exc_info.value.kind is ErrorKind.CONFLICT

    def test_email_equal_to_existing_username_conflicts(self, store) -> None:
        make_principal(store, "carol@acme.io", email="mallory@acme.io")
        with pytest.raises(AuthError) as exc_info:
            make_principal(store, "carol", email="CAROL@acme.io")
        assert exc_info.value.kind is ErrorKind.CONFLICT


class TestMasterAdminBootstrap:
    def test_creates_once(self, store) -> None:
        assert store.ensure_master_admin("admin", "admin@system.com", "admin123") is True
        assert store.ensure_master_admin("admin2", "admin2@system.com", "admin123") is False

        admin = store.find_by_login_identifier("admin")
        assert admin.is_master_admin is True
        assert admin.approved is True
        assert store.find_by_login_identifier("admin2") is None

    def test_assign_permissions_to_master_admin_refused(self, store) -> None:
        store.ensure_master_admin("admin", "admin@system.com", "admin123")
        admin = store.find_by_login_identifier("admin")
        for requested in ([], ["product:read"]):
            with pytest.raises(AuthError) as exc_info:
                store.assign_permissions(admin.id, requested)
            assert exc_info.value.kind is ErrorKind.CANNOT_MODIFY_MASTER_ADMIN
        assert store.get_by_id(admin.id).permissions == frozenset()


class TestPermissionsAndApproval:
    def test_assign_replaces_whole_set(self, store) -> None:
        pid = make_principal(store, "carl", permissions=["user:read", "product:read"])
        updated = store.assign_permissions(pid, ["product:delete"])
        assert updated.permissions == frozenset({"product:delete"})

    def test_assign_empty_list_clears(self, store) -> None:
        pid = make_principal(store, "carl", permissions=["user:read"])
        assert store.assign_permissions(pid, []).permissions == frozenset()

    def test_assign_to_missing_principal_not_found(self, store) -> None:
        with pytest.raises(AuthError) as exc_info:
            store.assign_permissions(9999, ["product:read"])
        assert exc_info.value.kind is ErrorKind.NOT_FOUND

    def test_approve_flips_flag(self, store) -> None:
        pid = make_principal(store, "dina", approved=False)
        assert store.approve(pid).approved is True

    def test_approve_inactive_not_found(self, store) -> None:
        pid = make_principal(store, "dina", approved=False)
        store.deactivate(pid)
        with pytest.raises(AuthError) as exc_info:
            store.approve(pid)
        assert exc_info.value.kind is ErrorKind.NOT_FOUND

    def test_count_pending_excludes_approved_and_inactive(self, store) -> None:
        make_principal(store, "a1", approved=False)
        gone = make_principal(store, "a2", approved=False)
        make_principal(store, "a3", approved=True)
        store.deactivate(gone)
        assert store.count_pending_approval() == 1


class TestSoftDelete:
    def test_deactivated_invisible_to_active_lookups(self, store) -> None:
        pid = make_principal(store, "eve")
        assert store.deactivate(pid) is True

        assert store.get_active_by_id(pid) is None
        assert store.get_active_by_email("eve@acme.io") is None
        assert store.find_by_login_identifier("eve") is None
        assert all(p.id != pid for p in store.list_active())
        assert store.get_by_id(pid).is_active is False

    def test_deactivate_twice_reports_false(self, store) -> None:
        pid = make_principal(store, "eve")
        store.deactivate(pid)
        assert store.deactivate(pid) is False


class TestProfileUpdate:
    def test_update_names_and_photo(self, store) -> None:
        pid = make_principal(store, "fay")
        updated = store.update_profile(pid, first_name="Fay", last_name="Lin", profile_photo_url="/img/fay.png")
        assert updated.display_name == "Fay Lin"
        assert updated.profile_photo_url == "/img/fay.png"

    def test_email_taken_by_other_account_conflicts(self, store) -> None:
        make_principal(store, "gil")
        pid = make_principal(store, "fay")
        with pytest.raises(AuthError) as exc_info:
            store.update_profile(pid, email="GIL@acme.io")
        assert exc_info.value.kind is ErrorKind.CONFLICT

    def test_email_equal_to_other_username_conflicts(self, store) -> None:
        make_principal(store, "gil@acme.io", email="gil.real@acme.io")
        pid = make_principal(store, "fay")
        with pytest.raises(AuthError) as exc_info:
            store.update_profile(pid, email="Gil@acme.io")
        assert exc_info.value.kind is ErrorKind.CONFLICT

    def test_same_email_is_not_a_conflict(self, store) -> None:
        pid = make_principal(store, "fay")
        assert store.update_profile(pid, email="Fay@acme.io").email == "fay@acme.io"

#!/usr/bin/env python3
"""
Gatekeeper -- operator commands for the account and permission store.

Usage:
  python main.py bootstrap
  python main.py list-permissions
  python main.py pending
  python main.py approve alice
  python main.py grant alice product:read product:update

Every command works on DATABASE_URL from the environment or .env, the same
database the API serves. Run the API with: uvicorn api.main:app
"""

import argparse
from typing import Optional

from auth.catalog import PermissionCatalog
from auth.errors import AuthError
from auth.store import PrincipalStore
from core.config import Settings, get_settings


def _bootstrap(settings: Settings, store: PrincipalStore, catalog: PermissionCatalog, args) -> int:
    written = catalog.seed()
    print(f"  Permission catalog seeded ({written} new definitions).")
    created = store.ensure_master_admin(
        username=settings.master_admin_username,
        email=settings.master_admin_email,
        password=settings.master_admin_password,
    )
    if created:
        print(f"  Master admin '{settings.master_admin_username}' created. Change its password after first login.")
    else:
        print("  Master admin already present.")
    return 0


def _list_permissions(settings: Settings, store: PrincipalStore, catalog: PermissionCatalog, args) -> int:
    for module, perms in catalog.list_grouped_by_module().items():
        print(f"\n  {module}")
        for perm in perms:
            print(f"    {perm.name:<22} {perm.description}")
    print()
    return 0


def _pending(settings: Settings, store: PrincipalStore, catalog: PermissionCatalog, args) -> int:
    waiting = [p for p in store.list_active() if not p.approved and not p.is_master_admin]
    if not waiting:
        print("  No accounts awaiting approval.")
        return 0
    for principal in waiting:
        print(f"  {principal.id:>5}  {principal.username:<30} {principal.email}  (registered {principal.created_at})")
    return 0


def _approve(settings: Settings, store: PrincipalStore, catalog: PermissionCatalog, args) -> int:
    principal = store.find_by_login_identifier(args.login)
    if principal is None:
        print(f"  [!] No active account matches '{args.login}'.")
        return 1
    store.approve(principal.id)
    print(f"  Approved {principal.username}.")
    return 0


def _grant(settings: Settings, store: PrincipalStore, catalog: PermissionCatalog, args) -> int:
    principal = store.find_by_login_identifier(args.login)
    if principal is None:
        print(f"  [!] No active account matches '{args.login}'.")
        return 1
    unknown = sorted(set(args.permissions) - catalog.names())
    if unknown:
        print(f"  [!] Unknown permission(s): {', '.join(unknown)}")
        return 1
    updated = store.assign_permissions(principal.id, args.permissions)
    print(f"  {updated.username} now holds: {', '.join(sorted(updated.permissions)) or '(none)'}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gatekeeper",
        description="Operator commands for Gatekeeper accounts and permissions.",
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")
    sub.required = True

    p = sub.add_parser("bootstrap", help="Seed the permission catalog and create the master admin if missing")
    p.set_defaults(handler=_bootstrap)

    p = sub.add_parser("list-permissions", help="Print the permission catalog grouped by module")
    p.set_defaults(handler=_list_permissions)

    p = sub.add_parser("pending", help="List accounts awaiting approval")
    p.set_defaults(handler=_pending)

    p = sub.add_parser("approve", help="Approve a registered account")
    p.add_argument("login", metavar="USERNAME_OR_EMAIL")
    p.set_defaults(handler=_approve)

    p = sub.add_parser("grant", help="Replace an account's permissions with the given list")
    p.add_argument("login", metavar="USERNAME_OR_EMAIL")
    p.add_argument("permissions", nargs="*", metavar="PERMISSION", help="e.g. product:read (none clears the set)")
    p.set_defaults(handler=_grant)
    return parser


def main(argv: Optional[list[str]] = None, settings: Optional[Settings] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = settings or get_settings()

    store = PrincipalStore(settings.database_url)
    catalog = PermissionCatalog(settings.database_url)
    try:
        return args.handler(settings, store, catalog, args)
    except AuthError as exc:
        print(f"  [!] {exc.kind.message}{f' ({exc.detail})' if exc.detail else ''}")
        return 1
    finally:
        catalog.close()
        store.close()


if __name__ == "__main__":
    raise SystemExit(main())

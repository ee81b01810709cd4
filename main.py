#!/usr/bin/env python3
"""
ShopAdmin -- operator console for shop accounts, login tokens and roles.

Usage:
  python main.py register shopuser1 --type 1 --role-id 1 --name "Name" --mobile 13800000000 --email a@b.com
  python main.py login shopuser1
  python main.py check <token>
  python main.py passwd 1
  python main.py relate 1 --shop-id 7
  python main.py info 1 --fields account shop_id role_id
  python main.py list --shop-id 7
  python main.py role-create "Cashier" order.view order.refund
  python main.py role-info 1
  python main.py purge-tokens

Passwords are prompted for when --password is not given.

Environment variables (or .env):
  SECRET_KEY               Required unless DEBUG=true. At least 32 characters.
  DATABASE_URL             SQLAlchemy URL for accounts and roles.
  TOKEN_CACHE_PATH         SQLite file for login tokens.
  LOGIN_TOKEN_TTL_SECONDS  Sliding session window (default 7200).
"""

import argparse
import getpass
import json
import logging
import sys
from dataclasses import asdict
from typing import Optional

from auth.manager import ShopAccountManager
from auth.store import ShopAccountStore
from cache.store import LoginTokenCache
from core.config import get_settings
from core.errors import ShopAdminError
from privilege.manager import RoleManager
from privilege.store import PrivilegeStore

logger = logging.getLogger("shopadmin.cli")

_LIST_FIELDS = ["id", "account", "shop_id", "type", "role_id", "name", "is_valid"]


def _password(value: Optional[str], prompt: str) -> str:
    return value if value is not None else getpass.getpass(prompt)


def _emit(value) -> None:
    print(json.dumps(value, indent=2, ensure_ascii=False, default=str))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shopadmin",
        description="Manage shop accounts, login tokens and roles.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    p = sub.add_parser("register", help="Register a shop account")
    p.add_argument("account")
    p.add_argument("--password", help="Prompted for if omitted")
    p.add_argument("--type", type=int, required=True, help="1 = shop owner, 2 = staff")
    p.add_argument("--role-id", type=int, required=True)
    p.add_argument("--name", required=True)
    p.add_argument("--mobile", required=True)
    p.add_argument("--email", required=True)
    p.add_argument("--shop-id", type=int, default=0)

    p = sub.add_parser("update", help="Update an account's type, role and contact details")
    p.add_argument("account_id", type=int)
    p.add_argument("--type", type=int, required=True)
    p.add_argument("--role-id", type=int, required=True)
    p.add_argument("--name", required=True)
    p.add_argument("--mobile", required=True)
    p.add_argument("--email", required=True)

    p = sub.add_parser("passwd", help="Change an account's password")
    p.add_argument("account_id", type=int)
    p.add_argument("--old-password")
    p.add_argument("--new-password")

    p = sub.add_parser("login", help="Log in and print a login token")
    p.add_argument("account")
    p.add_argument("--password")

    p = sub.add_parser("check", help="Resolve a login token and renew it")
    p.add_argument("token")

    p = sub.add_parser("logout", help="Revoke a login token")
    p.add_argument("token")

    p = sub.add_parser("relate", help="Attach an account to a shop")
    p.add_argument("account_id", type=int)
    p.add_argument("--shop-id", type=int, required=True)

    for name, help_text in (("disable", "Soft-invalidate an account"), ("enable", "Re-validate an account")):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("account_id", type=int)

    p = sub.add_parser("info", help="Show one account")
    p.add_argument("account_id", type=int)
    p.add_argument("--fields", nargs="+", default=_LIST_FIELDS)

    p = sub.add_parser("list", help="List accounts")
    p.add_argument("--shop-id", type=int)
    p.add_argument("--role-id", type=int)
    p.add_argument("--skip", type=int, default=0)
    p.add_argument("--limit", type=int, default=20)

    p = sub.add_parser("role-create", help="Create a role bound to privilege codes")
    p.add_argument("name")
    p.add_argument("privileges", nargs="+")

    p = sub.add_parser("role-update", help="Rename a role and replace its privileges")
    p.add_argument("role_id", type=int)
    p.add_argument("name")
    p.add_argument("privileges", nargs="+")

    p = sub.add_parser("role-status", help="Enable (1) or disable (0) a role")
    p.add_argument("role_id", type=int)
    p.add_argument("status", type=int, choices=[0, 1])

    p = sub.add_parser("role-info", help="Show an enabled role and its privileges")
    p.add_argument("role_id", type=int)

    sub.add_parser("purge-tokens", help="Delete expired login tokens")
    return parser


def run(args: argparse.Namespace, accounts: ShopAccountManager, roles: RoleManager) -> None:
    """Dispatch one parsed command. ShopAdminError propagates to the caller."""
    cmd = args.command
    if cmd == "register":
        password = _password(args.password, "Password: ")
        account_id = accounts.register_shop_account(
            args.account, password, args.type, args.role_id, args.name, args.mobile, args.email, shop_id=args.shop_id
        )
        _emit({"account_id": account_id})
    elif cmd == "update":
        affected = accounts.update_shop_account(
            args.account_id, args.type, args.role_id, args.name, args.mobile, args.email
        )
        _emit({"updated": affected})
    elif cmd == "passwd":
        old = _password(args.old_password, "Old password: ")
        new = _password(args.new_password, "New password: ")
        _emit({"changed": accounts.update_password(args.account_id, old, new)})
    elif cmd == "login":
        info = accounts.login_shop_account(args.account, _password(args.password, "Password: "))
        _emit(asdict(info))
    elif cmd == "check":
        _emit(accounts.check_login(args.token))
    elif cmd == "logout":
        _emit({"revoked": accounts.logout_shop_account(args.token)})
    elif cmd == "relate":
        _emit({"updated": accounts.relate_account_with_shop(args.account_id, args.shop_id)})
    elif cmd == "disable":
        _emit({"updated": accounts.disable_shop_account(args.account_id)})
    elif cmd == "enable":
        _emit({"updated": accounts.enable_shop_account(args.account_id)})
    elif cmd == "info":
        _emit(accounts.get_shop_account_info(args.account_id, args.fields))
    elif cmd == "list":
        filters = {}
        if args.shop_id is not None:
            filters["shop_id"] = args.shop_id
        if args.role_id is not None:
            filters["role_id"] = args.role_id
        _emit(accounts.get_shop_account_list(filters, _LIST_FIELDS, skip=args.skip, limit=args.limit))
    elif cmd == "role-create":
        _emit({"role_id": roles.create_role(args.name, args.privileges)})
    elif cmd == "role-update":
        _emit({"updated": roles.update_role(args.role_id, args.name, args.privileges)})
    elif cmd == "role-status":
        _emit({"updated": roles.set_role_status(args.role_id, args.status)})
    elif cmd == "role-info":
        role = roles.get_role_info(args.role_id)
        _emit(asdict(role) if role is not None else None)
    elif cmd == "purge-tokens":
        _emit({"purged": accounts.token_cache.purge_expired()})


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 0

    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )

    account_store = ShopAccountStore()
    token_cache = LoginTokenCache()
    privilege_store = PrivilegeStore()
    logger.debug("Running command %s", args.command)
    try:
        run(args, ShopAccountManager(account_store, token_cache), RoleManager(privilege_store))
    except ShopAdminError as exc:
        print(f"  [!] {exc}", file=sys.stderr)
        return 1
    finally:
        account_store.close()
        token_cache.close()
        privilege_store.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())

"""
auth/models.py -- Domain dataclasses for shop accounts and login sessions.

Pattern: Data class (pure data container, zero logic). Stores and managers
do the work; these own the shape.

Layer rule: no imports from cache/ or privilege/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum


class AccountType(IntEnum):
    """Kind of shop account. Stored as an integer in shop_account.type."""

    MASTER = 1  # shop owner
    STAFF = 2


@dataclass
class ShopAccount:
    """A login identity for the shop admin console.

    shop_id is 0 until the account is related to a shop (multi-tenant key).
    is_valid is the soft-delete flag: accounts are never removed, only
    invalidated, so historical references to the id keep resolving.

    password_hash is the bcrypt hash. The plaintext never reaches this object.
    """

    account: str
    password_hash: str
    type: int
    role_id: int
    name: str
    mobile: str
    email: str
    shop_id: int = 0
    id: int | None = None
    is_valid: bool = True
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class SessionSnapshot:
    """Account fields cached alongside a login token.

    Taken once at login. Later profile edits are not reflected until the
    account logs in again.
    """

    account_id: int
    account: str
    shop_id: int
    type: int
    role_id: int
    name: str = ""
    mobile: str = ""
    email: str = ""

    def identity(self) -> dict:
        """Reduced projection returned by check_login()."""
        return {
            "account_id": self.account_id,
            "account": self.account,
            "shop_id": self.shop_id,
            "type": self.type,
            "role_id": self.role_id,
        }


@dataclass
class LoginInfo:
    """What a successful login hands back to the caller.

    token is shown to the caller exactly once; the cache only keeps its digest.
    """

    token: str
    account_id: int
    account: str
    shop_id: int
    type: int
    role_id: int

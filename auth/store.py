"""
auth/store.py -- SQLAlchemy Core persistence layer for shop accounts.

Pattern: Repository + Data Mapper. ShopAccountStore is the repository;
_row_to_account is the mapper. Managers never touch SQL directly.

Security:
  All queries use bound parameters. Column names for filters, projections,
  patches and sort keys come from callers, so every name is checked against
  the table's own columns before any SQL is built (ValueError otherwise).

  UNIQUE(account) is enforced in SQL. The manager's "already taken" pre-check
  gives a friendly error; the constraint closes the race between the check
  and the insert. add_shop_account() lets IntegrityError propagate so the
  caller can translate it.

DB path: shopadmin.db next to the package unless Settings.database_url says
otherwise.

Layer rule: no imports from cache/ or privilege/.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from sqlalchemy import Column, Integer, MetaData, String, Table, create_engine, event, select
from sqlalchemy.engine import Engine

from auth.models import ShopAccount
from core.config import get_settings

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_shop_accounts = Table(
    "shop_account",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("account", String(64), nullable=False, unique=True),
    Column("password_hash", String(255), nullable=False),
    Column("shop_id", Integer, nullable=False, server_default="0", index=True),
    Column("type", Integer, nullable=False),
    Column("role_id", Integer, nullable=False, server_default="0"),
    Column("name", String(64), nullable=False),
    Column("mobile", String(32), nullable=False),
    Column("email", String(255), nullable=False),
    Column("is_valid", Integer, nullable=False, server_default="1"),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_COLUMNS: frozenset[str] = frozenset(_shop_accounts.c.keys())
# Set by the store itself, never through a caller's patch.
_IMMUTABLE: frozenset[str] = frozenset({"id", "created_at", "updated_at"})


# ---------------------------------------------------------------------------
# SQLite journal mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Readers keep working while a login or registration writes.

    Pooled connections do not inherit PRAGMAs, so this runs on each connect.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _check_columns(names: Iterable[str], what: str) -> None:
    unknown = set(names) - _COLUMNS
    if unknown:
        raise ValueError(f"Unknown shop_account {what}: {sorted(unknown)!r}")


def _where(stmt, filters: dict[str, Any]):
    _check_columns(filters, "filter columns")
    for k, v in filters.items():
        stmt = stmt.where(_shop_accounts.c[k] == v)
    return stmt


def _projection(fields: Iterable[str]):
    fields = list(fields)
    _check_columns(fields, "fields")
    return [_shop_accounts.c[f] for f in fields]


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class ShopAccountStore:
    """Repository for ShopAccount rows.

    Usage:
        store = ShopAccountStore()
        account_id = store.add_shop_account("shopuser1", hash_password("pass123"), 0, 1, 1, "Name", "138...", "a@b.com")
        row = store.get_shop_account_info({"id": account_id}, ["account", "shop_id"])
        store.close()
    """

    def __init__(self, db_url: Optional[str] = None) -> None:
        db_url = db_url or get_settings().database_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite") and ":memory:" not in db_url:
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def add_shop_account(
        self,
        account: str,
        password_hash: str,
        shop_id: int,
        type: int,
        role_id: int,
        name: str,
        mobile: str,
        email: str,
    ) -> int:
        """Insert a new, valid account and return its id.

        Raises sqlalchemy.exc.IntegrityError if the account name already exists.
        """
        now = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _shop_accounts.insert().values(
                    account=account,
                    password_hash=password_hash,
                    shop_id=shop_id,
                    type=int(type),
                    role_id=role_id,
                    name=name,
                    mobile=mobile,
                    email=email,
                    is_valid=1,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def update_shop_account(self, filters: dict[str, Any], patch: dict[str, Any]) -> int:
        """Apply `patch` to every row matching `filters`; return the affected count.

        An empty filter dict is refused: it would rewrite the whole table.
        updated_at is stamped on every call.
        """
        if not filters:
            raise ValueError("update_shop_account() requires at least one filter")
        _check_columns(patch, "patch columns")
        forbidden = _IMMUTABLE & set(patch)
        if forbidden:
            raise ValueError(f"Cannot patch shop_account columns {sorted(forbidden)!r}")
        values = dict(patch)
        if "type" in values:
            values["type"] = int(values["type"])
        if "is_valid" in values:
            values["is_valid"] = 1 if values["is_valid"] else 0
        values["updated_at"] = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_where(_shop_accounts.update(), filters).values(**values))
            conn.commit()
        return result.rowcount

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_shop_account_info(self, filters: dict[str, Any], fields: Iterable[str]) -> Optional[dict]:
        """Return the first matching row projected onto `fields`, or None."""
        stmt = _where(select(*_projection(fields)), filters).limit(1)
        with self.engine.connect() as conn:
            row = conn.execute(stmt).mappings().fetchone()
        return dict(row) if row is not None else None

    def get_shop_account_list(
        self,
        filters: dict[str, Any],
        fields: Iterable[str],
        order_bys: Iterable[tuple[str, str]] = (),
        skip: int = 0,
        limit: int = 20,
    ) -> list[dict]:
        """Return matching rows projected onto `fields`.

        order_bys is a sequence of (column, "asc" | "desc") pairs applied in
        order. Rows default to id order so pagination is stable.
        """
        stmt = _where(select(*_projection(fields)), filters)
        order_bys = list(order_bys)
        _check_columns((c for c, _ in order_bys), "sort columns")
        for column, direction in order_bys:
            col = _shop_accounts.c[column]
            if direction.lower() == "desc":
                stmt = stmt.order_by(col.desc())
            elif direction.lower() == "asc":
                stmt = stmt.order_by(col.asc())
            else:
                raise ValueError(f"Unknown sort direction {direction!r}")
        stmt = stmt.order_by(_shop_accounts.c.id).offset(skip).limit(limit)
        with self.engine.connect() as conn:
            rows = conn.execute(stmt).mappings().fetchall()
        return [dict(r) for r in rows]

    def get_by_id(self, account_id: int) -> Optional[ShopAccount]:
        """Look up a full account record by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_shop_accounts.select().where(_shop_accounts.c.id == account_id)).fetchone()
        return _row_to_account(row) if row is not None else None

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_account(row) -> ShopAccount:
    return ShopAccount(
        id=row.id,
        account=row.account,
        password_hash=row.password_hash,
        shop_id=row.shop_id,
        type=row.type,
        role_id=row.role_id,
        name=row.name,
        mobile=row.mobile,
        email=row.email,
        is_valid=bool(row.is_valid),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )

"""
privilege/store.py -- SQLAlchemy Core persistence for roles and their privileges.

Two tables:
  role            one row per role (name, is_enable, timestamps)
  role_privilege  one row per role, privilege codes comma-joined

create_role() and update_role() touch both tables inside a single
engine.begin() transaction. Any storage error rolls the transaction back,
is logged with the call's parameters, and surfaces as OperationFailed, so a
role never exists without its privilege row.

Layer rule: no imports from auth/ or cache/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, ForeignKey, Integer, MetaData, String, Table, Text, create_engine, event, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from core.config import get_settings
from core.errors import OperationFailed
from privilege.models import Role

logger = logging.getLogger("shopadmin.privilege")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_roles = Table(
    "role",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(64), nullable=False),
    Column("is_enable", Integer, nullable=False, server_default="1"),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_role_privileges = Table(
    "role_privilege",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("role_id", Integer, ForeignKey("role.id"), nullable=False, unique=True),
    Column("privilege", Text, nullable=False, server_default=""),
)


def _set_foreign_keys(dbapi_conn, connection_record) -> None:
    # SQLite ignores REFERENCES unless asked per connection.
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _join_privileges(privilege_list: list[str]) -> str:
    return ",".join(privilege_list)


def _split_privileges(privilege: Optional[str]) -> list[str]:
    return [p for p in (privilege or "").split(",") if p]


class PrivilegeStore:
    """Repository for Role rows and their bound privilege lists."""

    def __init__(self, db_url: Optional[str] = None) -> None:
        db_url = db_url or get_settings().database_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_foreign_keys)
        _metadata.create_all(self.engine)

    def create_role(self, role_name: str, privilege_list: list[str]) -> int:
        """Insert an enabled role and its privilege row atomically. Returns the role id."""
        now = _now_iso()
        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    _roles.insert().values(name=role_name, is_enable=1, created_at=now, updated_at=now)
                )
                role_id = result.inserted_primary_key[0]
                conn.execute(
                    _role_privileges.insert().values(role_id=role_id, privilege=_join_privileges(privilege_list))
                )
        except SQLAlchemyError as exc:
            logger.exception(
                "Failed to create role",
                extra={"params": {"role_name": role_name, "privilege": privilege_list}},
            )
            raise OperationFailed("Failed to create role") from exc
        return role_id

    def update_role(self, role_id: int, role_name: str, privilege_list: list[str]) -> bool:
        """Rename a role and replace its privilege list atomically.

        Returns False if no such role exists. A role created before its
        privilege row existed gets one inserted here.
        """
        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    _roles.update().where(_roles.c.id == role_id).values(name=role_name, updated_at=_now_iso())
                )
                if result.rowcount == 0:
                    return False
                privilege = _join_privileges(privilege_list)
                updated = conn.execute(
                    _role_privileges.update()
                    .where(_role_privileges.c.role_id == role_id)
                    .values(privilege=privilege)
                )
                if updated.rowcount == 0:
                    conn.execute(_role_privileges.insert().values(role_id=role_id, privilege=privilege))
        except SQLAlchemyError as exc:
            logger.exception(
                "Failed to update role %d",
                role_id,
                extra={"params": {"role_id": role_id, "role_name": role_name, "privilege": privilege_list}},
            )
            raise OperationFailed("Failed to update role") from exc
        return True

    def set_role_status(self, role_id: int, status: int) -> int:
        """Enable (1) or disable (0) a role. Returns rows affected."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _roles.update().where(_roles.c.id == role_id).values(is_enable=status, updated_at=_now_iso())
            )
            conn.commit()
        return result.rowcount

    def get_role_info(self, role_id: int) -> Optional[Role]:
        """Return an enabled role with its privilege list, or None."""
        stmt = (
            select(
                _roles.c.id,
                _roles.c.name,
                _roles.c.is_enable,
                _roles.c.created_at,
                _roles.c.updated_at,
                _role_privileges.c.privilege,
            )
            .select_from(_roles.outerjoin(_role_privileges, _roles.c.id == _role_privileges.c.role_id))
            .where(_roles.c.is_enable == 1)
            .where(_roles.c.id == role_id)
        )
        with self.engine.connect() as conn:
            row = conn.execute(stmt).fetchone()
        return _row_to_role(row) if row is not None else None

    def close(self) -> None:
        self.engine.dispose()


def _row_to_role(row) -> Role:
    return Role(
        id=row.id,
        name=row.name,
        is_enable=bool(row.is_enable),
        privilege_list=_split_privileges(row.privilege),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )

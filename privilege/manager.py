"""
privilege/manager.py -- Role use cases: create, update, enable/disable, lookup.

Validates input with the models in privilege/schemas.py and delegates to
PrivilegeStore. Store-level failures on the transactional writes already
arrive as OperationFailed.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from core.errors import InvalidArgument
from core.validation import validate_input
from privilege.models import Role
from privilege.schemas import RoleInput, RoleStatusInput, RoleUpdateInput
from privilege.store import PrivilegeStore

logger = logging.getLogger("shopadmin.privilege")


class RoleManager:
    def __init__(self, store: PrivilegeStore) -> None:
        self.store = store

    def create_role(self, role_name: str, privilege_list: Iterable[str]) -> int:
        data = validate_input(RoleInput, name=role_name, privilege_list=list(privilege_list))
        role_id = self.store.create_role(data.name, data.privilege_list)
        logger.info("Created role %d with %d privileges", role_id, len(data.privilege_list))
        return role_id

    def update_role(self, role_id: int, role_name: str, privilege_list: Iterable[str]) -> bool:
        data = validate_input(RoleUpdateInput, role_id=role_id, name=role_name, privilege_list=list(privilege_list))
        if not self.store.update_role(data.role_id, data.name, data.privilege_list):
            raise InvalidArgument(f"Role {data.role_id} does not exist")
        return True

    def set_role_status(self, role_id: int, status: int) -> int:
        """Enable (1) or disable (0) a role. Disabled roles grant nothing."""
        data = validate_input(RoleStatusInput, role_id=role_id, status=status)
        return self.store.set_role_status(data.role_id, data.status)

    def get_role_info(self, role_id: int) -> Optional[Role]:
        if not isinstance(role_id, int) or isinstance(role_id, bool) or role_id < 1:
            raise InvalidArgument("Role id must be a positive integer")
        return self.store.get_role_info(role_id)

    def has_privilege(self, role_id: int, privilege: str) -> bool:
        """True if role_id is an enabled role whose list contains privilege.

        role_id 0 (no role assigned) grants nothing.
        """
        if not role_id:
            return False
        role = self.get_role_info(role_id)
        return role is not None and privilege in role.privilege_list

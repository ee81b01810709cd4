"""
privilege/schemas.py -- Pydantic v2 input models for RoleManager.

Privilege codes are stored comma-joined, so a code may not contain a comma.
The pattern below is stricter than that: letters, digits and "_.:-".
"""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictInt, field_validator

PRIVILEGE_PATTERN = r"^[A-Za-z0-9_.:-]+$"

_PrivilegeCode = Annotated[str, Field(min_length=1, max_length=64, pattern=PRIVILEGE_PATTERN)]
_RoleId = Annotated[StrictInt, Field(ge=1, title="Role id")]


class RoleInput(BaseModel):
    """Name and privilege list for create_role/update_role.

    Duplicate codes are dropped, keeping first-seen order.
    """

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=20, title="Role name")
    privilege_list: list[_PrivilegeCode] = Field(min_length=1, title="Privilege list")

    @field_validator("privilege_list", mode="after")
    @classmethod
    def dedupe(cls, values: list[str]) -> list[str]:
        return list(dict.fromkeys(values))


class RoleUpdateInput(RoleInput):
    role_id: _RoleId


class RoleStatusInput(BaseModel):
    model_config = ConfigDict(frozen=True)

    role_id: _RoleId
    status: Literal[0, 1] = Field(title="Role status")

"""
auth/schemas.py -- Pydantic v2 input models for the shop account manager.

These define the field-level contract (presence, type, length, format) that
ShopAccountManager checks before any credential rule or store call runs.
They are intentionally separate from the dataclasses in auth/models.py,
which own the domain representation.

Each field carries a human title; core.validation.validate_input() uses it to
phrase the InvalidArgument message.
"""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field, StrictInt, field_validator

from auth.models import AccountType

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MOBILE_PATTERN = r"^1[3-9]\d{9}$"

# bcrypt only looks at the first 72 bytes of its input.
PASSWORD_MAX_BYTES = 72

# Columns a caller may read through get_shop_account_info/_list.
# password_hash is deliberately absent.
PUBLIC_ACCOUNT_FIELDS: frozenset[str] = frozenset(
    {"id", "account", "shop_id", "type", "role_id", "name", "mobile", "email", "is_valid", "created_at", "updated_at"}
)


def _check_password_bytes(value: str) -> str:
    if len(value.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise ValueError(f"must be at most {PASSWORD_MAX_BYTES} bytes when UTF-8 encoded")
    return value


_Account = Annotated[str, Field(min_length=3, max_length=20, title="Shop account")]
_Password = Annotated[str, Field(min_length=6, max_length=20), AfterValidator(_check_password_bytes)]
_Name = Annotated[str, Field(min_length=1, max_length=20, title="Contact name")]
_Mobile = Annotated[str, Field(pattern=MOBILE_PATTERN, title="Contact mobile")]
# email-validator caps the whole address at 254 characters.
_Email = Annotated[EmailStr, Field(title="Contact email")]
_PositiveId = Annotated[StrictInt, Field(ge=1)]


def _check_readable(values: list[str]) -> list[str]:
    unknown = [v for v in values if v not in PUBLIC_ACCOUNT_FIELDS]
    if unknown:
        raise ValueError(f"unknown or unreadable fields {sorted(set(unknown))!r}")
    return values


class _Input(BaseModel):
    model_config = ConfigDict(frozen=True)


class _ProfileFields(_Input):
    type: AccountType = Field(title="Account type")
    role_id: StrictInt = Field(ge=0, title="Role id")
    name: _Name
    mobile: _Mobile
    email: _Email


class RegisterAccountInput(_ProfileFields):
    shop_id: StrictInt = Field(ge=0, title="Shop id")
    account: _Account
    password: _Password = Field(title="Password")


class UpdateAccountInput(_ProfileFields):
    account_id: _PositiveId = Field(title="Shop account id")


class UpdatePasswordInput(_Input):
    account_id: _PositiveId = Field(title="Shop account id")
    origin_password: _Password = Field(title="Old password")
    new_password: _Password = Field(title="New password")


class LoginInput(_Input):
    account: _Account
    password: _Password = Field(title="Password")


class RelateShopInput(_Input):
    account_id: _PositiveId = Field(title="Shop account id")
    shop_id: _PositiveId = Field(title="Shop id")


class AccountInfoQuery(_Input):
    account_id: _PositiveId = Field(title="Shop account id")
    fields: list[str] = Field(min_length=1, title="Account fields")

    @field_validator("fields")
    @classmethod
    def only_public_fields(cls, values: list[str]) -> list[str]:
        return _check_readable(values)


class AccountListQuery(_Input):
    filters: dict[str, Any] = Field(default_factory=dict, title="Account filters")
    fields: list[str] = Field(min_length=1, title="Account fields")
    order_bys: list[tuple[str, str]] = Field(default_factory=list, title="Sort order")
    skip: StrictInt = Field(default=0, ge=0, title="Skip")
    limit: StrictInt = Field(default=20, ge=1, le=500, title="Limit")

    @field_validator("filters")
    @classmethod
    def filter_on_public_fields(cls, values: dict[str, Any]) -> dict[str, Any]:
        unknown = [k for k in values if k not in PUBLIC_ACCOUNT_FIELDS]
        if unknown:
            raise ValueError(f"cannot filter on {sorted(unknown)!r}")
        return values

    @field_validator("fields")
    @classmethod
    def only_public_fields(cls, values: list[str]) -> list[str]:
        return _check_readable(values)

    @field_validator("order_bys")
    @classmethod
    def known_sort_keys(cls, values: list[tuple[str, str]]) -> list[tuple[str, str]]:
        result = []
        for column, direction in values:
            direction = direction.lower()
            if column not in PUBLIC_ACCOUNT_FIELDS:
                raise ValueError(f"cannot sort on {column!r}")
            if direction not in ("asc", "desc"):
                raise ValueError(f"sort direction must be 'asc' or 'desc', got {direction!r}")
            result.append((column, direction))
        return result

"""
auth/manager.py -- Shop account use cases: register, update, login, session check.

Every public method follows the same shape:
  1. Field-level validation through a pydantic model (auth/schemas.py).
  2. Credential format rules where a password or account name is involved.
  3. A call into ShopAccountStore and/or LoginTokenCache.

Errors (core/errors.py):
  InvalidArgument      bad input or a business rule (duplicate account,
                       unknown account at login, wrong old password).
  AuthenticationError  wrong password at login, unknown/expired token.
  OperationFailed      storage failure during a profile or shop update,
                       logged with the call's parameters first.

Login path timing: an unknown account still pays for one bcrypt check
against a dummy hash (auth.tokens.burn_password_check), so "no such account"
and "wrong password" take the same time even though they raise different
error kinds.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.credentials import check_account_and_password
from auth.models import LoginInfo, SessionSnapshot
from auth.schemas import (
    AccountInfoQuery,
    AccountListQuery,
    LoginInput,
    RegisterAccountInput,
    RelateShopInput,
    UpdateAccountInput,
    UpdatePasswordInput,
)
from auth.store import ShopAccountStore
from auth.tokens import burn_password_check, generate_login_token, hash_password, verify_password
from cache.store import LoginTokenCache
from core.errors import AuthenticationError, InvalidArgument, OperationFailed
from core.validation import validate_input

logger = logging.getLogger("shopadmin.auth")

_LOGIN_FIELDS = ["id", "shop_id", "type", "role_id", "account", "password_hash", "name", "mobile", "email"]


class ShopAccountManager:
    """Shop account management on top of an account store and a token cache."""

    def __init__(self, store: ShopAccountStore, token_cache: LoginTokenCache) -> None:
        self.store = store
        self.token_cache = token_cache

    # ------------------------------------------------------------------
    # Registration and profile
    # ------------------------------------------------------------------

    def register_shop_account(
        self,
        account: str,
        password: str,
        type: int,
        role_id: int,
        name: str,
        mobile: str,
        email: str,
        shop_id: int = 0,
    ) -> int:
        """Create a shop account and return its id.

        Raises InvalidArgument for malformed input, a bad account/password
        format, or an account name that is already taken. In the last case
        nothing is written.
        """
        data = validate_input(
            RegisterAccountInput,
            shop_id=shop_id,
            account=account,
            password=password,
            type=type,
            role_id=role_id,
            name=name,
            mobile=mobile,
            email=email,
        )
        check_account_and_password(data.account, data.password)
        self._check_account_occupied(data.account)

        password_hash = hash_password(data.password)
        try:
            account_id = self.store.add_shop_account(
                data.account,
                password_hash,
                data.shop_id,
                data.type,
                data.role_id,
                data.name,
                data.mobile,
                data.email,
            )
        except IntegrityError as exc:
            # Lost the race against a concurrent registration of the same name.
            raise InvalidArgument("Account is already taken") from exc

        logger.info("Registered shop account %d (shop_id=%d)", account_id, data.shop_id)
        return account_id

    def update_shop_account(
        self,
        account_id: int,
        type: int,
        role_id: int,
        name: str,
        mobile: str,
        email: str,
    ) -> int:
        """Rewrite an account's type, role and contact details. Returns rows affected."""
        data = validate_input(
            UpdateAccountInput,
            account_id=account_id,
            type=type,
            role_id=role_id,
            name=name,
            mobile=mobile,
            email=email,
        )
        patch = {
            "type": data.type,
            "role_id": data.role_id,
            "name": data.name,
            "mobile": data.mobile,
            "email": data.email,
        }
        try:
            return self.store.update_shop_account({"id": data.account_id}, patch)
        except SQLAlchemyError as exc:
            logger.exception(
                "Failed to update shop account %d",
                data.account_id,
                extra={"params": {"account_id": data.account_id, **patch}},
            )
            raise OperationFailed("Failed to update shop account") from exc

    def relate_account_with_shop(self, account_id: int, shop_id: int) -> int:
        """Attach an account to a shop. Returns rows affected."""
        data = validate_input(RelateShopInput, account_id=account_id, shop_id=shop_id)
        try:
            return self.store.update_shop_account({"id": data.account_id}, {"shop_id": data.shop_id})
        except SQLAlchemyError as exc:
            logger.exception(
                "Failed to relate shop account %d with shop %d",
                data.account_id,
                data.shop_id,
                extra={"params": {"account_id": data.account_id, "shop_id": data.shop_id}},
            )
            raise OperationFailed("Failed to relate shop account with shop") from exc

    def disable_shop_account(self, account_id: int) -> int:
        """Soft-invalidate an account. Login and password change stop working for it.

        Tokens already issued keep resolving until they expire.
        """
        return self._set_valid(account_id, False)

    def enable_shop_account(self, account_id: int) -> int:
        return self._set_valid(account_id, True)

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    def update_password(self, account_id: int, origin_password: str, new_password: str) -> bool:
        """Replace an account's password after checking the old one.

        Every failure here is InvalidArgument, including a wrong old password:
        the caller is already authenticated, so this is a form error rather
        than a login failure. The stored hash is untouched on failure.
        """
        data = validate_input(
            UpdatePasswordInput,
            account_id=account_id,
            origin_password=origin_password,
            new_password=new_password,
        )
        record = self.store.get_by_id(data.account_id)
        if record is None or not record.is_valid:
            raise InvalidArgument("Shop account does not exist or is disabled")

        if not verify_password(data.origin_password, record.password_hash):
            raise InvalidArgument("Old password is incorrect")

        check_account_and_password(None, data.new_password)

        self.store.update_shop_account({"id": data.account_id}, {"password_hash": hash_password(data.new_password)})
        logger.info("Password changed for shop account %d", data.account_id)
        return True

    def login_shop_account(self, account: str, password: str) -> LoginInfo:
        """Verify credentials and issue a login token.

        Raises InvalidArgument if the account is unknown or disabled,
        AuthenticationError if the password is wrong.
        """
        data = validate_input(LoginInput, account=account, password=password)
        account_info = self._verify_account_login(data.account, data.password)

        snapshot = SessionSnapshot(
            account_id=account_info["id"],
            account=account_info["account"],
            shop_id=account_info["shop_id"],
            type=account_info["type"],
            role_id=account_info["role_id"],
            name=account_info["name"],
            mobile=account_info["mobile"],
            email=account_info["email"],
        )
        token = generate_login_token()
        self.token_cache.set_login_token_cache(token, snapshot)
        logger.info("Shop account %d logged in", snapshot.account_id)

        return LoginInfo(token=token, **snapshot.identity())

    def check_login(self, token: Optional[str]) -> dict:
        """Resolve a login token to the account identity and renew its expiry.

        Returns {account_id, account, shop_id, type, role_id}.
        """
        if not token:
            raise InvalidArgument("Shop login token is missing")

        snapshot = self.token_cache.get_login_token_cache(token)
        if snapshot is None:
            raise AuthenticationError("Login session has expired")

        # Sliding expiry. A token revoked since the read is not brought back.
        if not self.token_cache.renew_login_token_cache(token):
            raise AuthenticationError("Login session has expired")
        return snapshot.identity()

    def logout_shop_account(self, token: Optional[str]) -> bool:
        """Drop a login token. Returns False if it was already gone."""
        if not token:
            raise InvalidArgument("Shop login token is missing")
        return self.token_cache.delete_login_token_cache(token)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_shop_account_info(self, account_id: int, fields: Iterable[str]) -> Optional[dict]:
        """Return the requested public fields of one account, or None."""
        data = validate_input(AccountInfoQuery, account_id=account_id, fields=list(fields))
        return self.store.get_shop_account_info({"id": data.account_id}, data.fields)

    def get_shop_account_list(
        self,
        filters: dict[str, Any],
        fields: Iterable[str],
        order_bys: Iterable[tuple[str, str]] = (),
        skip: int = 0,
        limit: int = 20,
    ) -> list[dict]:
        data = validate_input(
            AccountListQuery,
            filters=dict(filters),
            fields=list(fields),
            order_bys=list(order_bys),
            skip=skip,
            limit=limit,
        )
        return self.store.get_shop_account_list(data.filters, data.fields, data.order_bys, data.skip, data.limit)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _verify_account_login(self, account: str, password: str) -> dict:
        account_info = self.store.get_shop_account_info({"is_valid": 1, "account": account}, _LOGIN_FIELDS)
        if account_info is None:
            burn_password_check(password)
            raise InvalidArgument("Shop account does not exist or is disabled")

        if not verify_password(password, account_info["password_hash"]):
            logger.warning("Failed login for shop account %d", account_info["id"])
            raise AuthenticationError("Wrong shop account or password")

        return account_info

    def _check_account_occupied(self, account: str) -> None:
        # Disabled accounts still hold their name.
        if self.store.get_shop_account_info({"account": account}, ["id"]) is not None:
            raise InvalidArgument("Account is already taken")

    def _set_valid(self, account_id: int, valid: bool) -> int:
        if not isinstance(account_id, int) or isinstance(account_id, bool) or account_id < 1:
            raise InvalidArgument("Shop account id must be a positive integer")
        try:
            return self.store.update_shop_account({"id": account_id}, {"is_valid": valid})
        except SQLAlchemyError as exc:
            logger.exception("Failed to set is_valid=%s on shop account %d", valid, account_id)
            raise OperationFailed("Failed to update shop account") from exc

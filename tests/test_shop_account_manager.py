"""Tests for auth/manager.py -- ShopAccountManager end to end on in-memory stores.

Covers:
- Registration: happy path, duplicate names (pre-check and lost race), no write on failure
- Login: error kinds for unknown account vs wrong password, dummy bcrypt on a miss
- check_login(): missing/unknown/expired tokens, sliding expiry, snapshot semantics,
  and no revival of a token logged out mid-check
- update_password(): wrong old password leaves the hash alone; success rotates it
- Profile/shop updates: rows affected, OperationFailed with logged parameters
- disable/enable, logout, account info/list queries and their field whitelist
- Validation errors name the offending field; 72-byte password cap; email syntax
"""

import logging

import pytest
from sqlalchemy.exc import OperationalError

import auth.manager as manager_module
from auth.manager import ShopAccountManager
from auth.models import LoginInfo
from auth.store import ShopAccountStore
from auth.tokens import verify_password
from core.errors import AuthenticationError, InvalidArgument, OperationFailed

PROFILE = ("Name", "13800000000", "a@b.com")


def _db_down(*args, **kwargs):
    raise OperationalError("UPDATE shop_account", {}, Exception("db down"))


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


class TestRegister:
    def test_returns_positive_id_then_login_issues_token(self, manager: ShopAccountManager) -> None:
        account_id = manager.register_shop_account("shopuser1", "pass123", 1, 1, *PROFILE)
        assert isinstance(account_id, int) and account_id > 0

        info = manager.login_shop_account("shopuser1", "pass123")
        assert isinstance(info, LoginInfo)
        assert info.token
        assert info.account_id == account_id

    def test_password_is_stored_hashed(
        self, manager: ShopAccountManager, account_store: ShopAccountStore, registered: int
    ) -> None:
        record = account_store.get_by_id(registered)
        assert record.password_hash != "pass123"
        assert verify_password("pass123", record.password_hash)

    def test_shop_id_defaults_to_zero(
        self, manager: ShopAccountManager, account_store: ShopAccountStore, registered: int
    ) -> None:
        assert account_store.get_by_id(registered).shop_id == 0

    def test_duplicate_account_rejected_without_write(
        self, manager: ShopAccountManager, account_store: ShopAccountStore, registered: int
    ) -> None:
        with pytest.raises(InvalidArgument, match="already taken"):
            manager.register_shop_account("shopuser1", "other456", 2, 0, *PROFILE)
        assert len(account_store.get_shop_account_list({}, ["id"])) == 1

    def test_disabled_account_still_holds_its_name(self, manager: ShopAccountManager, registered: int) -> None:
        manager.disable_shop_account(registered)
        with pytest.raises(InvalidArgument, match="already taken"):
            manager.register_shop_account("shopuser1", "other456", 1, 1, *PROFILE)

    def test_lost_race_translated_to_invalid_argument(
        self,
        manager: ShopAccountManager,
        account_store: ShopAccountStore,
        registered: int,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """A concurrent insert that beats the pre-check hits UNIQUE(account)."""
        monkeypatch.setattr(manager, "_check_account_occupied", lambda account: None)
        with pytest.raises(InvalidArgument, match="already taken"):
            manager.register_shop_account("shopuser1", "other456", 1, 1, *PROFILE)
        assert len(account_store.get_shop_account_list({}, ["id"])) == 1

    @pytest.mark.parametrize(
        "password, message",
        [("12345678", "all digits"), ("abcdefgh", "all letters"), ("abc1", "Password")],
    )
    def test_bad_password_rejected_without_write(
        self, manager: ShopAccountManager, account_store: ShopAccountStore, password: str, message: str
    ) -> None:
        with pytest.raises(InvalidArgument, match=message):
            manager.register_shop_account("shopuser1", password, 1, 1, *PROFILE)
        assert account_store.get_shop_account_list({}, ["id"]) == []

    def test_multibyte_password_over_72_bytes_rejected(
        self, manager: ShopAccountManager, account_store: ShopAccountStore
    ) -> None:
        password = "\N{GRINNING FACE}" * 18 + "a1"
        assert len(password) == 20
        with pytest.raises(InvalidArgument, match="Password: must be at most 72 bytes"):
            manager.register_shop_account("shopuser9", password, 1, 1, *PROFILE)
        assert account_store.get_shop_account_list({}, ["id"]) == []

    def test_non_ascii_password_within_byte_limit(self, manager: ShopAccountManager) -> None:
        password = "\u5bc6\u7801" * 5 + "abc123"
        manager.register_shop_account("shopuser9", password, 1, 1, *PROFILE)
        assert manager.login_shop_account("shopuser9", password).token

    @pytest.mark.parametrize("email", ["a..b@x.com", ".a@x.com", "a.@x.com", "a@b", "a b@x.com", "a@@x.com"])
    def test_malformed_email_rejected(
        self, manager: ShopAccountManager, account_store: ShopAccountStore, email: str
    ) -> None:
        with pytest.raises(InvalidArgument, match="Contact email"):
            manager.register_shop_account("shopuser1", "pass123", 1, 1, "Name", "13800000000", email)
        assert account_store.get_shop_account_list({}, ["id"]) == []

    def test_malformed_email_rejected_on_update(self, manager: ShopAccountManager, registered: int) -> None:
        with pytest.raises(InvalidArgument, match="Contact email"):
            manager.update_shop_account(registered, 1, 1, "Name", "13800000000", "a..b@x.com")

    @pytest.mark.parametrize(
        "overrides, label",
        [
            ({"account": "ab"}, "Shop account"),
            ({"account": "12345678"}, "Login account cannot be all digits"),
            ({"type": 3}, "Account type"),
            ({"role_id": -1}, "Role id"),
            ({"name": ""}, "Contact name"),
            ({"mobile": "12345"}, "Contact mobile"),
            ({"email": "not-an-email"}, "Contact email"),
            ({"shop_id": -1}, "Shop id"),
        ],
    )
    def test_validation_errors_name_the_field(
        self, manager: ShopAccountManager, overrides: dict, label: str
    ) -> None:
        kwargs = dict(
            account="shopuser1",
            password="pass123",
            type=1,
            role_id=1,
            name="Name",
            mobile="13800000000",
            email="a@b.com",
            shop_id=0,
        )
        kwargs.update(overrides)
        with pytest.raises(InvalidArgument, match=label):
            manager.register_shop_account(**kwargs)


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


class TestLogin:
    def test_wrong_password_is_authentication_error(
        self, manager: ShopAccountManager, registered: int, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.WARNING, logger="shopadmin.auth"):
            with pytest.raises(AuthenticationError, match="Wrong shop account or password"):
                manager.login_shop_account("shopuser1", "wrong123")
        assert f"Failed login for shop account {registered}" in caplog.text

    def test_unknown_account_is_invalid_argument(self, manager: ShopAccountManager) -> None:
        with pytest.raises(InvalidArgument, match="does not exist"):
            manager.login_shop_account("nobody99", "pass123")

    def test_unknown_account_still_runs_bcrypt(
        self, manager: ShopAccountManager, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        burned = []
        monkeypatch.setattr(manager_module, "burn_password_check", burned.append)
        with pytest.raises(InvalidArgument):
            manager.login_shop_account("nobody99", "pass123")
        assert burned == ["pass123"]

    def test_disabled_account_cannot_log_in(self, manager: ShopAccountManager, registered: int) -> None:
        manager.disable_shop_account(registered)
        with pytest.raises(InvalidArgument, match="disabled"):
            manager.login_shop_account("shopuser1", "pass123")

        manager.enable_shop_account(registered)
        assert manager.login_shop_account("shopuser1", "pass123").token

    def test_login_info_carries_identity(self, manager: ShopAccountManager, registered: int) -> None:
        manager.relate_account_with_shop(registered, 7)
        info = manager.login_shop_account("shopuser1", "pass123")
        assert (info.account_id, info.account, info.shop_id, info.type, info.role_id) == (
            registered,
            "shopuser1",
            7,
            1,
            1,
        )

    def test_each_login_gets_a_new_token(self, manager: ShopAccountManager, registered: int) -> None:
        first = manager.login_shop_account("shopuser1", "pass123").token
        second = manager.login_shop_account("shopuser1", "pass123").token
        assert first != second
        assert manager.check_login(first)["account_id"] == registered
        assert manager.check_login(second)["account_id"] == registered


# ---------------------------------------------------------------------------
# Session check
# ---------------------------------------------------------------------------


class TestCheckLogin:
    def test_fresh_token_resolves_to_identity(self, manager: ShopAccountManager, registered: int) -> None:
        token = manager.login_shop_account("shopuser1", "pass123").token
        assert manager.check_login(token) == {
            "account_id": registered,
            "account": "shopuser1",
            "shop_id": 0,
            "type": 1,
            "role_id": 1,
        }

    @pytest.mark.parametrize("token", ["", None])
    def test_missing_token_is_invalid_argument(self, manager: ShopAccountManager, token) -> None:
        with pytest.raises(InvalidArgument, match="token is missing"):
            manager.check_login(token)

    def test_unknown_token_is_authentication_error(self, manager: ShopAccountManager) -> None:
        with pytest.raises(AuthenticationError, match="expired"):
            manager.check_login("not-a-real-token")

    def test_unread_token_expires(self, manager: ShopAccountManager, registered: int, clock) -> None:
        token = manager.login_shop_account("shopuser1", "pass123").token
        clock.advance(manager.token_cache.ttl)
        with pytest.raises(AuthenticationError):
            manager.check_login(token)

    def test_read_token_slides_past_original_expiry(
        self, manager: ShopAccountManager, registered: int, clock
    ) -> None:
        ttl = manager.token_cache.ttl
        token = manager.login_shop_account("shopuser1", "pass123").token
        clock.advance(ttl - 60)
        manager.check_login(token)
        clock.advance(ttl - 60)
        assert manager.check_login(token)["account_id"] == registered
        clock.advance(ttl)
        with pytest.raises(AuthenticationError):
            manager.check_login(token)

    def test_snapshot_not_refreshed_by_profile_update(self, manager: ShopAccountManager, registered: int) -> None:
        token = manager.login_shop_account("shopuser1", "pass123").token
        manager.update_shop_account(registered, 2, 5, *PROFILE)
        assert manager.check_login(token)["role_id"] == 1
        fresh = manager.login_shop_account("shopuser1", "pass123").token
        assert manager.check_login(fresh)["role_id"] == 5

    def test_logout_revokes_token(self, manager: ShopAccountManager, registered: int) -> None:
        token = manager.login_shop_account("shopuser1", "pass123").token
        assert manager.logout_shop_account(token) is True
        with pytest.raises(AuthenticationError):
            manager.check_login(token)
        assert manager.logout_shop_account(token) is False

    def test_logout_between_read_and_renewal_stays_revoked(
        self, manager: ShopAccountManager, registered: int, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        token = manager.login_shop_account("shopuser1", "pass123").token
        cache = manager.token_cache
        read = cache.get_login_token_cache

        def read_then_logout(t: str):
            snapshot = read(t)
            manager.logout_shop_account(t)
            return snapshot

        monkeypatch.setattr(cache, "get_login_token_cache", read_then_logout)
        with pytest.raises(AuthenticationError, match="expired"):
            manager.check_login(token)
        monkeypatch.undo()
        assert cache.get_login_token_cache(token) is None

    def test_logout_without_token(self, manager: ShopAccountManager) -> None:
        with pytest.raises(InvalidArgument):
            manager.logout_shop_account("")


# ---------------------------------------------------------------------------
# Password change
# ---------------------------------------------------------------------------


class TestUpdatePassword:
    def test_wrong_old_password_leaves_hash(
        self, manager: ShopAccountManager, account_store: ShopAccountStore, registered: int
    ) -> None:
        before = account_store.get_by_id(registered).password_hash
        with pytest.raises(InvalidArgument, match="Old password is incorrect"):
            manager.update_password(registered, "wrong123", "newpass456")
        assert account_store.get_by_id(registered).password_hash == before

    def test_success_rotates_hash(
        self, manager: ShopAccountManager, account_store: ShopAccountStore, registered: int
    ) -> None:
        before = account_store.get_by_id(registered).password_hash
        assert manager.update_password(registered, "pass123", "newpass456") is True
        after = account_store.get_by_id(registered).password_hash
        assert after != before
        assert verify_password("newpass456", after)
        assert not verify_password("pass123", after)

        with pytest.raises(AuthenticationError):
            manager.login_shop_account("shopuser1", "pass123")
        assert manager.login_shop_account("shopuser1", "newpass456").token

    def test_new_password_format_enforced(
        self, manager: ShopAccountManager, account_store: ShopAccountStore, registered: int
    ) -> None:
        before = account_store.get_by_id(registered).password_hash
        with pytest.raises(InvalidArgument, match="all digits"):
            manager.update_password(registered, "pass123", "98765432")
        assert account_store.get_by_id(registered).password_hash == before

    def test_multibyte_new_password_over_72_bytes_rejected(
        self, manager: ShopAccountManager, account_store: ShopAccountStore, registered: int
    ) -> None:
        before = account_store.get_by_id(registered).password_hash
        with pytest.raises(InvalidArgument, match="New password: must be at most 72 bytes"):
            manager.update_password(registered, "pass123", "\N{GRINNING FACE}" * 18 + "a1")
        assert account_store.get_by_id(registered).password_hash == before

    def test_non_ascii_new_password(self, manager: ShopAccountManager, registered: int) -> None:
        password = "\u5bc6\u7801" * 5 + "abc123"
        assert manager.update_password(registered, "pass123", password) is True
        assert manager.login_shop_account("shopuser1", password).token

    def test_short_new_password_names_field(self, manager: ShopAccountManager, registered: int) -> None:
        with pytest.raises(InvalidArgument, match="New password"):
            manager.update_password(registered, "pass123", "a1")

    def test_unknown_or_disabled_account(self, manager: ShopAccountManager, registered: int) -> None:
        with pytest.raises(InvalidArgument, match="does not exist"):
            manager.update_password(registered + 100, "pass123", "newpass456")
        manager.disable_shop_account(registered)
        with pytest.raises(InvalidArgument, match="disabled"):
            manager.update_password(registered, "pass123", "newpass456")


# ---------------------------------------------------------------------------
# Profile and shop updates
# ---------------------------------------------------------------------------


class TestProfileUpdates:
    def test_update_profile(self, manager: ShopAccountManager, registered: int) -> None:
        assert manager.update_shop_account(registered, 2, 4, "Renamed", "13900000000", "b@c.org") == 1
        info = manager.get_shop_account_info(registered, ["type", "role_id", "name", "mobile", "email"])
        assert info == {"type": 2, "role_id": 4, "name": "Renamed", "mobile": "13900000000", "email": "b@c.org"}

    def test_update_missing_account_affects_nothing(self, manager: ShopAccountManager) -> None:
        assert manager.update_shop_account(42, 1, 1, *PROFILE) == 0

    def test_update_storage_failure_is_logged_and_wrapped(
        self,
        manager: ShopAccountManager,
        registered: int,
        monkeypatch: pytest.MonkeyPatch,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        monkeypatch.setattr(manager.store, "update_shop_account", _db_down)
        with caplog.at_level(logging.ERROR, logger="shopadmin.auth"):
            with pytest.raises(OperationFailed) as excinfo:
                manager.update_shop_account(registered, 2, 4, *PROFILE)
        assert isinstance(excinfo.value.__cause__, OperationalError)
        record = caplog.records[-1]
        assert record.getMessage() == f"Failed to update shop account {registered}"
        assert record.params["role_id"] == 4
        assert record.params["account_id"] == registered

    def test_relate_account_with_shop(self, manager: ShopAccountManager, registered: int) -> None:
        assert manager.relate_account_with_shop(registered, 7) == 1
        assert manager.get_shop_account_info(registered, ["shop_id"]) == {"shop_id": 7}

    def test_relate_requires_real_shop(self, manager: ShopAccountManager, registered: int) -> None:
        with pytest.raises(InvalidArgument, match="Shop id"):
            manager.relate_account_with_shop(registered, 0)

    def test_relate_storage_failure_is_wrapped(
        self,
        manager: ShopAccountManager,
        registered: int,
        monkeypatch: pytest.MonkeyPatch,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        monkeypatch.setattr(manager.store, "update_shop_account", _db_down)
        with caplog.at_level(logging.ERROR, logger="shopadmin.auth"):
            with pytest.raises(OperationFailed):
                manager.relate_account_with_shop(registered, 7)
        assert caplog.records[-1].params == {"account_id": registered, "shop_id": 7}

    def test_disable_and_enable(self, manager: ShopAccountManager, registered: int) -> None:
        assert manager.disable_shop_account(registered) == 1
        assert manager.get_shop_account_info(registered, ["is_valid"]) == {"is_valid": 0}
        assert manager.enable_shop_account(registered) == 1
        assert manager.get_shop_account_info(registered, ["is_valid"]) == {"is_valid": 1}

    @pytest.mark.parametrize("account_id", [0, -3, True])
    def test_disable_rejects_bad_id(self, manager: ShopAccountManager, account_id) -> None:
        with pytest.raises(InvalidArgument, match="positive integer"):
            manager.disable_shop_account(account_id)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


class TestQueries:
    def test_info_projection(self, manager: ShopAccountManager, registered: int) -> None:
        assert manager.get_shop_account_info(registered, ["account", "shop_id"]) == {
            "account": "shopuser1",
            "shop_id": 0,
        }

    def test_info_miss(self, manager: ShopAccountManager) -> None:
        assert manager.get_shop_account_info(5, ["id"]) is None

    def test_password_hash_is_not_readable(self, manager: ShopAccountManager, registered: int) -> None:
        with pytest.raises(InvalidArgument, match="Account fields"):
            manager.get_shop_account_info(registered, ["account", "password_hash"])
        with pytest.raises(InvalidArgument, match="Account fields"):
            manager.get_shop_account_list({}, ["password_hash"])

    def test_cannot_filter_on_password_hash(self, manager: ShopAccountManager, registered: int) -> None:
        with pytest.raises(InvalidArgument, match="Account filters"):
            manager.get_shop_account_list({"password_hash": "x"}, ["id"])

    def test_list_sorted_and_paged(self, manager: ShopAccountManager) -> None:
        for account in ("alpha01", "bravo02", "charlie3"):
            manager.register_shop_account(account, "pass123", 2, 0, *PROFILE, shop_id=4)
        rows = manager.get_shop_account_list({"shop_id": 4}, ["account"], order_bys=[("account", "DESC")], limit=2)
        assert [r["account"] for r in rows] == ["charlie3", "bravo02"]

    def test_list_rejects_bad_sort_and_limit(self, manager: ShopAccountManager) -> None:
        with pytest.raises(InvalidArgument, match="Sort order"):
            manager.get_shop_account_list({}, ["id"], order_bys=[("id", "up")])
        with pytest.raises(InvalidArgument, match="Limit"):
            manager.get_shop_account_list({}, ["id"], limit=0)

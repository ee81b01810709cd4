"""
tests/conftest.py -- Shared test fixtures for ShopAdmin.

This module provides:
  - account_store: ShopAccountStore on a private in-memory SQLite DB
  - privilege_store: PrivilegeStore on a private in-memory SQLite DB
  - clock / token_cache: in-memory LoginTokenCache driven by a fake clock
  - manager: ShopAccountManager wired to the two fixtures above
  - registered: id of "shopuser1" / "pass123", registered through the manager

Each store fixture creates its own engine on sqlite:///:memory:. SQLAlchemy
pins an in-memory SQLite DB to one connection per thread, so every test gets
a blank schema and nothing leaks between tests.

DEBUG must be set before any auth/core import so get_settings() can
auto-generate SECRET_KEY instead of raising. BCRYPT_ROUNDS is lowered to keep
the suite fast; the production default (10) is asserted in test_config.py.
"""

from __future__ import annotations

import os
from collections.abc import Generator

os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest

from auth.manager import ShopAccountManager
from auth.store import ShopAccountStore
from cache.store import LoginTokenCache
from privilege.store import PrivilegeStore

TTL = 600


class FakeClock:
    """Callable stand-in for time.time() that only moves when told to."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def account_store() -> Generator[ShopAccountStore, None, None]:
    store = ShopAccountStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def privilege_store() -> Generator[PrivilegeStore, None, None]:
    store = PrivilegeStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def token_cache(clock: FakeClock) -> Generator[LoginTokenCache, None, None]:
    cache = LoginTokenCache(":memory:", ttl=TTL, clock=clock)
    yield cache
    cache.close()


@pytest.fixture
def manager(account_store: ShopAccountStore, token_cache: LoginTokenCache) -> ShopAccountManager:
    return ShopAccountManager(account_store, token_cache)


@pytest.fixture
def registered(manager: ShopAccountManager) -> int:
    return manager.register_shop_account("shopuser1", "pass123", 1, 1, "Name", "13800000000", "a@b.com")

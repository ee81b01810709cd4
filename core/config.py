"""
core/config.py -- ShopAdmin settings, read from the environment or a .env file.

Only this module reads environment variables. Everything else asks
get_settings() for the shared Settings instance, which is built once and
cached.

Variable names follow the field names upper-cased: SECRET_KEY, DATABASE_URL,
TOKEN_CACHE_PATH, LOGIN_TOKEN_TTL_SECONDS, BCRYPT_ROUNDS, LOG_LEVEL, DEBUG.

SECRET_KEY keys the HMAC under which login tokens are filed in the token
cache. It must be at least 32 characters. With DEBUG=true a random one is
generated when none is set; otherwise startup fails.

Layer rule: core/ imports nothing from auth/, cache/ or privilege/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("shopadmin.config")

_DATA_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """Runtime configuration for the account, token and role stores.

    Every field has a default, so tests can build Settings() with no .env.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    # "" means unset; validate_secret_key replaces it or fails.
    secret_key: str = ""
    log_level: str = "INFO"

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    database_url: str = f"sqlite:///{_DATA_DIR / 'shopadmin.db'}"
    token_cache_path: str = str(_DATA_DIR / "shopadmin_tokens.db")

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    # Sliding window: every successful check_login() pushes expiry this far out.
    login_token_ttl_seconds: int = Field(default=7200, gt=0)
    bcrypt_rounds: int = Field(default=10, ge=4, le=31)

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Fill in or reject SECRET_KEY.

        A generated dev key changes on every restart, which orphans every
        cached login token.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("Using auto-generated SECRET_KEY. Login tokens will not survive a restart.")
            else:
                raise ValueError("SECRET_KEY is required unless DEBUG=true. Set it in the environment or .env.")
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Shared Settings instance. Tests call get_settings.cache_clear() after changing env vars."""
    return Settings()

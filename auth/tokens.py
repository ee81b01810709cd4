"""
auth/tokens.py -- Password hashing and login token utilities.

Security design decisions:
  Passwords: bcrypt with cost factor Settings.bcrypt_rounds (10 by default).
       The _DUMMY_HASH constant enables timing equalization in the login path
       so response time does not reveal whether an account exists.

  Login tokens: secrets.token_urlsafe(32) gives 256 bits of entropy and has
       no decodable structure. Tokens are never derived from the account name
       or the clock.

  Token digests: the token cache is keyed by HMAC-SHA256(SECRET_KEY, token),
       so a copy of the cache file does not yield usable tokens. bcrypt's
       intentional slowness is unnecessary for 256-bit random values.

Layer rule: no imports from cache/ or privilege/. Import from core/ is allowed.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets

import bcrypt

from core.config import get_settings

_settings = get_settings()

_TOKEN_BYTES = 32


# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt rejects or truncates input past 72 bytes. auth.schemas refuses
    longer passwords (PASSWORD_MAX_BYTES) before they get here.
    """
    salt = bcrypt.gensalt(rounds=_settings.bcrypt_rounds)
    return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    A malformed stored hash counts as a mismatch rather than an error.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


# Computed once at module load so the first failed lookup is not measurably
# slower than later ones.
_DUMMY_HASH: str = hash_password("shopadmin_timing_dummy1")


def burn_password_check(plain: str) -> None:
    """Run a bcrypt check against the dummy hash and discard the result.

    Called when an account lookup misses, so the miss costs the same bcrypt
    work as a real password comparison.
    """
    verify_password(plain, _DUMMY_HASH)


# ---------------------------------------------------------------------------
# Login tokens
# ---------------------------------------------------------------------------


def generate_login_token() -> str:
    """Return a new opaque login token (URL-safe base64, 43 characters)."""
    return secrets.token_urlsafe(_TOKEN_BYTES)


def hash_login_token(token: str) -> str:
    """Return HMAC-SHA256(SECRET_KEY, token) as a hex string.

    Deterministic, so the cache can look a token up by digest in O(1).
    """
    return hmac.new(
        _settings.secret_key.encode(),
        token.encode(),
        hashlib.sha256,
    ).hexdigest()

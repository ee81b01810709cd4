"""
auth/credentials.py -- Format rules for login accounts and passwords.

These run after field-level validation (length, type) and before anything
touches the store. They keep no state: there is no password history or
repeat policy here.
"""

from __future__ import annotations

import re
from typing import Optional

from core.errors import InvalidArgument

# Numeric strings in every form a form field might carry them:
# "123", "-4", "1.5", ".5", "1e3", with surrounding whitespace.
_NUMERIC_RE = re.compile(r"^\s*[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?\s*$")

# Allowed account characters: anything except ASCII 0x00-0x2d, "/",
# 0x3a-0x3f (":;<=>?") and "^". Letters, digits, ".", "@", "_" and
# non-ASCII characters pass.
_ACCOUNT_RE = re.compile(r"^[^\x00-\x2d/\x3a-\x3f^]+$")

_ALL_LETTERS_RE = re.compile(r"^[a-z]*$", re.IGNORECASE)


def is_numeric(value: str) -> bool:
    return bool(_NUMERIC_RE.match(value))


def check_account_and_password(account: Optional[str], password: Optional[str]) -> bool:
    """Check the format of an account name and/or a password.

    Either argument may be None or empty, in which case it is skipped:
    registration checks both, a password change checks only the new password.

    Raises InvalidArgument naming the rule that was broken.
    """
    if account:
        if is_numeric(account):
            raise InvalidArgument("Login account cannot be all digits")
        if not _ACCOUNT_RE.match(account.strip()):
            raise InvalidArgument("Login account contains illegal characters")

    if password:
        if is_numeric(password):
            raise InvalidArgument("Password cannot be all digits")
        if _ALL_LETTERS_RE.match(password.strip()):
            raise InvalidArgument("Password cannot be all letters")

    return True

"""
core/errors.py -- Error taxonomy shared by every ShopAdmin layer.

  InvalidArgument      malformed or missing input, or a business-rule
                       violation (duplicate account, wrong old password,
                       empty token). Message is user-facing.
  AuthenticationError  wrong password or an unknown/expired login token.
  OperationFailed      unexpected storage failure during a write. The
                       original exception is logged and chained; the
                       message stays generic.

Nothing in this package retries. Errors propagate straight to the caller.
"""


class ShopAdminError(Exception):
    """Base class for all errors raised by ShopAdmin managers and stores."""


class InvalidArgument(ShopAdminError):
    pass


class AuthenticationError(ShopAdminError):
    pass


class OperationFailed(ShopAdminError):
    pass
